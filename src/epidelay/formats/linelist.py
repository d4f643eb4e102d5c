# src/epidelay/formats/linelist.py
"""
Linelist data: one row per case with censoring bounds for both events.

The canonical form holds ptime_lwr, ptime_upr, stime_lwr, stime_upr and
obs_time, all measured in days relative to the earliest ptime_lwr, plus any
covariate columns. Input can be numeric times or datetimes (converted to days).
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

BOUND_COLUMNS = ("ptime_lwr", "ptime_upr", "stime_lwr", "stime_upr", "obs_time")
REQUIRED_COLUMNS = ("ptime_lwr", "stime_lwr", "obs_time")
DEFAULT_WIDTH = 1.0
# Columns added by aggregation
RESERVED_COLUMNS = ("n", "observed_delay")


@dataclass(frozen=True)
class LinelistData:
    """Validated linelist.

    Attributes:
        data (pd.DataFrame): bound columns (relative days) followed by covariates
        covariates (tuple): covariate column names
        origin: value subtracted from every time column (number or Timestamp)
    """
    data: pd.DataFrame
    covariates: Tuple[str, ...] = ()
    origin: Any = 0.0

    def __len__(self):
        return len(self.data)

    @property
    def observed_delay(self) -> pd.Series:
        return (self.data["stime_lwr"] - self.data["ptime_lwr"]).rename("observed_delay")

    @property
    def obs_time(self):
        return float(self.data["obs_time"].max())


def infer_interval_width(lwr, upr=None):
    """Width of each censoring window; 1 day where no upper bound is known."""
    lwr = np.asarray(lwr, dtype=float)
    if upr is None:
        return np.full(lwr.shape, DEFAULT_WIDTH)
    return np.asarray(upr, dtype=float) - lwr


def _as_frame(raw) -> pd.DataFrame:
    if isinstance(raw, pd.DataFrame):
        return raw.copy()
    if isinstance(raw, Mapping):
        try:
            return pd.DataFrame(dict(raw))
        except ValueError as exc:
            raise ConfigurationError(f"Could not build a table from the given columns: {exc}") from exc
    raise ConfigurationError(f"Expected a DataFrame or a mapping of columns, got {type(raw).__name__}")


def _is_datetime(series):
    return pd.api.types.is_datetime64_any_dtype(series)


def _to_days(df, columns):
    """Convert time columns to float days relative to min(ptime_lwr)."""
    kinds = {c: _is_datetime(df[c]) for c in columns}
    if len(set(kinds.values())) > 1:
        mixed = sorted(c for c, is_dt in kinds.items() if is_dt)
        raise ConfigurationError(f"Time columns mix datetimes {mixed} with numbers; use one kind for all")

    for c in columns:
        if df[c].isna().any():
            raise ConfigurationError(f"Column '{c}' contains missing values")

    if all(kinds.values()):
        origin = df["ptime_lwr"].min()
        for c in columns:
            df[c] = (df[c] - origin) / pd.Timedelta(days=1)
        return df, origin

    for c in columns:
        if not pd.api.types.is_numeric_dtype(df[c]) or pd.api.types.is_bool_dtype(df[c]):
            raise ConfigurationError(f"Column '{c}' must be numeric or datetime, got dtype {df[c].dtype}")
        df[c] = df[c].astype(float)
    origin = float(df["ptime_lwr"].min())
    for c in columns:
        df[c] = df[c] - origin
    return df, origin


def to_linelist(raw: Union[pd.DataFrame, Mapping[str, Sequence]],
                covariates: Sequence[str] = (),
                columns: Optional[Mapping[str, str]] = None) -> LinelistData:
    """Validate raw columns and build a relative-time LinelistData.

    Args:
        raw: DataFrame or mapping of column name -> values
        covariates: extra columns to keep (e.g. ["sex"])
        columns: optional renaming {canonical_name: name_in_raw},
            e.g. {"ptime_lwr": "onset_date"}
    Returns:
        LinelistData
    Raises:
        ConfigurationError: missing/non-numeric columns, upr < lwr, or
            obs_time before a secondary upper bound
    """
    df = _as_frame(raw)
    if columns:
        unknown = [k for k in columns if k not in BOUND_COLUMNS]
        if unknown:
            raise ConfigurationError(f"Cannot map unknown canonical column(s) {unknown}; valid: {list(BOUND_COLUMNS)}")
        df = df.rename(columns={v: k for k, v in columns.items()})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ConfigurationError(f"Linelist is missing required column(s) {missing}")
    covariates = tuple(covariates)
    missing_cov = [c for c in covariates if c not in df.columns]
    if missing_cov:
        raise ConfigurationError(f"Covariate column(s) {missing_cov} not found")
    clash = [c for c in covariates if c in BOUND_COLUMNS + RESERVED_COLUMNS]
    if clash:
        raise ConfigurationError(
            f"Covariate name(s) {clash} clash with time or aggregate columns {list(BOUND_COLUMNS + RESERVED_COLUMNS)}"
        )
    if df.empty:
        raise ConfigurationError("Linelist has no rows")

    present = [c for c in BOUND_COLUMNS if c in df.columns]
    df, origin = _to_days(df, present)

    for event in ("ptime", "stime"):
        lwr, upr = f"{event}_lwr", f"{event}_upr"
        if upr in df.columns:
            width = infer_interval_width(df[lwr], df[upr])
            bad = np.flatnonzero(width < 0)
            if bad.size:
                raise ConfigurationError(
                    f"'{upr}' is below '{lwr}' in {bad.size} row(s), first at row {int(bad[0])}"
                )
        else:
            df[upr] = df[lwr] + infer_interval_width(df[lwr])
            logger.debug("No '%s' column; assuming a width of %s", upr, DEFAULT_WIDTH)

    late = np.flatnonzero(df["obs_time"].to_numpy() < df["stime_upr"].to_numpy())
    if late.size:
        raise ConfigurationError(
            f"obs_time is earlier than stime_upr in {late.size} row(s), first at row {int(late[0])}"
        )

    out = df.loc[:, list(BOUND_COLUMNS) + list(covariates)].reset_index(drop=True)
    return LinelistData(data=out, covariates=covariates, origin=origin)


def as_linelist(ptime_lwr, stime_lwr, obs_time, ptime_upr=None, stime_upr=None, **covariates) -> LinelistData:
    """Build a LinelistData from separate vectors; scalars are broadcast."""
    n = len(np.atleast_1d(ptime_lwr))
    cols = {"ptime_lwr": ptime_lwr, "stime_lwr": stime_lwr, "obs_time": obs_time}
    if ptime_upr is not None:
        cols["ptime_upr"] = ptime_upr
    if stime_upr is not None:
        cols["stime_upr"] = stime_upr
    cols.update(covariates)

    expanded = {}
    for name, values in cols.items():
        values = pd.Series(values) if not pd.api.types.is_scalar(values) else pd.Series([values] * n)
        if len(values) != n:
            raise ConfigurationError(f"Column '{name}' has {len(values)} values but ptime_lwr has {n}")
        expanded[name] = values.reset_index(drop=True)
    return to_linelist(expanded, covariates=tuple(covariates))

