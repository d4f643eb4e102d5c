# src/epidelay/models/variants.py
"""
Model data for the three delay models handed to the fitting engine.

- naive: uses the observed daily delay as if it were exact
- latent: event times within their windows are latent variables
- marginal: censoring and truncation are integrated out per row

Each variant keeps only the columns its likelihood needs.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np
import pandas as pd

from ..errors import ConfigurationError
from ..formats.aggregate import AggregateData, expand_aggregate
from ..formats.linelist import LinelistData

logger = logging.getLogger(__name__)


class ModelKind(enum.Enum):
    NAIVE = "naive"
    LATENT = "latent"
    MARGINAL = "marginal"


@dataclass(frozen=True)
class NaiveModelData:
    data: pd.DataFrame
    covariates: Tuple[str, ...] = ()
    kind: ModelKind = ModelKind.NAIVE


@dataclass(frozen=True)
class LatentModelData:
    data: pd.DataFrame
    covariates: Tuple[str, ...] = ()
    kind: ModelKind = ModelKind.LATENT


@dataclass(frozen=True)
class MarginalModelData:
    data: pd.DataFrame
    covariates: Tuple[str, ...] = ()
    kind: ModelKind = ModelKind.MARGINAL


ModelData = Union[NaiveModelData, LatentModelData, MarginalModelData]


def _as_linelist(data):
    if isinstance(data, AggregateData):
        return expand_aggregate(data)
    if isinstance(data, LinelistData):
        return data
    raise ConfigurationError(f"Expected LinelistData or AggregateData, got {type(data).__name__}")


def naive_model(data) -> NaiveModelData:
    """delay = stime_lwr - ptime_lwr, ignoring censoring and truncation."""
    ll = _as_linelist(data)
    df = ll.data
    out = pd.DataFrame({"delay": df["stime_lwr"] - df["ptime_lwr"]})
    for c in ll.covariates:
        out[c] = df[c].to_numpy()
    return NaiveModelData(data=out, covariates=ll.covariates)


def latent_model(data) -> LatentModelData:
    """Windows for the latent event times.

    When the secondary window starts before the primary window ends the two
    overlap, and the primary window is widened to stime_upr - ptime_lwr.
    """
    ll = _as_linelist(data)
    df = ll.data
    woverlap = (df["stime_lwr"] < df["ptime_upr"]).to_numpy()
    pwindow = np.where(
        woverlap,
        df["stime_upr"] - df["ptime_lwr"],
        df["ptime_upr"] - df["ptime_lwr"],
    )
    out = pd.DataFrame({
        "row_id": np.arange(1, len(df) + 1, dtype=int),
        "delay": df["stime_lwr"] - df["ptime_lwr"],
        "pwindow": pwindow,
        "swindow": df["stime_upr"] - df["stime_lwr"],
        "woverlap": woverlap.astype(int),
        "relative_obs_time": df["obs_time"] - df["ptime_lwr"],
    })
    for c in ll.covariates:
        out[c] = df[c].to_numpy()
    return LatentModelData(data=out, covariates=ll.covariates)


def marginal_model(data) -> MarginalModelData:
    """Delay bounds relative to ptime_lwr, with row weights n.

    Aggregate data is used as is; a linelist gets n = 1 per row.
    """
    if isinstance(data, AggregateData):
        df, covariates, n = data.data, data.by, data.data["n"].to_numpy()
    elif isinstance(data, LinelistData):
        df, covariates, n = data.data, data.covariates, np.ones(len(data), dtype=int)
    else:
        raise ConfigurationError(f"Expected LinelistData or AggregateData, got {type(data).__name__}")

    out = pd.DataFrame({
        "delay_lwr": df["stime_lwr"] - df["ptime_lwr"],
        "delay_upr": df["stime_upr"] - df["ptime_lwr"],
        "pwindow": df["ptime_upr"] - df["ptime_lwr"],
        "relative_obs_time": df["obs_time"] - df["ptime_lwr"],
        "n": n,
    })
    for c in covariates:
        out[c] = df[c].to_numpy()
    return MarginalModelData(data=out.reset_index(drop=True), covariates=tuple(covariates))


_BUILDERS = {
    ModelKind.NAIVE: naive_model,
    ModelKind.LATENT: latent_model,
    ModelKind.MARGINAL: marginal_model,
}


def prepare_model(data, kind="latent") -> ModelData:
    """Build model data for `kind` (ModelKind or its string value)."""
    try:
        kind = ModelKind(kind)
    except ValueError:
        raise ConfigurationError(
            f"Unknown model kind {kind!r}; choose from {[k.value for k in ModelKind]}"
        ) from None
    prepared = _BUILDERS[kind](data)
    logger.debug("Prepared %s model data with %d rows", kind.value, len(prepared.data))
    return prepared
