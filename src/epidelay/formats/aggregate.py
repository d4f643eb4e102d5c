# src/epidelay/formats/aggregate.py
# Grouped-count view of a linelist, and its expansion back to one row per case.
import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ConfigurationError
from .linelist import BOUND_COLUMNS, RESERVED_COLUMNS, LinelistData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateData:
    """Counts of identical (bounds, obs_time, strata) rows in column 'n'."""
    data: pd.DataFrame
    by: Tuple[str, ...] = ()
    origin: object = 0.0

    def __len__(self):
        return len(self.data)

    @property
    def total(self):
        return int(self.data["n"].sum())


def to_aggregate(linelist: LinelistData, by: Sequence[str] = ()) -> AggregateData:
    """Count linelist rows by censoring bounds, obs_time and the `by` covariates.

    Covariates not listed in `by` are dropped. Each group also carries
    observed_delay = stime_lwr - ptime_lwr.

    Raises:
        ConfigurationError: a `by` column is not a covariate of the linelist
    """
    if isinstance(by, str):
        by = (by,)
    by = tuple(by)
    reserved = [c for c in by if c in RESERVED_COLUMNS]
    if reserved:
        raise ConfigurationError(f"Cannot aggregate by {reserved}: names are used by the aggregate columns")
    unknown = [c for c in by if c not in linelist.covariates]
    if unknown:
        raise ConfigurationError(
            f"Cannot aggregate by {unknown}: not covariates of the linelist {list(linelist.covariates)}"
        )

    keys = list(BOUND_COLUMNS) + list(by)
    agg = (
        linelist.data.groupby(keys, sort=True, dropna=False)
        .size()
        .reset_index(name="n")
    )
    agg.insert(len(BOUND_COLUMNS), "observed_delay", agg["stime_lwr"] - agg["ptime_lwr"])
    logger.debug("Aggregated %d linelist rows into %d groups", len(linelist), len(agg))
    return AggregateData(data=agg, by=by, origin=linelist.origin)


def expand_aggregate(aggregate: AggregateData) -> LinelistData:
    """Repeat each aggregate row n times to recover a linelist."""
    counts = aggregate.data["n"].to_numpy()
    if (counts < 0).any():
        raise ConfigurationError("Aggregate counts 'n' must be non-negative")
    columns = list(BOUND_COLUMNS) + list(aggregate.by)
    rows = aggregate.data.loc[np.repeat(aggregate.data.index.to_numpy(), counts), columns]
    return LinelistData(data=rows.reset_index(drop=True), covariates=aggregate.by, origin=aggregate.origin)
