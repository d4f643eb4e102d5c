# src/epidelay/observe/truncation.py
# Right truncation at the observation time, then partial ascertainment.
import logging
import math

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import ConfigurationError, DataInsufficiencyError, check_count

logger = logging.getLogger(__name__)


def _observable(records, obs_time):
    try:
        obs_time = float(obs_time)
    except (TypeError, ValueError):
        raise ConfigurationError(f"obs_time must be numeric, got {obs_time!r}") from None
    if not math.isfinite(obs_time):
        raise ConfigurationError(f"obs_time must be finite, got {obs_time!r}")
    if "stime_upr" not in records.columns:
        raise ConfigurationError("records have no 'stime_upr' column; apply censoring before truncation")
    return obs_time, records["stime_upr"].to_numpy(dtype=float) <= obs_time


def truncation_partition(records: pd.DataFrame, obs_time):
    """Split records into (observable, not yet observable) at obs_time."""
    obs_time, keep = _observable(records, obs_time)
    out = records.copy()
    out["obs_time"] = obs_time
    return out[keep].reset_index(drop=True), out[~keep].reset_index(drop=True)


def apply_truncation(records: pd.DataFrame, obs_time) -> pd.DataFrame:
    """Keep records whose secondary window closes by obs_time.

    Args:
        records (pd.DataFrame): censored records with 'stime_upr'
        obs_time (float): observation cutoff, stored on every row as 'obs_time'
    Returns:
        pd.DataFrame: rows with stime_upr <= obs_time
    Raises:
        ConfigurationError: bad obs_time or uncensored input
        DataInsufficiencyError: nothing is observable by obs_time
    """
    retained, dropped = truncation_partition(records, obs_time)
    if retained.empty:
        raise DataInsufficiencyError(
            f"No records have stime_upr <= obs_time={obs_time} ({len(dropped)} records truncated)"
        )
    logger.debug("Truncation at %s kept %d of %d records", obs_time, len(retained), len(records))
    return retained


def apply_sampling(records: pd.DataFrame, sample_size, seed=None) -> pd.DataFrame:
    """Uniform sample of exactly sample_size records without replacement.

    Raises:
        ConfigurationError: sample_size is not a non-negative integer
        DataInsufficiencyError: sample_size exceeds the number of records
    """
    sample_size = check_count("sample_size", sample_size)
    n = len(records)
    if sample_size > n:
        raise DataInsufficiencyError(
            f"sample_size={sample_size} exceeds the {n} records available after truncation"
        )
    rng = default_rng(seed)
    idx = rng.choice(n, size=sample_size, replace=False)
    return records.iloc[np.asarray(idx, dtype=int)].reset_index(drop=True)


def observe(records: pd.DataFrame, obs_time, sample_size=None, seed=None) -> pd.DataFrame:
    """Truncate at obs_time, then subsample (in that order)."""
    truncated = apply_truncation(records, obs_time)
    if sample_size is None:
        return truncated
    return apply_sampling(truncated, sample_size, seed=seed)
