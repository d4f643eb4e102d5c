# src/epidelay/simulate/secondary.py
# Attach a secondary event to every primary case: stime = ptime + delay.
import logging
from typing import Hashable, Mapping, Optional

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import ConfigurationError
from .distributions import get_distribution

logger = logging.getLogger(__name__)


def _require_ptime(cases):
    if "ptime" not in cases.columns:
        raise ConfigurationError(f"cases must have a 'ptime' column, got columns {list(cases.columns)}")


def simulate_secondary(cases: pd.DataFrame, dist: str = "lognormal", seed=None, **params) -> pd.DataFrame:
    """Draw a delay for each case and add the secondary event time.

    Args:
        cases (pd.DataFrame): must contain 'ptime'; other columns are carried over
        dist (str): registered distribution name (see distributions.available_distributions)
        seed: int, numpy Generator or None
        **params: distribution parameters, e.g. meanlog=1.6, sdlog=0.5
    Returns:
        pd.DataFrame: copy of cases with 'delay' and 'stime' columns, same order
    Raises:
        ConfigurationError
    """
    _require_ptime(cases)
    distribution = get_distribution(dist)
    rng = default_rng(seed)

    out = cases.copy()
    delay = distribution.sample(params, len(out), rng=rng)
    out["delay"] = delay
    out["stime"] = out["ptime"].to_numpy(dtype=float) + delay
    logger.debug("Sampled %d %s delays", len(out), dist)
    return out


def assign_strata(cases: pd.DataFrame, column: str = "sex", prob: float = 0.5, seed=None) -> pd.DataFrame:
    """Add a 0/1 covariate drawn as Bernoulli(prob) for each case."""
    if not 0.0 <= prob <= 1.0:
        raise ConfigurationError(f"prob must lie in [0, 1], got {prob!r}")
    if column in cases.columns:
        raise ConfigurationError(f"column '{column}' already exists in cases")
    rng = default_rng(seed)
    out = cases.copy()
    out[column] = rng.binomial(1, prob, size=len(out))
    return out


def simulate_secondary_by(
    cases: pd.DataFrame,
    by: str,
    params_by_level: Mapping[Hashable, Mapping[str, float]],
    dist: str = "lognormal",
    seed=None,
) -> pd.DataFrame:
    """Draw delays with stratum-specific parameters.

    Each level of `by` gets its own parameter set; row order is preserved.

    Args:
        cases (pd.DataFrame): must contain 'ptime' and `by`
        by (str): covariate column used to pick parameters
        params_by_level (dict): level -> distribution parameters
        dist (str): registered distribution name
        seed: int, numpy Generator or None
    """
    _require_ptime(cases)
    if by not in cases.columns:
        raise ConfigurationError(f"stratification column '{by}' not found in cases")
    levels = pd.unique(cases[by])
    missing = [lvl for lvl in levels if lvl not in params_by_level]
    if missing:
        raise ConfigurationError(f"No delay parameters given for level(s) {missing} of '{by}'")

    distribution = get_distribution(dist)
    rng = default_rng(seed)

    delay = np.empty(len(cases), dtype=float)
    stratum = cases[by].to_numpy()
    for lvl in sorted(levels, key=repr):
        mask = stratum == lvl
        delay[mask] = distribution.sample(params_by_level[lvl], int(mask.sum()), rng=rng)

    out = cases.copy()
    out["delay"] = delay
    out["stime"] = out["ptime"].to_numpy(dtype=float) + delay
    return out


def stratified_delays(cases: pd.DataFrame, by: Optional[str] = None, dist: str = "lognormal", seed=None,
                      params: Optional[Mapping[str, float]] = None,
                      params_by_level: Optional[Mapping[Hashable, Mapping[str, float]]] = None) -> pd.DataFrame:
    """Dispatch to simulate_secondary or simulate_secondary_by."""
    if by is None:
        return simulate_secondary(cases, dist=dist, seed=seed, **dict(params or {}))
    if params_by_level is None:
        raise ConfigurationError(f"params_by_level is required when stratifying by '{by}'")
    return simulate_secondary_by(cases, by=by, params_by_level=params_by_level, dist=dist, seed=seed)
