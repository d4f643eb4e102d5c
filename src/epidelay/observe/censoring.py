# src/epidelay/observe/censoring.py
# Interval censoring: replace exact event times by the window that contains them.
import logging
import math

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def _check_width(name, width):
    try:
        width = float(width)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be numeric, got {width!r}") from None
    if not math.isfinite(width) or width <= 0.0:
        raise ConfigurationError(f"{name} must be a positive finite interval width, got {width!r}")
    return width


def censor_times(times, width):
    """Return (lower, upper) bounds of the width-sized windows containing times.

    lower = floor(t / width) * width; the window index is nudged by one where
    floating point puts t outside [lower, lower + width).
    """
    width = _check_width("width", width)
    t = np.asarray(times, dtype=float)
    k = np.floor(t / width)

    lower = k * width
    k = np.where(t < lower, k - 1, k)
    lower = k * width
    k = np.where(t >= lower + width, k + 1, k)

    lower = k * width
    upper = lower + width
    return lower, upper


def apply_censoring(records: pd.DataFrame, primary_width=1.0, secondary_width=1.0) -> pd.DataFrame:
    """Interval-censor primary and secondary event times.

    Args:
        records (pd.DataFrame): needs 'ptime' and 'stime'
        primary_width (float): window width for primary events (default 1 day)
        secondary_width (float): window width for secondary events (default 1 day)
    Returns:
        pd.DataFrame: copy with ptime_lwr, ptime_upr, stime_lwr, stime_upr and
        observed_delay = stime_lwr - ptime_lwr
    Raises:
        ConfigurationError: missing columns or a width that is not > 0
    """
    primary_width = _check_width("primary_width", primary_width)
    secondary_width = _check_width("secondary_width", secondary_width)
    missing = [c for c in ("ptime", "stime") if c not in records.columns]
    if missing:
        raise ConfigurationError(f"records are missing column(s) {missing} needed for censoring")

    out = records.copy()
    out["ptime_lwr"], out["ptime_upr"] = censor_times(out["ptime"].to_numpy(), primary_width)
    out["stime_lwr"], out["stime_upr"] = censor_times(out["stime"].to_numpy(), secondary_width)
    out["observed_delay"] = out["stime_lwr"] - out["ptime_lwr"]
    logger.debug("Censored %d records (widths %s, %s)", len(out), primary_width, secondary_width)
    return out
