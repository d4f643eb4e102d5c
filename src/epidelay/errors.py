# src/epidelay/errors.py
"""
Exceptions raised by the simulation and observation pipeline.

Bad input (parameter ranges, columns, bounds) raises ConfigurationError as
soon as it is seen. Stochastic outcomes that leave too little data to work
with raise DataInsufficiencyError instead, so callers can tell the two apart.
"""
import math
import numbers


class ConfigurationError(ValueError):
    """Invalid parameter, missing column or inconsistent bounds."""


class DataInsufficiencyError(RuntimeError):
    """Not enough records left to satisfy the request."""


def check_count(name, value, minimum=0):
    """Return value as an int, or raise ConfigurationError naming the parameter.

    Accepts ints and integral floats >= minimum; rejects bools, NaN and infinity.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    if not math.isfinite(value) or int(value) != value or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return int(value)
