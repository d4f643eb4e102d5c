# src/epidelay/simulate/distributions.py
# Delay distributions that can be sampled by name.
# Each entry maps named parameters onto a frozen scipy.stats distribution;
# only distributions supported on [0, inf) can be registered, so simulated
# delays are never negative and never truncated at zero.
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Tuple

import numpy as np
from numpy.random import default_rng
from scipy import stats

from ..errors import ConfigurationError, check_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayDistribution:
    """A named delay distribution with a sampling capability.

    Args:
        name (str): lookup name, e.g. "lognormal"
        parameters (tuple): names of the required parameters
        build (callable): maps a dict of parameters to a frozen scipy distribution
        positive (tuple): parameter names that must be > 0
    """
    name: str
    parameters: Tuple[str, ...]
    build: Callable[..., "stats.rv_continuous"]
    positive: Tuple[str, ...] = ()

    def validate(self, params: Mapping[str, float]) -> Dict[str, float]:
        missing = [p for p in self.parameters if p not in params]
        if missing:
            raise ConfigurationError(
                f"Distribution '{self.name}' is missing parameter(s) {missing}; expects {list(self.parameters)}"
            )
        unknown = [p for p in params if p not in self.parameters]
        if unknown:
            raise ConfigurationError(
                f"Distribution '{self.name}' got unknown parameter(s) {unknown}; expects {list(self.parameters)}"
            )

        clean = {}
        for p in self.parameters:
            try:
                value = float(params[p])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Parameter '{p}' of '{self.name}' must be numeric, got {params[p]!r}"
                ) from None
            if not math.isfinite(value):
                raise ConfigurationError(f"Parameter '{p}' of '{self.name}' must be finite, got {value!r}")
            if p in self.positive and value <= 0.0:
                raise ConfigurationError(f"Parameter '{p}' of '{self.name}' must be > 0, got {value!r}")
            clean[p] = value

        lower, _ = self.build(**clean).support()
        if lower < 0:
            raise ConfigurationError(
                f"Distribution '{self.name}' with {clean} has support starting at {lower}; delays must be non-negative"
            )
        return clean

    def sample(self, params: Mapping[str, float], n: int, rng=None) -> np.ndarray:
        """Draw n independent delays."""
        clean = self.validate(params)
        n = check_count("n", n)
        rng = default_rng(rng)
        return np.asarray(self.build(**clean).rvs(size=n, random_state=rng), dtype=float)


# Parameterisations follow R's rlnorm / rgamma / rweibull / rexp
_REGISTRY: Dict[str, DelayDistribution] = {}


def register_distribution(dist: DelayDistribution) -> DelayDistribution:
    """Add a distribution to the lookup table.

    Raises:
        ConfigurationError: if the name is taken or the support can reach below zero
    """
    if dist.name in _REGISTRY:
        raise ConfigurationError(f"Distribution '{dist.name}' is already registered")
    unit_params = {p: 1.0 for p in dist.parameters}
    lower, _ = dist.build(**unit_params).support()
    if lower < 0:
        raise ConfigurationError(
            f"Distribution '{dist.name}' has support starting at {lower}; only non-negative delays are allowed"
        )
    _REGISTRY[dist.name] = dist
    logger.debug("Registered delay distribution %s%s", dist.name, dist.parameters)
    return dist


def get_distribution(name: str) -> DelayDistribution:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown delay distribution '{name}'; available: {available_distributions()}"
        ) from None


def available_distributions():
    return sorted(_REGISTRY)


register_distribution(DelayDistribution(
    name="lognormal",
    parameters=("meanlog", "sdlog"),
    build=lambda meanlog, sdlog: stats.lognorm(s=sdlog, scale=math.exp(meanlog)),
    positive=("sdlog",),
))
register_distribution(DelayDistribution(
    name="gamma",
    parameters=("shape", "rate"),
    build=lambda shape, rate: stats.gamma(a=shape, scale=1.0 / rate),
    positive=("shape", "rate"),
))
register_distribution(DelayDistribution(
    name="weibull",
    parameters=("shape", "scale"),
    build=lambda shape, scale: stats.weibull_min(c=shape, scale=scale),
    positive=("shape", "scale"),
))
register_distribution(DelayDistribution(
    name="exponential",
    parameters=("rate",),
    build=lambda rate: stats.expon(scale=1.0 / rate),
    positive=("rate",),
))
