# src/epidelay/models/fitting.py
# Hand-off to an external Bayesian fitting engine.
# The engine builds and samples the model; the returned fit is opaque here.
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional, Protocol

from ..errors import ConfigurationError
from .variants import LatentModelData, MarginalModelData, NaiveModelData

logger = logging.getLogger(__name__)

BACKENDS = ("cmdstanpy", "pystan", "pymc")


@dataclass(frozen=True)
class FitOptions:
    chains: int = 4
    cores: int = 1
    seed: Optional[int] = None
    iter: int = 2000
    backend: str = "cmdstanpy"

    def validate(self):
        for name in ("chains", "cores", "iter"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"FitOptions.{name} must be a positive integer, got {value!r}")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ConfigurationError(f"FitOptions.seed must be an integer or None, got {self.seed!r}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend {self.backend!r}; choose from {list(BACKENDS)}")
        return self


class FittingEngine(Protocol):
    def fit(self, model_data, options: FitOptions) -> Any:
        ...


def fit_model(model_data, engine: FittingEngine, options: Optional[FitOptions] = None, **overrides) -> Any:
    """Validate options and pass prepared model data to the engine.

    Args:
        model_data: NaiveModelData, LatentModelData or MarginalModelData
        engine: object with fit(model_data, options)
        options (FitOptions): defaults if None
        **overrides: replace individual FitOptions fields
    Returns:
        whatever the engine returns
    """
    if not isinstance(model_data, (NaiveModelData, LatentModelData, MarginalModelData)):
        raise ConfigurationError(
            f"model_data must come from prepare_model, got {type(model_data).__name__}"
        )
    options = options or FitOptions()
    try:
        options = replace(options, **overrides)
    except TypeError as exc:
        raise ConfigurationError(f"Unknown fit option: {exc}") from exc
    options.validate()

    logger.info(
        "Fitting %s model (%d rows) with %s: chains=%d cores=%d iter=%d seed=%s",
        model_data.kind.value, len(model_data.data), options.backend,
        options.chains, options.cores, options.iter, options.seed,
    )
    return engine.fit(model_data, options)
