# src/epidelay/simulate/pipeline.py
"""
End-to-end simulation of an observed linelist.

Runs the Gillespie epidemic, attaches delays, censors both events, truncates
at the observation time and subsamples, then normalises into LinelistData.
Each stochastic stage gets its own child stream of one SeedSequence, so a
stage's draws do not depend on how many numbers another stage consumed.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import logging
import pathlib

import numpy as np

from ..formats.linelist import LinelistData, to_linelist
from ..observe.censoring import apply_censoring
from ..observe.truncation import apply_sampling, apply_truncation
from .gillespie import simulate_gillespie
from .secondary import assign_strata, stratified_delays

# Start logger
logger = logging.getLogger(__name__)


@dataclass
class SimConfig:
    growth_rate: float = 0.2
    recovery_rate: float = 1 / 7
    initial_infected: int = 50
    population_size: int = 10000
    dist: str = "lognormal"
    dist_params: Dict[str, float] = field(default_factory=lambda: {"meanlog": 1.6, "sdlog": 0.5})
    primary_width: float = 1.0
    secondary_width: float = 1.0
    obs_time: float = 25.0
    sample_size: Optional[int] = 200
    seed: Optional[int] = None
    # Optional stratification: a Bernoulli covariate with its own delay parameters per level
    strata_column: Optional[str] = None
    strata_prob: float = 0.5
    strata_params: Optional[Dict[int, Dict[str, float]]] = None
    out_path: str = "data/simulated_linelist.csv"

    @property
    def covariates(self) -> Tuple[str, ...]:
        return (self.strata_column,) if self.strata_column else ()


def simulate_records(cfg: SimConfig):
    """Run stages up to sampling and return the observed record frame."""
    epi_ss, strata_ss, delay_ss, sample_ss = np.random.SeedSequence(cfg.seed).spawn(4)

    cases = simulate_gillespie(
        growth_rate=cfg.growth_rate,
        recovery_rate=cfg.recovery_rate,
        initial_infected=cfg.initial_infected,
        population_size=cfg.population_size,
        seed=np.random.default_rng(epi_ss),
    )
    logger.debug("Simulated %d primary cases", len(cases))

    if cfg.strata_column:
        cases = assign_strata(cases, cfg.strata_column, cfg.strata_prob, seed=np.random.default_rng(strata_ss))

    records = stratified_delays(
        cases,
        by=cfg.strata_column,
        dist=cfg.dist,
        seed=np.random.default_rng(delay_ss),
        params=cfg.dist_params,
        params_by_level=cfg.strata_params,
    )
    records = apply_censoring(records, primary_width=cfg.primary_width, secondary_width=cfg.secondary_width)
    records = apply_truncation(records, cfg.obs_time)
    logger.debug("%d records observable by t=%s", len(records), cfg.obs_time)

    if cfg.sample_size is not None:
        records = apply_sampling(records, cfg.sample_size, seed=np.random.default_rng(sample_ss))
    return records


def simulate_linelist(cfg: SimConfig) -> LinelistData:
    """Simulate and return the observed linelist in relative time."""
    records = simulate_records(cfg)
    linelist = to_linelist(records, covariates=cfg.covariates)
    logger.info("Simulated linelist with %d rows (obs_time=%s)", len(linelist), cfg.obs_time)
    return linelist


def write_linelist_csv(linelist: LinelistData, out_path) -> pathlib.Path:
    path = pathlib.Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    linelist.data.to_csv(path, index=False)
    logger.info("CSV written to: %s", path)
    return path
