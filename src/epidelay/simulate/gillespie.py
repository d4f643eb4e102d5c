# src/epidelay/simulate/gillespie.py
# ###
# Primary event (infection) times.

# Purpose: produce the ground-truth primary event times of an outbreak. The main
# generator is an exact Gillespie simulation of a stochastic SIR model; two cheaper
# generators (uniform and exponential-growth case times) are kept for quick tests.

# Functions:
# - gillespie_steps(): yields the compartment state after every jump.
# - simulate_gillespie(): runs the jump process to extinction and keeps infections.
# - simulate_uniform_cases() / simulate_exponential_cases(): closed-form case times.
# ###

import logging
import math
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.random import default_rng

from ..errors import ConfigurationError, check_count

logger = logging.getLogger(__name__)

INFECTION = "infection"
RECOVERY = "recovery"


@dataclass(frozen=True)
class CompartmentState:
    time: float
    susceptible: int
    infected: int
    recovered: int
    next_case_id: int = 1

    @property
    def total(self):
        return self.susceptible + self.infected + self.recovered


def _as_float(name, value):
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def _check_rate(name, value):
    value = _as_float(name, value)
    if not math.isfinite(value) or value <= 0.0:
        raise ConfigurationError(f"{name} must be a positive finite number, got {value!r}")
    return value


def _check_epidemic_args(growth_rate, recovery_rate, initial_infected, population_size):
    r = _check_rate("growth_rate", growth_rate)
    gamma = _check_rate("recovery_rate", recovery_rate)

    population_size = check_count("population_size", population_size, minimum=1)
    initial_infected = check_count("initial_infected", initial_infected, minimum=1)
    if initial_infected > population_size:
        raise ConfigurationError(
            f"initial_infected ({initial_infected}) cannot exceed population_size ({population_size})"
        )
    return r, gamma, initial_infected, population_size


def gillespie_steps(growth_rate, recovery_rate, initial_infected, population_size, rng=None):
    """Iterate over the jumps of a stochastic SIR process.

    The transmission rate is beta = growth_rate + recovery_rate, so the early
    exponential growth of infections matches growth_rate when S ~ N.

    Args:
        growth_rate (float): early epidemic growth rate r
        recovery_rate (float): per-capita recovery rate gamma
        initial_infected (int): I0, infected at time zero
        population_size (int): N
        rng: seed or numpy Generator
    Yields:
        (CompartmentState, str): state after the jump and the event that fired
    Raises:
        ConfigurationError
    """
    r, gamma, I0, N = _check_epidemic_args(growth_rate, recovery_rate, initial_infected, population_size)
    rng = default_rng(rng)
    beta = r + gamma

    t = 0.0
    S, I, R = N - I0, I0, 0
    next_case_id = 1

    # I == 0 is the only stopping rule; once S hits zero only recoveries remain
    while I > 0:
        infection_rate = beta * S * I / N
        recovery_rate_now = gamma * I
        total_rate = infection_rate + recovery_rate_now

        t += rng.exponential(1.0 / total_rate)

        if rng.random() * total_rate < infection_rate:
            S -= 1
            I += 1
            next_case_id += 1
            event = INFECTION
        else:
            I -= 1
            R += 1
            event = RECOVERY

        yield CompartmentState(time=t, susceptible=S, infected=I, recovered=R, next_case_id=next_case_id), event


def simulate_gillespie(growth_rate=0.2, recovery_rate=1 / 7, initial_infected=50, population_size=10000, seed=None):
    """Simulate infection times from a stochastic SIR epidemic.

    Runs the Gillespie algorithm until no infected individuals remain and records
    one case per infection event. The initially infected individuals are not cases.

    Args:
        growth_rate (float): early growth rate r (default 0.2)
        recovery_rate (float): gamma (default 1/7)
        initial_infected (int): I0 (default 50)
        population_size (int): N (default 10000)
        seed: int, numpy Generator or None for fresh entropy
    Returns:
        pd.DataFrame with columns case_id (1..K) and ptime (strictly increasing)
    Raises:
        ConfigurationError
    """
    ptimes = []
    for state, event in gillespie_steps(growth_rate, recovery_rate, initial_infected, population_size, rng=seed):
        if event == INFECTION:
            ptimes.append(state.time)

    logger.debug("Gillespie run produced %d infections", len(ptimes))
    return pd.DataFrame({
        "case_id": np.arange(1, len(ptimes) + 1, dtype=int),
        "ptime": np.asarray(ptimes, dtype=float),
    })


def _check_case_args(sample_size, t):
    sample_size = check_count("sample_size", sample_size)
    t = _as_float("t", t)
    if not math.isfinite(t) or t <= 0.0:
        raise ConfigurationError(f"t must be a positive finite number, got {t!r}")
    return sample_size, t


def _cases_frame(ptime):
    ptime = np.sort(ptime)
    return pd.DataFrame({"case_id": np.arange(1, ptime.size + 1, dtype=int), "ptime": ptime})


def simulate_uniform_cases(sample_size=1000, t=60, seed=None):
    """Primary times drawn uniformly on [0, t)."""
    n, t = _check_case_args(sample_size, t)
    rng = default_rng(seed)
    return _cases_frame(rng.uniform(0.0, t, size=n))


def simulate_exponential_cases(r=0.2, sample_size=10000, t=30, seed=None):
    """Primary times from exponential growth at rate r on [0, t).

    Inverts the CDF of the density proportional to exp(r x) on [0, t);
    r == 0 falls back to uniform times.
    """
    n, t = _check_case_args(sample_size, t)
    r = _as_float("r", r)
    if not math.isfinite(r):
        raise ConfigurationError(f"r must be finite, got {r!r}")
    rng = default_rng(seed)
    u = rng.random(n)
    if r == 0.0:
        return _cases_frame(u * t)
    ptime = np.log1p(u * np.expm1(r * t)) / r
    return _cases_frame(ptime)
