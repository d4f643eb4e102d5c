import numpy as np
import pandas as pd
import pytest

from epidelay.errors import ConfigurationError
from epidelay.simulate.gillespie import (
    INFECTION,
    gillespie_steps,
    simulate_exponential_cases,
    simulate_gillespie,
    simulate_uniform_cases,
)


def test_same_seed_gives_identical_cases():
    """
    Two runs with the same seed and parameters must agree exactly.
    """
    a = simulate_gillespie(growth_rate=0.2, recovery_rate=1 / 7, initial_infected=10, population_size=500, seed=101)
    b = simulate_gillespie(growth_rate=0.2, recovery_rate=1 / 7, initial_infected=10, population_size=500, seed=101)
    pd.testing.assert_frame_equal(a, b)
    assert a["ptime"].to_numpy().tobytes() == b["ptime"].to_numpy().tobytes()


def test_different_seeds_differ():
    a = simulate_gillespie(initial_infected=10, population_size=500, seed=1)
    b = simulate_gillespie(initial_infected=10, population_size=500, seed=2)
    assert not (len(a) == len(b) and np.array_equal(a["ptime"], b["ptime"]))


def test_case_ids_and_strictly_increasing_times():
    cases = simulate_gillespie(initial_infected=20, population_size=2000, seed=7)
    assert list(cases.columns) == ["case_id", "ptime"]
    assert np.array_equal(cases["case_id"].to_numpy(), np.arange(1, len(cases) + 1))
    assert np.all(np.diff(cases["ptime"].to_numpy()) > 0)
    assert np.all(cases["ptime"] >= 0)


def test_compartments_are_conserved_and_run_ends_at_zero_infected():
    N = 300
    steps = list(gillespie_steps(0.3, 0.1, 5, N, rng=np.random.default_rng(3)))
    assert steps, "expected at least one jump"
    for state, _ in steps:
        assert state.total == N
        assert state.susceptible >= 0 and state.infected >= 0 and state.recovered >= 0
    final, _ = steps[-1]
    assert final.infected == 0
    times = [s.time for s, _ in steps]
    assert all(t1 > t0 for t0, t1 in zip(times, times[1:]))


def test_infections_match_case_count():
    rng_seed = 11
    steps = list(gillespie_steps(0.2, 1 / 7, 10, 400, rng=rng_seed))
    n_infections = sum(1 for _, ev in steps if ev == INFECTION)
    cases = simulate_gillespie(0.2, 1 / 7, 10, 400, seed=rng_seed)
    assert len(cases) == n_infections
    # next_case_id counts from 1
    assert steps[-1][0].next_case_id == n_infections + 1


def test_whole_population_infected_initially():
    """
    With I0 == N there is nobody to infect: no cases, only recoveries.
    """
    cases = simulate_gillespie(initial_infected=5, population_size=5, seed=1)
    assert len(cases) == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_infected": 11, "population_size": 10},
        {"initial_infected": 0, "population_size": 10},
        {"growth_rate": 0.0},
        {"growth_rate": -0.1},
        {"recovery_rate": 0.0},
        {"recovery_rate": float("nan")},
        {"population_size": 0},
        {"population_size": float("nan")},
        {"population_size": float("inf")},
        {"initial_infected": float("nan")},
        {"initial_infected": float("inf")},
        {"initial_infected": 2.5},
        {"growth_rate": "fast"},
    ],
)
def test_invalid_configuration_raises(kwargs):
    with pytest.raises(ConfigurationError):
        simulate_gillespie(seed=1, **kwargs)


def test_generator_seed_is_accepted():
    a = simulate_gillespie(initial_infected=5, population_size=200, seed=np.random.default_rng(5))
    b = simulate_gillespie(initial_infected=5, population_size=200, seed=5)
    pd.testing.assert_frame_equal(a, b)


def test_uniform_cases_within_window():
    cases = simulate_uniform_cases(sample_size=500, t=60, seed=1)
    assert len(cases) == 500
    assert cases["ptime"].between(0, 60, inclusive="left").all()
    assert cases["ptime"].is_monotonic_increasing


def test_exponential_cases_within_window_and_skewed_late():
    cases = simulate_exponential_cases(r=0.2, sample_size=5000, t=30, seed=1)
    assert len(cases) == 5000
    assert cases["ptime"].between(0, 30, inclusive="left").all()
    # growing epidemic: most cases in the second half of the window
    assert (cases["ptime"] > 15).mean() > 0.8


def test_exponential_cases_zero_rate_is_uniform():
    a = simulate_exponential_cases(r=0.0, sample_size=100, t=10, seed=4)
    assert a["ptime"].between(0, 10, inclusive="left").all()


def test_case_generators_reject_bad_window():
    with pytest.raises(ConfigurationError):
        simulate_uniform_cases(sample_size=10, t=0)
    with pytest.raises(ConfigurationError):
        simulate_exponential_cases(sample_size=-1)


@pytest.mark.parametrize("name", ["population_size", "initial_infected"])
@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_sizes_name_the_parameter(name, value):
    with pytest.raises(ConfigurationError, match=name):
        simulate_gillespie(seed=1, **{name: value})


@pytest.mark.parametrize("size", [float("nan"), float("inf"), True])
def test_case_generators_reject_non_finite_sizes(size):
    with pytest.raises(ConfigurationError, match="sample_size"):
        simulate_uniform_cases(sample_size=size)
    with pytest.raises(ConfigurationError, match="sample_size"):
        simulate_exponential_cases(sample_size=size)
