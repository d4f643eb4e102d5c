from collections import Counter

import numpy as np
import pandas as pd
import pytest

from epidelay.errors import ConfigurationError
from epidelay.formats.aggregate import expand_aggregate, to_aggregate
from epidelay.formats.linelist import LinelistData, to_linelist


@pytest.fixture
def linelist():
    rng = np.random.default_rng(12)
    n = 300
    ptime_lwr = rng.integers(0, 10, size=n).astype(float)
    delay = rng.integers(0, 6, size=n).astype(float)
    return to_linelist(
        pd.DataFrame({
            "ptime_lwr": ptime_lwr,
            "stime_lwr": ptime_lwr + delay,
            "obs_time": 25.0,
            "sex": rng.integers(0, 2, size=n),
        }),
        covariates=["sex"],
    )


def tuples(data, by):
    cols = ["ptime_lwr", "observed_delay"] + list(by)
    df = data.assign(observed_delay=data["stime_lwr"] - data["ptime_lwr"])
    return Counter(map(tuple, df[cols].to_numpy().tolist()))


def test_counts_sum_to_rows(linelist):
    agg = to_aggregate(linelist)
    assert agg.total == len(linelist)
    assert len(agg) < len(linelist)
    assert "sex" not in agg.data.columns
    assert np.array_equal(agg.data["observed_delay"], agg.data["stime_lwr"] - agg.data["ptime_lwr"])


def test_round_trip_multiset(linelist):
    agg = to_aggregate(linelist, by=["sex"])
    back = expand_aggregate(agg)
    assert len(back) == len(linelist)
    assert back.covariates == ("sex",)
    assert tuples(back.data, ["sex"]) == tuples(linelist.data, ["sex"])


def test_round_trip_without_strata(linelist):
    back = expand_aggregate(to_aggregate(linelist))
    assert tuples(back.data, []) == tuples(linelist.data, [])


def test_by_accepts_single_name(linelist):
    agg = to_aggregate(linelist, by="sex")
    assert agg.by == ("sex",)
    assert set(agg.data["sex"]) == {0, 1}


def test_unknown_by_column(linelist):
    with pytest.raises(ConfigurationError, match="age"):
        to_aggregate(linelist, by=["age"])


@pytest.mark.parametrize("name", ["n", "observed_delay"])
def test_by_reserved_name(linelist, name):
    """
    A LinelistData built by hand can still carry a covariate named like an aggregate column.
    """
    data = linelist.data.assign(**{name: 1})
    hand_built = LinelistData(data=data, covariates=(name,))
    with pytest.raises(ConfigurationError, match="aggregate columns"):
        to_aggregate(hand_built, by=[name])
