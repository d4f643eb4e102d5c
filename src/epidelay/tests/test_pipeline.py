import numpy as np
import pandas as pd
import pytest

from epidelay import runner
from epidelay.errors import ConfigurationError, DataInsufficiencyError
from epidelay.formats.aggregate import to_aggregate
from epidelay.models.variants import prepare_model
from epidelay.simulate.pipeline import SimConfig, simulate_linelist, simulate_records, write_linelist_csv


def test_default_config_reproduces_observed_sample():
    """
    r=0.2, gamma=1/7, I0=50, N=10000, lognormal(1.6, 0.5), daily windows,
    obs_time=25, 200 sampled cases.
    """
    cfg = SimConfig(seed=101)
    records = simulate_records(cfg)
    assert len(records) == 200
    assert np.all(records["observed_delay"] >= 0)
    assert np.all(records["stime_upr"] <= 25)
    assert records["case_id"].is_unique

    again = simulate_records(SimConfig(seed=101))
    pd.testing.assert_frame_equal(records, again)


def test_linelist_is_relative_and_aggregates():
    ll = simulate_linelist(SimConfig(seed=5, sample_size=150))
    assert len(ll) == 150
    assert ll.data["ptime_lwr"].min() == 0.0
    assert np.all(ll.data["stime_upr"] <= ll.data["obs_time"])
    agg = to_aggregate(ll)
    assert agg.total == 150
    for kind in ("naive", "latent", "marginal"):
        assert len(prepare_model(agg, kind).data) > 0


def test_stratified_config():
    cfg = SimConfig(
        seed=3,
        sample_size=300,
        strata_column="sex",
        strata_params={0: {"meanlog": 2.0, "sdlog": 0.3}, 1: {"meanlog": 1.3, "sdlog": 0.7}},
    )
    ll = simulate_linelist(cfg)
    assert ll.covariates == ("sex",)
    assert set(ll.data["sex"]) == {0, 1}
    agg = to_aggregate(ll, by="sex")
    assert agg.total == 300


def test_stratified_config_needs_params():
    with pytest.raises(ConfigurationError, match="params_by_level"):
        simulate_records(SimConfig(seed=3, strata_column="sex"))


def test_sample_larger_than_observed():
    with pytest.raises(DataInsufficiencyError):
        simulate_records(SimConfig(seed=101, sample_size=10 ** 6))


def test_keep_all_observed_cases():
    records = simulate_records(SimConfig(seed=101, sample_size=None))
    assert len(records) > 200


def test_write_csv(tmp_path):
    ll = simulate_linelist(SimConfig(seed=2, sample_size=50))
    path = write_linelist_csv(ll, tmp_path / "out" / "linelist.csv")
    assert path.exists()
    df = pd.read_csv(path)
    assert list(df.columns) == ["ptime_lwr", "ptime_upr", "stime_lwr", "stime_upr", "obs_time"]
    assert len(df) == 50


def test_runner_simulate_then_aggregate(tmp_path, capsys):
    linelist_csv = tmp_path / "linelist.csv"
    agg_csv = tmp_path / "agg.csv"
    code = runner.main([
        "simulate", "--seed", "101", "--sample-size", "100",
        "--dist", "gamma", "--param", "shape=2", "--param", "rate=0.333",
        "--out", str(linelist_csv),
    ])
    assert code == 0
    assert len(pd.read_csv(linelist_csv)) == 100

    code = runner.main(["aggregate", "--linelist", str(linelist_csv), "--out", str(agg_csv)])
    assert code == 0
    assert pd.read_csv(agg_csv)["n"].sum() == 100
    assert "Done in" in capsys.readouterr().out


def test_runner_reports_bad_configuration(tmp_path):
    code = runner.main([
        "simulate", "--primary-width", "0", "--sample-size", "10", "--out", str(tmp_path / "x.csv"),
    ])
    assert code == 1


def test_runner_lists_distributions(capsys):
    assert runner.main(["distributions"]) == 0
    out = capsys.readouterr().out
    assert "lognormal: meanlog, sdlog" in out


def test_parse_params():
    assert runner.parse_params(["meanlog=1.6", "sdlog=0.5"]) == {"meanlog": 1.6, "sdlog": 0.5}
    with pytest.raises(ConfigurationError):
        runner.parse_params(["meanlog"])


def test_runner_stratified_simulation(tmp_path):
    out = tmp_path / "sex.csv"
    code = runner.main([
        "simulate", "--seed", "3", "--sample-size", "200",
        "--strata-column", "sex", "--strata-prob", "0.5",
        "--strata-param", "0:meanlog=2.0", "--strata-param", "0:sdlog=0.3",
        "--strata-param", "1:meanlog=1.3", "--strata-param", "1:sdlog=0.7",
        "--out", str(out),
    ])
    assert code == 0
    df = pd.read_csv(out)
    assert "sex" in df.columns
    assert set(df["sex"]) == {0, 1}

    agg_csv = tmp_path / "agg.csv"
    assert runner.main(["aggregate", "--linelist", str(out), "--by", "sex", "--out", str(agg_csv)]) == 0
    assert set(pd.read_csv(agg_csv)["sex"]) == {0, 1}


def test_runner_strata_column_without_params(tmp_path):
    code = runner.main(["simulate", "--strata-column", "sex", "--out", str(tmp_path / "x.csv")])
    assert code == 1


def test_parse_strata_params():
    parsed = runner.parse_strata_params(["0:meanlog=2", "0:sdlog=0.3", "1:meanlog=1.3"])
    assert parsed == {0: {"meanlog": 2.0, "sdlog": 0.3}, 1: {"meanlog": 1.3}}
    with pytest.raises(ConfigurationError):
        runner.parse_strata_params(["meanlog=2"])
    with pytest.raises(ConfigurationError):
        runner.parse_strata_params(["male:meanlog=2"])
