# test_hsf.py
# run as: pytest -q test_hsf.py
import dataclasses

import numpy as np
import pandas as pd
import pytest

import hsf
from backend import InsufficientData, InvalidInput, MalformedFormula, MismatchedParticipants


# -------------------------
# Sample data
# -------------------------
def make_trials(rng, n_participants=10, n_trials=60, shift=0.0, conditions=("A", "B")):
    """Long-format trials; the second condition is shifted by ``shift``."""
    frames = []
    for pid in range(n_participants):
        mu = rng.normal(500.0, 40.0)
        for k, cond in enumerate(conditions):
            rt = mu + rng.normal(0.0, 50.0, size=n_trials) + rng.exponential(80.0, size=n_trials)
            if k == 1:
                rt = rt + shift
            frames.append(pd.DataFrame({"rt": rt, "condition": cond, "participant": f"p{pid:02d}"}))
    return pd.concat(frames, ignore_index=True)


def shifted_by_one():
    """Two identical participants; condition c2 is condition c1 plus one."""
    rows = []
    for pid in ("p1", "p2"):
        rows += [(float(v), "c1", pid) for v in range(1, 6)]
        rows += [(float(v), "c2", pid) for v in range(2, 7)]
    return pd.DataFrame(rows, columns=["rt", "condition", "participant"])


DATA = make_trials(np.random.default_rng(2024), n_participants=12, n_trials=80, shift=40.0)


# -------------------------
# hsf
# -------------------------
def test_constant_shift_gives_zero_se_and_significance():
    res = hsf.hsf(shifted_by_one())
    assert res.conditions == ("c1", "c2")
    assert res.participants == ("p1", "p2")
    assert res.difference == pytest.approx(np.full(9, -1.0))
    assert np.all(res.se == 0.0)
    assert np.all(res.tstat == -np.inf)
    assert np.all(res.pvalues == 0.0)
    assert np.all(res.significant)
    assert np.all(res.df == 1)
    assert any("Zero standard error" in w for w in res.warnings)


def test_reversing_todo_negates_the_shift_function():
    ab = hsf.hsf(DATA, todo=("A", "B"))
    ba = hsf.hsf(DATA, todo=("B", "A"))
    assert ba.conditions == ("B", "A")
    assert np.array_equal(ba.individual_sf, -ab.individual_sf)
    assert ba.difference == pytest.approx(-ab.difference)
    assert ba.tstat == pytest.approx(-ab.tstat)
    assert ba.pvalues == pytest.approx(ab.pvalues)
    assert ba.adjusted_pvalues == pytest.approx(ab.adjusted_pvalues)
    assert ba.ci[:, 0] == pytest.approx(-ab.ci[:, 1])
    assert ba.ci[:, 1] == pytest.approx(-ab.ci[:, 0])
    assert np.array_equal(ba.significant, ab.significant)


def test_default_order_follows_sorted_levels():
    res = hsf.hsf(DATA)
    assert res.conditions == ("A", "B")
    # B is shifted up by 40, so A - B is negative at the median
    assert res.difference[4] < 0


def test_categorical_level_order_is_respected():
    data = DATA.copy()
    data["condition"] = pd.Categorical(data["condition"], categories=["B", "A"])
    res = hsf.hsf(data)
    assert res.conditions == ("B", "A")
    assert res.difference[4] > 0


def test_single_quantile_adjustment_is_identity():
    res = hsf.hsf(DATA, qseq=[0.5])
    assert res.quantiles.tolist() == [0.5]
    assert res.adjusted_pvalues[0] == res.pvalues[0]


def test_individual_sf_shape_and_frame():
    res = hsf.hsf(DATA, qseq=[0.25, 0.5, 0.75])
    assert res.individual_sf.shape == (3, 12)
    frame = res.individual_frame()
    assert frame.shape == (3, 12)
    assert list(frame.columns) == list(res.participants)
    assert frame.index.name == "quantile"


def test_to_frame_columns():
    frame = hsf.hsf(DATA).to_frame()
    assert list(frame.columns) == [
        "quantile", "difference", "se", "t", "df", "ci_lower", "ci_upper", "p_value", "p_adjusted", "significant",
    ]
    assert len(frame) == 9


def test_result_arrays_are_read_only():
    res = hsf.hsf(DATA)
    with pytest.raises(ValueError):
        res.difference[0] = 1.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        res.alpha = 0.1


def test_no_effect_rarely_significant():
    rng = np.random.default_rng(99)
    n_sims = 200
    keep = np.zeros(9)
    for _ in range(n_sims):
        res = hsf.hsf(make_trials(rng, n_participants=10, n_trials=40, shift=0.0))
        keep += res.adjusted_pvalues > res.alpha
    assert np.all(keep / n_sims >= 0.95)


def test_se_shrinks_with_more_participants():
    rng = np.random.default_rng(17)
    small = hsf.hsf(make_trials(rng, n_participants=5, shift=20.0))
    large = hsf.hsf(make_trials(rng, n_participants=40, shift=20.0))
    width_small = np.mean(small.ci[:, 1] - small.ci[:, 0])
    width_large = np.mean(large.ci[:, 1] - large.ci[:, 0])
    assert width_large < width_small


def test_three_levels_need_todo():
    data = make_trials(np.random.default_rng(4), n_participants=6, conditions=("A", "B", "C"))
    with pytest.raises(MalformedFormula):
        hsf.hsf(data)
    res = hsf.hsf(data, todo=("C", "A"))
    assert res.conditions == ("C", "A")


def test_unknown_todo_level():
    with pytest.raises(MalformedFormula):
        hsf.hsf(DATA, todo=("A", "Z"))
    with pytest.raises(MalformedFormula):
        hsf.hsf(DATA, todo=("A", "A"))


def test_missing_or_non_numeric_columns():
    with pytest.raises(MalformedFormula):
        hsf.hsf(DATA, design=hsf.TrialDesign(response="latency"))
    data = DATA.copy()
    data["rt"] = data["rt"].astype(str)
    with pytest.raises(MalformedFormula):
        hsf.hsf(data)


def test_participant_missing_from_one_condition():
    data = DATA[~((DATA["participant"] == "p03") & (DATA["condition"] == "B"))]
    with pytest.raises(MismatchedParticipants):
        hsf.hsf(data)


def test_single_participant_is_insufficient():
    data = DATA[DATA["participant"] == "p00"]
    with pytest.raises(InsufficientData):
        hsf.hsf(data)


def test_missing_values_are_dropped_with_warning():
    data = DATA.copy()
    data.loc[[0, 5, 9], "rt"] = np.nan
    res = hsf.hsf(data)
    assert any("Dropped 3 row(s)" in w for w in res.warnings)


def test_non_frame_input():
    with pytest.raises(InvalidInput):
        hsf.hsf(DATA.to_dict())


# -------------------------
# decile_tables
# -------------------------
def test_decile_tables_match_individual_sf():
    first, second = hsf.decile_tables(DATA, todo=("B", "A"))
    res = hsf.hsf(DATA, todo=("B", "A"))
    assert first.shape == (12, 9)
    assert first.index.name == "participant"
    assert (first - second).to_numpy().T == pytest.approx(res.individual_sf)


# -------------------------
# hsf_pb
# -------------------------
def test_bootstrap_is_reproducible_and_independent_of_n_jobs():
    kwargs = dict(qseq=[0.25, 0.5, 0.75], nboot=60, seed=7)
    serial = hsf.hsf_pb(DATA, n_jobs=1, **kwargs)
    again = hsf.hsf_pb(DATA, n_jobs=1, **kwargs)
    threaded = hsf.hsf_pb(DATA, n_jobs=3, **kwargs)
    assert serial.seed == 7
    assert np.array_equal(serial.bootstrap_samples, again.bootstrap_samples)
    assert np.array_equal(serial.bootstrap_samples, threaded.bootstrap_samples)


def test_bootstrap_seed_is_reported_when_not_given():
    first = hsf.hsf_pb(DATA, qseq=[0.5], nboot=30)
    replay = hsf.hsf_pb(DATA, qseq=[0.5], nboot=30, seed=first.seed)
    assert np.array_equal(first.bootstrap_samples, replay.bootstrap_samples)


def test_bootstrap_reversing_todo_negates_samples():
    ab = hsf.hsf_pb(DATA, todo=("A", "B"), nboot=100, seed=3)
    ba = hsf.hsf_pb(DATA, todo=("B", "A"), nboot=100, seed=3)
    assert ba.bootstrap_samples == pytest.approx(-ab.bootstrap_samples, abs=1e-9)
    assert ba.difference == pytest.approx(-ab.difference)
    assert ba.ci[:, 0] == pytest.approx(-ab.ci[:, 1], abs=1e-9)
    assert ba.ci[:, 1] == pytest.approx(-ab.ci[:, 0], abs=1e-9)
    assert ba.pvalues == pytest.approx(ab.pvalues)


def test_bootstrap_ci_shrinks_with_more_participants():
    rng = np.random.default_rng(23)
    small = hsf.hsf_pb(make_trials(rng, n_participants=5, shift=20.0), nboot=200, seed=1)
    large = hsf.hsf_pb(make_trials(rng, n_participants=40, shift=20.0), nboot=200, seed=1)
    assert np.mean(large.ci[:, 1] - large.ci[:, 0]) < np.mean(small.ci[:, 1] - small.ci[:, 0])


def test_bootstrap_ci_bounds_stabilise_with_more_iterations():
    rng = np.random.default_rng(31)
    x = rng.normal(0.0, 1.0, size=100)
    y = rng.normal(0.5, 1.0, size=100)

    def bound_spread(nboot):
        lows = [hsf.shift_function_pb(x, y, qseq=[0.5], nboot=nboot, seed=s).ci[0, 0] for s in range(10)]
        return np.std(lows)

    assert bound_spread(800) < bound_spread(50)


def test_bootstrap_interval_choice():
    pct = hsf.hsf_pb(DATA, nboot=100, seed=5, interv="ci")
    hd = hsf.hsf_pb(DATA, nboot=100, seed=5, interv="hdi")
    assert np.array_equal(pct.ci, pct.ci_percentile)
    assert np.array_equal(hd.ci, hd.ci_hdi)
    assert np.array_equal(pct.ci_hdi, hd.ci_hdi)
    with pytest.raises(InvalidInput):
        hsf.hsf_pb(DATA, nboot=100, interv="bca")


def test_bootstrap_frames():
    res = hsf.hsf_pb(DATA, qseq=[0.3, 0.7], nboot=50, seed=11)
    assert res.bootstrap_samples.shape == (50, 2)
    assert len(res.bootstrap_frame()) == 100
    assert {"pct_lower", "hdi_upper", "p_adjusted"} <= set(res.to_frame().columns)
    assert res.individual_frame().shape == (2, 12)


def test_bootstrap_input_errors():
    with pytest.raises(InsufficientData):
        hsf.hsf_pb(DATA[DATA["participant"] == "p00"], nboot=50)
    with pytest.raises(InsufficientData):
        hsf.hsf_pb(DATA, nboot=1)
    with pytest.raises(InvalidInput):
        hsf.hsf_pb(DATA, nboot=hsf.MAX_NBOOT + 1)
    with pytest.raises(InvalidInput):
        hsf.hsf_pb(DATA, nboot=50, n_jobs=0)


# -------------------------
# Two independent groups
# -------------------------
def test_shift_function_two_groups():
    rng = np.random.default_rng(8)
    x = rng.normal(0.0, 1.0, size=300)
    y = rng.normal(2.0, 1.0, size=300)
    res = hsf.shift_function_pb(x, y, nboot=300, seed=2)
    assert res.conditions == ("x", "y")
    assert res.participants == ("all",)
    assert res.difference == pytest.approx(np.full(9, -2.0), abs=0.5)
    assert np.all(res.significant)
    assert res.individual_frame().shape == (9, 1)


# -------------------------
# Difference asymmetry function
# -------------------------
def test_asymmetry_zero_for_identical_groups():
    x = np.random.default_rng(12).normal(size=60)
    res = hsf.difference_asymmetry_pb(x, x, nboot=50, seed=1)
    assert res.asymmetry == pytest.approx(np.zeros(len(hsf.ASYMMETRY_QSEQ)), abs=1e-9)
    assert res.paired is False


def test_asymmetry_detects_skewed_paired_differences():
    rng = np.random.default_rng(13)
    x = rng.exponential(1.0, size=300)
    res = hsf.difference_asymmetry_pb(x, np.zeros(300), paired=True, nboot=300, seed=4)
    assert np.all(res.asymmetry > 0)
    assert np.all(res.significant)
    assert list(res.to_frame().columns)[:2] == ["quantile", "asymmetry"]


def test_asymmetry_input_errors():
    with pytest.raises(InvalidInput):
        hsf.difference_asymmetry_pb([1.0, 2.0, 3.0], [1.0, 2.0], paired=True, nboot=10)
    with pytest.raises(InvalidInput):
        hsf.difference_asymmetry_pb([1.0, 2.0, 3.0], [1.0, 2.0], qseq=[0.3, 0.6], nboot=10)


if __name__ == "__main__":
    pytest.main([__file__])
