# test_helpers.py
# run as: pytest -q test_helpers.py
import numpy as np
import pandas as pd
import pytest

import helpers
import hsf
import io_utils
from backend import MalformedFormula

DESIGN = hsf.TrialDesign()

PASTED = """rt,condition,participant
512.5,B,s1
498.0,A,s1
530.1,B,s1
471.9,A,s1
601.2,B,s2
bad,A,s2
580.3,A,s2
590.4,B,s2
"""


# -------------------------
# io_utils
# -------------------------
def test_parse_text_detects_header():
    df, header_used = io_utils.parse_table_from_text(PASTED)
    assert header_used
    assert list(df.columns) == ["rt", "condition", "participant"]
    assert len(df) == 8


def test_parse_text_without_header():
    df, header_used = io_utils.parse_table_from_text("1.5 A p1\n2.5 B p1\n")
    assert not header_used
    assert list(df.columns) == ["col1", "col2", "col3"]


def test_parse_text_tab_separated_and_forced_header():
    df, header_used = io_utils.parse_table_from_text("a\tb\tc\n1\t2\t3\n", header_override="Force header")
    assert header_used
    assert list(df.columns) == ["a", "b", "c"]
    assert df.iloc[0].tolist() == ["1", "2", "3"]


def test_parse_text_empty():
    df, header_used = io_utils.parse_table_from_text("   \n\n")
    assert df.empty and not header_used


def test_read_csv_bytes():
    df, header_used = io_utils.read_table_from_bytes(PASTED.encode("utf-8"), "trials.csv")
    assert header_used
    assert list(df.columns) == ["rt", "condition", "participant"]
    assert len(df) == 8


def test_trial_table_coerces_and_drops_bad_rows():
    df, _ = io_utils.parse_table_from_text(PASTED)
    trials = io_utils.trial_table_from_frame(df, DESIGN)
    assert len(trials) == 7
    assert trials["rt"].dtype == float
    # condition levels keep first-appearance order
    assert list(trials["condition"].cat.categories) == ["B", "A"]


def test_trial_table_missing_column():
    df, _ = io_utils.parse_table_from_text(PASTED)
    with pytest.raises(MalformedFormula):
        io_utils.trial_table_from_frame(df, hsf.TrialDesign(participant="subject"))


def test_guess_design():
    df = pd.DataFrame({
        "subject": [f"s{i}" for i in range(6)] * 2,
        "cond": ["A"] * 6 + ["B"] * 6,
        "latency": np.linspace(300.0, 600.0, 12),
    })
    assert io_utils.guess_design(df) == hsf.TrialDesign(response="latency", condition="cond", participant="subject")
    with pytest.raises(MalformedFormula):
        io_utils.guess_design(df[["cond", "latency"]])


def test_parsed_table_runs_through_hsf():
    rng = np.random.default_rng(0)
    lines = ["rt,condition,participant"]
    for pid in range(4):
        for cond in ("slow", "fast"):
            lines += [f"{v:.2f},{cond},{pid}" for v in rng.normal(500.0, 30.0, size=20)]
    df, _ = io_utils.parse_table_from_text("\n".join(lines))
    res = hsf.hsf(io_utils.trial_table_from_frame(df, DESIGN))
    assert res.conditions == ("slow", "fast")
    assert res.participants == ("0", "1", "2", "3")


# -------------------------
# helpers
# -------------------------
def test_update_parsed_counts():
    df, _ = io_utils.parse_table_from_text(PASTED)
    counts = helpers.update_parsed_counts(df, DESIGN)
    assert counts == {
        "participants": 2,
        "conditions": {"A": 3, "B": 4},
        "min_trials_per_cell": 1,
        "dropped_rows": 1,
    }


def test_update_parsed_counts_no_table():
    assert helpers.update_parsed_counts(None, DESIGN) is None
    assert helpers.update_parsed_counts(pd.DataFrame({"x": [1]}), DESIGN) is None


def test_describe_hsf_dominance():
    rows = []
    for pid in ("p1", "p2"):
        rows += [(float(v), "c1", pid) for v in range(1, 6)]
        rows += [(float(v), "c2", pid) for v in range(2, 7)]
    res = hsf.hsf(pd.DataFrame(rows, columns=["rt", "condition", "participant"]))
    text = helpers.describe_hsf(res)
    assert "hierarchical shift function compared c1 to c2" in text
    assert "significantly smaller" in text
    assert "stochastic dominance" in text
    assert "hochberg correction" in text
    assert "Notes:" in text


def test_describe_two_group_bootstrap():
    rng = np.random.default_rng(1)
    res = hsf.shift_function_pb(rng.normal(size=50), rng.normal(size=50), qseq=[0.5], nboot=50, seed=1)
    text = helpers.describe_hsf(res)
    assert text.startswith("A shift function compared x to y")
    assert "percentile bootstrap CI" in text


def test_describe_asymmetry():
    x = np.random.default_rng(2).normal(size=30)
    res = hsf.difference_asymmetry_pb(x, x, qseq=[0.1, 0.25], nboot=50, seed=1, adj_method="none")
    text = helpers.describe_hsf(res)
    assert "difference asymmetry function" in text
    assert "without correction" in text
    assert "q(0.1) + q(0.9)" in text


if __name__ == "__main__":
    pytest.main([__file__])
