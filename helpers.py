# helpers.py — formatting & plain-language summary helpers
"""
Utility functions that support the Streamlit UI layer (app.py).

- `update_parsed_counts`: summarize a trial table (participants, trials per condition)
- `describe_hsf`: produce a plain-language summary paragraph of shift-function results
"""

from typing import Optional, Union

import numpy as np
import pandas as pd

from hsf import DAFResult, HSFBootResult, HSFResult, TrialDesign


def update_parsed_counts(df_parsed: Optional[pd.DataFrame], design: TrialDesign) -> Optional[dict]:
    """Return a counts dict for display, or None when the table does not fit the design."""
    if df_parsed is None:
        return None
    cols = [design.response, design.condition, design.participant]
    if any(c not in df_parsed.columns for c in cols):
        return None

    rt = pd.to_numeric(df_parsed[design.response], errors="coerce")
    valid = df_parsed.loc[rt.notna(), [design.condition, design.participant]]
    per_condition = valid.groupby(design.condition, observed=True).size()
    per_cell = valid.groupby([design.participant, design.condition], observed=True).size()
    return {
        "participants": int(valid[design.participant].nunique()),
        "conditions": {str(k): int(v) for k, v in per_condition.items()},
        "min_trials_per_cell": int(per_cell.min()) if len(per_cell) else 0,
        "dropped_rows": int(rt.isna().sum()),
    }


def _fmt_p(v: float, digits: int) -> str:
    return "< 0.001" if v < 0.001 else f"{v:.{digits}g}"


def _fmt_q(q: float) -> str:
    return f"{q:g}"


def describe_hsf(result: Union[HSFResult, HSFBootResult, DAFResult], digits: int = 3) -> str:
    """
    Build a plain-language description of a shift-function or asymmetry result.
    """
    fmt = lambda v: f"{v:.{digits}g}"
    alpha = result.alpha
    conf = f"{100 * (1 - alpha):g}%"

    if isinstance(result, DAFResult):
        design = "paired observations" if result.paired else "two independent groups"
        method = (
            f"A difference asymmetry function was computed for {design} at "
            f"{len(result.quantiles)} quantile pair(s), with {result.nboot} percentile-bootstrap samples."
        )
        labels = [f"q({_fmt_q(q)}) + q({_fmt_q(1 - q)})" for q in result.quantiles]
        estimates = result.asymmetry
        ci_kind = f"{conf} percentile bootstrap CI"
    elif isinstance(result, HSFBootResult):
        a, b = result.conditions
        kind = "highest-density interval" if result.interv == "hdi" else "percentile bootstrap CI"
        if len(result.participants) == 1:
            method = (
                f"A shift function compared {a} to {b} at {len(result.quantiles)} quantile(s), "
                f"with {result.nboot} bootstrap samples of the trials."
            )
        else:
            method = (
                f"A hierarchical shift function compared {a} to {b} across {len(result.participants)} "
                f"participants at {len(result.quantiles)} quantile(s), with {result.nboot} hierarchical "
                f"bootstrap samples (participants, then trials) and {int(100 * result.tr)}% trimmed means."
            )
        labels = [f"quantile {_fmt_q(q)}" for q in result.quantiles]
        estimates = result.difference
        ci_kind = f"{conf} {kind}"
    else:
        a, b = result.conditions
        method = (
            f"A hierarchical shift function compared {a} to {b} across {len(result.participants)} "
            f"participants at {len(result.quantiles)} quantile(s), using one-sample tests on "
            f"{int(100 * result.tr)}% trimmed means of the individual differences."
        )
        labels = [f"quantile {_fmt_q(q)}" for q in result.quantiles]
        estimates = result.difference
        ci_kind = f"{conf} CI"

    correction = (
        "without correction for multiple comparisons"
        if result.adj_method == "none"
        else f"with {result.adj_method} correction for multiple comparisons"
    )
    method += f" P-values were adjusted {correction} at alpha = {alpha}."

    lines = []
    for k, label in enumerate(labels):
        lo, hi = result.ci[k]
        verdict = "significant" if result.significant[k] else "not significant"
        lines.append(
            f"At {label}, the estimate is {fmt(estimates[k])} ({ci_kind} [{fmt(lo)}, {fmt(hi)}]), "
            f"adjusted p = {_fmt_p(float(result.adjusted_pvalues[k]), digits)} ({verdict})."
        )

    n_sig = int(np.sum(result.significant))
    if isinstance(result, DAFResult):
        if n_sig == 0:
            overall = "No quantile pair shows a significant asymmetry of the difference distribution."
        else:
            overall = f"{n_sig} quantile pair(s) show a significant asymmetry of the difference distribution."
    else:
        signs = np.sign(np.asarray(estimates)[np.asarray(result.significant)])
        if n_sig == 0:
            overall = f"No quantile differs significantly between {a} and {b}."
        elif n_sig == len(labels) and np.all(signs == signs[0]):
            direction = "larger" if signs[0] > 0 else "smaller"
            overall = (
                f"All quantiles of {a} are significantly {direction} than those of {b}, "
                "consistent with first-order stochastic dominance."
            )
        else:
            overall = f"{n_sig} of {len(labels)} quantiles differ significantly between {a} and {b}."

    warnings = getattr(result, "warnings", ())
    parts = [method, " ".join(lines), overall]
    if warnings:
        parts.append("Notes: " + " ".join(warnings))
    return "\n\n".join(parts)
