# hsf.py
"""
Hierarchical shift functions for repeated-measures trial data.

This module provides:
- `TrialDesign`: names the response, condition and participant columns
- `decile_tables`: per-participant quantiles for the two compared conditions
- `hsf`: hierarchical shift function with trimmed-mean tests per quantile and
  a multiple-comparison correction across quantiles
- `hsf_pb`: hierarchical percentile bootstrap (participants, then trials)
- `shift_function_pb`: two independent samples, handled as the single-participant
  case of the hierarchical bootstrap
- `difference_asymmetry_pb`: difference asymmetry function with a percentile
  bootstrap

Docstrings in this file follow the NumPy documentation style.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple
import logging
import math
import os

import numpy as np
import pandas as pd
from scipy import stats

from backend import (
    DECILES,
    InsufficientData,
    InvalidInput,
    MalformedFormula,
    MismatchedParticipants,
    QType,
    as_sample,
    bootstrap_pvalue,
    check_adj_method,
    check_alpha,
    check_qseq,
    check_trim,
    hdi,
    p_adjust,
    percentile_ci,
    quantiles,
    trimmed_one_sample_test,
)

logger = logging.getLogger(__name__)

INTERVAL_KINDS = ("ci", "hdi")
ASYMMETRY_QSEQ = (0.05, 0.1, 0.15, 0.2, 0.25, 0.3, 0.35, 0.4)
MAX_NBOOT = 100_000


@dataclass(frozen=True)
class TrialDesign:
    """
    Column roles of a long-format trial table.

    Attributes
    ----------
    response : str
        Numeric response column (e.g. reaction time).
    condition : str
        Categorical condition column; two of its levels are compared.
    participant : str
        Categorical participant identifier column.
    """

    response: str = "rt"
    condition: str = "condition"
    participant: str = "participant"


def _frozen(a) -> np.ndarray:
    arr = np.array(a, dtype=float, copy=True)
    arr.setflags(write=False)
    return arr


def _frozen_bool(a) -> np.ndarray:
    arr = np.array(a, dtype=bool, copy=True)
    arr.setflags(write=False)
    return arr


def _individual_frame(qseq: np.ndarray, isf: np.ndarray, participants: Tuple) -> pd.DataFrame:
    frame = pd.DataFrame(isf, index=pd.Index(qseq, name="quantile"), columns=list(participants))
    frame.columns.name = "participant"
    return frame


# -------------------------
# Results
# -------------------------
@dataclass(frozen=True, eq=False)
class HSFResult:
    """
    Hierarchical shift function results; one entry per quantile.

    ``ci`` has shape (n_quantiles, 2). ``individual_sf`` has shape
    (n_quantiles, n_participants) and holds minuend minus subtrahend
    quantiles, with ``conditions == (minuend, subtrahend)``.
    All arrays are read-only.
    """

    quantiles: np.ndarray
    difference: np.ndarray
    se: np.ndarray
    tstat: np.ndarray
    df: np.ndarray
    pvalues: np.ndarray
    adjusted_pvalues: np.ndarray
    ci: np.ndarray
    significant: np.ndarray
    individual_sf: np.ndarray
    participants: Tuple
    conditions: Tuple
    tr: float
    alpha: float
    null_value: float
    adj_method: str
    qtype: QType
    warnings: Tuple[str, ...] = ()

    def to_frame(self) -> pd.DataFrame:
        """Group-level results as a DataFrame, one row per quantile."""
        return pd.DataFrame({
            "quantile": self.quantiles,
            "difference": self.difference,
            "se": self.se,
            "t": self.tstat,
            "df": self.df.astype(int),
            "ci_lower": self.ci[:, 0],
            "ci_upper": self.ci[:, 1],
            "p_value": self.pvalues,
            "p_adjusted": self.adjusted_pvalues,
            "significant": self.significant,
        })

    def individual_frame(self) -> pd.DataFrame:
        """Individual shift functions: quantiles as rows, participants as columns."""
        return _individual_frame(self.quantiles, self.individual_sf, self.participants)


@dataclass(frozen=True, eq=False)
class HSFBootResult:
    """
    Percentile-bootstrap shift function results.

    ``ci`` is the interval selected by ``interv``; both ``ci_percentile`` and
    ``ci_hdi`` are always available. ``bootstrap_samples`` has shape
    (nboot, n_quantiles). ``seed`` is the entropy that reproduces the run.
    """

    quantiles: np.ndarray
    difference: np.ndarray
    ci: np.ndarray
    ci_percentile: np.ndarray
    ci_hdi: np.ndarray
    pvalues: np.ndarray
    adjusted_pvalues: np.ndarray
    significant: np.ndarray
    bootstrap_samples: np.ndarray
    individual_sf: np.ndarray
    participants: Tuple
    conditions: Tuple
    interv: str
    nboot: int
    seed: int
    tr: float
    alpha: float
    null_value: float
    adj_method: str
    qtype: QType
    warnings: Tuple[str, ...] = ()

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "quantile": self.quantiles,
            "difference": self.difference,
            "ci_lower": self.ci[:, 0],
            "ci_upper": self.ci[:, 1],
            "pct_lower": self.ci_percentile[:, 0],
            "pct_upper": self.ci_percentile[:, 1],
            "hdi_lower": self.ci_hdi[:, 0],
            "hdi_upper": self.ci_hdi[:, 1],
            "p_value": self.pvalues,
            "p_adjusted": self.adjusted_pvalues,
            "significant": self.significant,
        })

    def individual_frame(self) -> pd.DataFrame:
        return _individual_frame(self.quantiles, self.individual_sf, self.participants)

    def bootstrap_frame(self) -> pd.DataFrame:
        """Bootstrap samples in long format (columns: quantile, value)."""
        return pd.DataFrame({
            "quantile": np.tile(self.quantiles, self.nboot),
            "value": self.bootstrap_samples.ravel(),
        })


@dataclass(frozen=True, eq=False)
class DAFResult:
    """Difference asymmetry function: q(p) + q(1 - p) of the difference distribution."""

    quantiles: np.ndarray
    asymmetry: np.ndarray
    ci: np.ndarray
    pvalues: np.ndarray
    adjusted_pvalues: np.ndarray
    significant: np.ndarray
    bootstrap_samples: np.ndarray
    paired: bool
    nboot: int
    seed: int
    alpha: float
    adj_method: str
    qtype: QType

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "quantile": self.quantiles,
            "asymmetry": self.asymmetry,
            "ci_lower": self.ci[:, 0],
            "ci_upper": self.ci[:, 1],
            "p_value": self.pvalues,
            "p_adjusted": self.adjusted_pvalues,
            "significant": self.significant,
        })


# -------------------------
# Input validation and nesting
# -------------------------
class _Nested(NamedTuple):
    participants: Tuple
    conditions: Tuple
    # per participant: (trials of the first level, trials of the second level), in level order
    trials: List[Tuple[np.ndarray, np.ndarray]]
    # +1 when conditions follow level order, -1 when todo reverses it
    sign: float
    warnings: List[str]


def _condition_levels(col: pd.Series) -> list:
    present = pd.unique(col)
    if isinstance(col.dtype, pd.CategoricalDtype):
        observed = set(present)
        return [c for c in col.cat.categories if c in observed]
    try:
        return sorted(present)
    except TypeError:
        return list(present)


def _prepare(data: pd.DataFrame, design: TrialDesign, todo: Optional[Sequence]) -> _Nested:
    """ValidateInput: resolve the design and nest trials by participant and condition."""
    if not isinstance(data, pd.DataFrame):
        raise InvalidInput(f"data must be a pandas DataFrame, got {type(data).__name__}.")
    cols = [design.response, design.condition, design.participant]
    if len(set(cols)) != 3:
        raise MalformedFormula(f"response, condition and participant must be three distinct columns, got {cols}.")
    missing = [c for c in cols if c not in data.columns]
    if missing:
        raise MalformedFormula(f"Columns not found in data: {missing}.")
    if not pd.api.types.is_numeric_dtype(data[design.response]):
        raise MalformedFormula(f"Response column {design.response!r} must be numeric.")

    warnings: List[str] = []
    df = data[cols]
    complete = df.dropna()
    if len(complete) < len(df):
        msg = f"Dropped {len(df) - len(complete)} row(s) with missing values."
        logger.warning(msg)
        warnings.append(msg)
    df = complete
    if not np.all(np.isfinite(df[design.response].to_numpy(dtype=float))):
        raise InvalidInput(f"Response column {design.response!r} contains infinite values.")

    levels = _condition_levels(df[design.condition])
    if todo is None:
        if len(levels) != 2:
            raise MalformedFormula(
                f"Condition column {design.condition!r} must have exactly two levels, found {levels}; "
                "pass todo=(minuend, subtrahend) to pick two."
            )
        conditions = tuple(levels)
    else:
        conditions = tuple(todo)
        if len(conditions) != 2 or conditions[0] == conditions[1]:
            raise MalformedFormula(f"todo must name two different condition levels, got {todo!r}.")
        unknown = [c for c in conditions if c not in levels]
        if unknown:
            raise MalformedFormula(f"todo levels {unknown} not found in {design.condition!r} (levels: {levels}).")

    ordered = tuple(c for c in levels if c in conditions)
    sign = 1.0 if ordered == conditions else -1.0

    groups = {}
    for (pid, cond), values in df.groupby([design.participant, design.condition], observed=True, sort=True)[design.response]:
        if cond in conditions:
            groups[(pid, cond)] = values.to_numpy(dtype=float)

    ids_a = [pid for (pid, cond) in groups if cond == ordered[0]]
    ids_b = [pid for (pid, cond) in groups if cond == ordered[1]]
    if not ids_a and not ids_b:
        raise InsufficientData("No observations left for the compared conditions.")
    if set(ids_a) != set(ids_b):
        only_a = sorted(map(str, set(ids_a) - set(ids_b)))
        only_b = sorted(map(str, set(ids_b) - set(ids_a)))
        raise MismatchedParticipants(
            f"Participants must be observed in both conditions; only in {ordered[0]!r}: {only_a}, "
            f"only in {ordered[1]!r}: {only_b}."
        )

    participants = tuple(ids_a)
    trials = [(groups[(pid, ordered[0])], groups[(pid, ordered[1])]) for pid in participants]
    return _Nested(participants, conditions, trials, sign, warnings)


def _quantile_matrix(trials, q: np.ndarray, qtype: QType, which: int) -> np.ndarray:
    """Quantiles of one condition for every participant, shape (n_participants, n_quantiles)."""
    out = np.empty((len(trials), q.size))
    for row, pair in enumerate(trials):
        out[row] = quantiles(pair[which], q, qtype=qtype)
    return out


def _individual_sf(nested: _Nested, q: np.ndarray, qtype: QType) -> np.ndarray:
    first = _quantile_matrix(nested.trials, q, qtype, 0)
    second = _quantile_matrix(nested.trials, q, qtype, 1)
    return (nested.sign * (first - second)).T


def decile_tables(
    data: pd.DataFrame,
    design: TrialDesign = TrialDesign(),
    qseq: Sequence[float] = DECILES,
    qtype: QType = 8,
    todo: Optional[Sequence] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Per-participant quantiles for the two compared conditions.

    Parameters
    ----------
    data : pandas.DataFrame
        Long-format trial table.
    design : TrialDesign
        Column roles.
    qseq : sequence of float, optional
        Quantile set, default deciles.
    qtype : int or {"hd"}, optional
        Quantile estimator, default type 8.
    todo : (minuend, subtrahend), optional
        Condition levels to compare, in that order.

    Returns
    -------
    (pandas.DataFrame, pandas.DataFrame)
        Minuend and subtrahend tables; rows = participants, columns = quantiles.

    Raises
    ------
    MalformedFormula, MismatchedParticipants, InvalidInput
    """
    q = check_qseq(qseq)
    nested = _prepare(data, design, todo)
    first = 0 if nested.sign > 0 else 1
    index = pd.Index(nested.participants, name=design.participant)
    tables = []
    for which in (first, 1 - first):
        tables.append(pd.DataFrame(_quantile_matrix(nested.trials, q, qtype, which), index=index, columns=q))
    return tables[0], tables[1]


# -------------------------
# Hierarchical shift function
# -------------------------
def _check_df(n: int, tr: float) -> None:
    df = n - 2 * int(math.floor(tr * n)) - 1
    if df < 1:
        raise InsufficientData(
            f"{n} participant(s) leave {df} degrees of freedom with tr={tr}; need at least 1."
        )


def hsf(
    data: pd.DataFrame,
    design: TrialDesign = TrialDesign(),
    qseq: Sequence[float] = DECILES,
    tr: float = 0.2,
    alpha: float = 0.05,
    qtype: QType = 8,
    todo: Optional[Sequence] = None,
    null_value: float = 0.0,
    adj_method: str = "hochberg",
) -> HSFResult:
    """
    Hierarchical shift function.

    For every participant, the quantiles of the two conditions are estimated
    and subtracted. At each quantile, the participants' differences are
    tested with a one-sample trimmed-mean t-test, and the p-values are
    corrected across quantiles.

    Parameters
    ----------
    data : pandas.DataFrame
        Long-format trial table.
    design : TrialDesign
        Column roles (response, condition, participant).
    qseq : sequence of float, optional
        Quantile set, default deciles.
    tr : float, optional
        Trim proportion for the group-level test, default 0.2.
    alpha : float, optional
        Family-wise level for the correction and the confidence intervals.
    qtype : int or {"hd"}, optional
        Quantile estimator, default type 8.
    todo : (minuend, subtrahend), optional
        Condition levels to compare; reversing it negates every difference.
    null_value : float, optional
        Null value of the trimmed-mean tests, default 0.
    adj_method : str, optional
        Correction method, default "hochberg".

    Returns
    -------
    HSFResult

    Raises
    ------
    MalformedFormula, MismatchedParticipants, InsufficientData, InvalidInput
    """
    q = check_qseq(qseq)
    tr = check_trim(tr)
    alpha = check_alpha(alpha)
    adj_method = check_adj_method(adj_method)
    nested = _prepare(data, design, todo)
    n_p = len(nested.participants)
    _check_df(n_p, tr)
    logger.debug("hsf: %d participants, conditions %s, %d quantiles", n_p, nested.conditions, q.size)

    isf = _individual_sf(nested, q, qtype)
    logger.debug("hsf: individual shift functions built")

    tests = [trimmed_one_sample_test(isf[k], tr=tr, null_value=null_value, alpha=alpha) for k in range(q.size)]
    pvalues = np.array([t.pvalue for t in tests])
    adjusted, reject = p_adjust(pvalues, method=adj_method, alpha=alpha)
    logger.debug("hsf: %d of %d quantiles significant after %s correction", int(reject.sum()), q.size, adj_method)

    warnings = list(nested.warnings)
    zero_se = [float(q[k]) for k, t in enumerate(tests) if t.se == 0.0]
    if zero_se:
        warnings.append(
            f"Zero standard error at quantile(s) {zero_se}: t is infinite (or 0 when the estimate equals the null value)."
        )

    return HSFResult(
        quantiles=_frozen(q),
        difference=_frozen([t.estimate for t in tests]),
        se=_frozen([t.se for t in tests]),
        tstat=_frozen([t.tstat for t in tests]),
        df=_frozen([t.df for t in tests]),
        pvalues=_frozen(pvalues),
        adjusted_pvalues=_frozen(adjusted),
        ci=_frozen([[t.ci_lower, t.ci_upper] for t in tests]),
        significant=_frozen_bool(reject),
        individual_sf=_frozen(isf),
        participants=nested.participants,
        conditions=nested.conditions,
        tr=tr,
        alpha=alpha,
        null_value=float(null_value),
        adj_method=adj_method,
        qtype=qtype,
        warnings=tuple(warnings),
    )


# -------------------------
# Bootstrap machinery
# -------------------------
def _check_nboot(nboot: int) -> int:
    nboot = int(nboot)
    if nboot < 2:
        raise InsufficientData(f"nboot must be at least 2, got {nboot}.")
    if nboot > MAX_NBOOT:
        raise InvalidInput(f"nboot is capped at {MAX_NBOOT}, got {nboot}.")
    return nboot


def _check_n_jobs(n_jobs: int) -> int:
    n_jobs = int(n_jobs)
    if n_jobs == -1:
        return os.cpu_count() or 1
    if n_jobs < 1:
        raise InvalidInput(f"n_jobs must be >= 1 or -1, got {n_jobs}.")
    return n_jobs


def _check_interv(interv: str) -> str:
    if interv not in INTERVAL_KINDS:
        raise InvalidInput(f"interv must be one of {INTERVAL_KINDS}, got {interv!r}.")
    return interv


def _run_iterations(
    draw: Callable[[np.random.Generator], np.ndarray],
    nboot: int,
    width: int,
    seed: Optional[int],
    n_jobs: int,
) -> Tuple[np.ndarray, int]:
    """
    Run ``draw`` once per bootstrap iteration.

    Iteration b gets its own generator from the b-th child of
    SeedSequence(seed) and writes row b of the output, so the result does
    not depend on n_jobs or on scheduling order.
    """
    seq = np.random.SeedSequence(seed)
    children = seq.spawn(nboot)
    out = np.empty((nboot, width))

    def work(b: int) -> None:
        out[b] = draw(np.random.default_rng(children[b]))

    if n_jobs == 1:
        for b in range(nboot):
            work(b)
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as executor:
            list(executor.map(work, range(nboot)))
    return out, seq.entropy


def _hierarchical_draw(trials, q: np.ndarray, qtype: QType, tr: float, sign: float, resample_participants: bool):
    n_p = len(trials)

    def draw(rng: np.random.Generator) -> np.ndarray:
        picks = rng.integers(0, n_p, size=n_p) if resample_participants else range(n_p)
        diffs = np.empty((n_p, q.size))
        for row, j in enumerate(picks):
            first, second = trials[j]
            first_b = first[rng.integers(0, first.size, size=first.size)]
            second_b = second[rng.integers(0, second.size, size=second.size)]
            diffs[row] = quantiles(first_b, q, qtype=qtype) - quantiles(second_b, q, qtype=qtype)
        return stats.trim_mean(sign * diffs, tr, axis=0)

    return draw


def _summarize_bootstrap(samples: np.ndarray, alpha: float, qtype: QType, null_value: float, adj_method: str):
    n_q = samples.shape[1]
    pct = np.empty((n_q, 2))
    hd = np.empty((n_q, 2))
    pvalues = np.empty(n_q)
    for k in range(n_q):
        pct[k] = percentile_ci(samples[:, k], alpha=alpha, qtype=qtype)
        hd[k] = hdi(samples[:, k], mass=1.0 - alpha)
        pvalues[k] = bootstrap_pvalue(samples[:, k], null_value=null_value)
    adjusted, reject = p_adjust(pvalues, method=adj_method, alpha=alpha)
    return pct, hd, pvalues, adjusted, reject


def _bootstrap_result(
    nested: _Nested,
    q: np.ndarray,
    isf: np.ndarray,
    tr: float,
    alpha: float,
    qtype: QType,
    null_value: float,
    adj_method: str,
    nboot: int,
    interv: str,
    seed: Optional[int],
    n_jobs: int,
    resample_participants: bool,
) -> HSFBootResult:
    draw = _hierarchical_draw(nested.trials, q, qtype, tr, nested.sign, resample_participants)
    samples, entropy = _run_iterations(draw, nboot, q.size, seed, n_jobs)
    logger.info("bootstrap: %d iterations over %d participant(s) and %d quantiles", nboot, len(nested.trials), q.size)

    pct, hd, pvalues, adjusted, reject = _summarize_bootstrap(samples, alpha, qtype, null_value, adj_method)
    return HSFBootResult(
        quantiles=_frozen(q),
        difference=_frozen(stats.trim_mean(isf, tr, axis=1)),
        ci=_frozen(pct if interv == "ci" else hd),
        ci_percentile=_frozen(pct),
        ci_hdi=_frozen(hd),
        pvalues=_frozen(pvalues),
        adjusted_pvalues=_frozen(adjusted),
        significant=_frozen_bool(reject),
        bootstrap_samples=_frozen(samples),
        individual_sf=_frozen(isf),
        participants=nested.participants,
        conditions=nested.conditions,
        interv=interv,
        nboot=nboot,
        seed=entropy,
        tr=tr,
        alpha=alpha,
        null_value=float(null_value),
        adj_method=adj_method,
        qtype=qtype,
        warnings=tuple(nested.warnings),
    )


def hsf_pb(
    data: pd.DataFrame,
    design: TrialDesign = TrialDesign(),
    qseq: Sequence[float] = DECILES,
    tr: float = 0.2,
    alpha: float = 0.05,
    qtype: QType = 8,
    todo: Optional[Sequence] = None,
    null_value: float = 0.0,
    adj_method: str = "hochberg",
    nboot: int = 1000,
    interv: str = "ci",
    seed: Optional[int] = None,
    n_jobs: int = 1,
) -> HSFBootResult:
    """
    Hierarchical shift function with a hierarchical percentile bootstrap.

    Each iteration samples participants with replacement, then, for every
    drawn participant, samples trials with replacement separately in each
    condition. The group trimmed mean of the per-participant quantile
    differences is kept for every quantile.

    Parameters
    ----------
    data, design, qseq, tr, alpha, qtype, todo, null_value, adj_method
        As in `hsf`.
    nboot : int, optional
        Number of bootstrap iterations, default 1000.
    interv : {"ci", "hdi"}, optional
        Interval reported as ``ci``: percentile interval or highest-density interval.
    seed : int, optional
        Seed of the SeedSequence that drives every iteration. None draws
        fresh entropy, reported back as ``result.seed``.
    n_jobs : int, optional
        Worker threads; -1 uses every CPU. Results do not depend on it.

    Returns
    -------
    HSFBootResult

    Raises
    ------
    InsufficientData
        Fewer than two participants, or nboot < 2.
    MalformedFormula, MismatchedParticipants, InvalidInput
    """
    q = check_qseq(qseq)
    tr = check_trim(tr)
    alpha = check_alpha(alpha)
    adj_method = check_adj_method(adj_method)
    interv = _check_interv(interv)
    nboot = _check_nboot(nboot)
    n_jobs = _check_n_jobs(n_jobs)
    nested = _prepare(data, design, todo)
    if len(nested.participants) < 2:
        raise InsufficientData("The hierarchical bootstrap needs at least two participants.")

    isf = _individual_sf(nested, q, qtype)
    return _bootstrap_result(
        nested, q, isf, tr, alpha, qtype, null_value, adj_method,
        nboot, interv, seed, n_jobs, resample_participants=True,
    )


def shift_function_pb(
    x,
    y,
    qseq: Sequence[float] = DECILES,
    alpha: float = 0.05,
    qtype: QType = 8,
    null_value: float = 0.0,
    adj_method: str = "hochberg",
    nboot: int = 1000,
    interv: str = "ci",
    seed: Optional[int] = None,
    n_jobs: int = 1,
) -> HSFBootResult:
    """
    Shift function for two independent samples (x - y) with a percentile bootstrap.

    This is the hierarchical bootstrap with a single participant observed in
    two conditions: only trials are resampled, separately in each group.

    Returns
    -------
    HSFBootResult
        ``conditions == ("x", "y")`` and a single participant ``"all"``.
    """
    q = check_qseq(qseq)
    alpha = check_alpha(alpha)
    adj_method = check_adj_method(adj_method)
    interv = _check_interv(interv)
    nboot = _check_nboot(nboot)
    n_jobs = _check_n_jobs(n_jobs)
    a = as_sample(x, name="x")
    b = as_sample(y, name="y")

    nested = _Nested(("all",), ("x", "y"), [(a, b)], 1.0, [])
    isf = (quantiles(a, q, qtype=qtype) - quantiles(b, q, qtype=qtype))[:, None]
    return _bootstrap_result(
        nested, q, isf, 0.0, alpha, qtype, null_value, adj_method,
        nboot, interv, seed, n_jobs, resample_participants=False,
    )


# -------------------------
# Difference asymmetry function
# -------------------------
def _asymmetry(d: np.ndarray, q: np.ndarray, qtype: QType) -> np.ndarray:
    probs = np.concatenate([q, (1.0 - q)[::-1]])
    est = quantiles(d, probs, qtype=qtype)
    return est[: q.size] + est[q.size:][::-1]


def difference_asymmetry_pb(
    x,
    y,
    paired: bool = False,
    qseq: Sequence[float] = ASYMMETRY_QSEQ,
    alpha: float = 0.05,
    qtype: QType = 8,
    adj_method: str = "hochberg",
    nboot: int = 1000,
    seed: Optional[int] = None,
    n_jobs: int = 1,
) -> DAFResult:
    """
    Difference asymmetry function with a percentile bootstrap.

    The distribution of differences is every pairwise difference x_i - y_j
    for independent groups, or x_i - y_i for paired observations. At each
    p < 0.5 the asymmetry q(p) + q(1 - p) is zero when that distribution is
    symmetric about zero.

    Parameters
    ----------
    x, y : array-like
        The two samples; equal length when ``paired``.
    paired : bool, optional
        Treat (x_i, y_i) as pairs, resampled jointly.
    qseq : sequence of float, optional
        Probabilities below 0.5, default 0.05 to 0.40 in steps of 0.05.
    alpha, qtype, adj_method, nboot, seed, n_jobs
        As in `hsf_pb`.

    Returns
    -------
    DAFResult
    """
    q = check_qseq(qseq)
    if np.any(q >= 0.5):
        raise InvalidInput("Asymmetry probabilities must be below 0.5.")
    alpha = check_alpha(alpha)
    adj_method = check_adj_method(adj_method)
    nboot = _check_nboot(nboot)
    n_jobs = _check_n_jobs(n_jobs)
    a = as_sample(x, name="x")
    b = as_sample(y, name="y")

    if paired:
        if a.size != b.size:
            raise InvalidInput(f"Paired samples must have the same length, got {a.size} and {b.size}.")

        def differences(xs, ys):
            return xs - ys

        def draw(rng):
            idx = rng.integers(0, a.size, size=a.size)
            return _asymmetry(differences(a[idx], b[idx]), q, qtype)
    else:
        def differences(xs, ys):
            return np.subtract.outer(xs, ys).ravel()

        def draw(rng):
            xb = a[rng.integers(0, a.size, size=a.size)]
            yb = b[rng.integers(0, b.size, size=b.size)]
            return _asymmetry(differences(xb, yb), q, qtype)

    estimate = _asymmetry(differences(a, b), q, qtype)
    samples, entropy = _run_iterations(draw, nboot, q.size, seed, n_jobs)
    logger.info("difference asymmetry: %d iterations, paired=%s", nboot, paired)
    pct, _, pvalues, adjusted, reject = _summarize_bootstrap(samples, alpha, qtype, 0.0, adj_method)

    return DAFResult(
        quantiles=_frozen(q),
        asymmetry=_frozen(estimate),
        ci=_frozen(pct),
        pvalues=_frozen(pvalues),
        adjusted_pvalues=_frozen(adjusted),
        significant=_frozen_bool(reject),
        bootstrap_samples=_frozen(samples),
        paired=bool(paired),
        nboot=nboot,
        seed=entropy,
        alpha=alpha,
        adj_method=adj_method,
        qtype=qtype,
    )
