# backend.py
"""
Numeric building blocks for hierarchical shift functions.

This module provides:
- Typed errors raised by every analysis entry point
- Sample quantile estimators (Hyndman-Fan types 4-9, Harrell-Davis)
- Trimmed mean, Winsorized variance and the one-sample trimmed t-test
- Multiple-comparison corrections (Hochberg, Holm, Bonferroni, BH, BY)
- Bootstrap interval helpers (percentile interval, highest-density interval,
  bootstrap p-value)

Docstrings in this file follow the NumPy documentation style.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union
import math

import numpy as np
from scipy import stats
from scipy.stats import t as t_dist
from statsmodels.stats.multitest import multipletests

DECILES = (0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9)

QType = Union[int, str]


# -------------------------
# Errors
# -------------------------
class HSFError(ValueError):
    """Base class for errors raised by the shift-function routines."""


class InvalidInput(HSFError):
    """Malformed numeric input or configuration (empty sample, p outside (0, 1), ...)."""


class MismatchedParticipants(HSFError):
    """The two compared conditions do not share the same participant set."""


class MalformedFormula(HSFError):
    """The trial design does not resolve to one response, one condition and one participant column."""


class InsufficientData(HSFError):
    """Too few trials or participants for the requested estimate."""


# -------------------------
# Input validation
# -------------------------
def as_sample(arr_like, name: str = "x") -> np.ndarray:
    """
    Cast an array-like to a flat float array of finite values.

    Parameters
    ----------
    arr_like : array-like
        Sequence of numeric values.
    name : str, optional
        Name used in error messages.

    Returns
    -------
    numpy.ndarray
        1-D float array.

    Raises
    ------
    InvalidInput
        If the sample is empty or holds NaN / infinite values.
    """
    try:
        a = np.asarray(arr_like, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{name} must be numeric: {e}") from e
    if a.size == 0:
        raise InvalidInput(f"{name} is empty.")
    if not np.all(np.isfinite(a)):
        raise InvalidInput(f"{name} contains NaN or infinite values.")
    return a


def check_qseq(qseq: Sequence[float]) -> np.ndarray:
    """Validate a quantile set: non-empty, strictly increasing, inside (0, 1)."""
    q = np.asarray(qseq, dtype=float).ravel()
    if q.size == 0:
        raise InvalidInput("qseq must hold at least one probability.")
    if np.any(~np.isfinite(q)) or np.any(q <= 0.0) or np.any(q >= 1.0):
        raise InvalidInput(f"qseq probabilities must lie strictly inside (0, 1), got {q.tolist()}.")
    if q.size > 1 and np.any(np.diff(q) <= 0.0):
        raise InvalidInput(f"qseq must be strictly increasing, got {q.tolist()}.")
    return q


def check_alpha(alpha: float) -> float:
    if not 0.0 < float(alpha) < 1.0:
        raise InvalidInput(f"alpha must be in (0, 1), got {alpha!r}.")
    return float(alpha)


def check_trim(tr: float) -> float:
    if not 0.0 <= float(tr) < 0.5:
        raise InvalidInput(f"tr must be in [0, 0.5), got {tr!r}.")
    return float(tr)


# -------------------------
# Quantile estimators
# -------------------------
# Hyndman & Fan (1996) continuous definitions, as named by numpy.quantile.
QUANTILE_TYPES: Dict[int, str] = {
    4: "interpolated_inverted_cdf",
    5: "hazen",
    6: "weibull",
    7: "linear",
    8: "median_unbiased",
    9: "normal_unbiased",
}


def harrell_davis(x, qseq: Sequence[float]) -> np.ndarray:
    """
    Harrell-Davis quantile estimates.

    Each estimate is a weighted sum of all order statistics, with weights
    taken from a Beta((n + 1)p, (n + 1)(1 - p)) distribution.

    Parameters
    ----------
    x : array-like
        Sample (at least one finite value).
    qseq : sequence of float
        Probabilities in (0, 1).

    Returns
    -------
    numpy.ndarray
        One estimate per probability.
    """
    a = np.sort(as_sample(x))
    probs = check_qseq(qseq)
    n = a.size
    grid = np.arange(n + 1) / n
    out = np.empty(probs.size)
    for k, p in enumerate(probs):
        w = np.diff(stats.beta.cdf(grid, (n + 1.0) * p, (n + 1.0) * (1.0 - p)))
        out[k] = float(np.sum(w * a))
    return out


def _check_prob(p: float) -> float:
    p = float(p)
    if not 0.0 < p < 1.0:
        raise InvalidInput(f"Probability must be in (0, 1), got {p!r}.")
    return p


def quantiles(x, qseq: Sequence[float] = DECILES, qtype: QType = 8) -> np.ndarray:
    """
    Estimate several sample quantiles of one vector of observations.

    Type 8 (the default) is the median-unbiased definition: position
    h = (n + 1/3) p + 1/3, linear interpolation between the order statistics
    floor(h) and ceil(h), clamped to [1, n].

    Parameters
    ----------
    x : array-like
        Trial-level observations (non-empty, finite).
    qseq : sequence of float, optional
        Probabilities in (0, 1), strictly increasing. Defaults to deciles.
    qtype : int or {"hd"}, optional
        Hyndman-Fan type 4-9, or "hd" for Harrell-Davis. Default 8.

    Returns
    -------
    numpy.ndarray
        One estimate per probability.

    Raises
    ------
    InvalidInput
        Empty / non-finite sample, probabilities outside (0, 1), or unknown qtype.
    """
    a = as_sample(x)
    q = check_qseq(qseq)
    if qtype == "hd":
        return harrell_davis(a, q)
    try:
        method = QUANTILE_TYPES[int(qtype)]
    except (KeyError, TypeError, ValueError):
        raise InvalidInput(f"Unknown quantile type {qtype!r}; use 4-9 or 'hd'.") from None
    return np.quantile(a, q, method=method)


def quantile(x, p: float, qtype: QType = 8) -> float:
    """Single-probability convenience wrapper around `quantiles`."""
    p = _check_prob(p)
    return float(quantiles(x, [p], qtype=qtype)[0])


# -------------------------
# Trimmed statistics
# -------------------------
def trimmed_mean(x, tr: float = 0.2) -> float:
    """Mean after removing floor(tr * n) observations from each tail."""
    return float(stats.trim_mean(as_sample(x), check_trim(tr)))


def winsorized_variance(x, tr: float = 0.2) -> float:
    """
    Winsorized sample variance (ddof=1).

    The floor(tr * n) smallest values are replaced by the next larger value
    and the floor(tr * n) largest by the next smaller one. Returns 0.0 for a
    single observation.
    """
    a = np.sort(as_sample(x))
    n = a.size
    if n < 2:
        return 0.0
    g = int(math.floor(check_trim(tr) * n))
    w = np.clip(a, a[g], a[n - g - 1])
    return float(np.var(w, ddof=1))


@dataclass(frozen=True)
class TrimmedTestResult:
    """
    One-sample trimmed-mean t-test results.

    Attributes
    ----------
    estimate : float
        Trimmed mean.
    se : float
        Standard error of the trimmed mean.
    tstat : float
        Test statistic against the null value (+/-inf when se == 0).
    df : int
        Degrees of freedom, n - 2 * floor(tr * n) - 1.
    pvalue : float
        Two-sided p-value.
    ci_lower, ci_upper : float
        Bounds of the (1 - alpha) confidence interval.
    n : int
        Number of observations.
    """

    estimate: float
    se: float
    tstat: float
    df: int
    pvalue: float
    ci_lower: float
    ci_upper: float
    n: int


def trimmed_one_sample_test(x, tr: float = 0.2, null_value: float = 0.0, alpha: float = 0.05) -> TrimmedTestResult:
    """
    One-sample test on a trimmed mean (Tukey-McLaughlin).

    Parameters
    ----------
    x : array-like
        One quantile's vector of per-participant differences.
    tr : float, optional
        Trim proportion in [0, 0.5), default 0.2.
    null_value : float, optional
        Value of the trimmed mean under the null hypothesis, default 0.
    alpha : float, optional
        Level of the two-sided confidence interval, default 0.05.

    Returns
    -------
    TrimmedTestResult

    Raises
    ------
    InsufficientData
        If the degrees of freedom n - 2g - 1 are below 1.

    Notes
    -----
    When the Winsorized variance is zero the standard error is zero. The
    statistic is then +/-inf with p = 0 if the trimmed mean differs from
    ``null_value``, and 0 with p = 1 if it equals it. The interval collapses
    onto the trimmed mean.
    """
    a = as_sample(x)
    tr = check_trim(tr)
    alpha = check_alpha(alpha)
    n = a.size
    g = int(math.floor(tr * n))
    df = n - 2 * g - 1
    if df < 1:
        raise InsufficientData(
            f"Trimmed test needs n - 2*floor(tr*n) - 1 >= 1; got n={n}, tr={tr} (df={df})."
        )

    tm = float(stats.trim_mean(a, tr))
    se = math.sqrt(winsorized_variance(a, tr)) / ((1.0 - 2.0 * tr) * math.sqrt(n))
    diff = tm - float(null_value)

    if se > 0.0:
        tstat = diff / se
        pvalue = float(2.0 * t_dist.sf(abs(tstat), df))
        half = float(t_dist.ppf(1.0 - alpha / 2.0, df)) * se
    elif diff != 0.0:
        tstat = math.copysign(math.inf, diff)
        pvalue = 0.0
        half = 0.0
    else:
        tstat = 0.0
        pvalue = 1.0
        half = 0.0

    return TrimmedTestResult(
        estimate=tm,
        se=float(se),
        tstat=float(tstat),
        df=int(df),
        pvalue=pvalue,
        ci_lower=tm - half,
        ci_upper=tm + half,
        n=int(n),
    )


# -------------------------
# Multiple-comparison corrections
# -------------------------
# Keys accepted by `p_adjust`, mapped to statsmodels `multipletests` method
# names; None leaves the p-values untouched.
P_ADJUST_METHODS: Dict[str, Optional[str]] = {
    "hochberg": "simes-hochberg",
    "holm": "holm",
    "bonferroni": "bonferroni",
    "bh": "fdr_bh",
    "fdr_bh": "fdr_bh",
    "by": "fdr_by",
    "fdr_by": "fdr_by",
    "none": None,
}


def check_adj_method(method: str) -> str:
    key = str(method).lower()
    if key not in P_ADJUST_METHODS:
        raise InvalidInput(
            f"Unknown adjustment method {method!r}; choose from {sorted(P_ADJUST_METHODS)}."
        )
    return key


def p_adjust(pvalues, method: str = "hochberg", alpha: float = 0.05) -> Tuple[np.ndarray, np.ndarray]:
    """
    Adjust a family of p-values for multiple comparisons.

    Parameters
    ----------
    pvalues : array-like
        Raw p-values in [0, 1], one per quantile.
    method : str, optional
        Key of `P_ADJUST_METHODS` (case-insensitive), default "hochberg".
    alpha : float, optional
        Family-wise (or false-discovery) level for the reject decisions.

    Returns
    -------
    adjusted : numpy.ndarray
        Adjusted p-values in the original order, clamped to [0, 1].
    reject : numpy.ndarray of bool
        Reject decisions from ``multipletests`` at ``alpha``.
    """
    p = as_sample(pvalues, name="pvalues")
    if np.any(p < 0.0) or np.any(p > 1.0):
        raise InvalidInput("p-values must lie in [0, 1].")
    alpha = check_alpha(alpha)
    sm_method = P_ADJUST_METHODS[check_adj_method(method)]
    if sm_method is None:
        return p.copy(), p <= alpha
    reject, adjusted, _, _ = multipletests(p, alpha=alpha, method=sm_method)
    adjusted = np.clip(adjusted, 0.0, 1.0)
    # rounding must not push an adjusted value below its raw value
    adjusted = np.maximum(adjusted, p)
    return adjusted, np.asarray(reject, dtype=bool)


# -------------------------
# Bootstrap interval helpers
# -------------------------
def percentile_ci(samples, alpha: float = 0.05, qtype: QType = 8) -> Tuple[float, float]:
    """Equal-tailed percentile interval: the alpha/2 and 1 - alpha/2 sample quantiles."""
    alpha = check_alpha(alpha)
    lo, hi = quantiles(samples, [alpha / 2.0, 1.0 - alpha / 2.0], qtype=qtype)
    return float(lo), float(hi)


def hdi(samples, mass: float = 0.95) -> Tuple[float, float]:
    """
    Highest-density interval of a sample.

    Scans every window of ceil(mass * n) consecutive sorted values and keeps
    the one with the smallest span (the first one on ties).

    Parameters
    ----------
    samples : array-like
        Bootstrap (or posterior) draws.
    mass : float, optional
        Probability mass to cover, in (0, 1). Default 0.95.

    Returns
    -------
    (float, float)
        Lower and upper bounds.
    """
    s = np.sort(as_sample(samples, name="samples"))
    if not 0.0 < float(mass) < 1.0:
        raise InvalidInput(f"mass must be in (0, 1), got {mass!r}.")
    n = s.size
    k = min(n, max(1, int(math.ceil(mass * n - 1e-9))))
    spans = s[k - 1:] - s[: n - k + 1]
    j = int(np.argmin(spans))
    return float(s[j]), float(s[j + k - 1])


def bootstrap_pvalue(samples, null_value: float = 0.0) -> float:
    """
    Two-sided percentile-bootstrap p-value.

    2 * min(P*, 1 - P*) with P* = P(theta* < null) + 0.5 * P(theta* == null).
    """
    s = as_sample(samples, name="samples")
    p_star = float(np.mean(s < null_value) + 0.5 * np.mean(s == null_value))
    return float(min(1.0, 2.0 * min(p_star, 1.0 - p_star)))
