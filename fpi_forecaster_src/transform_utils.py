# fpi_forecaster_src/transform_utils.py

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TRANSFORMS = ["level", "log", "log_diff", "mom", "yoy"]


def log_series(series: pd.Series) -> pd.Series:
    """
    Natural logarithm of a strictly positive series.

    Raises
    ------
    ValueError
        If the series contains missing, zero or negative values.
    """
    if series.isna().any():
        raise ValueError("Cannot take the logarithm of a series with missing values.")
    if (series <= 0).any():
        raise ValueError("Logarithm requires strictly positive values.")
    out = np.log(series.astype(float))
    out.name = series.name
    return out


def exp_series(series: pd.Series) -> pd.Series:
    """Inverse of log_series()."""
    out = np.exp(series.astype(float))
    out.name = series.name
    return out


def diff_series(series: pd.Series, order: int = 1, lag: int = 1) -> pd.Series:
    """
    Apply ``order`` successive lag-``lag`` differences.

    Leading observations consumed by differencing are dropped, so the result has
    ``len(series) - order * lag`` observations and keeps the original index labels.

    Parameters
    ----------
    series : pd.Series
        Input series
    order : int, default=1
        Number of differencing passes (>= 1)
    lag : int, default=1
        Lag of each difference (1 for first differences, 12 for seasonal monthly)

    Raises
    ------
    ValueError
        If order or lag is not positive, or the series is too short.

    Examples
    --------
    >>> diff_series(pd.Series([1.0, 3.0, 6.0])).tolist()
    [2.0, 3.0]
    """
    if order < 1 or lag < 1:
        raise ValueError("order and lag must be positive integers.")
    if len(series) <= order * lag:
        raise ValueError(f"Series of length {len(series)} is too short for {order} difference(s) at lag {lag}.")
    out = series.astype(float)
    for _ in range(order):
        out = out.diff(lag).iloc[lag:]
    return out


def undiff_series(diffed: pd.Series, initial: float, initial_index: Optional[pd.Timestamp] = None) -> pd.Series:
    """
    Invert a single first difference.

    The original series is reconstructed as ``initial`` followed by
    ``initial + cumsum(diffed)``.

    Parameters
    ----------
    diffed : pd.Series
        Output of ``diff_series(original, order=1)``
    initial : float
        First value of the original series
    initial_index : pd.Timestamp, optional
        Index label of the first value; defaults to one month before ``diffed``
        when its index is a DatetimeIndex.
    """
    if initial_index is None:
        if isinstance(diffed.index, pd.DatetimeIndex) and len(diffed):
            initial_index = diffed.index[0] - pd.offsets.MonthBegin(1)
        else:
            initial_index = -1
    levels = float(initial) + diffed.astype(float).cumsum()
    head = pd.Series([float(initial)], index=[initial_index])
    out = pd.concat([head, levels])
    out.name = diffed.name
    return out


def apply_target_transform(series: pd.Series, transform: str) -> pd.Series:
    """
    Apply a named transformation to a monthly price series.

    - level: identity
    - log: natural logarithm (the scale the model is fitted on)
    - log_diff: 100 * diff(log), approximate month-on-month growth in percent
    - mom: month-on-month percent change
    - yoy: 12-month percent change

    Leading NaNs introduced by differencing are dropped.
    """
    if transform == "level":
        return series
    elif transform == "log":
        return log_series(series)
    elif transform == "log_diff":
        return diff_series(log_series(series)) * 100
    elif transform == "mom":
        return (series.pct_change() * 100).dropna()
    elif transform == "yoy":
        return (series.pct_change(periods=12) * 100).dropna()
    raise ValueError(f"Unknown transform '{transform}'. Must be one of: {TRANSFORMS}")


def get_transform_description(transform: str) -> str:
    descriptions = {
        "level": "Original series (no transformation)",
        "log": "Natural logarithm",
        "log_diff": "Log difference x 100 (approximate monthly % change)",
        "mom": "Month-over-month percentage change",
        "yoy": "Year-over-year percentage change",
    }
    return descriptions.get(transform, f"Unknown transformation: {transform}")


def safe_kpss_pval(series: pd.Series) -> float:
    """
    KPSS level-stationarity p-value, NaN when the test cannot be run.

    statsmodels interpolates the p-value from a table and warns when the statistic
    falls outside it; the bounded value (0.01 or 0.1) is returned in that case.
    """
    from statsmodels.tsa.stattools import kpss

    s = pd.Series(series).dropna()
    if len(s) < 12 or np.isclose(s.std(), 0.0):
        return float("nan")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            return float(kpss(s, regression="c", nlags="auto")[1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("KPSS failed: %s", e)
        return float("nan")


def safe_adf_pval(series: pd.Series) -> float:
    """
    Safely compute ADF test p-value with error handling.

    Requires at least 12 observations to perform the test reliably.
    """
    from statsmodels.tsa.stattools import adfuller

    s = pd.Series(series).dropna()
    if len(s) < 12 or np.isclose(s.std(), 0.0):
        return float("nan")
    try:
        return float(adfuller(s)[1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("ADF failed: %s", e)
        return float("nan")


def select_differencing(series: pd.Series, alpha: float = 0.05, max_d: int = 2, test: str = "kpss") -> int:
    """
    Select the non-seasonal differencing order by repeated unit-root testing.

    With ``test='kpss'`` (null: stationary) the series is differenced while the
    null is rejected; with ``test='adf'`` (null: unit root) while the null is not
    rejected. Stops at ``max_d`` or when the test cannot be computed.

    Parameters
    ----------
    series : pd.Series
        Series to analyze (already seasonally differenced if applicable)
    alpha : float, default=0.05
        Significance level
    max_d : int, default=2
        Maximum differencing order
    test : str, default='kpss'
        'kpss' or 'adf'

    Returns
    -------
    int
        Suggested differencing order in [0, max_d]
    """
    if test not in ("kpss", "adf"):
        raise ValueError(f"Unknown unit-root test '{test}'. Use 'kpss' or 'adf'.")

    x = pd.Series(series).dropna().astype(float)
    d = 0
    while d < max_d:
        if test == "kpss":
            p = safe_kpss_pval(x)
            needs_diff = np.isfinite(p) and p < alpha
        else:
            p = safe_adf_pval(x)
            needs_diff = np.isfinite(p) and p >= alpha
        logger.debug("%s p-value at d=%d: %.4f", test.upper(), d, p)
        if not needs_diff:
            break
        x = x.diff().dropna()
        d += 1
    return d


def seasonal_strength(series: pd.Series, period: int = 12) -> float:
    """
    STL-based strength of seasonality, ``max(0, 1 - Var(R) / Var(S + R))``.

    Values near 1 indicate a dominant seasonal pattern, values near 0 none.
    Returns NaN when the series is shorter than two full seasons.
    """
    from statsmodels.tsa.seasonal import STL

    s = pd.Series(series).dropna().astype(float)
    if len(s) < 2 * period:
        return float("nan")
    res = STL(s.to_numpy(), period=period, robust=True).fit()
    var_r = float(np.var(res.resid))
    var_sr = float(np.var(res.seasonal + res.resid))
    if var_sr <= 1e-12:
        return 0.0
    return max(0.0, 1.0 - var_r / var_sr)


def select_seasonal_differencing(series: pd.Series, period: int = 12, max_D: int = 1,
                                 threshold: float = 0.64) -> int:
    """
    Select the seasonal differencing order from the STL seasonal strength.

    One seasonal difference is taken while the strength exceeds ``threshold``,
    up to ``max_D``. Series with fewer than two seasons (or period < 2) get D=0.
    """
    if period < 2:
        return 0
    x = pd.Series(series).dropna().astype(float)
    D = 0
    while D < max_D:
        fs = seasonal_strength(x, period)
        logger.debug("Seasonal strength at D=%d: %.3f", D, fs)
        if not np.isfinite(fs) or fs <= threshold:
            break
        x = x.diff(period).dropna()
        D += 1
    return D
