# fpi_forecaster_src/forecasting_utils.py

import hashlib
import logging
import warnings
from dataclasses import dataclass, field
from itertools import product
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.tsa.statespace.sarimax import SARIMAX
from tqdm.auto import tqdm

from .transform_utils import select_differencing, select_seasonal_differencing

logger = logging.getLogger(__name__)

CRITERIA = ("aicc", "aic", "bic")

# (p, q, P, Q) starting points of the stepwise search
STEPWISE_START = [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]

# Relative moves in (p, q, P, Q) around the incumbent
STEPWISE_MOVES = [
    (-1, 0, 0, 0), (1, 0, 0, 0), (0, -1, 0, 0), (0, 1, 0, 0),
    (0, 0, -1, 0), (0, 0, 1, 0), (0, 0, 0, -1), (0, 0, 0, 1),
    (-1, -1, 0, 0), (1, 1, 0, 0), (0, 0, -1, -1), (0, 0, 1, 1),
]

CANDIDATE_COLUMNS = ["p", "d", "q", "P", "D", "Q", "s", "constant",
                     "AIC", "AICc", "BIC", "HQIC", "converged"]

# Minimum improvement for a candidate to replace the incumbent
IMPROVEMENT_TOL = 1e-8


class ModelSelectionError(RuntimeError):
    """Raised when no candidate model could be fitted."""


@dataclass
class OrderSelection:
    """Outcome of the automatic order search."""

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int]
    trend: Optional[str]
    criterion: str
    criterion_value: float
    candidates: pd.DataFrame = field(repr=False)

    @property
    def n_fits(self) -> int:
        return len(self.candidates)

    @property
    def n_arma_params(self) -> int:
        """Number of ARMA coefficients (p + q + P + Q), used as Ljung-Box model_df."""
        return self.order[0] + self.order[2] + self.seasonal_order[0] + self.seasonal_order[2]

    def describe(self) -> str:
        p, d, q = self.order
        P, D, Q, s = self.seasonal_order
        label = f"SARIMA({p},{d},{q})"
        if s:
            label += f"({P},{D},{Q})[{s}]"
        if self.trend == "c":
            label += " with drift" if d + D == 1 else " with mean"
        return label


@dataclass
class ForecastResult:
    """Point forecasts and interval bounds over a forecast horizon.

    ``intervals`` maps a coverage level in percent to a ``(lower, upper)`` pair
    of series sharing the index of ``mean``.
    """

    mean: pd.Series
    intervals: Dict[int, Tuple[pd.Series, pd.Series]]

    @property
    def index(self) -> pd.Index:
        return self.mean.index

    @property
    def horizon(self) -> int:
        return len(self.mean)

    @property
    def levels(self) -> List[int]:
        return sorted(self.intervals)

    def inverse_transform(self, func: Callable = np.exp) -> "ForecastResult":
        """Apply a monotone increasing back-transform to every array."""
        mean = pd.Series(func(self.mean.to_numpy(dtype=float)), index=self.index, name=self.mean.name)
        intervals = {
            lvl: (pd.Series(func(lo.to_numpy(dtype=float)), index=self.index, name=f"lower_{lvl}"),
                  pd.Series(func(hi.to_numpy(dtype=float)), index=self.index, name=f"upper_{lvl}"))
            for lvl, (lo, hi) in self.intervals.items()
        }
        return ForecastResult(mean=mean, intervals=intervals)

    def to_frame(self) -> pd.DataFrame:
        """Tidy table: one row per step with forecast and lower/upper columns per level."""
        out = pd.DataFrame({"forecast": self.mean.to_numpy()}, index=self.index)
        for lvl in self.levels:
            lo, hi = self.intervals[lvl]
            out[f"lower_{lvl}"] = lo.to_numpy()
            out[f"upper_{lvl}"] = hi.to_numpy()
        out.index.name = "date"
        return out


def _build_model(endog: pd.Series, arma: Tuple[int, int, int, int], d: int, D: int, s: int,
                 constant: bool) -> SARIMAX:
    p, q, P, Q = arma
    return SARIMAX(
        endog,
        order=(p, d, q),
        seasonal_order=(P, D, Q, s) if s else (0, 0, 0, 0),
        trend="c" if constant else None,
        simple_differencing=False,
    )


def _fit_candidate(endog: pd.Series, arma: Tuple[int, int, int, int], d: int, D: int, s: int,
                   constant: bool):
    """Fit one candidate with statsmodels warnings silenced (non-invertible starts, convergence)."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return _build_model(endog, arma, d, D, s, constant).fit(disp=False)


def _candidate_row(arma, d, D, s, constant, res) -> Dict[str, object]:
    p, q, P, Q = arma
    return {
        "p": p, "d": d, "q": q, "P": P, "D": D, "Q": Q, "s": s,
        "constant": bool(constant),
        "AIC": float(getattr(res, "aic", np.nan)),
        "AICc": float(getattr(res, "aicc", np.nan)),
        "BIC": float(getattr(res, "bic", np.nan)),
        "HQIC": float(getattr(res, "hqic", np.nan)),
        "converged": bool(getattr(res, "mle_retvals", {}).get("converged", True)),
    }


class _CandidateSearch:
    """Fits candidates once each and tracks the incumbent by information criterion."""

    def __init__(self, endog: pd.Series, d: int, D: int, s: int, criterion: str):
        self.endog = endog
        self.d, self.D, self.s = d, D, s
        self.column = {"aicc": "AICc", "aic": "AIC", "bic": "BIC"}[criterion]
        self.rows: List[Dict[str, object]] = []
        self.tried: Dict[Tuple[int, int, int, int, bool], float] = {}
        self.best_key: Optional[Tuple[int, int, int, int, bool]] = None
        self.best_value = np.inf

    def evaluate(self, arma: Tuple[int, int, int, int], constant: bool) -> float:
        key = (*arma, bool(constant))
        if key in self.tried:
            return self.tried[key]
        try:
            res = _fit_candidate(self.endog, arma, self.d, self.D, self.s, constant)
        except Exception as e:
            logger.debug("Fit failed for %s constant=%s: %s", arma, constant, e)
            self.tried[key] = np.inf
            return np.inf

        row = _candidate_row(arma, self.d, self.D, self.s, constant, res)
        value = float(row[self.column])
        if not np.isfinite(value):
            logger.debug("Non-finite %s for %s constant=%s", self.column, arma, constant)
            value = np.inf
        else:
            self.rows.append(row)
        self.tried[key] = value
        logger.debug("%s constant=%s -> %s=%.4f", arma, constant, self.column, value)

        if value < self.best_value - IMPROVEMENT_TOL:
            self.best_key, self.best_value = key, value
        return value

    @property
    def n_tried(self) -> int:
        return len(self.tried)

    def table(self) -> pd.DataFrame:
        df = pd.DataFrame(self.rows, columns=CANDIDATE_COLUMNS)
        return df.sort_values(by=self.column, ascending=True, kind="mergesort").reset_index(drop=True)


def _within_bounds(arma: Tuple[int, int, int, int], max_p: int, max_q: int, max_P: int, max_Q: int,
                   seasonal: bool) -> bool:
    p, q, P, Q = arma
    if min(arma) < 0 or p > max_p or q > max_q:
        return False
    if not seasonal:
        return P == 0 and Q == 0
    return P <= max_P and Q <= max_Q


def _clip_start(arma: Tuple[int, int, int, int], max_p: int, max_q: int, max_P: int, max_Q: int,
                seasonal: bool) -> Tuple[int, int, int, int]:
    p, q, P, Q = arma
    if not seasonal:
        P = Q = 0
    return min(p, max_p), min(q, max_q), min(P, max_P), min(Q, max_Q)


def _stepwise_search(search: _CandidateSearch, allow_constant: bool, seasonal: bool,
                     max_p: int, max_q: int, max_P: int, max_Q: int, max_models: int) -> None:
    """Hyndman-Khandakar stepwise search.

    The starting models are fitted first; afterwards every round evaluates all
    neighbours of the incumbent and moves to the best one, stopping when no
    neighbour improves the criterion or ``max_models`` fits have been attempted.
    """
    bounds = (max_p, max_q, max_P, max_Q, seasonal)
    starts: List[Tuple[int, int, int, int]] = []
    for arma in STEPWISE_START:
        clipped = _clip_start(arma, *bounds)
        if clipped not in starts:
            starts.append(clipped)

    for arma in starts:
        if search.n_tried >= max_models:
            break
        search.evaluate(arma, allow_constant)

    while search.best_key is not None and search.n_tried < max_models:
        incumbent = search.best_key
        current = incumbent[:4]
        constant = incumbent[4]

        neighbours: List[Tuple[Tuple[int, int, int, int], bool]] = []
        for move in STEPWISE_MOVES:
            arma = tuple(c + m for c, m in zip(current, move))
            if _within_bounds(arma, *bounds):
                neighbours.append((arma, constant))
        if allow_constant:
            neighbours.append((current, not constant))

        for arma, const in neighbours:
            if search.n_tried >= max_models:
                logger.info("Stepwise search stopped after %d models (max_models).", search.n_tried)
                break
            search.evaluate(arma, const)

        if search.best_key == incumbent:
            break


def _exhaustive_search(search: _CandidateSearch, allow_constant: bool, seasonal: bool,
                       max_p: int, max_q: int, max_P: int, max_Q: int, max_order: int) -> None:
    seasonal_range_P = range(max_P + 1) if seasonal else range(1)
    seasonal_range_Q = range(max_Q + 1) if seasonal else range(1)
    order_list = [
        arma for arma in product(range(max_p + 1), range(max_q + 1), seasonal_range_P, seasonal_range_Q)
        if sum(arma) <= max_order
    ]
    constants = [True, False] if allow_constant else [False]
    grid = [(arma, c) for arma in order_list for c in constants]
    for arma, const in tqdm(grid, desc="Grid search SARIMA"):
        search.evaluate(arma, const)


def select_sarima_order(endog: pd.Series,
                        seasonal_period: int = 12,
                        criterion: str = "aicc",
                        stepwise: bool = True,
                        max_p: int = 5,
                        max_q: int = 5,
                        max_P: int = 2,
                        max_Q: int = 2,
                        max_order: int = 5,
                        alpha: float = 0.05,
                        test: str = "kpss",
                        max_d: int = 2,
                        max_D: int = 1,
                        seasonal_strength_threshold: float = 0.64,
                        max_models: int = 94) -> OrderSelection:
    """
    Automatically select a seasonal ARIMA specification by information criterion.

    Differencing orders are fixed first by pre-tests (seasonal strength for D,
    repeated KPSS or ADF for d); the ARMA orders and the constant are then chosen
    by a stepwise or exhaustive search over SARIMAX fits.

    Parameters
    ----------
    endog : pd.Series
        Series to model (typically the log price index)
    seasonal_period : int, default=12
        Seasonal period s; values below 2 disable the seasonal part
    criterion : str, default='aicc'
        'aicc', 'aic' or 'bic'
    stepwise : bool, default=True
        Stepwise search; False runs the exhaustive grid with p+q+P+Q <= max_order
    max_p, max_q, max_P, max_Q, max_order : int
        Search bounds
    alpha : float, default=0.05
        Significance level of the differencing pre-test
    test : str, default='kpss'
        Unit-root test for d ('kpss' or 'adf')
    max_d, max_D : int
        Upper bounds on the differencing orders
    seasonal_strength_threshold : float, default=0.64
        STL seasonal strength above which one seasonal difference is taken
    max_models : int, default=94
        Maximum number of fits in the stepwise search

    Returns
    -------
    OrderSelection
        Chosen orders, constant flag, criterion value and the table of all fitted candidates

    Raises
    ------
    ValueError
        If the criterion is unknown.
    ModelSelectionError
        If no candidate could be fitted.

    Notes
    -----
    A candidate replaces the incumbent only if its criterion is lower by more
    than 1e-8, and candidates are visited in a fixed order, so repeated calls on
    the same data give the same selection.
    """
    criterion = criterion.lower()
    if criterion not in CRITERIA:
        raise ValueError(f"Unknown criterion '{criterion}'. Must be one of: {list(CRITERIA)}")

    y = pd.Series(endog).astype(float)
    s = int(seasonal_period) if seasonal_period and seasonal_period >= 2 else 0
    seasonal = bool(s) and len(y) >= 2 * s

    D = select_seasonal_differencing(y, period=s, max_D=max_D,
                                     threshold=seasonal_strength_threshold) if seasonal else 0
    y_sd = y.diff(s).dropna() if D else y
    d = select_differencing(y_sd, alpha=alpha, max_d=max_d, test=test)
    allow_constant = d + D <= 1
    logger.info("Differencing selected: d=%d, D=%d (s=%d); constant %s",
                d, D, s, "allowed" if allow_constant else "excluded")

    search = _CandidateSearch(y, d, D, s if seasonal else 0, criterion)
    if stepwise:
        _stepwise_search(search, allow_constant, seasonal, max_p, max_q, max_P, max_Q, max_models)
    else:
        _exhaustive_search(search, allow_constant, seasonal, max_p, max_q, max_P, max_Q, max_order)

    if search.best_key is None:
        raise ModelSelectionError(f"No SARIMA candidate could be fitted ({search.n_tried} attempted).")

    p, q, P, Q, constant = search.best_key
    selection = OrderSelection(
        order=(p, d, q),
        seasonal_order=(P, D, Q, s if seasonal else 0),
        trend="c" if constant else None,
        criterion=criterion,
        criterion_value=search.best_value,
        candidates=search.table(),
    )
    logger.info("Selected %s (%s=%.3f) after %d fits", selection.describe(), criterion.upper(),
                selection.criterion_value, search.n_tried)
    return selection


def fit_sarima(endog: pd.Series, selection: OrderSelection):
    """
    Refit the selected specification on ``endog``.

    Returns
    -------
    SARIMAXResults
        Fitted statsmodels results (coefficients, residuals, forecasting methods)
    """
    p, d, q = selection.order
    P, D, Q, s = selection.seasonal_order
    res = _fit_candidate(pd.Series(endog).astype(float), (p, q, P, Q), d, D, s, selection.trend == "c")
    logger.info("Fitted %s: log-likelihood %.3f", selection.describe(), res.llf)
    return res


def forecast_sarima(results, horizon: int = 12,
                    levels: Union[Sequence[int], Iterable[int]] = (80, 95)) -> ForecastResult:
    """
    Forecast ``horizon`` steps ahead with interval bounds for each coverage level.

    Parameters
    ----------
    results : SARIMAXResults
        Fitted model
    horizon : int, default=12
        Number of steps ahead (>= 1)
    levels : sequence of int, default=(80, 95)
        Coverage levels in percent, each in (0, 100)

    Returns
    -------
    ForecastResult
        On the scale the model was fitted on; use inverse_transform() to map back.
    """
    if int(horizon) < 1:
        raise ValueError("horizon must be a positive integer.")
    levels = sorted({int(lvl) for lvl in levels})
    if not levels or any(lvl <= 0 or lvl >= 100 for lvl in levels):
        raise ValueError("Interval levels must be integers strictly between 0 and 100.")

    fc = results.get_forecast(steps=int(horizon))
    mean = pd.Series(np.asarray(fc.predicted_mean, dtype=float), index=fc.predicted_mean.index, name="forecast")
    intervals: Dict[int, Tuple[pd.Series, pd.Series]] = {}
    for lvl in levels:
        ci = fc.conf_int(alpha=1.0 - lvl / 100.0)
        lo = pd.Series(ci.iloc[:, 0].to_numpy(dtype=float), index=mean.index, name=f"lower_{lvl}")
        hi = pd.Series(ci.iloc[:, 1].to_numpy(dtype=float), index=mean.index, name=f"upper_{lvl}")
        intervals[lvl] = (lo, hi)
    return ForecastResult(mean=mean, intervals=intervals)


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    Short fingerprint of a forecast path (first 16 hex chars of SHA-1),
    used in logs and the report to compare runs.
    """
    arr = np.asarray(seq, dtype=np.float64)
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]
