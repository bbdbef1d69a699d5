"""Statistical diagnostics for price-index series and model residuals.

This module runs the fixed set of tests used to characterise a series before
modelling and the residuals after fitting.

Features:
- Jarque-Bera test for normality
- Augmented Dickey-Fuller and KPSS tests for unit roots / stationarity
- ACF/PACF estimates and the Ljung-Box test for serial correlation
- McLeod-Li and ARCH-LM tests for heteroskedasticity (see heteroskedasticity.py)
- Tabular export of all results

The significance level only drives the wording of ``interpretation``; no test
result changes what the pipeline does next.
"""

import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.stats.stattools import jarque_bera
from statsmodels.tsa.stattools import acf, adfuller, kpss, pacf

logger = logging.getLogger(__name__)


class DiagnosticTest(Enum):
    """Types of diagnostic tests."""
    JARQUE_BERA = "jarque_bera"
    ADF = "adf"
    KPSS = "kpss"
    LJUNG_BOX = "ljung_box"
    MCLEOD_LI = "mcleod_li"
    ARCH_LM = "arch_lm"


@dataclass
class DiagnosticResult:
    """Results from a single diagnostic test."""

    test_name: str
    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    degrees_of_freedom: Optional[int] = None

    # Additional test-specific information
    test_description: Optional[str] = None
    additional_stats: Dict[str, float] = field(default_factory=dict)

    @property
    def is_significant(self) -> bool:
        """Check if test rejects null hypothesis."""
        return bool(self.p_value < self.significance_level)

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        sig = self.is_significant
        if self.test_type == DiagnosticTest.JARQUE_BERA:
            return "Not normally distributed" if sig else "Consistent with a normal distribution"
        elif self.test_type == DiagnosticTest.ADF:
            return "Unit root rejected (stationary)" if sig else "Unit root not rejected (non-stationary)"
        elif self.test_type == DiagnosticTest.KPSS:
            return "Stationarity rejected (non-stationary)" if sig else "Stationarity not rejected"
        elif self.test_type == DiagnosticTest.LJUNG_BOX:
            return "Serial correlation detected" if sig else "No significant serial correlation"
        elif self.test_type in (DiagnosticTest.MCLEOD_LI, DiagnosticTest.ARCH_LM):
            return "ARCH effects detected (heteroskedastic)" if sig else "No ARCH effects detected"
        return f"Null hypothesis {'rejected' if sig else 'not rejected'} (p={self.p_value:.4f})"

    def to_row(self) -> Dict[str, Any]:
        row = {
            "test": self.test_name,
            "type": self.test_type.value,
            "statistic": self.test_statistic,
            "p_value": self.p_value,
            "df": self.degrees_of_freedom,
            "significant": self.is_significant,
            "interpretation": self.interpretation,
        }
        row.update(self.additional_stats)
        return row


def _clean(values: Union[pd.Series, np.ndarray]) -> pd.Series:
    s = pd.Series(values).astype(float).dropna()
    if s.empty:
        raise ValueError("Cannot test an empty series.")
    return s


def jarque_bera_test(values: Union[pd.Series, np.ndarray], significance_level: float = 0.05) -> DiagnosticResult:
    """Jarque-Bera test for normality (H0: normally distributed)."""
    s = _clean(values)
    jb_stat, jb_pval, skew, kurtosis = jarque_bera(s.to_numpy())
    return DiagnosticResult(
        test_name="Jarque-Bera Test",
        test_type=DiagnosticTest.JARQUE_BERA,
        test_statistic=float(jb_stat),
        p_value=float(jb_pval),
        degrees_of_freedom=2,
        significance_level=significance_level,
        test_description="Test for normality (H0: normally distributed)",
        additional_stats={"skewness": float(skew), "kurtosis": float(kurtosis)},
    )


def adf_test(values: Union[pd.Series, np.ndarray], significance_level: float = 0.05,
             lags: Optional[int] = None, regression: str = "ct") -> DiagnosticResult:
    """Augmented Dickey-Fuller test (H0: unit root).

    By default the regression includes a constant and a linear trend and uses the
    fixed lag order ``trunc((n - 1) ** (1/3))`` rather than automatic lag selection.

    Parameters
    ----------
    values : pd.Series or np.ndarray
        Series to test (NaNs dropped)
    significance_level : float, default 0.05
        Level used for the interpretation text
    lags : int, optional
        Lag order of the test regression
    regression : str, default 'ct'
        Deterministic terms, as in statsmodels.tsa.stattools.adfuller
    """
    s = _clean(values)
    if lags is None:
        lags = int(np.trunc((len(s) - 1) ** (1.0 / 3.0)))
    stat, pval, used_lag, nobs, crit, _ = adfuller(s.to_numpy(), maxlag=lags, regression=regression, autolag=None)
    extras = {"nobs": float(nobs)}
    extras.update({f"crit_{k}": float(v) for k, v in crit.items()})
    return DiagnosticResult(
        test_name="Augmented Dickey-Fuller Test",
        test_type=DiagnosticTest.ADF,
        test_statistic=float(stat),
        p_value=float(pval),
        degrees_of_freedom=int(used_lag),
        significance_level=significance_level,
        test_description=f"Unit-root test (H0: unit root, regression={regression}, lags={used_lag})",
        additional_stats=extras,
    )


def kpss_test(values: Union[pd.Series, np.ndarray], significance_level: float = 0.05,
              regression: str = "c") -> DiagnosticResult:
    """KPSS test (H0: level stationary).

    statsmodels reports p-values only within [0.01, 0.10] and warns outside that
    range; the warning is silenced and the bounded value kept.
    """
    s = _clean(values)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        stat, pval, used_lag, crit = kpss(s.to_numpy(), regression=regression, nlags="auto")
    return DiagnosticResult(
        test_name="KPSS Test",
        test_type=DiagnosticTest.KPSS,
        test_statistic=float(stat),
        p_value=float(pval),
        degrees_of_freedom=int(used_lag),
        significance_level=significance_level,
        test_description=f"Stationarity test (H0: stationary, regression={regression})",
        additional_stats={f"crit_{k}": float(v) for k, v in crit.items()},
    )


def ljung_box_test(values: Union[pd.Series, np.ndarray], lags: int = 24,
                   significance_level: float = 0.05, model_df: int = 0) -> DiagnosticResult:
    """Ljung-Box test for serial correlation (H0: no autocorrelation up to ``lags``).

    ``model_df`` is subtracted from the degrees of freedom when testing residuals
    of a fitted ARMA model (p + q + P + Q).
    """
    s = _clean(values)
    lags = int(min(lags, len(s) - 1))
    if lags < 1:
        raise ValueError("Series too short for the Ljung-Box test.")
    model_df = int(min(model_df, lags - 1))
    lb = acorr_ljungbox(s, lags=[lags], model_df=model_df, return_df=True)
    return DiagnosticResult(
        test_name="Ljung-Box Test",
        test_type=DiagnosticTest.LJUNG_BOX,
        test_statistic=float(lb["lb_stat"].iloc[-1]),
        p_value=float(lb["lb_pvalue"].iloc[-1]),
        degrees_of_freedom=lags - model_df,
        significance_level=significance_level,
        test_description=f"Test for serial correlation (H0: no serial correlation, lags={lags})",
    )


def compute_acf_pacf(values: Union[pd.Series, np.ndarray], lags: int = 36, alpha: float = 0.05) -> pd.DataFrame:
    """ACF and PACF estimates with confidence bounds for lags 1..``lags``.

    Returns
    -------
    pd.DataFrame
        Indexed by lag with columns acf, acf_lower, acf_upper, pacf, pacf_lower, pacf_upper.
    """
    s = _clean(values)
    lags = int(min(lags, len(s) // 2 - 1))
    if lags < 1:
        raise ValueError("Series too short for ACF/PACF estimation.")
    acf_vals, acf_ci = acf(s.to_numpy(), nlags=lags, alpha=alpha, fft=True)
    pacf_vals, pacf_ci = pacf(s.to_numpy(), nlags=lags, alpha=alpha, method="ywm")
    out = pd.DataFrame({
        "acf": acf_vals,
        "acf_lower": acf_ci[:, 0],
        "acf_upper": acf_ci[:, 1],
        "pacf": pacf_vals,
        "pacf_lower": pacf_ci[:, 0],
        "pacf_upper": pacf_ci[:, 1],
    }, index=pd.RangeIndex(0, lags + 1, name="lag"))
    return out.iloc[1:]


class SeriesDiagnostics:
    """Fixed diagnostic suite for a series or a residual vector."""

    def __init__(self, significance_level: float = 0.05, ljung_box_lags: int = 24,
                 mcleod_li_lags: int = 10, arch_lags: int = 12, acf_lags: int = 36):
        """Initialize the diagnostic suite.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level for all interpretations
        ljung_box_lags, mcleod_li_lags, arch_lags, acf_lags : int
            Lag counts of the respective tests/estimates
        """
        self.significance_level = significance_level
        self.ljung_box_lags = ljung_box_lags
        self.mcleod_li_lags = mcleod_li_lags
        self.arch_lags = arch_lags
        self.acf_lags = acf_lags

    @classmethod
    def from_config(cls, config_manager) -> "SeriesDiagnostics":
        """Build the suite from the ``diagnostics`` section of a ConfigurationManager."""
        if config_manager is None:
            return cls()
        get = config_manager.get
        return cls(
            significance_level=float(get("diagnostics.significance_level", 0.05)),
            ljung_box_lags=int(get("diagnostics.ljung_box_lags", 24)),
            mcleod_li_lags=int(get("diagnostics.mcleod_li_lags", 10)),
            arch_lags=int(get("diagnostics.arch_lags", 12)),
            acf_lags=int(get("diagnostics.acf_lags", 36)),
        )

    def run(self, values: Union[pd.Series, np.ndarray], include_unit_root: bool = True,
            model_df: int = 0) -> Dict[str, DiagnosticResult]:
        """Run every test of the suite.

        Parameters
        ----------
        values : pd.Series or np.ndarray
            Series to analyse
        include_unit_root : bool, default True
            Run ADF and KPSS (skipped for model residuals)
        model_df : int, default 0
            Degrees of freedom consumed by a fitted model, for Ljung-Box

        Returns
        -------
        Dict[str, DiagnosticResult]
            Results keyed by DiagnosticTest value, in a fixed order
        """
        from .heteroskedasticity import HeteroskedasticityTester

        s = _clean(values)
        alpha = self.significance_level
        results: Dict[str, DiagnosticResult] = {
            DiagnosticTest.JARQUE_BERA.value: jarque_bera_test(s, alpha),
        }
        if include_unit_root:
            results[DiagnosticTest.ADF.value] = adf_test(s, alpha)
            results[DiagnosticTest.KPSS.value] = kpss_test(s, alpha)
        results[DiagnosticTest.LJUNG_BOX.value] = ljung_box_test(s, self.ljung_box_lags, alpha, model_df)
        results.update(
            HeteroskedasticityTester(alpha).comprehensive_heteroskedasticity_test(
                s, self.mcleod_li_lags, self.arch_lags
            )
        )
        for key, res in results.items():
            logger.info("%-12s stat=%10.4f p=%.4f  %s", key, res.test_statistic, res.p_value, res.interpretation)
        return results


def run_series_diagnostics(values: Union[pd.Series, np.ndarray], significance_level: float = 0.05,
                           include_unit_root: bool = True, model_df: int = 0) -> Dict[str, DiagnosticResult]:
    """Convenience wrapper around SeriesDiagnostics with default lag settings."""
    return SeriesDiagnostics(significance_level).run(values, include_unit_root, model_df)


def results_to_frame(results: Dict[str, DiagnosticResult], label: Optional[str] = None) -> pd.DataFrame:
    """Flatten diagnostic results into a DataFrame (one row per test)."""
    rows = []
    for res in results.values():
        row = res.to_row()
        if label is not None:
            row = {"series": label, **row}
        rows.append(row)
    return pd.DataFrame(rows)
