"""Heteroskedasticity testing for price-change series and model residuals.

Volatility clustering shows up as autocorrelation in squared values. Two tests
are provided:
- McLeod-Li: Ljung-Box portmanteau test on squared, demeaned values
- Engle's ARCH-LM: regression of squared values on their own lags
"""

import logging
from typing import Dict, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch

from .series_diagnostics import DiagnosticResult, DiagnosticTest

logger = logging.getLogger(__name__)


def _clean(values: Union[pd.Series, np.ndarray]) -> pd.Series:
    s = pd.Series(values).astype(float).dropna()
    if s.empty:
        raise ValueError("Cannot test an empty series.")
    return s


class HeteroskedasticityTester:
    """Tests for conditional heteroskedasticity (ARCH effects)."""

    def __init__(self, significance_level: float = 0.05):
        """Initialize the heteroskedasticity tester.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level used to phrase the interpretation
        """
        self.significance_level = significance_level

    def test_mcleod_li(self, values: Union[pd.Series, np.ndarray], lags: int = 10) -> DiagnosticResult:
        """McLeod-Li test: Ljung-Box on squared demeaned values.

        Parameters
        ----------
        values : pd.Series or np.ndarray
            Series or residuals to test (NaNs are dropped)
        lags : int, default 10
            Number of autocorrelation lags in the portmanteau statistic

        Returns
        -------
        DiagnosticResult
            Statistic and p-value at ``lags`` (H0: no ARCH effects)
        """
        s = _clean(values)
        lags = int(min(lags, len(s) - 1))
        if lags < 1:
            raise ValueError("Series too short for the McLeod-Li test.")
        logger.debug("Running McLeod-Li test with %d lags", lags)

        squared = (s - s.mean()) ** 2
        lb = acorr_ljungbox(squared, lags=[lags], return_df=True)
        return DiagnosticResult(
            test_name="McLeod-Li Test",
            test_type=DiagnosticTest.MCLEOD_LI,
            test_statistic=float(lb["lb_stat"].iloc[-1]),
            p_value=float(lb["lb_pvalue"].iloc[-1]),
            degrees_of_freedom=lags,
            significance_level=self.significance_level,
            test_description=f"Ljung-Box on squared values (H0: no ARCH effects, lags={lags})",
        )

    def test_arch_lm(self, values: Union[pd.Series, np.ndarray], lags: int = 12) -> DiagnosticResult:
        """Engle's ARCH-LM test.

        Parameters
        ----------
        values : pd.Series or np.ndarray
            Series or residuals to test (NaNs are dropped)
        lags : int, default 12
            Number of lags of squared values in the auxiliary regression

        Returns
        -------
        DiagnosticResult
            LM statistic and p-value; the F-test variant is kept in ``additional_stats``
        """
        s = _clean(values)
        lags = int(min(lags, max(1, len(s) // 4)))
        logger.debug("Running ARCH-LM test with %d lags", lags)

        lm_stat, lm_pval, f_stat, f_pval = het_arch(s.to_numpy(), nlags=lags)
        return DiagnosticResult(
            test_name="ARCH-LM Test",
            test_type=DiagnosticTest.ARCH_LM,
            test_statistic=float(lm_stat),
            p_value=float(lm_pval),
            degrees_of_freedom=lags,
            significance_level=self.significance_level,
            test_description=f"Test for ARCH effects (H0: no ARCH effects, lags={lags})",
            additional_stats={"f_stat": float(f_stat), "f_pvalue": float(f_pval)},
        )

    def comprehensive_heteroskedasticity_test(self, values: Union[pd.Series, np.ndarray],
                                              mcleod_li_lags: int = 10,
                                              arch_lags: int = 12) -> Dict[str, DiagnosticResult]:
        """Run both tests and return them keyed by test type value."""
        return {
            DiagnosticTest.MCLEOD_LI.value: self.test_mcleod_li(values, mcleod_li_lags),
            DiagnosticTest.ARCH_LM.value: self.test_arch_lm(values, arch_lags),
        }


def run_heteroskedasticity_tests(values: Union[pd.Series, np.ndarray],
                                 mcleod_li_lags: int = 10,
                                 arch_lags: int = 12,
                                 significance_level: float = 0.05) -> Dict[str, DiagnosticResult]:
    """Convenience wrapper around HeteroskedasticityTester."""
    tester = HeteroskedasticityTester(significance_level)
    return tester.comprehensive_heteroskedasticity_test(values, mcleod_li_lags, arch_lags)

