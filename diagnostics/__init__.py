"""Diagnostic testing for the FPI forecaster.

This package provides the statistical tests applied to the transformed price
series and to the residuals of the fitted model:
- Normality (Jarque-Bera)
- Unit root / stationarity (ADF, KPSS)
- Serial correlation (ACF/PACF, Ljung-Box)
- Heteroskedasticity (McLeod-Li, ARCH-LM)
"""

from .series_diagnostics import (
    DiagnosticResult,
    DiagnosticTest,
    SeriesDiagnostics,
    adf_test,
    compute_acf_pacf,
    jarque_bera_test,
    kpss_test,
    ljung_box_test,
    results_to_frame,
    run_series_diagnostics,
)

from .heteroskedasticity import (
    HeteroskedasticityTester,
    run_heteroskedasticity_tests,
)

__all__ = [
    # Series and residual diagnostics
    'DiagnosticResult',
    'DiagnosticTest',
    'SeriesDiagnostics',
    'adf_test',
    'compute_acf_pacf',
    'jarque_bera_test',
    'kpss_test',
    'ljung_box_test',
    'results_to_frame',
    'run_series_diagnostics',

    # Heteroskedasticity testing
    'HeteroskedasticityTester',
    'run_heteroskedasticity_tests',
]
