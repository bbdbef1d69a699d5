import numpy as np
import pandas as pd
import pytest

from diagnostics import (
    DiagnosticResult,
    DiagnosticTest,
    HeteroskedasticityTester,
    SeriesDiagnostics,
    adf_test,
    compute_acf_pacf,
    jarque_bera_test,
    kpss_test,
    ljung_box_test,
    results_to_frame,
    run_heteroskedasticity_tests,
    run_series_diagnostics,
)


def create_arch_residuals(n=1000, seed=123):
    """ARCH(1) process: sigma_t^2 = alpha_0 + alpha_1 * e_{t-1}^2."""
    rng = np.random.default_rng(seed)
    alpha_0, alpha_1 = 1.0, 0.5
    e = np.zeros(n)
    for t in range(1, n):
        e[t] = rng.normal(0, np.sqrt(alpha_0 + alpha_1 * e[t - 1] ** 2))
    dates = pd.date_range("1940-01-01", periods=n, freq="MS")
    return pd.Series(e, index=dates, name="arch_residuals")


def create_ar1(n=300, phi=0.3, seed=1):
    rng = np.random.default_rng(seed)
    x = np.zeros(n)
    eps = rng.normal(0, 1, n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + eps[t]
    return pd.Series(x)


def test_jarque_bera_normal_vs_heavy_tailed():
    rng = np.random.default_rng(0)
    normal = jarque_bera_test(rng.normal(0, 1, 1000))
    heavy = jarque_bera_test(rng.standard_t(2, 1000))

    assert normal.test_type == DiagnosticTest.JARQUE_BERA
    assert normal.p_value > 0.001
    assert heavy.p_value < 1e-6
    assert heavy.is_significant
    assert heavy.interpretation == "Not normally distributed"
    assert heavy.additional_stats["kurtosis"] > 3
    assert set(normal.additional_stats) == {"skewness", "kurtosis"}


def test_adf_uses_trend_regression_and_fixed_lag():
    x = create_ar1(n=300)
    res = adf_test(x)

    # trunc((300 - 1) ** (1/3)) = 6
    assert res.degrees_of_freedom == 6
    assert "regression=ct" in res.test_description
    assert res.p_value < 0.01
    assert res.interpretation.startswith("Unit root rejected")


def test_adf_random_walk_not_rejected():
    rng = np.random.default_rng(21)
    walk = pd.Series(np.cumsum(rng.normal(0, 1, 300)))
    stationary = adf_test(create_ar1(n=300))
    res = adf_test(walk)

    assert res.p_value > 0.01
    assert res.p_value > stationary.p_value


def test_kpss_rejects_trending_series():
    trend = pd.Series(np.arange(200, dtype=float) + np.random.default_rng(4).normal(0, 1, 200))
    res = kpss_test(trend)

    assert res.test_type == DiagnosticTest.KPSS
    assert res.p_value <= 0.05
    assert res.is_significant


def test_ljung_box_detects_autocorrelation():
    strong = ljung_box_test(create_ar1(n=300, phi=0.8), lags=12)

    assert strong.p_value < 1e-6
    assert strong.degrees_of_freedom == 12
    assert ljung_box_test(create_ar1(n=300, phi=0.8), lags=12, model_df=2).degrees_of_freedom == 10


def test_compute_acf_pacf_shape_and_values():
    out = compute_acf_pacf(create_ar1(n=400, phi=0.6), lags=24)

    assert list(out.index) == list(range(1, 25))
    assert {"acf", "pacf", "acf_lower", "acf_upper"}.issubset(out.columns)
    assert out.loc[1, "acf"] == pytest.approx(0.6, abs=0.1)
    assert abs(out.loc[2, "pacf"]) < 0.15


def test_mcleod_li_and_arch_lm_detect_arch_effects():
    arch = create_arch_residuals()
    tester = HeteroskedasticityTester()
    ml = tester.test_mcleod_li(arch, lags=10)
    lm = tester.test_arch_lm(arch, lags=12)

    assert ml.test_type == DiagnosticTest.MCLEOD_LI
    assert ml.degrees_of_freedom == 10
    assert ml.p_value < 0.001
    assert lm.p_value < 0.001
    assert "f_stat" in lm.additional_stats
    assert ml.interpretation == "ARCH effects detected (heteroskedastic)"


def test_mcleod_li_on_iid_noise_is_not_extreme():
    noise = np.random.default_rng(9).normal(0, 1, 1000)
    results = run_heteroskedasticity_tests(noise)

    assert set(results) == {"mcleod_li", "arch_lm"}
    assert results["mcleod_li"].p_value > 0.001


def test_significance_level_only_changes_interpretation():
    r = DiagnosticResult("X", DiagnosticTest.LJUNG_BOX, test_statistic=5.0, p_value=0.03)
    assert r.is_significant
    r.significance_level = 0.01
    assert not r.is_significant
    assert r.interpretation == "No significant serial correlation"


def test_run_series_diagnostics_fixed_suite():
    results = run_series_diagnostics(create_ar1(n=240))
    assert list(results) == ["jarque_bera", "adf", "kpss", "ljung_box", "mcleod_li", "arch_lm"]

    resid = run_series_diagnostics(create_ar1(n=240), include_unit_root=False)
    assert "adf" not in resid and "kpss" not in resid


def test_results_to_frame_labels_rows():
    suite = SeriesDiagnostics(ljung_box_lags=12, mcleod_li_lags=6)
    frame = results_to_frame(suite.run(create_ar1(n=240)), label="Log")

    assert frame["series"].unique().tolist() == ["Log"]
    assert len(frame) == 6
    assert {"test", "statistic", "p_value", "significant", "interpretation"}.issubset(frame.columns)


def test_suite_from_config():
    from config import ConfigurationManager

    suite = SeriesDiagnostics.from_config(ConfigurationManager())
    assert suite.mcleod_li_lags == 10
    assert suite.ljung_box_lags == 24
    assert suite.acf_lags == 36


def test_empty_series_rejected():
    with pytest.raises(ValueError):
        jarque_bera_test(pd.Series([], dtype=float))
