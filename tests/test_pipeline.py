import numpy as np
import pandas as pd
import pytest

from fpi_forecaster_src.data_utils import save_series_csv
from fpi_forecaster_src.forecasting_utils import fit_sarima, forecast_sarima, select_sarima_order
from fpi_forecaster_src.main import main, run_analysis
from fpi_forecaster_src.transform_utils import get_transform_description
from validation.data_integrity import SeriesValidationError

SEARCH = {"max_p": 2, "max_q": 2, "max_P": 1, "max_Q": 1, "max_order": 4}

SMALL_CONFIG = """
model:
  selection:
    max_models: 10
  search:
    max_p: 1
    max_q: 1
    max_P: 1
    max_Q: 1
diagnostics:
  acf_lags: 24
  lag_plot_lags: 4
output:
  dpi: 60
"""


def test_seasonal_model_tracks_known_path(seasonal_index):
    series, truth = seasonal_index
    y = np.log(series)

    sel = select_sarima_order(y, max_models=20, **SEARCH)
    assert sel.seasonal_order[1] == 1
    assert sel.order[1] + sel.seasonal_order[1] >= 1

    fc = forecast_sarima(fit_sarima(y, sel), horizon=12).inverse_transform()
    expected = truth(np.arange(360, 372))
    assert np.all(np.abs(fc.mean.to_numpy() / expected - 1) < 0.05)
    assert fc.index[0] == pd.Timestamp("2020-01-01")


def test_run_analysis_writes_report_directory(make_index, tmp_path):
    series, _ = make_index(n=120)
    out = run_analysis(series, tmp_path / "report", horizon=6, levels=(80, 95),
                       search={"max_p": 1, "max_q": 1, "max_P": 1, "max_Q": 1},
                       max_models=8, lag_plot_lags=4, dpi=60)

    report_dir = tmp_path / "report"
    for name in ["diagnostics.csv", "candidates.csv", "forecast.csv", "report.md"]:
        assert (report_dir / name).exists(), name
    assert (report_dir / "figures" / "Forecast.png").exists()
    assert (report_dir / "figures" / "Forecast.html").exists()
    assert (report_dir / "figures" / "Level_Decomposition.png").exists()
    assert (report_dir / "figures" / "Residuals_Diagnostics.png").exists()

    forecast = pd.read_csv(report_dir / "forecast.csv")
    assert forecast.columns.tolist() == ["date", "forecast", "lower_80", "upper_80", "lower_95", "upper_95"]
    assert len(forecast) == 6
    assert (forecast["lower_95"] <= forecast["lower_80"]).all()
    assert (forecast["upper_80"] <= forecast["upper_95"]).all()

    diagnostics = out["diagnostics"]
    labels = [get_transform_description(t) for t in ("level", "log", "log_diff")]
    assert diagnostics["series"].unique().tolist() == labels + ["Model residuals"]
    resid_tests = diagnostics.loc[diagnostics["series"] == "Model residuals", "type"].tolist()
    assert resid_tests == ["jarque_bera", "ljung_box", "mcleod_li", "arch_lm"]

    report = (report_dir / "report.md").read_text(encoding="utf-8")
    assert out["selection"].describe() in report
    assert "## Forecast" in report
    assert "figures/Forecast.png" in report


def test_run_analysis_level_scale_without_html(make_index, tmp_path):
    series, _ = make_index(n=96)
    out = run_analysis(series, tmp_path, horizon=3, target_transform="level", interactive=False,
                       search={"max_p": 1, "max_q": 1, "max_P": 0, "max_Q": 0},
                       max_models=4, lag_plot_lags=2, dpi=60)

    assert not (tmp_path / "figures" / "Forecast.html").exists()
    assert out["forecast"].horizon == 3
    assert out["forecast"].mean.iloc[0] == pytest.approx(series.iloc[-1], rel=0.1)


def test_run_analysis_rejects_bad_inputs(make_index, tmp_path):
    series, _ = make_index(n=60)
    with pytest.raises(ValueError, match="Model transform"):
        run_analysis(series, tmp_path, target_transform="yoy")

    broken = series.copy()
    broken.iloc[10] = -1.0
    with pytest.raises(SeriesValidationError):
        run_analysis(broken, tmp_path)


def test_main_runs_from_csv(make_index, tmp_path):
    series, _ = make_index(n=96)
    csv_path = tmp_path / "food.csv"
    save_series_csv(series, csv_path)
    cfg = tmp_path / "small.yaml"
    cfg.write_text(SMALL_CONFIG, encoding="utf-8")
    out_dir = tmp_path / "out"

    main(["--config", str(cfg), "--series-csv", str(csv_path), "--output-dir", str(out_dir),
          "--no-interactive", "--horizon", "4", "--intervals", "90", "--log-level", "WARNING"])

    forecast = pd.read_csv(out_dir / "forecast.csv")
    assert forecast.columns.tolist() == ["date", "forecast", "lower_90", "upper_90"]
    assert len(forecast) == 4
    assert not (out_dir / "figures" / "Forecast.html").exists()
    candidates = pd.read_csv(out_dir / "candidates.csv")
    assert len(candidates) <= 10
    assert (candidates["p"] <= 1).all()


def test_main_exits_with_status_1_on_missing_csv(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["--series-csv", str(tmp_path / "missing.csv"), "--output-dir", str(tmp_path / "out"),
              "--log-level", "WARNING"])
    assert excinfo.value.code == 1
