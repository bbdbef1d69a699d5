# fpi_forecaster_src/main.py

"""
Exploratory analysis and 12-month forecast of a monthly Food Price Index.

This is the main entry point of the FPI forecaster.

Purpose
-------
- Load the FPI series from Statistics Canada (or a previously saved CSV)
- Visualize the level, log and log-difference series: line plots, histograms,
  ACF/PACF, lag plots, seasonal decomposition
- Test normality (Jarque-Bera), unit roots (ADF, KPSS), serial correlation
  (Ljung-Box) and heteroskedasticity (McLeod-Li, ARCH-LM)
- Select a seasonal ARIMA model for the log series by AICc (stepwise search),
  fit it and save residual diagnostics
- Forecast 12 months ahead with 80% and 95% intervals, back on the index scale

Data Sources & Attribution
--------------------------
Consumer Price Index, monthly, not seasonally adjusted (table 18-10-0004-01),
Statistics Canada, via the Web Data Service. Contains information licensed
under the Statistics Canada Open Licence.

Configuration-Driven Workflow
-----------------------------
Defaults live in config/defaults.yaml; a user YAML file (--config or the
FPI_FORECASTER_CONFIG environment variable) overrides them, and CLI arguments
override both.
"""

import argparse
import logging
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from config import ConfigurationError
from diagnostics import SeriesDiagnostics, results_to_frame
from fetchers.statcan_wds import CategoryNotFoundError, StatCanFetchError
from validation.data_integrity import DataFingerprint, SeriesValidationError, validate_price_series

from .config_utils import initialize_config, get_config_value
from .data_utils import load_fpi_series
from .diagnostics_utils import save_residual_diagnostics, save_series_figures
from .file_utils import ensure_dir, render_report, resolve_path, write_report, write_table_csv
from .forecasting_utils import (
    ModelSelectionError, fit_sarima, forecast_sarima, hash_forecast, select_sarima_order
)
from .parsing_utils import (
    parse_intervals_arg, validate_criterion, validate_language, validate_log_level
)
from .plotting_utils import plot_forecast, write_forecast_html
from .transform_utils import apply_target_transform, get_transform_description

logger = logging.getLogger(__name__)

# Series examined by the diagnostic suite: (figure prefix, transform name)
DIAGNOSTIC_TRANSFORMS = [("Level", "level"), ("Log", "log"), ("LogDiff", "log_diff")]

MODEL_TRANSFORMS = {"log": np.exp, "level": None}


def run_analysis(series: pd.Series,
                 output_dir: Path,
                 fingerprint: Optional[DataFingerprint] = None,
                 horizon: int = 12,
                 levels: Sequence[int] = (80, 95),
                 criterion: str = "aicc",
                 stepwise: bool = True,
                 seasonal_period: int = 12,
                 target_transform: str = "log",
                 interactive: bool = True,
                 search: Optional[Dict[str, int]] = None,
                 differencing: Optional[Dict[str, Any]] = None,
                 max_models: int = 94,
                 diagnostics: Optional[SeriesDiagnostics] = None,
                 lag_plot_lags: int = 12,
                 dpi: int = 150) -> Dict[str, Any]:
    """
    Run the full pipeline on a loaded series and write the report directory.

    Parameters
    ----------
    series : pd.Series
        Monthly price index on its original scale
    output_dir : Path
        Report directory (created if missing)
    fingerprint : DataFingerprint, optional
        Provenance of the series, echoed in the report
    horizon : int, default=12
        Forecast horizon in months
    levels : sequence of int, default=(80, 95)
        Interval coverage levels in percent
    criterion : str, default='aicc'
        Information criterion for order selection
    stepwise : bool, default=True
        Stepwise (True) or exhaustive (False) order search
    seasonal_period : int, default=12
        Seasonal period
    target_transform : str, default='log'
        Scale the model is fitted on: 'log' or 'level'
    interactive : bool, default=True
        Also write the interactive HTML forecast chart
    search : dict, optional
        Search bounds (max_p, max_q, max_P, max_Q, max_order)
    differencing : dict, optional
        Differencing pre-test settings (test, alpha, max_d, max_D, seasonal_strength_threshold)
    max_models : int, default=94
        Model budget of the stepwise search
    diagnostics : SeriesDiagnostics, optional
        Configured diagnostic suite (defaults when omitted)
    lag_plot_lags : int, default=12
        Number of lag plots per series
    dpi : int, default=150
        Figure resolution

    Returns
    -------
    Dict[str, Any]
        'selection', 'results', 'forecast' (original scale), 'diagnostics' (DataFrame)
        and 'paths' of the written artifacts

    Raises
    ------
    SeriesValidationError
        If the series is not a contiguous, strictly positive monthly series
    ValueError
        If the transform or criterion is unknown
    ModelSelectionError
        If no candidate model could be fitted
    """
    if target_transform not in MODEL_TRANSFORMS:
        raise ValueError(f"Model transform must be one of {sorted(MODEL_TRANSFORMS)}, got '{target_transform}'.")
    criterion = validate_criterion(criterion)
    suite = diagnostics or SeriesDiagnostics()
    series = validate_price_series(series)
    name = str(series.name or "FPI")
    series.name = name

    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    ensure_dir(figures_dir)
    figures: List[Path] = []
    logger.info("Analysing '%s' (%d observations) into %s", name, len(series), output_dir)

    # Diagnostics of the level, log and log-difference series
    frames = []
    for prefix, transform in DIAGNOSTIC_TRANSFORMS:
        transformed = apply_target_transform(series, transform)
        transformed.name = name
        logger.info("Diagnostics: %s", get_transform_description(transform))
        test_results = suite.run(transformed, include_unit_root=True)
        frames.append(results_to_frame(test_results, label=get_transform_description(transform)))
        figures += save_series_figures(
            transformed, figures_dir, prefix, acf_lags=suite.acf_lags, lag_plot_lags=lag_plot_lags,
            period=seasonal_period, decompose=(transform == "level" and seasonal_period >= 2), dpi=dpi,
        )

    # Order selection and fit on the model scale
    endog = apply_target_transform(series, target_transform)
    search = dict(search or {})
    differencing = dict(differencing or {})
    selection = select_sarima_order(
        endog,
        seasonal_period=seasonal_period,
        criterion=criterion,
        stepwise=stepwise,
        max_models=max_models,
        **search,
        **differencing,
    )
    results = fit_sarima(endog, selection)

    burn = int(getattr(results, "loglikelihood_burn", 0))
    resid = pd.Series(results.resid).iloc[burn:]
    resid_results = suite.run(resid, include_unit_root=False, model_df=selection.n_arma_params)
    resid_frame = results_to_frame(resid_results, label="Model residuals")
    frames.append(resid_frame)
    figures += list(save_residual_diagnostics(results, figures_dir, "Residuals",
                                              lags=suite.ljung_box_lags, arch_lags=suite.arch_lags,
                                              dpi=dpi).values())

    # Forecast, back on the original scale
    fc_model = forecast_sarima(results, horizon=horizon, levels=levels)
    inverse = MODEL_TRANSFORMS[target_transform]
    forecast = fc_model.inverse_transform(inverse) if inverse is not None else fc_model
    forecast_table = forecast.to_frame()
    fc_hash = hash_forecast(forecast.mean.values)
    logger.info("Forecast %s to %s, hash %s", forecast.index[0].strftime("%Y-%m"),
                forecast.index[-1].strftime("%Y-%m"), fc_hash)

    title = f"{name}: {selection.describe()} forecast"
    path = figures_dir / "Forecast.png"
    try:
        plot_forecast(series, forecast, path, title=title, dpi=dpi)
        figures.append(path)
    except Exception as e:
        logger.warning("Failed to render forecast plot: %s", e)
    if interactive:
        path = figures_dir / "Forecast.html"
        try:
            write_forecast_html(series, forecast, path, title=title)
            figures.append(path)
        except Exception as e:
            logger.warning("Failed to write interactive forecast chart: %s", e)

    # Tables and report
    diagnostics_df = pd.concat(frames, ignore_index=True)
    paths = {
        "diagnostics": write_table_csv(diagnostics_df, output_dir / "diagnostics.csv"),
        "candidates": write_table_csv(selection.candidates, output_dir / "candidates.csv"),
        "forecast": write_table_csv(forecast_table, output_dir / "forecast.csv", index=True),
    }

    provenance: Dict[str, Any] = dict(fingerprint.to_dict()) if fingerprint is not None else {
        "n_obs": len(series),
        "date_range": (series.index[0].strftime("%Y-%m"), series.index[-1].strftime("%Y-%m")),
    }
    provenance["model_scale"] = get_transform_description(target_transform)
    provenance["forecast_hash"] = fc_hash
    report = render_report(
        series_name=name,
        provenance=provenance,
        diagnostics=diagnostics_df[diagnostics_df["series"] != "Model residuals"],
        model_description=selection.describe(),
        criterion=selection.criterion,
        criterion_value=selection.criterion_value,
        candidates=selection.candidates,
        residual_diagnostics=resid_frame,
        forecast_table=forecast_table,
        figures=figures,
        base_dir=output_dir,
        significance_level=suite.significance_level,
    )
    paths["report"] = write_report(report, output_dir / "report.md")
    paths["figures"] = figures

    logger.info("Analysis complete: %s", selection.describe())
    return {
        "selection": selection,
        "results": results,
        "forecast": forecast,
        "diagnostics": diagnostics_df,
        "paths": paths,
    }


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser.

    Options left unset fall back to the configuration file, then to built-in defaults.
    """
    parser = argparse.ArgumentParser(
        description="Food Price Index: exploratory diagnostics and seasonal ARIMA forecast."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        help="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML file overriding config/defaults.yaml."
    )

    # Data source
    parser.add_argument(
        "--table-id", type=str, default=None,
        help="Statistics Canada table id (e.g. 18-10-0004-01)."
    )
    parser.add_argument(
        "--category", type=str, default=None,
        help="Product category to analyse (e.g. 'Food')."
    )
    parser.add_argument(
        "--geo", type=str, default=None,
        help="Geography filter (e.g. 'Canada')."
    )
    parser.add_argument(
        "--language", type=str, choices=["en", "fr"], default=None,
        help="Table language (column names and labels)."
    )
    parser.add_argument(
        "--series-csv", type=str, default=None,
        help="Load the series from a CSV with 'date' and 'value' columns instead of downloading it."
    )
    parser.add_argument(
        "--save-csv", type=str, default=None,
        help="Save the loaded series to this CSV (resolved relative to the working directory)."
    )

    # Output
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Report directory (figures, tables, report.md)."
    )
    parser.add_argument(
        "--no-interactive", action="store_true", default=False,
        help="Skip the interactive HTML forecast chart."
    )

    # Model and forecast
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Forecast horizon in months."
    )
    parser.add_argument(
        "--intervals", type=str, default=None,
        help="Comma-separated predictive interval coverages (e.g., '80,95')."
    )
    parser.add_argument(
        "--criterion", type=str, choices=["aicc", "aic", "bic"], default=None,
        help="Information criterion for order selection."
    )
    parser.add_argument(
        "--no-stepwise", action="store_true", default=False,
        help="Exhaustive order search instead of the stepwise search."
    )
    parser.add_argument(
        "--seasonal-period", type=int, default=None,
        help="Seasonal period (12 for monthly data)."
    )
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point of the FPI forecaster.

    Errors from loading, validation and model selection end the run: they are
    logged and the process exits with status 1.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    base_dir = Path.cwd()
    try:
        manager = initialize_config(args.config)

        statcan = {
            "table_id": get_config_value("data_sources.statcan.table_id", "18-10-0004-01", args, "table_id"),
            "category": get_config_value("data_sources.statcan.category", "Food", args, "category"),
            "geo": get_config_value("data_sources.statcan.geo", "Canada", args, "geo"),
            "language": validate_language(
                get_config_value("data_sources.statcan.language", "en", args, "language")),
            "timeout": float(get_config_value("data_sources.statcan.timeout", 60)),
            "base_url": get_config_value("data_sources.statcan.base_url",
                                         "https://www150.statcan.gc.ca/t1/wds/rest"),
        }
        output_dir = resolve_path(get_config_value("output.directory", "report", args, "output_dir"), base_dir)
        series_csv = resolve_path(args.series_csv, base_dir) if args.series_csv else None
        save_csv = resolve_path(args.save_csv, base_dir) if args.save_csv else None

        levels = parse_intervals_arg(args.intervals if args.intervals is not None
                                     else get_config_value("forecast.intervals", [80, 95]))
        criterion = validate_criterion(
            get_config_value("model.selection.criterion", "aicc", args, "criterion"))
        stepwise = False if args.no_stepwise else bool(get_config_value("model.selection.stepwise", True))
        interactive = False if args.no_interactive else bool(get_config_value("output.interactive", True))

        suite = SeriesDiagnostics.from_config(manager)

        series, fingerprint = load_fpi_series(series_csv=series_csv, save_csv=save_csv, **statcan)
        run_analysis(
            series,
            output_dir,
            fingerprint=fingerprint,
            horizon=int(get_config_value("forecast.horizon", 12, args, "horizon")),
            levels=levels,
            criterion=criterion,
            stepwise=stepwise,
            seasonal_period=int(get_config_value("model.seasonal_period", 12, args, "seasonal_period")),
            target_transform=get_config_value("model.target_transform", "log"),
            interactive=interactive,
            search=get_config_value("model.search", {}),
            differencing=get_config_value("model.differencing", {}),
            max_models=int(get_config_value("model.selection.max_models", 94)),
            diagnostics=suite,
            lag_plot_lags=int(get_config_value("diagnostics.lag_plot_lags", 12)),
            dpi=int(get_config_value("output.dpi", 150)),
        )
    except (StatCanFetchError, CategoryNotFoundError, SeriesValidationError, ModelSelectionError,
            ConfigurationError, FileNotFoundError, ValueError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        raise SystemExit(1) from e

    logger.info("Report written to %s", output_dir)


if __name__ == "__main__":
    main(sys.argv[1:])
