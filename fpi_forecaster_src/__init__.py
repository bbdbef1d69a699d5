# fpi_forecaster_src/__init__.py

"""
FPI Forecaster - exploratory analysis and seasonal ARIMA forecast of a Food Price Index

Key Components
--------------
- config_utils: Configuration management and CLI override support
- data_utils: Loading the series from Statistics Canada or a saved CSV
- parsing_utils: Command-line argument parsing and validation
- transform_utils: Log/difference transforms and differencing pre-tests
- diagnostics_utils: Exploratory and residual diagnostic figures
- forecasting_utils: Automatic SARIMA order selection, fitting and forecasting
- plotting_utils: Static and interactive forecast charts
- file_utils: CSV tables and the Markdown report
- main: Main entry point and workflow orchestration

Usage
-----
    # Command-line usage
    python -m fpi_forecaster_src.main --category Food --output-dir report

    # Programmatic usage
    from fpi_forecaster_src import load_fpi_series, run_analysis
"""

__version__ = "1.0.0"

from .config_utils import initialize_config, get_config_value
from .data_utils import load_fpi_series, load_series_csv
from .forecasting_utils import (
    ForecastResult, ModelSelectionError, OrderSelection, fit_sarima, forecast_sarima, select_sarima_order
)
from .main import main, run_analysis

__all__ = [
    "main",
    "run_analysis",
    "initialize_config",
    "get_config_value",
    "load_fpi_series",
    "load_series_csv",
    "select_sarima_order",
    "fit_sarima",
    "forecast_sarima",
    "OrderSelection",
    "ForecastResult",
    "ModelSelectionError",
    "__version__",
]
