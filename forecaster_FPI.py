#!/usr/bin/env python3
"""
Food Price Index diagnostics and 12-month seasonal ARIMA forecast.

Usage
-----
    python forecaster_FPI.py --help
    python forecaster_FPI.py --category Food --geo Canada
    python forecaster_FPI.py --series-csv data/fpi.csv --output-dir report

The implementation lives in fpi_forecaster_src/ (see fpi_forecaster_src/main.py).
"""

from fpi_forecaster_src.main import main

if __name__ == "__main__":
    main()
