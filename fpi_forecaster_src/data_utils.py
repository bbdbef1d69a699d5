# fpi_forecaster_src/data_utils.py

import logging
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd
import requests

from fetchers.statcan_wds import (
    DEFAULT_CATEGORY, DEFAULT_GEO, DEFAULT_TABLE_ID, STATCAN_WDS_BASE, load_price_series
)
from helpers.temporal import parse_reference_month
from validation.data_integrity import DataFingerprint, create_data_fingerprint, validate_price_series

logger = logging.getLogger(__name__)


def load_series_csv(series_path: Path, name: Optional[str] = None) -> pd.Series:
    """
    Load a monthly price series from a CSV file with 'date' and 'value' columns.

    This is the offline counterpart of the remote loader: a series saved with
    save_series_csv() can be re-analysed without network access.

    Parameters
    ----------
    series_path : Path
        Path to CSV file containing 'date' and 'value' columns.
    name : str, optional
        Name of the returned series; defaults to the file stem.

    Returns
    -------
    pd.Series
        Series with a month-start DatetimeIndex.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist.
    ValueError
        If the file lacks required columns or contains no valid rows.
    """
    if not series_path.exists():
        raise FileNotFoundError(f"Series CSV not found: {series_path}")

    logger.info("Loading series from: %s", series_path)
    df_series = pd.read_csv(series_path)

    if "date" not in df_series.columns or "value" not in df_series.columns:
        raise ValueError("Series CSV must contain 'date' and 'value' columns.")

    # Parse and validate data
    df_series["date"] = parse_reference_month(df_series["date"])
    df_series["value"] = pd.to_numeric(df_series["value"], errors="coerce")
    df_series = df_series.dropna(subset=["date", "value"]).sort_values("date").reset_index(drop=True)

    if df_series.empty:
        raise ValueError("No valid rows found in series CSV after parsing.")

    return pd.Series(df_series["value"].values, index=pd.DatetimeIndex(df_series["date"]),
                     name=name or series_path.stem)


def save_series_csv(series: pd.Series, out_path: Path) -> None:
    """
    Write a series to CSV in the two-column ('date', 'value') format read by load_series_csv().

    Parent directories are created if missing.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame({"date": series.index.strftime("%Y-%m-%d"), "value": series.values}).to_csv(out_path, index=False)
    logger.info("Saved %d observations to %s", len(series), out_path)


def load_fpi_series(table_id: str = DEFAULT_TABLE_ID,
                    category: str = DEFAULT_CATEGORY,
                    geo: Optional[str] = DEFAULT_GEO,
                    language: str = "en",
                    series_csv: Optional[Path] = None,
                    save_csv: Optional[Path] = None,
                    timeout: float = 60,
                    base_url: str = STATCAN_WDS_BASE,
                    session: Optional[requests.Session] = None) -> Tuple[pd.Series, DataFingerprint]:
    """
    Load the analysed series, either from a local CSV or from Statistics Canada.

    The result is validated (monthly, contiguous, strictly positive) and fingerprinted.
    Loader errors propagate: a failed download or a missing category ends the run.

    Parameters
    ----------
    table_id, category, geo, language
        Remote table selection (ignored when ``series_csv`` is given).
    series_csv : Path, optional
        Read this CSV instead of the network.
    save_csv : Path, optional
        Write the loaded series to this CSV.
    timeout : float
        HTTP timeout in seconds.
    base_url : str
        WDS REST base URL.
    session : requests.Session, optional
        HTTP session for the remote fetch.

    Returns
    -------
    Tuple[pd.Series, DataFingerprint]
        Validated series and its provenance fingerprint.
    """
    if series_csv is not None:
        raw = load_series_csv(series_csv, name=category)
        source = str(series_csv)
    else:
        raw = load_price_series(table_id=table_id, category=category, geo=geo, language=language,
                                session=session, timeout=timeout, base_url=base_url)
        source = "Statistics Canada WDS"

    series = validate_price_series(raw)
    fingerprint = create_data_fingerprint(series, source=source, table_id=table_id,
                                          category=category, geo=geo)
    logger.info("Series '%s': %d monthly observations (%s to %s), fingerprint %s",
                series.name, len(series), fingerprint.date_range[0], fingerprint.date_range[1],
                fingerprint.hash)

    if save_csv is not None:
        save_series_csv(series, save_csv)
    return series, fingerprint
