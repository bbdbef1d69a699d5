"""Statistics Canada Web Data Service (WDS) fetchers for monthly price tables.

Purpose
-------
Download a full data table (e.g. CPI table 18-10-0004-01) from the WDS, pick one
product category and one geography, and standardize the result to a month-start
indexed pandas Series ready for analysis.

Key I/O
-------
- fetch_statcan_table(): returns the raw table as a DataFrame (all categories/geos).
- select_category(): filters the raw table to a single category and geography and
  returns a float Series indexed by month start.
- load_price_series(): fetch + select in one call.

Assumptions
-----------
- The WDS endpoint ``getFullTableDownloadCSV/{productId}/{lang}`` answers with JSON
  ``{"status": "SUCCESS", "object": "<zip url>"}``; the ZIP holds ``{productId}.csv``
  and ``{productId}_MetaData.csv``.
- ``productId`` is the first eight digits of the dashed table id
  ('18-10-0004-01' -> '18100004').
- English tables use REF_DATE/GEO/VALUE/UOM headers, French tables
  PÉRIODE DE RÉFÉRENCE/GÉO/VALEUR/UNITÉ DE MESURE. Dimension (category) columns sit
  between the geography columns and the unit-of-measure column.

Notes
-----
- Network requests use a single attempt with a timeout; failures raise
  StatCanFetchError and are fatal to the analysis run.
"""
from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
import requests

from helpers.temporal import parse_reference_month

logger = logging.getLogger(__name__)

STATCAN_WDS_BASE = "https://www150.statcan.gc.ca/t1/wds/rest"
DEFAULT_TABLE_ID = "18-10-0004-01"
DEFAULT_CATEGORY = "Food"
DEFAULT_GEO = "Canada"

# Column names per language for the fields the loader relies on.
COLUMN_NAMES: Dict[str, Dict[str, str]] = {
    "en": {"date": "REF_DATE", "geo": "GEO", "dguid": "DGUID", "uom": "UOM", "value": "VALUE"},
    "fr": {
        "date": "PÉRIODE DE RÉFÉRENCE",
        "geo": "GÉO",
        "dguid": "DGUID",
        "uom": "UNITÉ DE MESURE",
        "value": "VALEUR",
    },
}

_HEADERS = {
    "User-Agent": "FPI-Forecaster/0.1",
    "Accept": "application/json, application/zip, */*;q=0.1",
}


class StatCanFetchError(RuntimeError):
    """Raised when a table cannot be downloaded or decoded."""


class CategoryNotFoundError(LookupError):
    """Raised when the requested category or geography is absent from a table."""


def table_id_to_product_id(table_id: str) -> str:
    """Convert a dashed table id to the 8-digit WDS product id.

    Examples
    --------
    >>> table_id_to_product_id("18-10-0004-01")
    '18100004'
    >>> table_id_to_product_id("18100004")
    '18100004'
    """
    digits = "".join(ch for ch in str(table_id) if ch.isdigit())
    if len(digits) < 8:
        raise ValueError(f"Table id '{table_id}' does not contain an 8-digit product id.")
    return digits[:8]


def _build_download_url(product_id: str, language: str, base_url: str = STATCAN_WDS_BASE) -> str:
    return f"{base_url.rstrip('/')}/getFullTableDownloadCSV/{product_id}/{language}"


def _read_table_from_zip(payload: bytes, product_id: str) -> pd.DataFrame:
    """Extract ``{product_id}.csv`` from a WDS ZIP payload."""
    try:
        archive = zipfile.ZipFile(BytesIO(payload))
    except zipfile.BadZipFile as e:
        raise StatCanFetchError(f"Table {product_id}: download is not a valid ZIP archive.") from e

    with archive:
        names = archive.namelist()
        member = next((n for n in names if n.lower() == f"{product_id}.csv"), None)
        if member is None:
            # Fall back to the first CSV that is not the metadata file
            member = next(
                (n for n in names if n.lower().endswith(".csv") and "metadata" not in n.lower()),
                None,
            )
        if member is None:
            raise StatCanFetchError(f"Table {product_id}: no data CSV in archive (members: {names}).")
        with archive.open(member) as fh:
            return pd.read_csv(fh, encoding="utf-8-sig", low_memory=False)


def fetch_statcan_table(
    table_id: str = DEFAULT_TABLE_ID,
    language: str = "en",
    session: Optional[requests.Session] = None,
    timeout: float = 60,
    base_url: str = STATCAN_WDS_BASE,
) -> pd.DataFrame:
    """Download a full Statistics Canada table as a DataFrame.

    Parameters
    ----------
    table_id : str
        Dashed table id ('18-10-0004-01') or 8-digit product id.
    language : str, default 'en'
        'en' or 'fr'; selects the table language and header names.
    session : requests.Session, optional
        Session to use (useful for connection reuse and tests).
    timeout : float, default 60
        Timeout in seconds for each HTTP request.
    base_url : str
        WDS REST base URL.

    Returns
    -------
    pd.DataFrame
        The raw table with the agency's column names. ``df.attrs`` holds
        'product_id', 'language' and 'source_url'.

    Raises
    ------
    StatCanFetchError
        On HTTP errors, a non-SUCCESS WDS status, or an undecodable payload.
    """
    lang = str(language).lower()
    if lang not in COLUMN_NAMES:
        raise ValueError(f"Unsupported language '{language}'. Use one of {sorted(COLUMN_NAMES)}.")
    product_id = table_id_to_product_id(table_id)
    http = session or requests.Session()

    url = _build_download_url(product_id, lang, base_url)
    logger.info("Requesting table %s (%s) from %s", product_id, lang, url)
    try:
        resp = http.get(url, headers=_HEADERS, timeout=timeout)
        resp.raise_for_status()
        meta = resp.json()
    except requests.RequestException as e:
        raise StatCanFetchError(f"Table {product_id}: WDS request failed: {e}") from e
    except ValueError as e:
        raise StatCanFetchError(f"Table {product_id}: WDS returned a non-JSON response.") from e

    status = str(meta.get("status", "")).upper() if isinstance(meta, dict) else ""
    zip_url = meta.get("object") if isinstance(meta, dict) else None
    if status != "SUCCESS" or not zip_url:
        raise StatCanFetchError(f"Table {product_id}: WDS status {status or 'UNKNOWN'} ({meta!r}).")

    logger.debug("Downloading table archive %s", zip_url)
    try:
        zresp = http.get(zip_url, headers=_HEADERS, timeout=timeout)
        zresp.raise_for_status()
    except requests.RequestException as e:
        raise StatCanFetchError(f"Table {product_id}: archive download failed: {e}") from e

    df = _read_table_from_zip(zresp.content or b"", product_id)
    logger.info("Table %s: %d rows, %d columns", product_id, len(df), df.shape[1])
    df.attrs["product_id"] = product_id
    df.attrs["language"] = lang
    df.attrs["source_url"] = url
    return df


def dimension_columns(df: pd.DataFrame, language: str = "en") -> List[str]:
    """Return the category (dimension) columns of a WDS table.

    These are the columns after GEO/DGUID and before the unit-of-measure column.
    """
    names = COLUMN_NAMES[language]
    cols = list(df.columns)
    try:
        start = cols.index(names["dguid"]) + 1 if names["dguid"] in cols else cols.index(names["geo"]) + 1
        stop = cols.index(names["uom"])
    except ValueError as e:
        raise CategoryNotFoundError(f"Unexpected table layout, columns: {cols}") from e
    return cols[start:stop]


def select_category(
    df: pd.DataFrame,
    category: str = DEFAULT_CATEGORY,
    geo: Optional[str] = DEFAULT_GEO,
    language: str = "en",
    category_column: Optional[str] = None,
) -> pd.Series:
    """Filter a raw WDS table to one category and geography.

    Parameters
    ----------
    df : pd.DataFrame
        Raw table from fetch_statcan_table().
    category : str
        Member name to keep, matched case-insensitively after trimming
        (e.g. 'Food' in 'Products and product groups').
    geo : str or None, default 'Canada'
        Geography to keep; None keeps all rows (only valid for single-geo tables).
    language : str, default 'en'
        Table language; selects header names.
    category_column : str, optional
        Restrict the search to this dimension column. By default every dimension
        column is searched and the first one containing ``category`` is used.

    Returns
    -------
    pd.Series
        Float series indexed by month start, named ``category``.

    Raises
    ------
    CategoryNotFoundError
        If the category or geography is absent, or no numeric observations remain.
    """
    lang = str(language).lower()
    names = COLUMN_NAMES[lang]
    for key in ("date", "value"):
        if names[key] not in df.columns:
            raise CategoryNotFoundError(f"Column '{names[key]}' not found; columns: {list(df.columns)}")

    wanted = str(category).strip().casefold()
    candidates = [category_column] if category_column else dimension_columns(df, lang)

    mask = None
    for col in candidates:
        if col not in df.columns:
            raise CategoryNotFoundError(f"Category column '{col}' not in table.")
        col_mask = df[col].astype(str).str.strip().str.casefold().eq(wanted)
        if col_mask.any():
            logger.debug("Category '%s' found in column '%s'", category, col)
            mask = col_mask
            break
    if mask is None:
        raise CategoryNotFoundError(f"Category '{category}' not found in columns {candidates}.")

    if geo is not None:
        if names["geo"] not in df.columns:
            raise CategoryNotFoundError(f"Column '{names['geo']}' not found; cannot filter geography.")
        geo_mask = df[names["geo"]].astype(str).str.strip().str.casefold().eq(str(geo).strip().casefold())
        if not (mask & geo_mask).any():
            raise CategoryNotFoundError(f"No rows for category '{category}' in geography '{geo}'.")
        mask = mask & geo_mask

    filtered = df.loc[mask, [names["date"], names["value"]]]
    out = pd.DataFrame(
        {
            "date": parse_reference_month(filtered[names["date"]]),
            "value": pd.to_numeric(filtered[names["value"]], errors="coerce").to_numpy(),
        }
    )
    out = out.dropna(subset=["date", "value"]).sort_values("date")
    if out.empty:
        raise CategoryNotFoundError(f"Category '{category}' has no numeric observations.")
    if out["date"].duplicated().any():
        raise CategoryNotFoundError(
            f"Category '{category}' maps to several series per month; narrow it with geo or category_column."
        )

    series = pd.Series(out["value"].to_numpy(dtype=float), index=pd.DatetimeIndex(out["date"]), name=str(category))
    logger.info("Selected '%s' (%s): %d observations, %s to %s",
                category, geo or "all geographies", len(series),
                series.index[0].strftime("%Y-%m"), series.index[-1].strftime("%Y-%m"))
    return series


def load_price_series(
    table_id: str = DEFAULT_TABLE_ID,
    category: str = DEFAULT_CATEGORY,
    geo: Optional[str] = DEFAULT_GEO,
    language: str = "en",
    session: Optional[requests.Session] = None,
    timeout: float = 60,
    base_url: str = STATCAN_WDS_BASE,
) -> pd.Series:
    """Fetch a table and return the monthly series for one category."""
    table = fetch_statcan_table(table_id, language=language, session=session,
                                timeout=timeout, base_url=base_url)
    series = select_category(table, category=category, geo=geo, language=language)
    series.attrs["product_id"] = table.attrs.get("product_id")
    series.attrs["source_url"] = table.attrs.get("source_url")
    return series


__all__ = [
    "STATCAN_WDS_BASE",
    "DEFAULT_TABLE_ID",
    "DEFAULT_CATEGORY",
    "DEFAULT_GEO",
    "StatCanFetchError",
    "CategoryNotFoundError",
    "table_id_to_product_id",
    "fetch_statcan_table",
    "dimension_columns",
    "select_category",
    "load_price_series",
]
