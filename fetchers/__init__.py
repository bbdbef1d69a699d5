"""
Data Fetchers for the FPI forecaster

This package retrieves monthly price-index series from statistical agencies.

Main Components:
- Statistics Canada Web Data Service (full-table download, category selection)
"""

from .statcan_wds import (
    STATCAN_WDS_BASE,
    DEFAULT_TABLE_ID,
    DEFAULT_CATEGORY,
    DEFAULT_GEO,
    StatCanFetchError,
    CategoryNotFoundError,
    table_id_to_product_id,
    fetch_statcan_table,
    dimension_columns,
    select_category,
    load_price_series,
)

__all__ = [
    'STATCAN_WDS_BASE',
    'DEFAULT_TABLE_ID',
    'DEFAULT_CATEGORY',
    'DEFAULT_GEO',
    'StatCanFetchError',
    'CategoryNotFoundError',
    'table_id_to_product_id',
    'fetch_statcan_table',
    'dimension_columns',
    'select_category',
    'load_price_series',
]
