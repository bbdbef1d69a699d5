"""Data validation and provenance tracking for the FPI forecaster.

This package provides:
- Monthly, gap-free, strictly positive series validation
- Data fingerprinting with SHA-256 hashing
- Provenance metadata (source, table, category, geography, vintage)
"""

from .data_integrity import (
    DataFingerprint,
    SeriesValidationError,
    create_data_fingerprint,
    validate_price_series,
)

__all__ = [
    'DataFingerprint',
    'SeriesValidationError',
    'create_data_fingerprint',
    'validate_price_series',
]
