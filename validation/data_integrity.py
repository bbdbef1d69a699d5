"""Data integrity checks and provenance for price-index series.

This module enforces the invariants every analysed series must satisfy before any
transformation or model fitting, and records where the data came from.

Features:
- Monthly contiguity and positivity checks (a price index must allow a logarithm)
- SHA-256 data fingerprinting of values and index
- Provenance metadata (source, table, category, geography, vintage)
"""

import hashlib
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from helpers.temporal import ensure_monthly_index

logger = logging.getLogger(__name__)


class SeriesValidationError(ValueError):
    """Raised when a series violates the monthly, gap-free, positive-value contract."""


def validate_price_series(series: pd.Series, min_obs: int = 24) -> pd.Series:
    """Validate a price-index series and return it with a normalized monthly index.

    Parameters
    ----------
    series : pd.Series
        Candidate series with a datetime-like index.
    min_obs : int, default 24
        Minimum number of observations required.

    Returns
    -------
    pd.Series
        Float series with a contiguous month-start ('MS') index.

    Raises
    ------
    SeriesValidationError
        If the series is too short, has gaps or duplicate months, or contains
        missing, non-finite or non-positive values.
    """
    if series is None or len(series) == 0:
        raise SeriesValidationError("Series is empty.")

    try:
        out = ensure_monthly_index(series)
    except (TypeError, ValueError) as e:
        raise SeriesValidationError(str(e)) from e

    values = pd.to_numeric(out, errors="coerce").astype(float)
    if values.isna().any():
        first_bad = values[values.isna()].index[0]
        raise SeriesValidationError(f"Series has missing values, first at {first_bad:%Y-%m}.")
    if not np.isfinite(values.values).all():
        raise SeriesValidationError("Series contains non-finite values.")
    if (values <= 0).any():
        first_bad = values[values <= 0].index[0]
        raise SeriesValidationError(
            f"Price index values must be strictly positive; found {values[first_bad]} at {first_bad:%Y-%m}."
        )
    if len(values) < min_obs:
        raise SeriesValidationError(f"Insufficient observations: {len(values)} < {min_obs}")

    values.name = series.name
    return values


@dataclass
class DataFingerprint:
    """Data fingerprint with SHA-256 hash and provenance metadata."""

    hash: str                           # SHA-256 hash (truncated to 16 chars)
    full_hash: str                      # Full SHA-256 hash
    n_obs: int
    date_range: Tuple[str, str]         # (first_month, last_month) as ISO strings
    source: Optional[str] = None        # e.g. "Statistics Canada WDS" or a CSV path
    table_id: Optional[str] = None
    category: Optional[str] = None
    geo: Optional[str] = None
    vintage: Optional[str] = None       # Retrieval timestamp

    @classmethod
    def from_series(cls, data: pd.Series, source: Optional[str] = None,
                    table_id: Optional[str] = None, category: Optional[str] = None,
                    geo: Optional[str] = None) -> "DataFingerprint":
        """Create a DataFingerprint from a monthly series."""
        if data.empty:
            raise ValueError("Cannot create fingerprint from empty series")

        full_hash = cls._compute_hash(data)
        date_range = (data.index.min().strftime("%Y-%m"), data.index.max().strftime("%Y-%m"))
        return cls(
            hash=full_hash[:16],
            full_hash=full_hash,
            n_obs=int(len(data)),
            date_range=date_range,
            source=source,
            table_id=table_id,
            category=category,
            geo=geo,
            vintage=datetime.now().isoformat(timespec="seconds"),
        )

    @staticmethod
    def _compute_hash(data: pd.Series) -> str:
        """Compute SHA-256 of float64 values followed by the ISO index labels."""
        values_bytes = np.asarray(data.values, dtype=np.float64).tobytes()
        index_bytes = "|".join(ts.isoformat() for ts in pd.DatetimeIndex(data.index)).encode("utf-8")
        return hashlib.sha256(values_bytes + index_bytes).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def create_data_fingerprint(data: pd.Series, **provenance) -> DataFingerprint:
    """Convenience wrapper around DataFingerprint.from_series."""
    fp = DataFingerprint.from_series(data, **provenance)
    logger.debug("Data fingerprint %s (%d obs, %s..%s)", fp.hash, fp.n_obs, *fp.date_range)
    return fp
