# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly price series.

Functions
---------
- parse_reference_month(values): Convert 'YYYY-MM' reference periods (as published by
  statistical agencies) to month-start Timestamps.
- ensure_monthly_index(series): Normalize a series to a contiguous month-start
  ('MS') DatetimeIndex, rejecting gaps and duplicate months.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd


def parse_reference_month(values: Iterable) -> pd.DatetimeIndex:
    """
    Convert reference periods like '1914-01' or '2024-07-01' to month-start Timestamps.

    Unparseable entries become NaT so callers can drop them.
    """
    s = pd.Series(list(values), dtype="object").astype(str).str.strip()
    # Only the 'YYYY-MM' prefix is significant; any day component is ignored.
    return pd.DatetimeIndex(pd.to_datetime(s.str[:7], format="%Y-%m", errors="coerce"))


def _to_datetime_index(s: pd.Series) -> pd.Series:
    if isinstance(s.index, pd.PeriodIndex):
        s = s.copy()
        s.index = s.index.to_timestamp(how="start")
    elif not isinstance(s.index, pd.DatetimeIndex):
        raise TypeError("ensure_monthly_index expects a Series with DatetimeIndex or PeriodIndex.")
    return s


def ensure_monthly_index(series: pd.Series) -> pd.Series:
    """
    Return a copy of ``series`` indexed at month start with ``freq='MS'``.

    Parameters
    ----------
    series : pd.Series
        Series with a DatetimeIndex or PeriodIndex holding one observation per month.
        Timestamps anywhere inside a month (e.g. month end) are mapped to the month start.

    Returns
    -------
    pd.Series
        Sorted series with a contiguous monthly index.

    Raises
    ------
    TypeError
        If the index is not datetime-like.
    ValueError
        If the series is empty, has two observations in the same month, or skips a month.
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")
    if series.empty:
        raise ValueError("Cannot build a monthly index for an empty series.")

    s = _to_datetime_index(series).sort_index()
    months = s.index.to_period("M")
    if months.has_duplicates:
        dup = months[months.duplicated()].unique()
        raise ValueError(f"Duplicate observations for month(s): {[str(m) for m in dup[:5]]}")

    expected = pd.period_range(months[0], months[-1], freq="M")
    if len(expected) != len(months):
        missing = expected.difference(months)
        raise ValueError(
            f"Series has {len(missing)} missing month(s), first missing: {missing[0]}"
        )

    out = s.copy()
    out.index = pd.DatetimeIndex(months.to_timestamp(how="start"), freq="MS")
    return out

