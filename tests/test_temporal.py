import pandas as pd
import numpy as np
import pytest

from helpers.temporal import ensure_monthly_index, parse_reference_month


def test_parse_reference_month_formats():
    out = parse_reference_month(["1914-01", "2024-07-01", " 2024-08 ", "not a date"])

    assert list(out[:3]) == [pd.Timestamp("1914-01-01"), pd.Timestamp("2024-07-01"), pd.Timestamp("2024-08-01")]
    assert pd.isna(out[3])


def test_ensure_monthly_index_sets_month_start_frequency():
    # Month-end timestamps, shuffled
    idx = pd.date_range("2020-01-31", periods=6, freq="ME")
    s = pd.Series(np.arange(6, dtype=float), index=idx).iloc[[3, 0, 5, 1, 4, 2]]

    out = ensure_monthly_index(s)

    assert out.index.freqstr == "MS"
    assert out.index[0] == pd.Timestamp("2020-01-01")
    assert out.tolist() == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
    # Input untouched
    assert s.index[0] == pd.Timestamp("2020-04-30")


def test_ensure_monthly_index_accepts_period_index():
    idx = pd.period_range("2021-01", periods=4, freq="M")
    out = ensure_monthly_index(pd.Series([1.0, 2.0, 3.0, 4.0], index=idx))

    assert isinstance(out.index, pd.DatetimeIndex)
    assert out.index[-1] == pd.Timestamp("2021-04-01")


def test_ensure_monthly_index_rejects_gap():
    idx = pd.DatetimeIndex(["2020-01-01", "2020-02-01", "2020-04-01"])
    with pytest.raises(ValueError, match="missing month"):
        ensure_monthly_index(pd.Series([1.0, 2.0, 3.0], index=idx))


def test_ensure_monthly_index_rejects_duplicate_month():
    idx = pd.DatetimeIndex(["2020-01-01", "2020-01-15", "2020-02-01"])
    with pytest.raises(ValueError, match="Duplicate"):
        ensure_monthly_index(pd.Series([1.0, 2.0, 3.0], index=idx))


def test_ensure_monthly_index_rejects_non_datetime_index():
    with pytest.raises(TypeError):
        ensure_monthly_index(pd.Series([1.0, 2.0, 3.0]))


def test_ensure_monthly_index_rejects_empty():
    with pytest.raises(ValueError):
        ensure_monthly_index(pd.Series([], dtype=float, index=pd.DatetimeIndex([])))
