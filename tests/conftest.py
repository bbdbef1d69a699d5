import numpy as np
import pandas as pd
import pytest

from config import reset_config
import fpi_forecaster_src.config_utils as config_utils


def make_seasonal_index(n=360, start="1990-01-01", seed=7, noise=0.005, name="Food"):
    """Synthetic monthly price index: exp(trend + seasonal + noise).

    Returns the observed series and a function giving the noise-free path for
    any month offset t (0 = first observation).
    """
    rng = np.random.default_rng(seed)

    def truth(t):
        t = np.asarray(t, dtype=float)
        return np.exp(4.6 + 0.002 * t + 0.03 * np.sin(2 * np.pi * t / 12) + 0.015 * np.cos(2 * np.pi * t / 12))

    t = np.arange(n)
    values = truth(t) * np.exp(rng.normal(0.0, noise, n))
    idx = pd.date_range(start, periods=n, freq="MS")
    return pd.Series(values, index=idx, name=name), truth


@pytest.fixture
def seasonal_index():
    return make_seasonal_index()


@pytest.fixture
def make_index():
    return make_seasonal_index


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Each test starts without a cached configuration manager."""
    monkeypatch.delenv("FPI_FORECASTER_CONFIG", raising=False)
    reset_config()
    config_utils.config_manager = None
    yield
    reset_config()
    config_utils.config_manager = None
