# fpi_forecaster_src/diagnostics_utils.py

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

from scipy import stats

from .file_utils import ensure_dir

logger = logging.getLogger(__name__)


def plot_series(series: pd.Series, out_path: Path, title: Optional[str] = None,
                ylabel: str = "Index", dpi: int = 150) -> None:
    """
    Render and save a line plot of a monthly series.

    Parameters
    ----------
    series : pd.Series
        Series with a DatetimeIndex
    out_path : Path
        File path of the PNG (parents are created if missing)
    title : str, optional
        Plot title, defaults to the series name
    ylabel : str, default="Index"
        Y-axis label
    dpi : int, default=150
        Output resolution
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4))
    ax.plot(series.index, series.values, color="black", linewidth=1)
    ax.set_xlabel("Date")
    ax.set_ylabel(ylabel)
    ax.set_title(title or str(series.name))
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def plot_histogram(series: pd.Series, out_path: Path, title: Optional[str] = None,
                   bins: Union[int, str] = "auto", dpi: int = 150) -> None:
    """
    Histogram (density scale) with the normal density of matching mean and standard deviation.
    """
    ensure_dir(out_path.parent)
    values = pd.Series(series).dropna().astype(float)
    mu, sd = float(values.mean()), float(values.std(ddof=1))

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.hist(values, bins=bins, density=True, alpha=0.7, color="tab:blue", edgecolor="white")
    if np.isfinite(sd) and sd > 0:
        x = np.linspace(values.min(), values.max(), 200)
        ax.plot(x, stats.norm.pdf(x, mu, sd), color="tab:red", linewidth=1.5, label="Normal density")
        ax.legend()
    ax.set_title(title or f"Distribution of {series.name}")
    ax.set_ylabel("Density")
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def plot_acf_pacf(series: pd.Series, out_path: Path, lags: int = 36, title: Optional[str] = None,
                  dpi: int = 150) -> None:
    """
    Two-panel ACF/PACF plot with 95% bands, lag 0 omitted.
    """
    from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

    ensure_dir(out_path.parent)
    values = pd.Series(series).dropna()
    lags = int(min(lags, len(values) // 2 - 1))

    fig, axes = plt.subplots(2, 1, figsize=(8, 6))
    plot_acf(values, ax=axes[0], lags=lags, zero=False)
    axes[0].set_title(f"ACF{': ' + title if title else ''}")
    plot_pacf(values, ax=axes[1], lags=lags, zero=False, method="ywm")
    axes[1].set_title(f"PACF{': ' + title if title else ''}")
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def plot_lag_grid(series: pd.Series, out_path: Path, lags: int = 12, dpi: int = 150) -> None:
    """
    Grid of lag scatter plots y_t against y_{t-k} for k = 1..lags.
    """
    from pandas.plotting import lag_plot

    ensure_dir(out_path.parent)
    values = pd.Series(series).dropna()
    ncols = 4
    nrows = int(np.ceil(lags / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(3 * ncols, 3 * nrows), squeeze=False)
    for k, ax in enumerate(axes.flatten(), start=1):
        if k > lags:
            ax.set_visible(False)
            continue
        lag_plot(values, lag=k, ax=ax, s=6, c="tab:blue", alpha=0.6)
        ax.set_title(f"lag {k}", fontsize=9)
        ax.tick_params(labelsize=6)
        ax.set_xlabel("")
        ax.set_ylabel("")
    fig.suptitle(f"Lag plots: {series.name}")
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def plot_decomposition(series: pd.Series, out_path: Path, period: int = 12,
                       model: str = "multiplicative", dpi: int = 150) -> None:
    """
    Classical seasonal decomposition panel (observed, trend, seasonal, residual).

    The multiplicative model suits a positive price index whose seasonal swing
    grows with its level; pass ``model="additive"`` for log-scale input.
    """
    from statsmodels.tsa.seasonal import seasonal_decompose

    ensure_dir(out_path.parent)
    decomposition = seasonal_decompose(pd.Series(series).dropna(), model=model, period=period)
    fig = decomposition.plot()
    fig.set_size_inches(9, 7)
    fig.suptitle(f"Seasonal decomposition ({model}, period={period})", y=1.0)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def save_series_figures(series: pd.Series, out_dir: Path, prefix: str, acf_lags: int = 36,
                        lag_plot_lags: int = 12, period: int = 12, decompose: bool = False,
                        dpi: int = 150) -> List[Path]:
    """
    Render the exploratory figure set for one series.

    A figure that fails to render is logged and skipped; the returned list holds
    only the files actually written.

    Parameters
    ----------
    series : pd.Series
        Series to render
    out_dir : Path
        Figure directory
    prefix : str
        Filename prefix (e.g. 'Level', 'Log', 'LogDiff')
    acf_lags, lag_plot_lags, period : int
        Lag counts and seasonal period
    decompose : bool, default=False
        Also render the seasonal decomposition panel
    dpi : int, default=150
        Output resolution

    Returns
    -------
    List[Path]
        Paths of the written figures
    """
    ensure_dir(out_dir)
    jobs = [
        (f"{prefix}_Series.png", lambda p: plot_series(series, p, title=f"{series.name} ({prefix})", dpi=dpi)),
        (f"{prefix}_Histogram.png", lambda p: plot_histogram(series, p, title=f"{series.name} ({prefix})", dpi=dpi)),
        (f"{prefix}_ACF_PACF.png", lambda p: plot_acf_pacf(series, p, lags=acf_lags, title=prefix, dpi=dpi)),
        (f"{prefix}_LagPlots.png", lambda p: plot_lag_grid(series, p, lags=lag_plot_lags, dpi=dpi)),
    ]
    if decompose:
        jobs.append((f"{prefix}_Decomposition.png", lambda p: plot_decomposition(series, p, period=period, dpi=dpi)))

    written: List[Path] = []
    for fname, job in jobs:
        path = out_dir / fname
        try:
            job(path)
            written.append(path)
        except Exception as e:
            logger.warning("Failed to render %s: %s", fname, e)
            plt.close("all")
    logger.info("Rendered %d/%d figures for %s", len(written), len(jobs), prefix)
    return written


def save_residual_diagnostics(results, out_dir: Path, fname_prefix: str = "Residuals",
                              lags: int = 24, arch_lags: int = 12, dpi: int = 150) -> Dict[str, Path]:
    """
    Save residual diagnostics of a fitted SARIMAX model.

    Parameters
    ----------
    results : SARIMAXResults
        Fitted model
    out_dir : Path
        Output directory for figures and tables
    fname_prefix : str, default="Residuals"
        Filename prefix
    lags : int, default=24
        Maximum Ljung-Box lag and ACF/PACF lag count
    arch_lags : int, default=12
        Lag count of the ARCH-LM test
    dpi : int, default=150
        Output resolution

    Returns
    -------
    Dict[str, Path]
        Artifact name -> path, for the artifacts actually written

    Notes
    -----
    Creates:
    - {prefix}_Diagnostics.png: standardized residuals, histogram, Q-Q plot, correlogram
    - {prefix}_ACF_PACF.png: residual ACF and PACF
    - {prefix}_LjungBox.csv: Ljung-Box statistics for lags 1..lags
    - {prefix}_ARCH_LM.csv: ARCH-LM test of the residuals
    The first ``d + s*D`` residuals are dropped as they reflect the diffuse
    initialization rather than one-step prediction errors.
    """
    from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch

    ensure_dir(out_dir)
    burn = int(getattr(results, "loglikelihood_burn", 0))
    resid = pd.Series(results.resid).iloc[burn:].dropna()
    if resid.empty:
        logger.warning("Residual diagnostics skipped: empty residual series.")
        return {}

    written: Dict[str, Path] = {}

    try:
        fig = results.plot_diagnostics(figsize=(10, 8), lags=min(lags, len(resid) // 2 - 1))
        fig.tight_layout()
        path = out_dir / f"{fname_prefix}_Diagnostics.png"
        fig.savefig(path, dpi=dpi)
        plt.close(fig)
        written["diagnostics_panel"] = path
    except Exception as e:
        logger.warning("Failed to render model diagnostics panel: %s", e)
        plt.close("all")

    try:
        path = out_dir / f"{fname_prefix}_ACF_PACF.png"
        plot_acf_pacf(resid, path, lags=lags, title="Residuals", dpi=dpi)
        written["acf_pacf"] = path
    except Exception as e:
        logger.warning("Failed to render residual ACF/PACF: %s", e)
        plt.close("all")

    try:
        max_lag = int(min(lags, max(1, len(resid) - 1)))
        df_lb = acorr_ljungbox(resid, lags=np.arange(1, max_lag + 1), return_df=True)
        df_lb.index.name = "lag"
        path = out_dir / f"{fname_prefix}_LjungBox.csv"
        df_lb.to_csv(path, index=True)
        written["ljung_box"] = path
    except Exception as e:
        logger.warning("Ljung-Box table skipped: %s", e)

    try:
        nlags = int(min(arch_lags, max(1, len(resid) // 4)))
        lm_stat, lm_pvalue, f_stat, f_pvalue = het_arch(resid, nlags=nlags)
        path = out_dir / f"{fname_prefix}_ARCH_LM.csv"
        pd.DataFrame({
            "lags": [nlags],
            "lm_stat": [lm_stat],
            "lm_pvalue": [lm_pvalue],
            "f_stat": [f_stat],
            "f_pvalue": [f_pvalue]
        }).to_csv(path, index=False)
        written["arch_lm"] = path
    except Exception as e:
        logger.warning("ARCH-LM table skipped: %s", e)

    logger.debug("Residual diagnostics written: %s", list(written))
    return written
