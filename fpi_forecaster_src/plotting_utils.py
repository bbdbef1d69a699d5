# fpi_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import plotly.graph_objects as go
from pathlib import Path
from typing import Optional
import logging

from .file_utils import ensure_dir
from .forecasting_utils import ForecastResult

logger = logging.getLogger(__name__)

# Fill colours from the widest to the narrowest interval
BAND_COLORS = ["#c6dbef", "#9ecae1", "#6baed6", "#4292c6"]


def _history_window(history: pd.Series, history_months: Optional[int]) -> pd.Series:
    if history_months is None or history_months <= 0:
        return history
    return history.iloc[-int(history_months):]


def plot_forecast(history: pd.Series,
                  forecast: ForecastResult,
                  out_path: Path,
                  title: Optional[str] = None,
                  ylabel: str = "Index",
                  history_months: Optional[int] = 120,
                  dpi: int = 150) -> None:
    """
    Render the observed series followed by the point forecast and shaded intervals.

    Parameters
    ----------
    history : pd.Series
        Observed series on the original scale
    forecast : ForecastResult
        Forecast on the same scale as ``history``
    out_path : Path
        File path of the PNG (parents are created if missing)
    title : str, optional
        Plot title
    ylabel : str, default="Index"
        Y-axis label
    history_months : int, optional, default=120
        Show only the last N months of history (None for all)
    dpi : int, default=150
        Output resolution
    """
    ensure_dir(out_path.parent)
    hist = _history_window(history, history_months)

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(hist.index, hist.values, color="black", linewidth=1.2, label="observed")

    # Widest band first so narrower bands are drawn on top
    for i, lvl in enumerate(sorted(forecast.levels, reverse=True)):
        lo, hi = forecast.intervals[lvl]
        ax.fill_between(forecast.index, lo.values, hi.values,
                        color=BAND_COLORS[i % len(BAND_COLORS)], alpha=0.8, label=f"{lvl}% interval")

    # Connect the last observation to the first forecast
    joined_idx = [hist.index[-1]] + list(forecast.index)
    joined_val = [float(hist.iloc[-1])] + list(forecast.mean.values)
    ax.plot(joined_idx, joined_val, color="tab:red", linewidth=1.5, label="forecast")

    ax.set_xlabel("Date")
    ax.set_ylabel(ylabel)
    ax.set_title(title or f"{history.name}: {forecast.horizon}-month forecast")
    ax.legend(loc="upper left")
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def forecast_figure(history: pd.Series,
                    forecast: ForecastResult,
                    title: Optional[str] = None,
                    ylabel: str = "Index",
                    history_months: Optional[int] = 120) -> go.Figure:
    """
    Build an interactive plotly figure of history, forecast and interval bands.
    """
    hist = _history_window(history, history_months)
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=hist.index, y=hist.values, mode="lines", name="observed",
                             line=dict(color="black", width=1.5)))

    for i, lvl in enumerate(sorted(forecast.levels, reverse=True)):
        lo, hi = forecast.intervals[lvl]
        color = BAND_COLORS[i % len(BAND_COLORS)]
        # Upper bound first, lower bound filled up to it
        fig.add_trace(go.Scatter(x=forecast.index, y=hi.values, mode="lines", line=dict(width=0),
                                 showlegend=False, hoverinfo="skip", legendgroup=f"pi{lvl}"))
        fig.add_trace(go.Scatter(x=forecast.index, y=lo.values, mode="lines", line=dict(width=0),
                                 fill="tonexty", fillcolor=color, name=f"{lvl}% interval",
                                 legendgroup=f"pi{lvl}",
                                 customdata=np.stack([lo.values, hi.values], axis=-1),
                                 hovertemplate=f"{lvl}%: %{{customdata[0]:.2f}} to %{{customdata[1]:.2f}}<extra></extra>"))

    fig.add_trace(go.Scatter(x=forecast.index, y=forecast.mean.values, mode="lines+markers", name="forecast",
                             line=dict(color="#d62728", width=2)))
    fig.update_layout(
        title=title or f"{history.name}: {forecast.horizon}-month forecast",
        template="plotly_white",
        hovermode="x unified",
        yaxis_title=ylabel,
        legend=dict(x=1.02),
    )
    fig.update_xaxes(tickangle=30)
    return fig


def write_forecast_html(history: pd.Series,
                        forecast: ForecastResult,
                        out_path: Path,
                        title: Optional[str] = None,
                        ylabel: str = "Index",
                        history_months: Optional[int] = 120) -> None:
    """Write the interactive forecast chart as a standalone HTML file."""
    ensure_dir(out_path.parent)
    fig = forecast_figure(history, forecast, title=title, ylabel=ylabel, history_months=history_months)
    fig.write_html(str(out_path), include_plotlyjs="cdn", full_html=True)
    logger.info("Interactive forecast written to %s", out_path)
