# fpi_forecaster_src/file_utils.py

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("report", Path("/project"))
    PosixPath('/project/report')
    >>> resolve_path("/tmp/report", Path("/project"))
    PosixPath('/tmp/report')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def write_table_csv(df: pd.DataFrame, out_path: Path, index: bool = False) -> Path:
    """Write a DataFrame to CSV, creating parent directories."""
    ensure_dir(out_path.parent)
    df.to_csv(out_path, index=index)
    logger.info("Wrote %d rows to %s", len(df), out_path)
    return out_path


def _fmt(value) -> str:
    if isinstance(value, (float, np.floating)):
        if not np.isfinite(value):
            return "n/a"
        return f"{value:.4g}" if abs(value) < 1e-3 or abs(value) >= 1e5 else f"{value:.4f}"
    if isinstance(value, pd.Timestamp):
        return value.strftime("%Y-%m")
    return str(value)


def md_table_from_df(df: pd.DataFrame,
                     max_rows: int = 10,
                     columns: Optional[List[str]] = None,
                     index: bool = False) -> str:
    """
    Convert a DataFrame to a markdown table.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to convert
    max_rows : int, default=10
        Maximum number of rows to include
    columns : Optional[List[str]]
        Specific columns to include (None for all); unknown names are ignored
    index : bool, default=False
        Include the index as the first column

    Returns
    -------
    str
        Markdown table, empty string for an empty frame
    """
    if columns is not None:
        keep = [c for c in columns if c in df.columns]
        if keep:
            df = df.loc[:, keep]

    df_disp = df.head(max_rows).copy()
    if index:
        df_disp = df_disp.reset_index()
    cols = list(df_disp.columns)
    if not cols or df_disp.empty:
        return ""

    header = "| " + " | ".join(str(c) for c in cols) + " |"
    separator = "| " + " | ".join("---" for _ in cols) + " |"
    rows = []
    for _, row in df_disp.iterrows():
        rows.append("| " + " | ".join(_fmt(row[c]) for c in cols) + " |")
    return "\n".join([header, separator] + rows)


def _diagnostics_section(title: str, frame: pd.DataFrame) -> List[str]:
    lines = [f"### {title}", ""]
    if frame.empty:
        return lines + ["_No results._", ""]
    lines.append(md_table_from_df(frame, max_rows=len(frame),
                                  columns=["test", "statistic", "p_value", "interpretation"]))
    lines.append("")
    return lines


def render_report(series_name: str,
                  provenance: Dict[str, object],
                  diagnostics: pd.DataFrame,
                  model_description: str,
                  criterion: str,
                  criterion_value: float,
                  candidates: pd.DataFrame,
                  residual_diagnostics: pd.DataFrame,
                  forecast_table: pd.DataFrame,
                  figures: List[Path],
                  base_dir: Path,
                  significance_level: float = 0.05) -> str:
    """
    Compose the Markdown summary of a run.

    Parameters
    ----------
    series_name : str
        Name of the analysed series
    provenance : Dict[str, object]
        Fingerprint fields (source, table, date range, hash)
    diagnostics : pd.DataFrame
        Output of results_to_frame() for the analysed transforms, with a 'series' column
    model_description : str
        Human-readable model label, e.g. 'SARIMA(0,1,1)(0,1,1)[12]'
    criterion, criterion_value
        Information criterion of the selected model
    candidates : pd.DataFrame
        All fitted candidates ranked by the criterion
    residual_diagnostics : pd.DataFrame
        Diagnostics of the fitted model residuals
    forecast_table : pd.DataFrame
        ForecastResult.to_frame() on the original scale
    figures : List[Path]
        Rendered figure files, linked relative to ``base_dir``
    base_dir : Path
        Report directory
    significance_level : float, default=0.05
        Level used in the narrative
    """
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    lines = [
        f"# Forecast report: {series_name}",
        "",
        f"_generated: {ts}_",
        "",
        "## Data",
        "",
    ]
    for key, value in provenance.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = " to ".join(str(v) for v in value)
        lines.append(f"- **{key}**: {value}")
    lines.append("")

    lines += ["## Diagnostics", "",
              f"Tests are read at the {significance_level:.0%} significance level.", ""]
    if "series" in diagnostics.columns:
        for label, frame in diagnostics.groupby("series", sort=False):
            lines += _diagnostics_section(str(label), frame)
    else:
        lines += _diagnostics_section("Series", diagnostics)

    lines += [
        "## Model",
        "",
        f"Selected **{model_description}** by {criterion.upper()} = {criterion_value:.3f} "
        f"among {len(candidates)} fitted candidates.",
        "",
        md_table_from_df(candidates, max_rows=10),
        "",
    ]
    lines += _diagnostics_section("Residuals", residual_diagnostics)

    lines += ["## Forecast", "", md_table_from_df(forecast_table, max_rows=len(forecast_table), index=True), ""]

    if figures:
        lines += ["## Figures", ""]
        for path in figures:
            try:
                rel = path.relative_to(base_dir)
            except ValueError:
                rel = path
            lines.append(f"- [{path.name}]({rel.as_posix()})")
        lines.append("")
    return "\n".join(lines)


def write_report(text: str, out_path: Path) -> Path:
    """Write the Markdown report."""
    ensure_dir(out_path.parent)
    out_path.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", out_path)
    return out_path
