# fpi_forecaster_src/parsing_utils.py

import logging
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

VALID_CRITERIA = ["aicc", "aic", "bic"]
VALID_LANGUAGES = ["en", "fr"]


def parse_intervals_arg(s: Optional[Union[str, Iterable[int]]], default: str = "80,95") -> List[int]:
    """
    Parse a CLI intervals argument like '80,95' into sorted unique integer coverage levels.

    Lists coming from the YAML configuration are accepted as well.

    Parameters
    ----------
    s : str or iterable of int, optional
        CLI intervals argument (e.g., "80,95" or "90") or a configured list
    default : str, default="80,95"
        Default intervals if parsing fails

    Returns
    -------
    List[int]
        Sorted list of unique coverage levels as integers between 1 and 99

    Examples
    --------
    >>> parse_intervals_arg("80,95")
    [80, 95]
    >>> parse_intervals_arg([99, 95])
    [95, 99]
    """
    if s is not None and not isinstance(s, str):
        items = [str(x) for x in s]
    else:
        items = (s or default).strip().split(",")
    try:
        vals = sorted({int(x.strip()) for x in items if x.strip() != ""})
        # Filter to valid percentage range
        vals = [v for v in vals if 1 <= v < 100]
        return vals or [80, 95]
    except ValueError:
        logger.warning("Could not parse interval levels %r; using %s", s, default)
        return [80, 95]


def validate_criterion(criterion: str) -> str:
    """
    Validate and normalize the information criterion used for order selection.

    Raises
    ------
    ValueError
        If the criterion is not one of 'aicc', 'aic', 'bic'

    Examples
    --------
    >>> validate_criterion("AICc")
    'aicc'
    """
    value = str(criterion).lower()
    if value not in VALID_CRITERIA:
        raise ValueError(f"Invalid criterion '{criterion}'. Must be one of: {VALID_CRITERIA}")
    return value


def validate_language(language: str) -> str:
    value = str(language).lower()
    if value not in VALID_LANGUAGES:
        raise ValueError(f"Invalid language '{language}'. Must be one of: {VALID_LANGUAGES}")
    return value


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
