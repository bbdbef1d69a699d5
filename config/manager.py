"""YAML-backed configuration manager."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "defaults.yaml"
CONFIG_ENV_VAR = "FPI_FORECASTER_CONFIG"

_VALID_CRITERIA = {"aic", "aicc", "bic"}
_VALID_DIFF_TESTS = {"kpss", "adf"}
_VALID_LANGUAGES = {"en", "fr"}
_VALID_MODEL_TRANSFORMS = {"log", "level"}


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping, got {type(data).__name__}")
    return data


class ConfigurationManager:
    """Load, merge and query the project configuration.

    Parameters
    ----------
    config_path : str or Path, optional
        User configuration file merged over the packaged defaults.
    defaults_path : str or Path, optional
        Alternative defaults file (mainly for tests).
    """

    def __init__(self,
                 config_path: Optional[Union[str, Path]] = None,
                 defaults_path: Optional[Union[str, Path]] = None):
        self.defaults_path = Path(defaults_path) if defaults_path else DEFAULT_CONFIG_PATH
        self.config_path = Path(config_path) if config_path else None
        self._config: Dict[str, Any] = {}
        self.loaded_files: List[Path] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the defaults and the user file from disk."""
        config = _load_yaml(self.defaults_path)
        self.loaded_files = [self.defaults_path]
        if self.config_path is not None:
            config = _deep_merge(config, _load_yaml(self.config_path))
            self.loaded_files.append(self.config_path)
            logger.info("Loaded configuration overrides from %s", self.config_path)
        self._config = config

    def get(self, key_path: str, default: Any = None) -> Any:
        """Return the value at a dot-separated key path, or ``default``."""
        node: Any = self._config
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def get_statcan_config(self) -> Dict[str, Any]:
        return dict(self.get("data_sources.statcan", {}) or {})

    def get_search_space(self) -> Dict[str, int]:
        return dict(self.get("model.search", {}) or {})

    def get_differencing_config(self) -> Dict[str, Any]:
        return dict(self.get("model.differencing", {}) or {})

    def validate_configuration(self) -> Dict[str, List[str]]:
        """Check value ranges and enumerations.

        Returns
        -------
        Dict[str, List[str]]
            Mapping of section name to error messages; empty when valid.
        """
        errors: Dict[str, List[str]] = {}

        def add(section: str, msg: str) -> None:
            errors.setdefault(section, []).append(msg)

        search = self.get_search_space()
        for key in ("max_p", "max_q", "max_P", "max_Q", "max_order"):
            value = search.get(key)
            if value is not None and (not isinstance(value, int) or value < 0):
                add("model.search", f"{key} must be a non-negative integer, got {value!r}")

        criterion = self.get("model.selection.criterion")
        if criterion is not None and str(criterion).lower() not in _VALID_CRITERIA:
            add("model.selection", f"criterion must be one of {sorted(_VALID_CRITERIA)}, got {criterion!r}")

        transform = self.get("model.target_transform")
        if transform is not None and str(transform) not in _VALID_MODEL_TRANSFORMS:
            add("model", f"target_transform must be one of {sorted(_VALID_MODEL_TRANSFORMS)}, got {transform!r}")

        period = self.get("model.seasonal_period")
        if period is not None and (not isinstance(period, int) or period < 1):
            add("model", f"seasonal_period must be a positive integer, got {period!r}")

        diff = self.get_differencing_config()
        test = diff.get("test")
        if test is not None and str(test).lower() not in _VALID_DIFF_TESTS:
            add("model.differencing", f"test must be one of {sorted(_VALID_DIFF_TESTS)}, got {test!r}")
        alpha = diff.get("alpha")
        if alpha is not None and not (0.0 < float(alpha) < 1.0):
            add("model.differencing", f"alpha must lie in (0, 1), got {alpha!r}")

        horizon = self.get("forecast.horizon")
        if horizon is not None and (not isinstance(horizon, int) or horizon < 1):
            add("forecast", f"horizon must be a positive integer, got {horizon!r}")
        intervals = self.get("forecast.intervals", []) or []
        bad = [lvl for lvl in intervals if not (isinstance(lvl, (int, float)) and 0 < lvl < 100)]
        if bad:
            add("forecast", f"interval levels must lie in (0, 100), got {bad}")

        language = self.get("data_sources.statcan.language")
        if language is not None and str(language).lower() not in _VALID_LANGUAGES:
            add("data_sources.statcan", f"language must be one of {sorted(_VALID_LANGUAGES)}, got {language!r}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "loaded_configs": [str(p) for p in self.loaded_files],
            "sections": sorted(self._config.keys()),
        }


_config_manager: Optional[ConfigurationManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> ConfigurationManager:
    """Return the process-wide configuration manager, creating it on first use.

    The user file is taken from ``config_path`` or, if omitted, from the
    ``FPI_FORECASTER_CONFIG`` environment variable. Passing a path after the
    manager exists replaces it.
    """
    global _config_manager
    if config_path is None and _config_manager is not None:
        return _config_manager
    path = config_path or os.environ.get(CONFIG_ENV_VAR) or None
    _config_manager = ConfigurationManager(path)
    return _config_manager


def reset_config() -> None:
    global _config_manager
    _config_manager = None
