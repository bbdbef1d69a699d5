"""Configuration management for the FPI forecaster.

Settings live in YAML files. ``defaults.yaml`` ships with the package; a user file
(``--config`` on the CLI or the ``FPI_FORECASTER_CONFIG`` environment variable) is
deep-merged on top of it. Values are read with dot notation, e.g.
``get_config().get("model.search.max_p", 5)``.
"""

from .manager import (
    ConfigurationError,
    ConfigurationManager,
    get_config,
    reset_config,
    DEFAULT_CONFIG_PATH,
    CONFIG_ENV_VAR,
)

__all__ = [
    "ConfigurationError",
    "ConfigurationManager",
    "get_config",
    "reset_config",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_ENV_VAR",
]
