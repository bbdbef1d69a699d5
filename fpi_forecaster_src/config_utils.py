# fpi_forecaster_src/config_utils.py

import logging
from typing import Optional

from config import ConfigurationError, get_config

logger = logging.getLogger(__name__)

# Initialize the global configuration manager
config_manager = None


def initialize_config(config_path: Optional[str] = None):
    """
    Initializes the global configuration manager.
    This function loads the packaged defaults plus an optional user YAML file and validates
    the result. Validation problems are logged as warnings; an unreadable or malformed file
    raises ConfigurationError.
    """
    global config_manager
    if config_manager is None or config_path is not None:
        config_manager = get_config(config_path)
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default


__all__ = ["initialize_config", "get_config_value", "ConfigurationError"]
