import argparse

import pytest

from config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    ConfigurationError,
    ConfigurationManager,
    get_config,
    reset_config,
)
from fpi_forecaster_src.config_utils import get_config_value, initialize_config


def test_defaults_load():
    cfg = ConfigurationManager()

    assert cfg.loaded_files == [DEFAULT_CONFIG_PATH]
    assert cfg.get("model.search.max_p") == 5
    assert cfg.get("model.selection.criterion") == "aicc"
    assert cfg.get("forecast.intervals") == [80, 95]
    assert cfg.get_statcan_config()["table_id"] == "18-10-0004-01"
    assert cfg.get_search_space()["max_P"] == 2
    assert cfg.get_differencing_config()["test"] == "kpss"
    assert cfg.validate_configuration() == {}
    assert "model" in cfg.get_configuration_summary()["sections"]


def test_missing_key_returns_default():
    cfg = ConfigurationManager()
    assert cfg.get("model.nonexistent.key", 42) == 42
    assert cfg.get("model.search.max_p.deeper", "x") == "x"


def test_user_file_is_deep_merged(tmp_path):
    user = tmp_path / "user.yaml"
    user.write_text("model:\n  selection:\n    criterion: bic\nforecast:\n  horizon: 6\n", encoding="utf-8")
    cfg = ConfigurationManager(user)

    assert cfg.get("model.selection.criterion") == "bic"
    assert cfg.get("model.selection.stepwise") is True
    assert cfg.get("forecast.horizon") == 6
    assert cfg.get("forecast.intervals") == [80, 95]
    assert cfg.loaded_files[-1] == user


def test_invalid_yaml_and_missing_file(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("model: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(bad)
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigurationManager(tmp_path / "missing.yaml")

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        ConfigurationManager(scalar)


def test_validation_reports_bad_values(tmp_path):
    user = tmp_path / "user.yaml"
    user.write_text(
        "model:\n"
        "  target_transform: yoy\n"
        "  selection:\n    criterion: hqic\n"
        "  search:\n    max_p: -1\n"
        "  differencing:\n    alpha: 1.5\n    test: pp\n"
        "forecast:\n  horizon: 0\n  intervals: [95, 120]\n"
        "data_sources:\n  statcan:\n    language: de\n",
        encoding="utf-8",
    )
    errors = ConfigurationManager(user).validate_configuration()

    assert set(errors) == {"model", "model.selection", "model.search", "model.differencing",
                           "forecast", "data_sources.statcan"}
    assert len(errors["model.differencing"]) == 2
    assert len(errors["forecast"]) == 2


def test_get_config_singleton_and_env_var(tmp_path, monkeypatch):
    assert get_config() is get_config()

    user = tmp_path / "env.yaml"
    user.write_text("forecast:\n  horizon: 24\n", encoding="utf-8")
    reset_config()
    monkeypatch.setenv(CONFIG_ENV_VAR, str(user))
    assert get_config().get("forecast.horizon") == 24


def test_get_config_value_precedence(tmp_path):
    user = tmp_path / "user.yaml"
    user.write_text("forecast:\n  horizon: 18\n", encoding="utf-8")
    initialize_config(str(user))

    args = argparse.Namespace(horizon=None)
    assert get_config_value("forecast.horizon", 12, args, "horizon") == 18
    args.horizon = 3
    assert get_config_value("forecast.horizon", 12, args, "horizon") == 3
    assert get_config_value("forecast.not_there", 7) == 7
