import pytest

from fpi_forecaster_src.parsing_utils import (
    parse_intervals_arg,
    validate_criterion,
    validate_language,
    validate_log_level,
)


@pytest.mark.parametrize("arg,expected", [
    ("80,95", [80, 95]),
    ("95, 80, 95", [80, 95]),
    ("99", [99]),
    ([99, 95], [95, 99]),
    (None, [80, 95]),
    ("", [80, 95]),
    ("abc", [80, 95]),
    ("0,100,150", [80, 95]),
])
def test_parse_intervals_arg(arg, expected):
    assert parse_intervals_arg(arg) == expected


def test_validators():
    assert validate_criterion("AICc") == "aicc"
    assert validate_language("FR") == "fr"
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_criterion("hqic")
    with pytest.raises(ValueError):
        validate_language("de")
    with pytest.raises(ValueError):
        validate_log_level("verbose")
