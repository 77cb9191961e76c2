from pathlib import Path

import pytest

from backend.lib.config import RelayConfig, parse_window_modes
from backend.lib.solar_core.errors import ConfigError
from backend.lib.solar_core.models import CalendarDayShifted, CalendarDayUTC, TrailingHours


def test_parse_window_modes_in_order():
    modes = parse_window_modes("trailing:24, utc:1, shifted:0:-6, shifted:2", default_tz_offset=-7)
    assert modes == (
        TrailingHours(24),
        CalendarDayUTC(1),
        CalendarDayShifted(0, -6.0),
        CalendarDayShifted(2, -7),
    )


@pytest.mark.parametrize("text", ["", "weekly:1", "trailing:abc", "trailing:0"])
def test_parse_window_modes_rejects_bad_input(text):
    with pytest.raises(ConfigError):
        parse_window_modes(text)


def test_defaults_from_empty_env():
    config = RelayConfig.from_env({})
    assert config.source == "sqlite"
    assert config.db_file == Path("sunrun-api-extractor/sunrun.sqlite3")
    assert config.window_modes == (CalendarDayShifted(0, -7),)
    assert config.transport == "email"
    assert config.extractor_command is None
    assert config.extractor_config_path == Path("sunrun-api-extractor/data.hcl")


def test_values_from_env():
    config = RelayConfig.from_env({
        "SOLAR_SOURCE": "JSON",
        "SOLAR_DATA_PATH": "/data/solar.json",
        "TZ_OFFSET_HOURS": "-6",
        "WINDOW_MODES": "shifted:0,shifted:1",
        "NOTIFY_TRANSPORT": "sns",
        "SNS_TOPIC_ARN": "arn:aws:sns:us-east-1:123456789012:SolarReports",
        "SUNRUN_PROSPECT": "prospect-1",
        "SMTP_PORT": "465",
    })
    assert config.source == "json"
    assert config.data_path == Path("/data/solar.json")
    assert config.window_modes == (CalendarDayShifted(0, -6.0), CalendarDayShifted(1, -6.0))
    assert config.site_id == "prospect-1"
    assert config.smtp_port == 465
    config.validate()


@pytest.mark.parametrize("env", [
    {"SOLAR_SOURCE": "csv"},
    {"NOTIFY_TRANSPORT": "pigeon"},
    {"TZ_OFFSET_HOURS": "mountain"},
])
def test_invalid_env_values(env):
    with pytest.raises(ConfigError):
        RelayConfig.from_env(env)


def test_validate_requires_credentials():
    with pytest.raises(ConfigError):
        RelayConfig(extractor_command="./extract", transport="log").validate()
    with pytest.raises(ConfigError):
        RelayConfig(transport="email", email_from="me@example.com").validate()
    with pytest.raises(ConfigError):
        RelayConfig(source="dynamodb", transport="log").validate()
    RelayConfig(transport="log").validate()


def test_parse_window_modes_empty_slot_keeps_default():
    assert parse_window_modes("shifted::-5", default_tz_offset=-7) == (CalendarDayShifted(0, -5.0),)
    assert parse_window_modes("shifted:1:", default_tz_offset=-7) == (CalendarDayShifted(1, -7),)
    assert parse_window_modes("trailing:", default_tz_offset=-7) == (TrailingHours(24),)
