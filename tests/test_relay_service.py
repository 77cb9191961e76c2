import json
import sqlite3
from datetime import datetime, timezone

from backend.lib.config import RelayConfig
from backend.lib.relay_service import LogNotifier, load_readings, run_from_config, run_relay
from backend.lib.solar_core.errors import DataSourceError, ExtractionError
from backend.lib.solar_core.formatter import FAILURE_MESSAGE
from backend.lib.solar_core.models import CalendarDayShifted, SolarReading, TrailingHours

NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


def clock():
    return NOW


class FakeReader:
    def __init__(self, readings=None, error=None):
        self.readings = readings or []
        self.error = error
        self.calls = []

    def read_all(self):
        self.calls.append("all")
        if self.error:
            raise self.error
        return self.readings

    def read_range(self, start, end):
        self.calls.append(("range", start, end))
        if self.error:
            raise self.error
        return [r for r in self.readings if start <= r.timestamp <= end]


class FakeNotifier:
    def __init__(self, results=None):
        self.results = list(results or [])
        self.sent = []

    def send(self, message):
        self.sent.append(message)
        return self.results.pop(0) if self.results else True


class FakeExtractor:
    def __init__(self, error=None):
        self.error = error
        self.runs = 0

    def run(self):
        self.runs += 1
        if self.error:
            raise self.error


def make_readings():
    return [
        SolarReading(datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc), 10.0),
        SolarReading(datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc), 2.25),
    ]


def test_sends_report_for_yesterday():
    config = RelayConfig(window_modes=(CalendarDayShifted(0, -7), CalendarDayShifted(1, -7)), transport="log")
    notifier = FakeNotifier()
    extractor = FakeExtractor()
    outcome = run_relay(config, FakeReader(make_readings()), notifier, extractor=extractor, clock=clock)
    assert extractor.runs == 1
    assert notifier.sent == ["Solar production (2024-01-01): 12.25 kWh"]
    assert outcome.sent
    assert outcome.error is None
    assert outcome.result.total_kwh == 12.25


def test_single_trailing_mode_reads_a_range():
    config = RelayConfig(window_modes=(TrailingHours(24),), transport="log")
    reader = FakeReader(make_readings())
    outcome = run_relay(config, reader, FakeNotifier(), clock=clock)
    assert reader.calls[0][0] == "range"
    assert outcome.message == "Solar production (last 24h): 12.25 kWh (2 readings)"


def test_load_readings_reads_everything_for_fallback_modes():
    reader = FakeReader(make_readings())
    load_readings(reader, (CalendarDayShifted(0, -7),), NOW)
    assert reader.calls == ["all"]


def test_no_data_sends_failure_message():
    notifier = FakeNotifier()
    outcome = run_relay(RelayConfig(transport="log"), FakeReader([]), notifier, clock=clock)
    assert notifier.sent == [FAILURE_MESSAGE]
    assert outcome.result.is_empty


def test_data_source_error_sends_failure_message():
    notifier = FakeNotifier()
    reader = FakeReader(error=DataSourceError("Database file not found"))
    outcome = run_relay(RelayConfig(transport="log"), reader, notifier, clock=clock)
    assert notifier.sent == [FAILURE_MESSAGE]
    assert "Database file not found" in outcome.error
    assert outcome.result is None


def test_extractor_failure_sends_failure_message_without_reading():
    notifier = FakeNotifier()
    reader = FakeReader(make_readings())
    outcome = run_relay(RelayConfig(transport="log"), reader, notifier,
                        extractor=FakeExtractor(ExtractionError("exit status 1")), clock=clock)
    assert notifier.sent == [FAILURE_MESSAGE]
    assert reader.calls == []
    assert outcome.error == "exit status 1"


def test_unexpected_error_sends_failure_message():
    notifier = FakeNotifier()
    outcome = run_relay(RelayConfig(transport="log"), FakeReader(error=KeyError("solar")), notifier, clock=clock)
    assert notifier.sent == [FAILURE_MESSAGE]
    assert "KeyError" in outcome.error


def test_failed_delivery_falls_back_to_failure_message_once():
    notifier = FakeNotifier(results=[False, False])
    outcome = run_relay(RelayConfig(transport="log"), FakeReader(make_readings()), notifier, clock=clock)
    assert notifier.sent == ["Solar production (2024-01-01): 12.25 kWh", FAILURE_MESSAGE]
    assert not outcome.sent
    assert outcome.message == FAILURE_MESSAGE


def test_notifier_exception_is_not_raised():
    class Broken:
        def send(self, message):
            raise RuntimeError("smtp down")

    outcome = run_relay(RelayConfig(transport="log"), FakeReader(make_readings()), Broken(), clock=clock)
    assert not outcome.sent


def test_run_from_config_with_json_source(tmp_path):
    path = tmp_path / "solar.json"
    path.write_text(json.dumps([
        {"timestamp": "2024-01-01T18:00:00Z", "solar": 4.0},
        {"timestamp": "2024-01-01T19:00:00Z", "solar": 1.0},
    ]))
    config = RelayConfig(source="json", data_path=path, transport="log")
    outcome = run_from_config(config, clock=clock, notifier=FakeNotifier())
    assert outcome.message == "Solar production (2024-01-01): 5.00 kWh"


def test_run_from_config_with_sqlite_source(tmp_path):
    db = tmp_path / "sunrun.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute("CREATE TABLE solar (timestamp TEXT, solar REAL)")
    conn.execute("INSERT INTO solar VALUES ('2023-12-30T18:00:00Z', 7.25)")
    conn.commit()
    conn.close()
    config = RelayConfig(source="sqlite", db_file=db, transport="log")
    outcome = run_from_config(config, clock=clock, notifier=FakeNotifier())
    # nothing for 2024-01-02 (local) yet, so the closest earlier day is reported
    assert outcome.message == "Solar production (2023-12-30): 7.25 kWh"
    assert outcome.result.fallback_applied


def test_run_from_config_setup_problem_is_reported(tmp_path):
    notifier = FakeNotifier()
    config = RelayConfig(extractor_command="./extract", transport="log")
    outcome = run_from_config(config, clock=clock, notifier=notifier)
    assert notifier.sent == [FAILURE_MESSAGE]
    assert "SUNRUN_JWT" in outcome.error


def test_log_notifier_prints(capsys):
    assert LogNotifier().send("hello")
    assert "hello" in capsys.readouterr().out
