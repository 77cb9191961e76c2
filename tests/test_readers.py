import json
import sqlite3
from datetime import datetime, timezone

import pytest

from backend.lib.solar_core.errors import DataSourceError
from backend.lib.solar_core.readers import JsonFileReader, SqliteReader

ROWS = [
    ("2024-01-01T17:00:00Z", 0.5),
    ("2024-01-01T18:00:00Z", 1.5),
    ("2024-01-02T02:00:00Z", None),
    ("2024-01-02T17:00:00Z", 2.0),
]


def make_db(path):
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE solar (timestamp TEXT, solar REAL, pv_solar REAL)")
    conn.executemany("INSERT INTO solar (timestamp, solar, pv_solar) VALUES (?, ?, ?)",
                     [(ts, v, v) for ts, v in ROWS])
    conn.commit()
    conn.close()
    return path


def test_sqlite_read_all(tmp_path):
    reader = SqliteReader(make_db(tmp_path / "sunrun.sqlite3"))
    readings = reader.read_all()
    assert len(readings) == 4
    assert readings[0].timestamp == datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc)
    assert readings[2].kwh is None


def test_sqlite_read_range_is_inclusive(tmp_path):
    reader = SqliteReader(make_db(tmp_path / "sunrun.sqlite3"))
    readings = reader.read_range(
        datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 2, 17, 0, tzinfo=timezone.utc),
    )
    assert [r.kwh for r in readings] == [1.5, None, 2.0]


def test_sqlite_other_value_column(tmp_path):
    reader = SqliteReader(make_db(tmp_path / "sunrun.sqlite3"), value_column="pv_solar")
    assert reader.read_all()[1].kwh == 1.5


def test_sqlite_missing_database(tmp_path):
    with pytest.raises(DataSourceError):
        SqliteReader(tmp_path / "missing.sqlite3").read_all()


def test_sqlite_missing_table(tmp_path):
    path = tmp_path / "empty.sqlite3"
    sqlite3.connect(path).close()
    with pytest.raises(DataSourceError):
        SqliteReader(path).read_all()


def test_sqlite_rejects_bad_identifiers(tmp_path):
    with pytest.raises(ValueError):
        SqliteReader(tmp_path / "x.sqlite3", table="solar; DROP TABLE solar")


def test_json_reader_sorts_and_filters(tmp_path):
    path = tmp_path / "solar.json"
    path.write_text(json.dumps([{"timestamp": ts, "solar": v} for ts, v in reversed(ROWS)]))
    reader = JsonFileReader(path)
    assert [r.kwh for r in reader.read_all()] == [0.5, 1.5, None, 2.0]
    readings = reader.read_range(
        datetime(2024, 1, 1, 17, 30, tzinfo=timezone.utc),
        datetime(2024, 1, 2, 2, 0, tzinfo=timezone.utc),
    )
    assert len(readings) == 2


def test_json_reader_missing_or_corrupt_file(tmp_path):
    with pytest.raises(DataSourceError):
        JsonFileReader(tmp_path / "missing.json").read_all()
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("[{broken")
    with pytest.raises(DataSourceError):
        JsonFileReader(corrupt).read_all()


def test_sqlite_range_reads_space_separated_and_offset_timestamps(tmp_path):
    path = tmp_path / "sunrun.sqlite3"
    conn = sqlite3.connect(path)
    # no column type, so the epoch row stays an integer
    conn.execute("CREATE TABLE solar (timestamp, solar REAL)")
    conn.executemany("INSERT INTO solar VALUES (?, ?)", [
        ("2024-01-01 13:00:00", 1.0),
        ("2024-01-01T08:00:00-07:00", 2.0),
        ("2024-01-01 11:59:00", 8.0),
        (1704110400, 4.0),
    ])
    conn.commit()
    conn.close()
    reader = SqliteReader(path)
    start = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    end = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
    expected = [r for r in reader.read_all() if start <= r.timestamp <= end]
    readings = reader.read_range(start, end)
    assert readings == expected
    assert [r.kwh for r in readings] == [4.0, 1.0, 2.0]
