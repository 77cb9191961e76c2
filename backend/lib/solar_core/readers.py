import re
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Union

from .errors import DataSourceError
from .io import parse_json_string, parse_timestamp, parse_value
from .models import SolarReading
from .windows import as_utc

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PAD = timedelta(seconds=1)


def _in_range(readings: List[SolarReading], start: datetime, end: datetime) -> List[SolarReading]:
    start, end = as_utc(start), as_utc(end)
    return [r for r in readings if start <= r.timestamp <= end]


class JsonFileReader:
    """Readings from a JSON / JSON Lines export written by the extractor."""

    def __init__(self, path: Union[str, Path], value_field: str = "solar"):
        self.path = Path(path)
        self.value_field = value_field

    def read_all(self) -> List[SolarReading]:
        if not self.path.exists():
            raise DataSourceError(f"Data file not found: {self.path}")
        try:
            text = self.path.read_text(encoding="utf-8")
            readings = parse_json_string(text, value_field=self.value_field)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise DataSourceError(f"Could not read {self.path}: {e}") from e
        return sorted(readings, key=lambda r: r.timestamp)

    def read_range(self, start: datetime, end: datetime) -> List[SolarReading]:
        return _in_range(self.read_all(), start, end)


class SqliteReader:
    """
    Readings from the extractor's SQLite database.

    Timestamps are ISO-8601 text (SQLite's "YYYY-MM-DD HH:MM:SS" works too);
    range queries compare them as times through julianday().
    """

    def __init__(self, db_path: Union[str, Path], table: str = "solar", value_column: str = "solar"):
        for name in (table, value_column):
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid SQL identifier: {name!r}")
        self.db_path = Path(db_path)
        self.table = table
        self.value_column = value_column

    def _query(self, sql: str, params: tuple = ()) -> List[SolarReading]:
        if not self.db_path.exists():
            raise DataSourceError(f"Database file not found: {self.db_path}")
        try:
            conn = sqlite3.connect(self.db_path.resolve().as_uri() + "?mode=ro", uri=True)
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise DataSourceError(f"SQLite query failed on {self.db_path}: {e}") from e

        readings = []
        for value, ts in rows:
            try:
                timestamp = parse_timestamp(ts)
            except (ValueError, OverflowError, OSError):
                continue
            readings.append(SolarReading(timestamp=timestamp, kwh=parse_value(value)))
        # text order is not time order once formats or offsets are mixed
        return sorted(readings, key=lambda r: r.timestamp)

    def read_all(self) -> List[SolarReading]:
        sql = f"SELECT {self.value_column}, timestamp FROM {self.table} ORDER BY timestamp ASC"
        return self._query(sql)

    def read_range(self, start: datetime, end: datetime) -> List[SolarReading]:
        # julianday() understands 'T' or space separators and +hh:mm / Z
        # suffixes; numeric (epoch) cells can't be compared that way and are
        # passed through. Bounds are padded a second and filtered exactly below.
        sql = (
            f"SELECT {self.value_column}, timestamp FROM {self.table} "
            "WHERE typeof(timestamp) != 'text' OR julianday(timestamp) IS NULL "
            "OR julianday(timestamp) BETWEEN julianday(?) AND julianday(?) "
            "ORDER BY timestamp ASC"
        )
        params = (_iso(as_utc(start) - _PAD), _iso(as_utc(end) + _PAD))
        return _in_range(self._query(sql, params), start, end)


def _iso(ts: datetime) -> str:
    return as_utc(ts).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
