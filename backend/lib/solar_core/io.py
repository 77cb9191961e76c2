import json
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from .models import SolarReading

FALLBACK_VALUE_FIELD = "kwh"


def parse_timestamp(value: Any) -> datetime:
    """
    ISO-8601 string (trailing Z allowed) or epoch seconds -> aware UTC datetime.
    Naive timestamps are read as UTC.
    """
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unparseable timestamp: {value!r}")
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_value(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def readings_from_records(records: Iterable[dict], value_field: str = "solar") -> List[SolarReading]:
    """
    Build readings from row dicts with a `timestamp` and a value field.

    A row missing its value keeps kwh=None and still counts as a reading.
    Rows without a usable timestamp are skipped.
    """
    readings = []
    skipped = 0
    for row in records:
        if not isinstance(row, dict):
            skipped += 1
            continue
        try:
            ts = parse_timestamp(row.get("timestamp"))
        except (ValueError, OverflowError, OSError):
            skipped += 1
            continue
        raw = row.get(value_field)
        if raw is None and value_field != FALLBACK_VALUE_FIELD:
            raw = row.get(FALLBACK_VALUE_FIELD)
        readings.append(SolarReading(timestamp=ts, kwh=parse_value(raw)))
    if skipped:
        print(f"Skipped {skipped} rows without a usable timestamp")
    return readings


def parse_json_string(text: str, value_field: str = "solar") -> List[SolarReading]:
    """
    Parse an extractor export. Accepts a JSON array of rows, an object holding
    the rows under "data" or "readings", or JSON Lines (one row per line).
    Raises ValueError when the text is not any of those.
    """
    text = text.strip()
    if not text:
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = [json.loads(line) for line in text.splitlines() if line.strip()]

    if isinstance(payload, dict):
        for key in ("data", "readings"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            payload = [payload]
    if not isinstance(payload, list):
        raise ValueError("Expected a list of readings")
    return readings_from_records(payload, value_field=value_field)
