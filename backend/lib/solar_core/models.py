from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union


@dataclass(frozen=True)
class SolarReading:
    timestamp: datetime
    kwh: Optional[float]


@dataclass(frozen=True)
class TrailingHours:
    hours: int = 24


@dataclass(frozen=True)
class CalendarDayUTC:
    offset_days: int = 1


@dataclass(frozen=True)
class CalendarDayShifted:
    offset_days: int = 0
    tz_offset_hours: float = -7


WindowMode = Union[TrailingHours, CalendarDayUTC, CalendarDayShifted]


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime
    label: str
    end_inclusive: bool = False

    def contains(self, ts: datetime) -> bool:
        if ts < self.start:
            return False
        return ts <= self.end if self.end_inclusive else ts < self.end


@dataclass(frozen=True)
class DayTotal:
    total_kwh: float = 0.0
    reading_count: int = 0


@dataclass(frozen=True)
class AggregationResult:
    total_kwh: float
    reading_count: int
    window_label: str
    mode: Optional[WindowMode] = None
    fallback_applied: bool = False
    most_recent_day_date: Optional[date] = None
    is_empty: bool = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "is_empty", self.reading_count == 0)

    def to_dict(self) -> dict:
        return {
            "total_kwh": round(self.total_kwh, 4),
            "reading_count": self.reading_count,
            "window_label": self.window_label,
            "is_empty": self.is_empty,
            "fallback_applied": self.fallback_applied,
            "most_recent_day_date": (
                self.most_recent_day_date.isoformat() if self.most_recent_day_date else None
            ),
        }
