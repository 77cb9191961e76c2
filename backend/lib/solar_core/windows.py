import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    AggregationResult,
    CalendarDayShifted,
    CalendarDayUTC,
    DayTotal,
    SolarReading,
    TimeWindow,
    TrailingHours,
    WindowMode,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def reading_value(reading: SolarReading) -> float:
    """kWh a reading contributes to a total; missing, non-finite or negative values count as 0."""
    kwh = reading.kwh
    if kwh is None:
        return 0.0
    try:
        kwh = float(kwh)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(kwh) or kwh < 0:
        return 0.0
    return kwh


def local_date(ts: datetime, tz_offset_hours: float) -> date:
    return (as_utc(ts) + timedelta(hours=tz_offset_hours)).date()


def window_for(mode: WindowMode, now: datetime) -> TimeWindow:
    """
    UTC bounds of the window a mode asks for.

    For CalendarDayShifted this is the requested local day only; the
    fallback to earlier days happens in WindowAggregator.aggregate.
    """
    now = as_utc(now)
    if isinstance(mode, TrailingHours):
        return TimeWindow(
            start=now - timedelta(hours=mode.hours),
            end=now,
            label=f"last {mode.hours}h",
            end_inclusive=True,
        )
    if isinstance(mode, CalendarDayUTC):
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start = midnight - timedelta(days=mode.offset_days)
        return TimeWindow(start=start, end=start + timedelta(days=1), label=start.date().isoformat())
    if isinstance(mode, CalendarDayShifted):
        requested = local_date(now, mode.tz_offset_hours) - timedelta(days=mode.offset_days)
        local_midnight = datetime.combine(requested, datetime.min.time(), tzinfo=timezone.utc)
        start = local_midnight - timedelta(hours=mode.tz_offset_hours)
        return TimeWindow(start=start, end=start + timedelta(days=1), label=requested.isoformat())
    raise TypeError(f"Unknown window mode: {mode!r}")


def daily_totals(readings: Iterable[SolarReading], tz_offset_hours: float = 0) -> Dict[date, DayTotal]:
    """Totals keyed by local calendar date (UTC shifted by a fixed number of hours)."""
    totals = defaultdict(float)
    counts = defaultdict(int)
    for r in readings:
        day = local_date(r.timestamp, tz_offset_hours)
        totals[day] += reading_value(r)
        counts[day] += 1
    return {day: DayTotal(total_kwh=totals[day], reading_count=counts[day]) for day in counts}


def recent_daily_totals(
    readings: Iterable[SolarReading], tz_offset_hours: float = 0, days: int = 7
) -> List[Tuple[date, DayTotal]]:
    """The most recent `days` dates that have readings, newest first."""
    totals = daily_totals(readings, tz_offset_hours)
    return sorted(totals.items(), reverse=True)[:days]


class WindowAggregator:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def aggregate(
        self,
        readings: Sequence[SolarReading],
        now: Optional[datetime] = None,
        mode: WindowMode = TrailingHours(24),
    ) -> AggregationResult:
        """
        Sum the readings that fall in the window `mode` selects relative to `now`.

        Readings may be unsorted; duplicates are all counted.
        """
        now = as_utc(now if now is not None else self.clock())
        if isinstance(mode, CalendarDayShifted):
            return self._aggregate_shifted(readings, now, mode)

        window = window_for(mode, now)
        total = 0.0
        count = 0
        for r in readings:
            if window.contains(as_utc(r.timestamp)):
                total += reading_value(r)
                count += 1
        return AggregationResult(
            total_kwh=total,
            reading_count=count,
            window_label=window.label,
            mode=mode,
        )

    def _aggregate_shifted(
        self, readings: Sequence[SolarReading], now: datetime, mode: CalendarDayShifted
    ) -> AggregationResult:
        requested = local_date(now, mode.tz_offset_hours) - timedelta(days=mode.offset_days)
        totals = daily_totals(readings, mode.tz_offset_hours)

        selected = requested if requested in totals else None
        if selected is None:
            # ingestion can lag; take the closest earlier day that produced something
            earlier = sorted((d for d in totals if d < requested and totals[d].total_kwh > 0), reverse=True)
            selected = earlier[0] if earlier else None

        if selected is None:
            return AggregationResult(
                total_kwh=0.0,
                reading_count=0,
                window_label=requested.isoformat(),
                mode=mode,
            )
        day = totals[selected]
        return AggregationResult(
            total_kwh=day.total_kwh,
            reading_count=day.reading_count,
            window_label=selected.isoformat(),
            mode=mode,
            fallback_applied=selected != requested,
            most_recent_day_date=selected,
        )

    def aggregate_first(
        self,
        readings: Sequence[SolarReading],
        modes: Sequence[WindowMode],
        now: Optional[datetime] = None,
    ) -> AggregationResult:
        """
        Try each mode in order and return the first result with readings.

        When every mode comes back empty the last result is returned.
        """
        if not modes:
            raise ValueError("at least one window mode is required")
        now = as_utc(now if now is not None else self.clock())
        result = None
        for mode in modes:
            result = self.aggregate(readings, now=now, mode=mode)
            if not result.is_empty:
                return result
        return result
