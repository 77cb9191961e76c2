"""
=============================================================================
RELAY SERVICE - One scheduled production report, end to end
=============================================================================
    [Extractor] -> [Reading store] -> [WindowAggregator] -> [format_report]
                                                               |
                                                   [Email-to-SMS / SNS]

Every failure before delivery turns into the fixed failure message, so the
recipient always hears something. Details go to stdout (CloudWatch when
running in Lambda).
=============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from backend.lib.config import RelayConfig
from backend.lib.extractor_service import ExtractorRunner
from backend.lib.solar_core.errors import ConfigError, RelayError
from backend.lib.solar_core.formatter import FAILURE_MESSAGE, format_kwh, format_report
from backend.lib.solar_core.models import (
    AggregationResult,
    CalendarDayShifted,
    CalendarDayUTC,
    SolarReading,
    TrailingHours,
    WindowMode,
)
from backend.lib.solar_core.readers import JsonFileReader, SqliteReader
from backend.lib.solar_core.windows import WindowAggregator, as_utc, recent_daily_totals, utc_now, window_for


@dataclass
class RelayOutcome:
    message: str
    sent: bool
    result: Optional[AggregationResult] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "sent": self.sent,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


class LogNotifier:
    """Prints the message instead of sending it (dry runs)."""

    def send(self, message: str) -> bool:
        print(f"[dry run] {message}")
        return True


def build_reader(config: RelayConfig):
    if config.source == "json":
        return JsonFileReader(config.data_path, value_field=config.value_field)
    if config.source == "sqlite":
        return SqliteReader(config.db_file, table=config.table, value_column=config.value_field)
    if config.source == "dynamodb":
        # boto3 is only needed for this source
        from backend.lib.dynamodb_service import DynamoDBReader
        return DynamoDBReader(config.site_id, table_name=config.dynamodb_table,
                              value_field=config.value_field, region=config.aws_region)
    raise ConfigError(f"Unknown source: {config.source}")


def build_notifier(config: RelayConfig):
    if config.transport == "log":
        return LogNotifier()
    if config.transport == "sns":
        from backend.lib.sns_service import SNSService
        return SNSService(topic_arn=config.sns_topic_arn, phone_number=config.sns_phone_number,
                          region=config.aws_region)
    from backend.lib.email_service import EmailSMSService
    return EmailSMSService(config.email_from, config.email_pass, config.email_to,
                           smtp_host=config.smtp_host, smtp_port=config.smtp_port)


def build_extractor(config: RelayConfig) -> Optional[ExtractorRunner]:
    if not config.extractor_command:
        return None
    return ExtractorRunner(
        config.extractor_command,
        cwd=config.extractor_dir,
        config_path=config.extractor_config_path,
        prospect_id=config.prospect_id,
        jwt_token=config.jwt_token,
        timeout=config.extractor_timeout,
    )


def load_readings(reader, modes: Sequence[WindowMode], now: datetime) -> List[SolarReading]:
    """
    A single trailing or UTC-day window can be fetched as a range; the
    shifted-day fallback may need any earlier day, so it reads everything.
    """
    if len(modes) == 1 and isinstance(modes[0], (TrailingHours, CalendarDayUTC)):
        window = window_for(modes[0], now)
        return reader.read_range(window.start, window.end)
    return reader.read_all()


def log_daily_totals(readings: Sequence[SolarReading], tz_offset_hours: float, days: int = 7) -> None:
    print(f"Daily production totals (UTC{tz_offset_hours:+g}h):")
    for day, total in recent_daily_totals(readings, tz_offset_hours, days):
        print(f"  {day.isoformat()}: {format_kwh(total.total_kwh)} kWh ({total.reading_count} readings)")


def produce_report(config: RelayConfig, reader, extractor: Optional[ExtractorRunner] = None,
                   clock: Callable[[], datetime] = utc_now):
    """
    Refresh, read, aggregate and format.

    Returns (message, result, error); never raises.
    """
    now = as_utc(clock())
    try:
        if extractor is not None:
            extractor.run()

        readings = load_readings(reader, config.window_modes, now)
        print(f"Loaded {len(readings)} readings")

        shifted = [m for m in config.window_modes if isinstance(m, CalendarDayShifted)]
        log_daily_totals(readings, shifted[0].tz_offset_hours if shifted else config.tz_offset_hours)

        aggregator = WindowAggregator(clock=clock)
        result = aggregator.aggregate_first(readings, config.window_modes, now=now)
        print(f"Production data result: {result.to_dict()}")
        return format_report(result), result, None

    except RelayError as e:
        print(f"Failed to get production data: {e}")
        return FAILURE_MESSAGE, None, str(e)
    except Exception as e:
        print(f"Unexpected error while building report: {e!r}")
        return FAILURE_MESSAGE, None, repr(e)


def deliver(notifier, message: str) -> bool:
    try:
        return bool(notifier.send(message))
    except Exception as e:
        print(f"Delivery failed: {e!r}")
        return False


def run_relay(config: RelayConfig, reader, notifier, extractor: Optional[ExtractorRunner] = None,
              clock: Callable[[], datetime] = utc_now) -> RelayOutcome:
    """Produce the report and send it; falls back to one failure message if sending fails."""
    message, result, error = produce_report(config, reader, extractor=extractor, clock=clock)

    sent = deliver(notifier, message)
    if not sent and message != FAILURE_MESSAGE:
        error = error or "delivery failed"
        message = FAILURE_MESSAGE
        sent = deliver(notifier, message)

    return RelayOutcome(message=message, sent=sent, result=result, error=error)


def run_from_config(config: RelayConfig, clock: Callable[[], datetime] = utc_now,
                    notifier=None) -> RelayOutcome:
    """
    Build collaborators from config and run once. Config problems that
    leave no way to deliver (bad transport settings) raise ConfigError;
    anything else is reported through the notifier.
    """
    if notifier is None:
        config.validate_transport()
        notifier = build_notifier(config)

    try:
        config.validate_source()
        reader = build_reader(config)
        extractor = build_extractor(config)
    except (RelayError, ValueError) as e:
        print(f"Relay setup failed: {e}")
        sent = deliver(notifier, FAILURE_MESSAGE)
        return RelayOutcome(message=FAILURE_MESSAGE, sent=sent, error=str(e))

    return run_relay(config, reader, notifier, extractor=extractor, clock=clock)
