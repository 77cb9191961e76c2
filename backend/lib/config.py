"""
=============================================================================
RELAY CONFIGURATION
=============================================================================
All settings for one relay run, read once from environment variables
(optionally loaded from a .env file with python-dotenv) and passed around
as a frozen RelayConfig. Nothing below the entry points reads os.environ.

Example .env:
    SOLAR_SOURCE=sqlite
    SOLAR_DB_FILE=sunrun-api-extractor/sunrun.sqlite3
    WINDOW_MODES=shifted:0:-7,shifted:1:-7
    EXTRACTOR_COMMAND=./target/release/sunrun-data-api
    EXTRACTOR_DIR=sunrun-api-extractor
    SUNRUN_JWT=...
    SUNRUN_PROSPECT=...
    NOTIFY_TRANSPORT=email
    EMAIL_FROM=me@gmail.com
    EMAIL_PASS=app-password
    EMAIL_TO=5551234567@vtext.com
=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from backend.lib.solar_core.errors import ConfigError
from backend.lib.solar_core.models import CalendarDayShifted, CalendarDayUTC, TrailingHours, WindowMode

SOURCES = ("json", "sqlite", "dynamodb")
TRANSPORTS = ("email", "sns", "log")


def parse_window_modes(text: str, default_tz_offset: float = -7) -> Tuple[WindowMode, ...]:
    """
    Parse an ordered, comma separated list of window modes:

        trailing:<hours>                       e.g. trailing:24
        utc:<offset_days>                      e.g. utc:1   (yesterday, UTC)
        shifted:<offset_days>[:<tz_hours>]     e.g. shifted:0:-7
    """
    modes = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        kind, _, rest = item.partition(":")
        # positional; an empty slot ("shifted::-5") keeps that argument's default
        args = [a.strip() for a in rest.split(":")] if rest else []

        def arg(i, convert, default):
            return convert(args[i]) if len(args) > i and args[i] else default

        try:
            if kind == "trailing":
                modes.append(TrailingHours(arg(0, int, 24)))
            elif kind == "utc":
                modes.append(CalendarDayUTC(arg(0, int, 1)))
            elif kind == "shifted":
                modes.append(CalendarDayShifted(arg(0, int, 0), arg(1, float, default_tz_offset)))
            else:
                raise ConfigError(f"Unknown window mode '{kind}' in WINDOW_MODES")
        except ValueError as e:
            raise ConfigError(f"Bad window mode '{item}': {e}") from e
    if not modes:
        raise ConfigError("WINDOW_MODES must name at least one window mode")
    for mode in modes:
        if isinstance(mode, TrailingHours) and mode.hours <= 0:
            raise ConfigError("trailing window must be at least 1 hour")
    return tuple(modes)


@dataclass(frozen=True)
class RelayConfig:
    # where readings come from
    source: str = "sqlite"
    data_path: Path = Path("sunrun-api-extractor/solar.json")
    db_file: Path = Path("sunrun-api-extractor/sunrun.sqlite3")
    table: str = "solar"
    value_field: str = "solar"
    dynamodb_table: str = "SolarReadings"
    site_id: Optional[str] = None

    # which window(s) to report on, in order
    window_modes: Tuple[WindowMode, ...] = (CalendarDayShifted(0, -7),)
    tz_offset_hours: float = -7

    # external extractor
    extractor_command: Optional[str] = None
    extractor_dir: Path = Path("sunrun-api-extractor")
    extractor_config_name: str = "data.hcl"
    extractor_timeout: float = 300
    jwt_token: Optional[str] = None
    prospect_id: Optional[str] = None

    # delivery
    transport: str = "email"
    email_from: Optional[str] = None
    email_pass: Optional[str] = None
    email_to: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    sns_topic_arn: Optional[str] = None
    sns_phone_number: Optional[str] = None
    aws_region: str = "us-east-1"

    @property
    def extractor_config_path(self) -> Path:
        return self.extractor_dir / self.extractor_config_name

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Build a config from environment variables (or any mapping, for tests)."""
        env = os.environ if env is None else env

        def get(name, default=None):
            value = env.get(name)
            if value is None or value.strip() == "":
                return default
            return value.strip()

        source = get("SOLAR_SOURCE", "sqlite").lower()
        if source not in SOURCES:
            raise ConfigError(f"SOLAR_SOURCE must be one of {', '.join(SOURCES)}, got '{source}'")
        transport = get("NOTIFY_TRANSPORT", "email").lower()
        if transport not in TRANSPORTS:
            raise ConfigError(f"NOTIFY_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got '{transport}'")

        try:
            tz_offset = float(get("TZ_OFFSET_HOURS", "-7"))
            smtp_port = int(get("SMTP_PORT", "587"))
            timeout = float(get("EXTRACTOR_TIMEOUT", "300"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        modes_text = get("WINDOW_MODES")
        if modes_text:
            window_modes = parse_window_modes(modes_text, default_tz_offset=tz_offset)
        else:
            window_modes = (CalendarDayShifted(0, tz_offset),)

        extractor_dir = Path(get("EXTRACTOR_DIR", "sunrun-api-extractor"))
        return cls(
            source=source,
            data_path=Path(get("SOLAR_DATA_PATH", str(extractor_dir / "solar.json"))),
            db_file=Path(get("SOLAR_DB_FILE", str(extractor_dir / "sunrun.sqlite3"))),
            table=get("SOLAR_TABLE", "solar"),
            value_field=get("SOLAR_VALUE_FIELD", "solar"),
            dynamodb_table=get("DYNAMODB_TABLE_NAME", "SolarReadings"),
            site_id=get("SOLAR_SITE_ID", get("SUNRUN_PROSPECT")),
            window_modes=window_modes,
            tz_offset_hours=tz_offset,
            extractor_command=get("EXTRACTOR_COMMAND"),
            extractor_dir=extractor_dir,
            extractor_timeout=timeout,
            jwt_token=get("SUNRUN_JWT"),
            prospect_id=get("SUNRUN_PROSPECT"),
            transport=transport,
            email_from=get("EMAIL_FROM"),
            email_pass=get("EMAIL_PASS"),
            email_to=get("EMAIL_TO"),
            smtp_host=get("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=smtp_port,
            sns_topic_arn=get("SNS_TOPIC_ARN"),
            sns_phone_number=get("SNS_PHONE_NUMBER"),
            aws_region=get("AWS_REGION", "us-east-1"),
        )

    def validate_source(self) -> None:
        """Check the settings the reading source and extractor need."""
        if self.extractor_command and not (self.jwt_token and self.prospect_id):
            raise ConfigError("SUNRUN_JWT or SUNRUN_PROSPECT environment variable not set")
        if self.source == "dynamodb" and not self.site_id:
            raise ConfigError("SOLAR_SITE_ID (or SUNRUN_PROSPECT) is required for the dynamodb source")

    def validate_transport(self) -> None:
        if self.transport == "email" and not (self.email_from and self.email_pass and self.email_to):
            raise ConfigError("EMAIL_FROM, EMAIL_PASS and EMAIL_TO are required for email delivery")
        if self.transport == "sns" and not (self.sns_topic_arn or self.sns_phone_number):
            raise ConfigError("SNS_TOPIC_ARN or SNS_PHONE_NUMBER is required for sns delivery")

    def validate(self) -> None:
        self.validate_transport()
        self.validate_source()
