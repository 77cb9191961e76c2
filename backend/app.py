"""
=============================================================================
SOLAR PRODUCTION RELAY - FLASK APPLICATION
=============================================================================
A small HTTP surface next to the scheduled relay. It is handy for checking
what tonight's text message would say without waiting for cron:

- GET  /health              - is the service up, which source/transport
- GET  /production          - aggregate readings for one or more window modes
- GET  /production/daily    - recent daily totals (local calendar days)
- POST /report/send         - run the full relay once (or a dry run)

How to run:
    python -m backend.app

Then visit: http://127.0.0.1:5000/production?modes=trailing:24
=============================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

# Flask - lightweight web framework
from flask import Flask, request, jsonify

# dotenv - Load environment variables from .env file
from dotenv import load_dotenv

from backend.lib.config import RelayConfig, parse_window_modes
from backend.lib.relay_service import LogNotifier, build_reader, load_readings, run_from_config
from backend.lib.solar_core.errors import ConfigError, DataSourceError
from backend.lib.solar_core.formatter import FAILURE_MESSAGE, format_report
from backend.lib.solar_core.windows import WindowAggregator, as_utc, recent_daily_totals, utc_now

# Must run before RelayConfig.from_env() reads anything
load_dotenv()

# =============================================================================
# FLASK APPLICATION INITIALIZATION
# =============================================================================

app = Flask(__name__)

# Tests (or a WSGI wrapper) may set these before the first request:
#   app.config["RELAY_CONFIG"] - a RelayConfig; default is read from the environment
#   app.config["RELAY_CLOCK"]  - callable returning "now"; default is the UTC clock
app.config.setdefault("RELAY_CONFIG", None)
app.config.setdefault("RELAY_CLOCK", utc_now)


def get_config() -> RelayConfig:
    config = app.config.get("RELAY_CONFIG")
    if config is None:
        config = RelayConfig.from_env()
        app.config["RELAY_CONFIG"] = config
    return config


def get_clock():
    return app.config.get("RELAY_CLOCK") or utc_now


@app.errorhandler(ConfigError)
def handle_config_error(e):
    return jsonify({"error": str(e)}), 500


# =============================================================================
# API ROUTES
# =============================================================================

@app.route("/health", methods=["GET"])
def health():
    config = get_config()
    return jsonify({
        "status": "ok",
        "source": config.source,
        "transport": config.transport,
        "window_modes": [repr(m) for m in config.window_modes],
    })


@app.route("/production", methods=["GET"])
def production():
    """
    Preview the aggregation without running the extractor or sending anything.

    Query Parameters:
        modes (optional): ordered window modes, e.g. "shifted:0:-7,shifted:1:-7".
                          Defaults to the configured WINDOW_MODES.

    Example Response:
        {
            "message": "Solar production (2024-01-01): 23.40 kWh",
            "result": {"total_kwh": 23.4, "reading_count": 96, ...}
        }
    """
    config = get_config()
    modes_text = request.args.get("modes")
    try:
        modes = parse_window_modes(modes_text, config.tz_offset_hours) if modes_text else config.window_modes
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400

    clock = get_clock()
    now = as_utc(clock())
    try:
        readings = load_readings(build_reader(config), modes, now)
    except DataSourceError as e:
        print(f"Preview failed: {e}")
        return jsonify({"message": FAILURE_MESSAGE, "result": None, "error": str(e)}), 503

    result = WindowAggregator(clock=clock).aggregate_first(readings, modes, now=now)
    return jsonify({
        "message": format_report(result),
        "result": result.to_dict(),
    })


@app.route("/production/daily", methods=["GET"])
def production_daily():
    """
    Daily totals for the most recent days that have data, newest first.

    Query Parameters:
        days (optional): how many days (default 7, max 90)
        tz (optional): hour offset from UTC (default TZ_OFFSET_HOURS)
    """
    config = get_config()
    try:
        days = min(max(int(request.args.get("days", 7)), 1), 90)
        tz_offset = float(request.args.get("tz", config.tz_offset_hours))
    except ValueError:
        return jsonify({"error": "days and tz must be numbers"}), 400

    try:
        readings = build_reader(config).read_all()
    except DataSourceError as e:
        print(f"Daily totals failed: {e}")
        return jsonify({"error": str(e)}), 503

    data = [
        {"date": day.isoformat(), "total_kwh": round(total.total_kwh, 4), "readings": total.reading_count}
        for day, total in recent_daily_totals(readings, tz_offset, days)
    ]
    return jsonify({"tz_offset_hours": tz_offset, "data": data})


@app.route("/report/send", methods=["POST"])
def send_report():
    """
    Run the full relay once: extractor, aggregation, delivery.

    Request Body (JSON, optional):
        {"dry_run": true}   - print the message instead of sending it
    """
    data = request.get_json(silent=True) or {}
    dry_run = bool(data.get("dry_run", False))

    outcome = run_from_config(
        get_config(),
        clock=get_clock(),
        notifier=LogNotifier() if dry_run else None,
    )
    body = outcome.to_dict()
    body["dry_run"] = dry_run
    return jsonify(body), (200 if outcome.sent else 502)


# =============================================================================
# RUN THE SERVER
# =============================================================================

if __name__ == "__main__":
    # Development server only; debug=True must not be used in production
    app.run(debug=True)
