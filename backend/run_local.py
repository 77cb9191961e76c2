"""
Run one production report from the command line (cron entry point).

    python -m backend.run_local                    # extractor + send
    python -m backend.run_local --dry-run          # print instead of sending
    python -m backend.run_local --dry-run data.json

A path argument reads readings from that JSON / SQLite file instead of the
configured source.
"""
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from backend.lib.config import RelayConfig
from backend.lib.relay_service import LogNotifier, run_from_config
from backend.lib.solar_core.errors import ConfigError


def config_for_args(args, env=None):
    config = RelayConfig.from_env(env)
    paths = [a for a in args if not a.startswith("--")]
    if paths:
        path = Path(paths[0])
        if path.suffix in (".sqlite", ".sqlite3", ".db"):
            config = replace(config, source="sqlite", db_file=path, extractor_command=None)
        else:
            config = replace(config, source="json", data_path=path, extractor_command=None)
    return config


def main(args):
    dry_run = "--dry-run" in args
    try:
        config = config_for_args(args)
        outcome = run_from_config(config, notifier=LogNotifier() if dry_run else None)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 2

    print(f"Message: {outcome.message}")
    if outcome.error:
        print(f"Error: {outcome.error}")
    return 0 if outcome.sent and not outcome.error else 1


if __name__ == "__main__":
    load_dotenv()
    sys.exit(main(sys.argv[1:]))
