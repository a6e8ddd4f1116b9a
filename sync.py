"""Command line entry point for the connector sync service.

``python sync.py --once`` runs a single pass and prints its report as JSON.
Without ``--once`` the scheduler runs every ``SYNC_INTERVAL_SECONDS`` until
interrupted.
"""

from __future__ import annotations

import argparse
import json
import sys

from connector_sync.app_logging import init_logging
from connector_sync.config import SyncSettings
from connector_sync.sync.runner import SyncScheduler, build_sync_job
from connector_sync.sync.storage import ConnectorRegistry


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and run one pass or the scheduler loop."""

    parser = argparse.ArgumentParser(description="Sync external data sources into search indexes")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass, print the report and exit",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the connector definitions table before running",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Override SYNC_INTERVAL_SECONDS for the scheduler loop",
    )
    args = parser.parse_args(argv)

    log = init_logging()
    settings = SyncSettings.from_env()
    missing = settings.missing()
    if missing:
        parser.error("missing required settings: " + ", ".join(missing))

    registry = ConnectorRegistry(
        settings.config_database_url, prefix=settings.connector_name_prefix
    )
    if args.init_schema:
        registry.ensure_schema()
        log.info("connector definitions table ready")

    job = build_sync_job(settings, registry=registry, logger=log)

    if args.once:
        report = job()
        print(json.dumps(report.to_json(), indent=2))
        return 0 if report.failed == 0 else 1

    interval = args.interval if args.interval is not None else settings.interval_seconds
    scheduler = SyncScheduler(
        job,
        interval_seconds=interval,
        run_on_start=settings.run_on_start,
        logger=log,
    )
    scheduler.start()
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        log.info("interrupted; stopping scheduler")
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI execution
    sys.exit(main())
