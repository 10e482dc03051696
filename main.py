#!/usr/bin/env python3
# ============================================================================
# STACKWATCH - COMMAND LINE ENTRY POINT
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Core - CLI entry point
# PURPOSE: Run one health pass and exit with its status
# CREATED: 18 OCT 2026
# ============================================================================
"""
Stackwatch health check.

Runs every configured check once, writes the audit log, sends at most one
alert and exits. Meant to be scheduled, e.g.:

    */5 * * * * cd /opt/stack && stackwatch >> /dev/null 2>&1

Usage:
    # Default: read ./.env if present, run concurrently, alert on WARN/FAIL
    stackwatch

    # Explicit env file, one probe at a time, JSON report on stdout
    stackwatch --env-file /opt/stack/.env --sequential --json

    # Show what would run
    stackwatch --list-checks

Exit codes:
    0  all checks OK, or warnings only
    1  at least one check FAILed
    2  configuration error (no checks were run)
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from __version__ import __version__
from core.config import HealthSettings
from core.errors import ConfigError
from core.logging import AuditLog, configure_logging
from health.checks import build_registry
from health.executor import Aggregator, UnavailablePolicy
from health.notifier import AlertSink, LogOnlySink, Notifier, TelegramSink
from health.runner import HealthPass

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
DEFAULT_ENV_FILE = ".env"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stackwatch",
        description="Run one health pass over the automation stack",
    )
    parser.add_argument(
        "--env-file",
        default=os.environ.get("HEALTH_ENV_FILE"),
        help="Environment file to load (default: ./.env if it exists)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Run probes one at a time instead of concurrently",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Never send an alert, only log",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON",
    )
    parser.add_argument(
        "--list-checks",
        action="store_true",
        help="List registered checks and exit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_sink(settings: HealthSettings) -> AlertSink:
    """Telegram when credentials are configured, log-only otherwise."""
    telegram = settings.telegram
    if telegram.enabled:
        return TelegramSink(telegram.bot_token, telegram.chat_id, api_url=telegram.api_url)
    return LogOnlySink()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    env_file = args.env_file
    if env_file is None and Path(DEFAULT_ENV_FILE).is_file():
        env_file = DEFAULT_ENV_FILE

    try:
        settings = HealthSettings.from_env(env_file=env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(level=settings.log_level, json_output=settings.log_format == "json")

    registry = build_registry(settings)

    if args.list_checks:
        for definition in registry.all():
            print(
                f"{definition.name:<12} {definition.kind.value:<10} "
                f"{definition.timeout_seconds:>5g}s  {definition.probe.describe()}"
            )
        return 0

    audit = AuditLog(settings.log_dir, settings.log_file, settings.log_max_bytes)
    try:
        audit.ensure_ready()
        audit.rotate_if_oversized()
    except OSError as e:
        logger.warning(f"Audit log unavailable, logging to stdout only: {e}")

    aggregator = Aggregator(
        policy=UnavailablePolicy.from_settings(settings.unavailable),
        pass_timeout=settings.pass_timeout_seconds,
        concurrent=settings.concurrent and not args.sequential,
    )
    notifier = Notifier(build_sink(settings), host_name=settings.host_name)

    try:
        report = asyncio.run(
            HealthPass(registry, aggregator, notifier, audit).run(notify=not args.no_notify)
        )
    finally:
        audit.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
