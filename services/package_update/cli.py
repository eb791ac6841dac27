"""Run one package update cycle from the command line."""

from __future__ import annotations

import argparse
from pathlib import Path

from services.package_update.builder import build_update_orchestrator
from services.package_update.models import CycleOutcome
from services.package_update.notifier import LoggingNotifier, MessageBoxNotifier
from shared.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BUSY = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--automated",
        action="store_true",
        help="Run as the automated background check (never replaces the updater itself).",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=None,
        help="Host project directory holding Packages/ and the continuation markers.",
    )
    parser.add_argument(
        "--registry-url",
        default=None,
        help="Override the package registry URL.",
    )
    parser.add_argument(
        "--gui",
        action="store_true",
        help="Show notices in message boxes instead of the log.",
    )
    parser.add_argument(
        "--log-level",
        choices=[verbosity.value for verbosity in LogVerbosity],
        default=None,
        help="Verbosity of the updater log file.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    ensure_app_logging()
    if args.log_level:
        set_file_log_verbosity(args.log_level)

    notifier = MessageBoxNotifier() if args.gui else LoggingNotifier()
    orchestrator = build_update_orchestrator(
        args.project_dir,
        notifier=notifier,
        registry_url=args.registry_url,
    )
    outcome = orchestrator.run_cycle(automated=args.automated)
    if outcome is CycleOutcome.SKIPPED:
        return EXIT_BUSY
    if outcome is CycleOutcome.FAILED:
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
