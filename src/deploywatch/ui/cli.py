from __future__ import annotations

import argparse
import logging
import sys
import threading
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from deploywatch.app import reconcile_once, run_controller, show_record
from deploywatch.config import configure_logging, parse_log_level
from deploywatch.domain.model import Identity

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

_STOP = threading.Event()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="deploywatch",
        description="Send lifecycle notifications for Kubernetes Deployments",
    )
    parser.add_argument(
        "--log-level",
        type=parse_log_level,
        default=logging.INFO,
        help="Logging level name (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Watch Deployments and reconcile until interrupted")

    reconcile = subparsers.add_parser("reconcile", help="Run one reconcile pass")
    reconcile.add_argument(
        "identity",
        type=str,
        help="Deployment to reconcile, as NAMESPACE/NAME",
    )

    record = subparsers.add_parser("record", help="Print the stored notification record")
    record.add_argument(
        "identity",
        type=str,
        help="Deployment whose record to print, as NAMESPACE/NAME",
    )

    return parser.parse_args(list(argv))


def _parse_identity(value: str) -> Identity:
    try:
        return Identity.parse(value)
    except ValueError as exc:
        raise ValueError(f"Invalid deployment identity: {value!r} (expected NAMESPACE/NAME)") from exc


def _print_record(identity: Identity) -> None:
    record = show_record(identity)
    if record is None:
        print(f"No notification record for {identity}")  # noqa: T201
        return
    print(f"deployment:       {record.identity}")  # noqa: T201
    print(f"message:          {record.message}")  # noqa: T201
    print(f"spec generation:  {record.spec_generation}")  # noqa: T201
    print(f"ready generation: {record.ready_generation}")  # noqa: T201
    print(f"pending:          {record.pending or '-'}")  # noqa: T201
    print(f"updated at:       {record.updated_at.isoformat()}")  # noqa: T201
    if record.deleted_at is not None:
        print(f"deleted at:       {record.deleted_at.isoformat()}")  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        identity = (
            _parse_identity(parsed_args.identity)
            if parsed_args.command in {"reconcile", "record"}
            else None
        )
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=parsed_args.log_level)

    try:
        if parsed_args.command == "run":
            run_controller(stop_event=_STOP)
        elif parsed_args.command == "reconcile" and identity is not None:
            reconcile_once(identity)
        elif parsed_args.command == "record" and identity is not None:
            _print_record(identity)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    _STOP.set()
    sys.exit(0)


def entrypoint() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    signal(SIGTERM, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()
