from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from efiling.app import (
    check_configuration,
    declaration_status,
    probe_gateway,
    reset_failed_declaration,
    run_status_sweep,
    serve_status_sweep,
    status_summary,
)
from efiling.config import configure_logging
from efiling.domain.errors import DeclarationValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="File tax declarations and track their outcome")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sweep = subparsers.add_parser("sweep", help="Poll the gateway for pending declarations")
    sweep.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass instead of sweeping at the configured interval",
    )

    status = subparsers.add_parser("status", help="Show a declaration and its history")
    status.add_argument("declaration_id", type=str, help="Declaration id")

    subparsers.add_parser("summary", help="Count declarations per status")

    reset = subparsers.add_parser("reset", help="Move a failed declaration back to ready")
    reset.add_argument("declaration_id", type=str, help="Declaration id")
    reset.add_argument(
        "--operator",
        type=str,
        help="Name recorded in the audit trail for this reset",
    )

    subparsers.add_parser("probe", help="Check connectivity to the gateway")
    subparsers.add_parser("check-config", help="Validate the environment configuration")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _show_status(declaration_id: UUID) -> None:
    declaration, history = declaration_status(declaration_id)
    log.info(
        f"{declaration.id} {declaration.form_code} {declaration.period}: {declaration.status} "
        f"(confirmation={declaration.confirmation_number}, retries={declaration.retry_count})"
    )
    if declaration.last_error_message:
        log.info(
            f"Last error [{declaration.last_error_category}]: {declaration.last_error_message}"
        )
    if declaration.receipt_rejected_at is not None:
        log.warning(
            f"Receipt rejected at {declaration.receipt_rejected_at.isoformat()}; "
            "check it manually"
        )
    for change in history:
        log.info(
            f"  {change.created_at.isoformat()} {change.old_status} -> {change.new_status} "
            f"by {change.trigger}: {change.reason}"
        )


def _run(parsed_args: argparse.Namespace) -> int:
    if parsed_args.command == "sweep":
        if parsed_args.once:
            result = run_status_sweep()
            log.info(
                f"Sweep finished: examined={result.examined}, transitions={result.applied}, "
                f"receipts={result.receipts}, rejected_receipts={result.rejected_receipts}, "
                f"failures={result.failures}, stale={result.stale}"
            )
        else:
            serve_status_sweep()
    elif parsed_args.command == "status":
        _show_status(_parse_uuid(parsed_args.declaration_id))
    elif parsed_args.command == "summary":
        for declaration_status_value, count in status_summary().items():
            log.info(f"{declaration_status_value}: {count}")
    elif parsed_args.command == "reset":
        reset_failed_declaration(
            _parse_uuid(parsed_args.declaration_id), operator=parsed_args.operator
        )
    elif parsed_args.command == "probe":
        if not probe_gateway():
            log.error("Gateway is not reachable")
            return 1
        log.info("Gateway is reachable")
    elif parsed_args.command == "check-config":
        if check_configuration():
            return 1
        log.info("Configuration looks complete")
    else:
        raise ValueError(f"Unsupported command: {parsed_args.command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    signal(SIGINT, sigint_handler)

    try:
        exit_code = _run(parsed_args)
    except (ValueError, DeclarationValidationError):
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    main()
