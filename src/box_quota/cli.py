"""Command-line entry point that updates the storage quota for all enterprise users."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from box_quota import __version__
from box_quota.config import ValidationError, load_config, parse_quota
from box_quota.directory.client import AuthorizationError
from box_quota.orchestration.driver import quota_updater_from_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_USAGE = 2

AUDIT_LOGGER_NAME = "box_quota.audit"


def _quota_arg(value: str) -> int:
    try:
        return parse_quota(value)
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="box-quota-update",
        description="Updates the storage quota for all users in the enterprise.",
    )
    parser.add_argument(
        "-t",
        "--token",
        dest="access_token",
        help="Access token with enterprise management capability (env: BOX_ACCESS_TOKEN).",
    )
    parser.add_argument(
        "-q",
        "--quota",
        type=_quota_arg,
        help=(
            "New quota in bytes applied to all active users. Defaults to -1 (unlimited); "
            "values below -1 are rejected."
        ),
    )
    parser.add_argument(
        "-r",
        "--refresh",
        dest="refresh_token",
        help="Application refresh token, enables automatic token refresh.",
    )
    parser.add_argument(
        "-i", "--id", dest="client_id", help="Application client ID, enables automatic token refresh."
    )
    parser.add_argument(
        "-s",
        "--secret",
        dest="client_secret",
        help="Application client secret, enables automatic token refresh.",
    )
    parser.add_argument(
        "--audit-log",
        dest="audit_log_path",
        help="File receiving one record per updated or failed user (default: quota_update.log).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(audit_log_path: str, verbose: bool = False) -> logging.Handler:
    """Route diagnostics to stderr and audit records to ``audit_log_path``.

    Returns:
        The audit file handler, so the caller can close it.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    handler = logging.FileHandler(audit_log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.setLevel(logging.INFO)
    audit.addHandler(handler)
    audit.propagate = False
    return handler


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the quota update and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            {
                "access_token": args.access_token,
                "quota": args.quota,
                "refresh_token": args.refresh_token,
                "client_id": args.client_id,
                "client_secret": args.client_secret,
                "audit_log_path": args.audit_log_path,
            }
        )
    except ValidationError as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    handler = configure_logging(config.audit_log_path, verbose=args.verbose)
    try:
        if not config.refresh_enabled:
            logger.info("[main] refresh credentials not supplied; automatic token refresh disabled")
        driver = quota_updater_from_config(config)
        result = driver.run(config.quota)
    finally:
        audit = logging.getLogger(AUDIT_LOGGER_NAME)
        audit.removeHandler(handler)
        audit.propagate = True
        handler.close()

    # Terminate the self-overwriting progress line.
    print()
    print(
        f"Completed {result.completed}/{result.total_count}: "
        f"{result.updated} updated, {result.skipped} unchanged, {result.failed} failed"
    )
    if result.failed:
        print(
            f"{result.failed} failed update(s) are not counted as completed; "
            f"see {config.audit_log_path} for details."
        )
    if isinstance(result.error, AuthorizationError):
        print("[Error] Access token is no longer valid, maybe it has expired? Program will exit.")
        return EXIT_ABORTED
    if result.error is not None:
        print(f"[Error] {result.error}")
        return EXIT_ABORTED
    return EXIT_OK
