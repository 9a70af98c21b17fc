"""Command-line interface for the BCP email extractor.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from bcp_email_extractor import __version__
from bcp_email_extractor.config import Settings, get_settings
from bcp_email_extractor.dedup import DedupePolicy, dedupe_and_sort
from bcp_email_extractor.exceptions import BcpExtractorError, InputFormatError
from bcp_email_extractor.models import RawMessage, TransactionTemplate
from bcp_email_extractor.parsers import PARSERS
from bcp_email_extractor.pipeline import parse_bcp_email

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bcp-extract", description="BCP email extractor")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser(
        "parse",
        help="Extract transactions from plain-text BCP notification bodies",
    )
    parse_parser.add_argument("files", nargs="+", type=Path, help="Plain-text email bodies")
    parse_parser.add_argument(
        "--received-at",
        default=None,
        help="ISO-8601 received time, used when a body carries no date",
    )
    parse_parser.add_argument("--subject", default=None, help="Email subject line")
    parse_parser.add_argument(
        "--template",
        dest="templates",
        action="append",
        choices=[template.value for template in PARSERS],
        default=None,
        help="Template parser to try (repeatable; default: settings template_order)",
    )
    parse_parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help="Skip transactions below this confidence (default: settings min_confidence)",
    )

    dedupe_parser = subparsers.add_parser(
        "dedupe",
        help="Deduplicate and sort a JSON array of transactions",
    )
    dedupe_parser.add_argument("file", type=Path, help="JSON file holding an array of transactions")
    dedupe_parser.add_argument(
        "--keep",
        choices=[policy.value for policy in DedupePolicy],
        default=DedupePolicy.FIRST_SEEN.value,
        help="Which occurrence of a duplicate survives (default: first)",
    )

    return parser


def _configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _dump(payload: Any, settings: Settings) -> str:
    return json.dumps(payload, indent=settings.json_indent, ensure_ascii=False)


def _parse_received_at(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise InputFormatError(f"Invalid --received-at value: {raw}") from e


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InputFormatError(f"Cannot read {path}: {e}") from e


def _cmd_parse(args: argparse.Namespace, settings: Settings) -> int:
    received_at = _parse_received_at(args.received_at)
    template_order = (
        [TransactionTemplate(value) for value in args.templates]
        if args.templates
        else settings.template_order
    )
    min_confidence = (
        settings.min_confidence if args.min_confidence is None else args.min_confidence
    )

    printed = 0
    for path in args.files:
        message = RawMessage(
            body=_read_text(path),
            received_at=received_at,
            subject=args.subject,
            message_id=path.name,
        )
        result = parse_bcp_email(message, template_order)

        if result.transaction is None:
            logger.warning("no_transaction_extracted", file=str(path), notes=result.notes)
            continue
        if result.confidence < min_confidence:
            logger.info(
                "transaction_below_min_confidence",
                file=str(path),
                confidence=result.confidence,
                min_confidence=min_confidence,
            )
            continue

        logger.info(
            "transaction_extracted",
            file=str(path),
            template=result.transaction.template.value,
            winner=result.winner.value,
            reason=result.reason.value,
        )
        print(_dump(result.transaction.to_payload(), settings))
        printed += 1

    return 0 if printed else 1


def _cmd_dedupe(args: argparse.Namespace, settings: Settings) -> int:
    try:
        records = json.loads(_read_text(args.file))
    except json.JSONDecodeError as e:
        raise InputFormatError(f"{args.file} is not valid JSON: {e}") from e
    if not isinstance(records, list):
        raise InputFormatError(f"{args.file} must hold a JSON array")

    unique = dedupe_and_sort(records, keep=DedupePolicy(args.keep))
    print(_dump(unique, settings))
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the BCP email extractor CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    _configure_logging(settings)

    logger.debug("bcp_extractor_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "parse":
            return _cmd_parse(parsed, settings)
        if parsed.command == "dedupe":
            return _cmd_dedupe(parsed, settings)
    except BcpExtractorError as e:
        logger.error("command_failed", command=parsed.command, error=str(e))
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
