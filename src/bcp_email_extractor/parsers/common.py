"""Building blocks shared by the template parsers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from bcp_email_extractor.exceptions import AmountNotFoundError, DateTimeNotFoundError
from bcp_email_extractor.extraction.fields import (
    Patterns,
    compute_confidence,
    extract_first_match,
    numeric_datetime_pattern,
    parse_amount,
    parse_date,
    parse_spanish_datetime,
)
from bcp_email_extractor.models import AmountInfo, TransactionTemplate

T = TypeVar("T")

# Number of signals each template can match; confidence is signals / target.
CONFIDENCE_TARGETS: dict[TransactionTemplate, int] = {
    TransactionTemplate.ACCOUNT_TRANSFER: 6,
    TransactionTemplate.FEE_COMMISSION: 5,
    TransactionTemplate.ONLINE_PURCHASE: 5,
    TransactionTemplate.SERVICE_PAYMENT: 6,
}

NOTE_DATETIME_FALLBACK = "datetime_fallback_received_at"

# An operation id must contain at least one digit, so "Operacion realizada:"
# or "Monto de la operacion: S/ 10" never yield a bogus id.
OPERATION_ID = r"([A-Z0-9-]*\d[A-Z0-9-]*)"
OPERATION_NUMBER_RE = re.compile(
    rf"N[uú]?mero\s+de\s+operaci[oó]?n:?\s*{OPERATION_ID}", re.IGNORECASE
)
OPERATION_RE = re.compile(rf"\bOperaci[oó]?n:?\s*{OPERATION_ID}", re.IGNORECASE)

STRICT_DATETIME_RE = numeric_datetime_pattern()
TEXTUAL_DATETIME_LINE_RE = re.compile(r"Fecha\s+y\s+hora:?\s*([^\n]+)", re.IGNORECASE)
CHANNEL_RE = re.compile(r"\bCanal:?\s*([^\n]+)", re.IGNORECASE)
MASKED_ACCOUNT_RE = re.compile(r"\*{2,}\s*\d{3,4}")


@dataclass
class SignalTracker:
    """Counts matched optional signals and collects diagnostic notes.

    Each field is recorded exactly once, so a signal can never be counted twice.
    """

    template: TransactionTemplate
    signals: int = 0
    notes: list[str] = field(default_factory=list)

    def record(self, value: T, missing_note: str | None = None) -> T:
        if value:
            self.signals += 1
        elif missing_note:
            self.notes.append(missing_note)
        return value

    def note(self, text: str) -> None:
        self.notes.append(text)

    @property
    def confidence(self) -> float:
        return compute_confidence(self.signals, CONFIDENCE_TARGETS[self.template])

    def joined_notes(self) -> str | None:
        return "; ".join(self.notes) if self.notes else None


def require_amount(text: str, patterns: Patterns, tracker: SignalTracker) -> AmountInfo:
    """Extract the amount or raise ``AmountNotFoundError``."""
    amount = parse_amount(text, patterns)
    if amount is None:
        raise AmountNotFoundError()
    tracker.record(amount)
    return amount


def resolve_occurred_at(
    text: str,
    received_at: datetime | None,
    tracker: SignalTracker,
) -> datetime:
    """Resolve the transaction time: numeric date, textual date, then received time.

    Raises:
        DateTimeNotFoundError: If the body has no date and no received time exists.
    """
    occurred_at = parse_date(text, STRICT_DATETIME_RE)
    if occurred_at is None:
        occurred_at = parse_spanish_datetime(extract_first_match(text, TEXTUAL_DATETIME_LINE_RE))

    if occurred_at is not None:
        tracker.record(occurred_at)
        return occurred_at

    if received_at is None:
        raise DateTimeNotFoundError()

    tracker.note(NOTE_DATETIME_FALLBACK)
    return received_at


def extract_operation_id(text: str, *, number_first: bool = True) -> str | None:
    patterns = [OPERATION_NUMBER_RE, OPERATION_RE]
    if not number_first:
        patterns.reverse()
    return extract_first_match(text, patterns)


def join_account_ref(**parts: str | None) -> str | None:
    """Render ``key:value`` pairs as ``origen:1234 | destino:5678``."""
    rendered = [f"{key}:{value}" for key, value in parts.items() if value]
    return " | ".join(rendered) if rendered else None
