"""Parser for BCP fee and commission charge notifications."""

from __future__ import annotations

import re
from datetime import datetime

from bcp_email_extractor.extraction.fields import amount_pattern, extract_first_match, sanitize
from bcp_email_extractor.models import ExchangeRate, NormalizedTransaction, TransactionTemplate
from bcp_email_extractor.parsers.common import (
    CHANNEL_RE,
    SignalTracker,
    extract_operation_id,
    join_account_ref,
    require_amount,
    resolve_occurred_at,
)

AMOUNT_PATTERNS = [
    amount_pattern(r"Monto\s+(?:de\s+)?comisi[oó]?n"),
    amount_pattern(r"Importe"),
]
ACCOUNT_AFFECTED_RE = re.compile(r"Cuenta\s+afectada:?\s*([^\n]+)", re.IGNORECASE)
MOTIVE_RE = re.compile(r"\bMotivo(?:\s+del\s+cargo)?:?\s*([^\n]+)", re.IGNORECASE)

DEFAULT_CHANNEL = "other"


def parse_fee_commission(text: str, received_at: datetime | None = None) -> NormalizedTransaction:
    """Parse a fee/commission charge.

    Fee mails have no merchant; the charge motive stands in for it and is also
    echoed in the notes as ``motivo:<value>``.
    """
    tracker = SignalTracker(TransactionTemplate.FEE_COMMISSION)

    amount = require_amount(text, AMOUNT_PATTERNS, tracker)
    occurred_at = resolve_occurred_at(text, received_at, tracker)

    account_affected = tracker.record(
        sanitize(extract_first_match(text, ACCOUNT_AFFECTED_RE)), "account_affected_not_found"
    )
    motive = tracker.record(sanitize(extract_first_match(text, MOTIVE_RE)), "motive_not_found")
    if motive:
        tracker.note(f"motivo:{motive}")
    channel = tracker.record(sanitize(extract_first_match(text, CHANNEL_RE)))
    operation_id = tracker.record(
        sanitize(extract_operation_id(text, number_first=False)), "operation_id_not_found"
    )

    return NormalizedTransaction(
        template=TransactionTemplate.FEE_COMMISSION,
        occurred_at=occurred_at,
        amount=amount,
        exchange_rate=ExchangeRate(used=False),
        channel=channel or DEFAULT_CHANNEL,
        merchant=motive,
        account_ref=join_account_ref(afectada=account_affected),
        operation_id=operation_id,
        notes=tracker.joined_notes(),
        confidence=tracker.confidence,
    )
