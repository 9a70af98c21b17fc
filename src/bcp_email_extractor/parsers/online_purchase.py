"""Parser for BCP online card purchase notifications."""

from __future__ import annotations

import re
from datetime import datetime

from bcp_email_extractor.extraction.fields import (
    amount_pattern,
    compact,
    extract_first_match,
    mask_card,
    sanitize,
)
from bcp_email_extractor.models import (
    CardPaymentDetails,
    ExchangeRate,
    NormalizedTransaction,
    TransactionDetails,
    TransactionTemplate,
)
from bcp_email_extractor.parsers.common import (
    CHANNEL_RE,
    SignalTracker,
    extract_operation_id,
    require_amount,
    resolve_occurred_at,
)

AMOUNT_PATTERNS = [
    amount_pattern(r"Monto\s+(?:de\s+)?compra"),
    amount_pattern(r"Importe"),
]

# Two phrasings of "card ending in": "Tarjeta terminada en 1234" and
# "Tarjeta (terminada|numero|n°|#) ****1234".
CARD_PATTERNS = [
    re.compile(r"Tarjeta\s+terminada\s+en:?\s*[*xX]*\s*(\d{4})\b", re.IGNORECASE),
    re.compile(
        r"Tarjeta(?:\s+terminada)?(?:\s+(?:n[uú]?mero|n[°º.]?|no\.?|#))?:?\s*[*xX]*\s*(\d{4})\b",
        re.IGNORECASE,
    ),
]
MERCHANT_PATTERNS = [
    re.compile(r"Comercio:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Establecimiento:?\s*([^\n]+)", re.IGNORECASE),
]
LOCATION_RE = re.compile(r"\bLugar(?:\s+de\s+compra)?:?\s*([^\n]+)", re.IGNORECASE)

DEFAULT_CHANNEL = "online"


def parse_online_purchase(text: str, received_at: datetime | None = None) -> NormalizedTransaction:
    """Parse an online purchase notification.

    The card suffix is kept raw in ``card_last4`` and masked as ``****NNNN``
    inside ``details.card_payment``.

    Raises:
        AmountNotFoundError: If no purchase amount label matches.
        DateTimeNotFoundError: If no date can be resolved.
    """
    tracker = SignalTracker(TransactionTemplate.ONLINE_PURCHASE)

    amount = require_amount(text, AMOUNT_PATTERNS, tracker)
    occurred_at = resolve_occurred_at(text, received_at, tracker)

    card_last4 = tracker.record(
        sanitize(extract_first_match(text, CARD_PATTERNS)), "card_last4_not_found"
    )
    merchant = tracker.record(
        sanitize(extract_first_match(text, MERCHANT_PATTERNS)), "merchant_not_found"
    )
    channel = tracker.record(sanitize(extract_first_match(text, CHANNEL_RE)), "channel_not_found")
    location = sanitize(extract_first_match(text, LOCATION_RE))
    operation_id = sanitize(extract_operation_id(text, number_first=False))

    card_details = compact(
        {
            "amount": amount,
            "date": occurred_at,
            "card_number": mask_card(card_last4),
            "merchant": merchant,
            "operation_id": operation_id,
        }
    )

    return NormalizedTransaction(
        template=TransactionTemplate.ONLINE_PURCHASE,
        occurred_at=occurred_at,
        amount=amount,
        exchange_rate=ExchangeRate(used=False),
        channel=channel or DEFAULT_CHANNEL,
        merchant=merchant,
        location=location,
        card_last4=card_last4,
        operation_id=operation_id,
        notes=tracker.joined_notes(),
        details=TransactionDetails(card_payment=CardPaymentDetails(**card_details)),
        confidence=tracker.confidence,
    )
