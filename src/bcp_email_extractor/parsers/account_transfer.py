"""Parser for BCP transfer notifications (own accounts, third parties, other banks)."""

from __future__ import annotations

import re
from datetime import datetime

from bcp_email_extractor.extraction.fields import (
    amount_pattern,
    compact,
    extract_first_match,
    parse_amount,
    sanitize,
    strip_trailing_labels,
)
from bcp_email_extractor.models import (
    DigitalTransferDetails,
    ExchangeRate,
    NormalizedTransaction,
    TransactionDetails,
    TransactionTemplate,
)
from bcp_email_extractor.parsers.common import (
    CHANNEL_RE,
    MASKED_ACCOUNT_RE,
    SignalTracker,
    extract_operation_id,
    join_account_ref,
    require_amount,
    resolve_occurred_at,
)

# Most specific label first: "Importe" also appears on fee and purchase mails.
AMOUNT_PATTERNS = [
    amount_pattern(r"Monto\s+(?:transferido|de\s+la\s+operaci[oó]?n|enviado)"),
    amount_pattern(r"Monto\s+total"),
    amount_pattern(r"Total\s+cobrado\s+al\s+tipo\s+de\s+cambio"),
    amount_pattern(r"Importe"),
]
COMMISSION_PATTERNS = [
    amount_pattern(r"Comisi[oó]?n"),
    amount_pattern(r"Costo\s+de\s+env[ií]?o"),
]
TOTAL_CHARGED_PATTERNS = [
    amount_pattern(r"Total\s+cobrado"),
    amount_pattern(r"Total\s+pagado"),
    amount_pattern(r"Importe\s+total"),
]

ORIGIN_PATTERNS = [
    re.compile(r"Cuenta\s+de\s+origen:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Cuenta\s+origen:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"\bDesde:?\s*([^\n]+)", re.IGNORECASE),
]
DESTINATION_PATTERNS = [
    re.compile(r"Cuenta\s+destino:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"(?<!Banco\s)\bDestino:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Enviado\s+a:?\s*([^\n]+)", re.IGNORECASE),
]
RECIPIENT_PATTERNS = [
    re.compile(r"Beneficiario:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Titular\s+destino:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Enviado\s+a:?\s*([^\n]+)", re.IGNORECASE),
]
CCI_RE = re.compile(r"\bCCI:?\s*([0-9][0-9\- ]{9,})", re.IGNORECASE)
OPERATION_PERFORMED_RE = re.compile(r"Operaci[oó]?n\s+realizada:?\s*([^\n]+)", re.IGNORECASE)
DESTINATION_BANK_RE = re.compile(r"Banco\s+destino:?\s*([^\n]+)", re.IGNORECASE)
CURRENCY_LABEL_RE = re.compile(r"\bMoneda:?\s*([^\n]+)", re.IGNORECASE)
SENDING_TYPE_RE = re.compile(r"Tipo\s+de\s+env[ií]?o:?\s*([^\n]+)", re.IGNORECASE)
ORIGIN_LABEL_RE = re.compile(r"(?<!Cuenta\s)(?<!de\s)\bOrigen:\s*([^\n]+)", re.IGNORECASE)

# Boilerplate that trails the "Origen:" value when the body was not segmented.
ORIGIN_LABEL_TAILS = [
    re.compile(r"\s+Cuenta\s+de\s+origen.*$", re.IGNORECASE),
    re.compile(r"\s+Cuenta\s+destino.*$", re.IGNORECASE),
    re.compile(r"\s+Cuenta\s+de\s*$", re.IGNORECASE),
]

DEFAULT_CHANNEL = "online"


def parse_account_transfer(text: str, received_at: datetime | None = None) -> NormalizedTransaction:
    """Parse a transfer notification.

    Args:
        text: Normalized email body.
        received_at: Mailbox received time, used when the body has no date.

    Returns:
        NormalizedTransaction: The transfer, with ``details.digital_transfer``.

    Raises:
        AmountNotFoundError: If no transfer amount label matches.
        DateTimeNotFoundError: If no date can be resolved.
    """
    tracker = SignalTracker(TransactionTemplate.ACCOUNT_TRANSFER)

    amount = require_amount(text, AMOUNT_PATTERNS, tracker)
    commission = parse_amount(text, COMMISSION_PATTERNS)
    total_charged = parse_amount(text, TOTAL_CHARGED_PATTERNS)
    occurred_at = resolve_occurred_at(text, received_at, tracker)

    origin = tracker.record(
        sanitize(extract_first_match(text, ORIGIN_PATTERNS)), "account_origin_not_found"
    )
    origin_masked = sanitize(extract_first_match(text, MASKED_ACCOUNT_RE, group=0))
    destination = tracker.record(
        sanitize(extract_first_match(text, DESTINATION_PATTERNS)), "account_destination_not_found"
    )
    cci = tracker.record(sanitize(extract_first_match(text, CCI_RE)))
    channel = tracker.record(sanitize(extract_first_match(text, CHANNEL_RE)))
    operation_id = tracker.record(sanitize(extract_operation_id(text)), "operation_id_not_found")

    recipient = sanitize(extract_first_match(text, RECIPIENT_PATTERNS))
    destination_bank = sanitize(extract_first_match(text, DESTINATION_BANK_RE))
    operation_performed = sanitize(extract_first_match(text, OPERATION_PERFORMED_RE))
    currency_label = sanitize(extract_first_match(text, CURRENCY_LABEL_RE))
    sending_type = sanitize(extract_first_match(text, SENDING_TYPE_RE))
    origin_label = strip_trailing_labels(
        extract_first_match(text, ORIGIN_LABEL_RE), ORIGIN_LABEL_TAILS
    )

    transfer_details = compact(
        {
            "amount_sent": amount,
            "commission": commission,
            "total_charged": total_charged,
            "operation": operation_performed,
            "date": occurred_at,
            "recipient": recipient,
            "destination_bank": destination_bank,
            "currency": currency_label or amount.currency.value,
            "sending_type": sending_type,
            "origin": origin_masked or origin_label or origin,
        }
    )

    return NormalizedTransaction(
        template=TransactionTemplate.ACCOUNT_TRANSFER,
        occurred_at=occurred_at,
        amount=amount,
        exchange_rate=ExchangeRate(used=False),
        channel=channel or DEFAULT_CHANNEL,
        merchant=recipient,
        account_ref=join_account_ref(origen=origin, destino=destination, cci=cci),
        operation_id=operation_id,
        bank_dest=destination_bank,
        beneficiary=recipient,
        notes=tracker.joined_notes(),
        details=TransactionDetails(digital_transfer=DigitalTransferDetails(**transfer_details)),
        confidence=tracker.confidence,
    )
