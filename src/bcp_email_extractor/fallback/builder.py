"""Build a NormalizedTransaction from loosely extracted fallback fields."""

from __future__ import annotations

import re
from datetime import datetime

from bcp_email_extractor.models import (
    ExchangeRate,
    FallbackFields,
    NormalizedTransaction,
    TransactionTemplate,
)
from bcp_email_extractor.parsers.common import NOTE_DATETIME_FALLBACK

# Ordered: the first template whose hint matches the haystack wins.
TEMPLATE_INFERENCE_HINTS: tuple[tuple[TransactionTemplate, re.Pattern[str]], ...] = (
    (
        TransactionTemplate.ACCOUNT_TRANSFER,
        re.compile(r"transferencia|transferid[oa]|envio|\bcci\b", re.IGNORECASE),
    ),
    (
        TransactionTemplate.SERVICE_PAYMENT,
        re.compile(r"servicio|pago de servicio|recibo|factura", re.IGNORECASE),
    ),
    (
        TransactionTemplate.ONLINE_PURCHASE,
        re.compile(r"compras? (?:en linea|online|por internet)|pago en linea", re.IGNORECASE),
    ),
    (TransactionTemplate.CARD_PURCHASE, re.compile(r"compra|consumo", re.IGNORECASE)),
    (TransactionTemplate.ATM_WITHDRAWAL, re.compile(r"retiro|cajero", re.IGNORECASE)),
    (
        TransactionTemplate.INCOMING_CREDIT,
        re.compile(r"abono|deposito|ingreso|devolucion|devuelto|reembolso", re.IGNORECASE),
    ),
    (
        TransactionTemplate.FEE_COMMISSION,
        re.compile(r"comision|cargo por servicio", re.IGNORECASE),
    ),
)

# Transfers are the most common notification; this is a policy default,
# not something the text proved.
DEFAULT_FALLBACK_TEMPLATE = TransactionTemplate.ACCOUNT_TRANSFER

# Confidence in tenths: base 0.6, floor 0.7, cap 0.95.
BASE_CONFIDENCE_TENTHS = 6
MIN_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.95


def _haystack(fields: FallbackFields) -> str:
    parts = (
        fields.operation_type,
        fields.sending_type,
        fields.payment_type,
        fields.merchant,
        fields.channel,
        fields.service_name,
        fields.service_holder,
        fields.service_code,
        fields.normalized_text,
        fields.subject,
    )
    return " ".join(part for part in parts if part).lower()


def infer_template(fields: FallbackFields) -> TransactionTemplate:
    """Pick the first template whose keywords appear in any text-bearing field."""
    haystack = _haystack(fields)
    for template, hint in TEMPLATE_INFERENCE_HINTS:
        if hint.search(haystack):
            return template
    return DEFAULT_FALLBACK_TEMPLATE


def build_notes(fields: FallbackFields) -> list[str]:
    """Human-readable lines for the reconciliation fields that were found."""
    candidates = (
        ("Beneficiario", fields.beneficiary),
        ("Banco destino", fields.bank_dest),
        ("Servicio", fields.service_name),
        ("Titular", fields.service_holder),
        ("Codigo", fields.service_code),
        (
            "Cuenta destino",
            f"****{fields.beneficiary_account}" if fields.beneficiary_account else None,
        ),
    )
    return [f"{label}: {value}" for label, value in candidates if value]


def resolve_merchant(fields: FallbackFields, template: TransactionTemplate) -> str | None:
    if fields.merchant:
        return fields.merchant
    if template is TransactionTemplate.ACCOUNT_TRANSFER:
        return fields.beneficiary
    if template is TransactionTemplate.SERVICE_PAYMENT:
        return fields.service_name or fields.beneficiary
    return None


def compute_fallback_confidence(fields: FallbackFields) -> float:
    tenths = BASE_CONFIDENCE_TENTHS
    if fields.date:
        tenths += 1
    if fields.operation_number:
        tenths += 1
    if fields.operation_type or fields.merchant or fields.beneficiary:
        tenths += 1
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, tenths / 10))


def build_fallback_transaction(
    fields: FallbackFields,
    received_at: datetime | None = None,
) -> NormalizedTransaction | None:
    """Turn fallback fields into a transaction.

    Args:
        fields: Output of the permissive text pass.
        received_at: Mailbox received time, used when the body has no date.

    Returns:
        The transaction, or None when there is no amount, or no date at all.
    """
    if fields.amount_info is None:
        return None

    notes = build_notes(fields)
    occurred_at = fields.date
    if occurred_at is None:
        if received_at is None:
            return None
        occurred_at = received_at
        notes.append(NOTE_DATETIME_FALLBACK)

    template = infer_template(fields)

    return NormalizedTransaction(
        template=template,
        occurred_at=occurred_at,
        amount=fields.amount_info,
        exchange_rate=ExchangeRate(used=False),
        channel=fields.channel,
        merchant=resolve_merchant(fields, template),
        card_last4=fields.card_last4,
        account_ref=fields.origin_account,
        operation_id=fields.operation_number,
        bank_dest=fields.bank_dest,
        beneficiary=fields.beneficiary,
        service_name=fields.service_name,
        service_holder=fields.service_holder,
        service_code=fields.service_code,
        beneficiary_account=fields.beneficiary_account,
        notes=" | ".join(notes) if notes else None,
        confidence=compute_fallback_confidence(fields),
    )
