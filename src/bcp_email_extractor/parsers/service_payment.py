"""Parser for BCP utility/service bill payment notifications."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from bcp_email_extractor.extraction.fields import (
    amount_pattern,
    compact,
    extract_first_match,
    sanitize,
    strip_trailing_labels,
)
from bcp_email_extractor.models import (
    ExchangeRate,
    NormalizedTransaction,
    ServicePaymentDetails,
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

AMOUNT_PATTERNS = [
    amount_pattern(r"Monto\s+(?:del\s+)?pago"),
    amount_pattern(r"Monto\s+pagado"),
    amount_pattern(r"Monto\s+total\s+pagado"),
    amount_pattern(r"Monto\s+total"),
    amount_pattern(r"Importe\s+pagado"),
]
COMPANY_RE = re.compile(r"\bEmpresa:\s*([^\n]+)", re.IGNORECASE)
SERVICE_PATTERNS = [
    re.compile(r"(?<!del\s)\bServicio:\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Empresa\s+servicio:?\s*([^\n]+)", re.IGNORECASE),
]
SERVICE_HOLDER_RE = re.compile(r"Titular\s+del\s+servicio:?\s*([^\n]+)", re.IGNORECASE)
OPERATION_PERFORMED_RE = re.compile(r"Operaci[oó]?n\s+realizada:?\s*([^\n]+)", re.IGNORECASE)
ORIGIN_PATTERNS = [
    re.compile(r"Cuenta\s+de\s+origen:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"Cuenta\s+origen:?\s*([^\n]+)", re.IGNORECASE),
]
CUSTOMER_CODE_TAILS = [re.compile(r"\s+Cuenta\s+de.*$", re.IGNORECASE)]

DEFAULT_CHANNEL = "online"
MIN_STRICT_CODE_DIGITS = 6


class CodeReliability(str, Enum):
    """How much a customer-code label can be trusted."""

    # Generic labels: only alphanumeric codes or 6+ digit numbers are accepted.
    STRICT = "strict"
    # Contract/supply labels: any non-empty value is accepted.
    LENIENT = "lenient"


@dataclass(frozen=True)
class CodePattern:
    regex: re.Pattern[str]
    reliability: CodeReliability

    def accepts(self, code: str) -> bool:
        if self.reliability is CodeReliability.LENIENT:
            return bool(code)
        has_letters = re.search(r"[A-Za-z]", code) is not None
        digit_count = sum(ch.isdigit() for ch in code)
        return has_letters or digit_count >= MIN_STRICT_CODE_DIGITS


CUSTOMER_CODE_PATTERNS = [
    CodePattern(
        re.compile(r"C[oó]?digo\s+de\s+cliente:?\s*([^\n]+)", re.IGNORECASE),
        CodeReliability.STRICT,
    ),
    CodePattern(
        re.compile(r"C[oó]?digo\s+de\s+usuario:?\s*([^\n]+)", re.IGNORECASE),
        CodeReliability.STRICT,
    ),
    CodePattern(re.compile(r"\bContrato:?\s*([^\n]+)", re.IGNORECASE), CodeReliability.LENIENT),
    CodePattern(re.compile(r"\bSuministro:?\s*([^\n]+)", re.IGNORECASE), CodeReliability.LENIENT),
]


def extract_customer_code(text: str) -> str | None:
    """Return the customer/contract code if the first labelled value is reliable.

    The first label that appears decides; an unreliable value (e.g. a short
    number behind "Codigo de cliente") is dropped rather than replaced by a
    weaker label further down the list.
    """
    for pattern in CUSTOMER_CODE_PATTERNS:
        raw = extract_first_match(text, pattern.regex)
        if raw is None:
            continue
        code = strip_trailing_labels(raw, CUSTOMER_CODE_TAILS)
        if code and pattern.accepts(code):
            return code
        return None
    return None


def parse_service_payment(text: str, received_at: datetime | None = None) -> NormalizedTransaction:
    """Parse a service payment.

    Raises:
        AmountNotFoundError: If no payment amount label matches.
        DateTimeNotFoundError: If no date can be resolved.
    """
    tracker = SignalTracker(TransactionTemplate.SERVICE_PAYMENT)

    amount = require_amount(text, AMOUNT_PATTERNS, tracker)
    occurred_at = resolve_occurred_at(text, received_at, tracker)

    company = sanitize(extract_first_match(text, COMPANY_RE))
    service = tracker.record(
        sanitize(extract_first_match(text, SERVICE_PATTERNS)) or company, "service_not_found"
    )
    service_holder = sanitize(extract_first_match(text, SERVICE_HOLDER_RE))
    operation_performed = sanitize(extract_first_match(text, OPERATION_PERFORMED_RE))
    customer_code = tracker.record(extract_customer_code(text), "customer_code_not_found")
    origin = tracker.record(
        sanitize(extract_first_match(text, ORIGIN_PATTERNS)), "account_origin_not_found"
    )
    origin_masked = sanitize(extract_first_match(text, MASKED_ACCOUNT_RE, group=0))
    channel = tracker.record(sanitize(extract_first_match(text, CHANNEL_RE)))
    operation_id = tracker.record(sanitize(extract_operation_id(text)), "operation_id_not_found")

    service_details = compact(
        {
            "company": company,
            "service": service,
            "service_holder": service_holder,
            "user_code": customer_code,
            "origin_account": origin_masked or origin,
            "operation": operation_performed,
        }
    )

    return NormalizedTransaction(
        template=TransactionTemplate.SERVICE_PAYMENT,
        occurred_at=occurred_at,
        amount=amount,
        exchange_rate=ExchangeRate(used=False),
        channel=channel or DEFAULT_CHANNEL,
        merchant=company or service,
        account_ref=join_account_ref(codigo=customer_code, origen=origin),
        operation_id=operation_id,
        service_name=service,
        service_holder=service_holder,
        service_code=customer_code,
        notes=tracker.joined_notes(),
        details=(
            TransactionDetails(service_payment=ServicePaymentDetails(**service_details))
            if service_details
            else None
        ),
        confidence=tracker.confidence,
    )
