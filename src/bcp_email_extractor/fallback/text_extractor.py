"""Template-agnostic field extraction.

This pass does not know which notification it is reading. It looks for a
currency-prefixed amount, any date, and whatever ``label: value`` pairs it
recognizes, and hands the loose result to the fallback builder.
"""

from __future__ import annotations

import re

from bcp_email_extractor.extraction.fields import sanitize
from bcp_email_extractor.extraction.normalize import normalize_email_body
from bcp_email_extractor.fallback.shared import (
    extract_amount_and_currency,
    find_any_datetime,
    sanitize_merchant_name,
)
from bcp_email_extractor.models import FallbackFields
from bcp_email_extractor.parsers.common import OPERATION_ID
from bcp_email_extractor.utils import strip_accents

OPERATION_TYPE_RE = re.compile(r"operacion (?:realizada|tipo):?\s*([^\n]+)", re.IGNORECASE)
OPERATION_NUMBER_RE = re.compile(
    rf"\b(?:numero de )?operacion[:\s]+{OPERATION_ID}", re.IGNORECASE
)
CHANNEL_RE = re.compile(r"\bcanal[:\s]+([^\n]+)", re.IGNORECASE)
BENEFICIARY_RE = re.compile(r"\bbeneficiario[:\s]+([^\n]+)", re.IGNORECASE)
CARD_NUMBER_RE = re.compile(
    r"(?:numero de tarjeta(?: de credito| de debito)?|tarjeta terminada en)[^\d\n]*(\d{4})",
    re.IGNORECASE,
)
BENEFICIARY_ACCOUNT_RE = re.compile(r"enviado a[^\n]*\n?\s*\*+\s*(\d{4})", re.IGNORECASE)
ORIGIN_ACCOUNT_RE = re.compile(
    r"cuenta (?:digital|de ahorros|de origen|origen)[^\n]*\n?\s*\*+\s*(\d{4})", re.IGNORECASE
)
PAYMENT_IN_RE = re.compile(r"pago en\s+([^.\n]+)", re.IGNORECASE)
CONSUMPTION_IN_RE = re.compile(r"consumo[^\n]*?\ben\s+([^.\n]+)", re.IGNORECASE)
TRAILING_MASKED_DIGITS_RE = re.compile(r"\s*\*+\s*\d{4}$")
TRAILING_DIGITS_RE = re.compile(r"(\d{4})$")
_MAP_SPLIT_RE = re.compile(r"\s*[:\t]\s*")


def build_label_map(*contents: str) -> dict[str, str]:
    """Map lower-cased labels to their values, first occurrence winning.

    Each line of each content is split at its first ``:`` or tab.
    """
    mapping: dict[str, str] = {}
    for content in contents:
        for line in content.split("\n"):
            parts = _MAP_SPLIT_RE.split(line.strip(), maxsplit=1)
            if len(parts) < 2:
                continue
            key = parts[0].lower()
            value = sanitize(parts[1])
            if key and value and key not in mapping:
                mapping[key] = value
    return mapping


def _search(pattern: re.Pattern[str], *contents: str) -> str | None:
    for content in contents:
        match = pattern.search(content)
        if match:
            return sanitize(match.group(1))
    return None


def derive_merchant(
    normalized_text: str, label_map: dict[str, str], subject: str | None
) -> str | None:
    """Find the most likely merchant when no explicit merchant label exists."""
    for label in ("empresa", "nombre del comercio", "comercio"):
        merchant = sanitize_merchant_name(label_map.get(label))
        if merchant:
            return merchant

    match = PAYMENT_IN_RE.search(normalized_text)
    if match:
        merchant = sanitize_merchant_name(f"Pago en {match.group(1).strip()}")
        if merchant:
            return merchant

    match = CONSUMPTION_IN_RE.search(normalized_text)
    if match:
        merchant = sanitize_merchant_name(match.group(1))
        if merchant:
            return merchant

    if subject:
        match = PAYMENT_IN_RE.search(strip_accents(subject))
        if match:
            return sanitize_merchant_name(f"Pago en {match.group(1).strip()}")

    return None


def extract_fallback_fields(text: str | None, subject: str | None = None) -> FallbackFields:
    """Run the permissive pass over a plain-text body.

    Args:
        text: Raw (not yet normalized) plain-text body.
        subject: Optional subject line, used for merchant derivation and
            template inference.

    Returns:
        The fields that could be found; everything else is None.
    """
    raw = text or ""
    normalized_text = normalize_email_body(raw)
    ascii_content = strip_accents(raw.replace("\r", "").replace("\u00a0", " "))
    label_map = build_label_map(normalized_text, ascii_content)

    amount_info = extract_amount_and_currency(normalized_text) or extract_amount_and_currency(
        ascii_content
    )

    beneficiary = _search(BENEFICIARY_RE, normalized_text)
    if beneficiary is None and label_map.get("enviado a"):
        beneficiary = sanitize(TRAILING_MASKED_DIGITS_RE.sub("", label_map["enviado a"]))

    service_code = label_map.get("codigo de usuario") or label_map.get("codigo de cliente")

    origin_account = None
    origin_label = label_map.get("cuenta de origen")
    if origin_label:
        digits = TRAILING_DIGITS_RE.search(origin_label)
        origin_account = digits.group(1) if digits else None
    if origin_account is None:
        origin_account = _search(ORIGIN_ACCOUNT_RE, ascii_content, normalized_text)

    card_last4 = _search(CARD_NUMBER_RE, normalized_text)
    if card_last4 is None and label_map.get("numero de tarjeta de debito"):
        digits = TRAILING_DIGITS_RE.search(label_map["numero de tarjeta de debito"])
        card_last4 = digits.group(1) if digits else None

    merchant = derive_merchant(normalized_text, label_map, subject)

    return FallbackFields(
        amount_info=amount_info,
        date=find_any_datetime(normalized_text),
        operation_type=_search(OPERATION_TYPE_RE, normalized_text),
        operation_number=_search(OPERATION_NUMBER_RE, normalized_text),
        channel=_search(CHANNEL_RE, normalized_text) or label_map.get("canal"),
        merchant=merchant,
        beneficiary=beneficiary,
        bank_dest=label_map.get("banco destino"),
        service_name=label_map.get("servicio"),
        service_holder=label_map.get("titular del servicio"),
        service_code=service_code,
        card_last4=card_last4,
        beneficiary_account=_search(BENEFICIARY_ACCOUNT_RE, ascii_content, normalized_text),
        origin_account=origin_account,
        sending_type=label_map.get("tipo de envio"),
        payment_type=label_map.get("tipo de pago"),
        normalized_text=normalized_text or None,
        subject=sanitize(subject),
    )
