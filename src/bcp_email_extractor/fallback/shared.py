"""Permissive helpers used by the template-agnostic fallback pass."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from bcp_email_extractor.extraction.fields import (
    NUMERIC_DATE,
    CLOCK_TIME,
    parse_date,
    parse_spanish_datetime,
)
from bcp_email_extractor.extraction.normalize import parse_money_to_canonical
from bcp_email_extractor.models import AmountInfo, Currency
from bcp_email_extractor.utils import REPLACEMENT_CHAR


@dataclass(frozen=True)
class CurrencyAmountPattern:
    regex: re.Pattern[str]
    currency: Currency


# The currency symbol is the anchor here, not a label.
AMOUNT_PATTERNS: tuple[CurrencyAmountPattern, ...] = (
    CurrencyAmountPattern(re.compile(r"S/\.?\s*([\d.,]+)", re.IGNORECASE), Currency.PEN),
    CurrencyAmountPattern(re.compile(r"\bSOLES?\s*([\d.,]+)", re.IGNORECASE), Currency.PEN),
    CurrencyAmountPattern(re.compile(r"\bUS\$?\s*([\d.,]+)", re.IGNORECASE), Currency.USD),
    CurrencyAmountPattern(re.compile(r"\bUSD\s*([\d.,]+)", re.IGNORECASE), Currency.USD),
    CurrencyAmountPattern(re.compile(r"\$\s*([\d.,]+)"), Currency.USD),
)

ANY_NUMERIC_DATETIME_RE = re.compile(
    rf"{NUMERIC_DATE}(?:(?:\s*[-,]\s*|\s+){CLOCK_TIME})?", re.IGNORECASE
)

_MERCHANT_TAILS = (
    re.compile(r"n[uú]?mero de operaci[oó]?n.*$", re.IGNORECASE),
    re.compile(r"no reconoces esta operaci[oó]?n\??.*$", re.IGNORECASE),
    re.compile(r"comun[ií]cate.*$", re.IGNORECASE),
    re.compile(r"\(\d{1,4}\)\s*\d{2,4}[-\s]?\d{3,4}(?:\s*anexo\s*\*?\d+)?", re.IGNORECASE),
    re.compile(r"\banexo\s+\*?\d+\b", re.IGNORECASE),
    re.compile(r"[!?;:\-]+$"),
    re.compile(r",\s*$"),
)


def extract_amount_and_currency(text: str | None) -> AmountInfo | None:
    """Find the first currency-prefixed amount anywhere in ``text``."""
    if not text:
        return None

    for pattern in AMOUNT_PATTERNS:
        match = pattern.regex.search(text)
        if not match:
            continue
        amount = parse_money_to_canonical(None, match.group(1))
        if amount is None:
            continue
        return amount.model_copy(update={"currency": pattern.currency})

    return None


def find_any_datetime(text: str | None) -> datetime | None:
    """Textual Spanish date first, then any ``dd/mm/yyyy [hh:mm]`` in the text."""
    if not text:
        return None
    return parse_spanish_datetime(text) or parse_date(text, ANY_NUMERIC_DATETIME_RE)


def sanitize_merchant_name(raw: str | None) -> str | None:
    """Strip help-desk phone numbers and trailing boilerplate from a merchant."""
    if not raw:
        return None

    cleaned = re.sub(r"\s+", " ", raw.replace(REPLACEMENT_CHAR, "")).strip()
    for pattern in _MERCHANT_TAILS:
        cleaned = pattern.sub("", cleaned).strip()

    return cleaned or None
