"""Field extractors shared by the template parsers.

Every helper here is total: a missing field is returned as ``None`` and never
raised. Only the parsers decide whether an absence is fatal.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from bcp_email_extractor.extraction.normalize import (
    LABEL_BOUNDARY_RE,
    LIMA_TZ,
    parse_datetime_lima,
    parse_money_to_canonical,
    parse_time_components,
)
from bcp_email_extractor.models import AmountInfo
from bcp_email_extractor.utils import strip_accents

Patterns = re.Pattern[str] | Sequence[re.Pattern[str]]

CURRENCY_TOKEN = r"((?:S/\.?|US\$|USD|\$|PEN)?)"
AMOUNT_NUMBER = r"([0-9][0-9.,]*)"
NUMERIC_DATE = r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})"
CLOCK_TIME = r"(\d{1,2}:\d{2}(?:\s*(?:a\.\s*m\.|p\.\s*m\.|AM|PM))?)"

MONTHS: dict[str, int] = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "setiembre": 9,
    "septiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

_SPANISH_DATETIME_RE = re.compile(
    r"(\d{1,2})\s+de\s+([a-z]+)\s+(?:de|del)?\s*(\d{4})"
    r"(?:(?:\s*[-–,]\s*|\s+a\s+las\s+|\s+)(\d{1,2}:\d{2})\s*([ap]\.?\s*m\.?)?)?",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


def amount_pattern(label: str) -> re.Pattern[str]:
    """Compile ``<label>: [currency] <number>`` with the two standard groups."""
    return re.compile(rf"{label}:?\s*{CURRENCY_TOKEN}\s*{AMOUNT_NUMBER}", re.IGNORECASE)


def numeric_datetime_pattern(label: str = r"Fecha\s+y\s+hora") -> re.Pattern[str]:
    """Compile ``<label>: dd/mm/yyyy [hh:mm [am/pm]]`` (date group 1, time group 2)."""
    return re.compile(
        rf"{label}:?\s*{NUMERIC_DATE}(?:(?:\s*[-,]\s*|\s+){CLOCK_TIME})?",
        re.IGNORECASE,
    )


def _as_list(patterns: Patterns) -> list[re.Pattern[str]]:
    if isinstance(patterns, re.Pattern):
        return [patterns]
    return list(patterns)


def extract_first_match(text: str, patterns: Patterns, group: int = 1) -> str | None:
    """Return the capture of the first pattern that matches with a non-empty value.

    A greedy ``[^\\n]+`` capture can swallow the next ``Label:`` when the body
    was not segmented; the value is cut at the first such embedded label.

    Args:
        text: Text to search.
        patterns: One compiled pattern or an ordered sequence of them.
        group: Capture group to return (0 for the whole match).

    Returns:
        The trimmed value, or None when nothing matched.
    """
    for pattern in _as_list(patterns):
        match = pattern.search(text)
        if not match:
            continue

        raw = match.group(group) if pattern.groups >= group else match.group(0)
        if raw is None:
            continue

        value = raw.strip()
        boundary = LABEL_BOUNDARY_RE.search(value)
        if boundary and boundary.start() > 0:
            value = value[: boundary.start()].strip()
        if value:
            return value

    return None


def parse_amount(text: str, patterns: Patterns) -> AmountInfo | None:
    """Return the amount captured by the first matching amount pattern.

    Patterns must capture the optional currency token in group 1 and the
    number in group 2 (see ``amount_pattern``).
    """
    for pattern in _as_list(patterns):
        match = pattern.search(text)
        if not match:
            continue

        raw_value = match.group(2) if pattern.groups >= 2 else match.group(1)
        amount = parse_money_to_canonical(match.group(1), raw_value)
        if amount is not None:
            return amount

    return None


def parse_date(text: str, patterns: Patterns, default_time: str | None = None) -> datetime | None:
    """Return the Lima datetime captured by the first matching date pattern."""
    for pattern in _as_list(patterns):
        match = pattern.search(text)
        if not match:
            continue

        date_part = match.group(1) if pattern.groups >= 1 else match.group(0)
        time_part = (match.group(2) if pattern.groups >= 2 else None) or default_time
        parsed = parse_datetime_lima(date_part, time_part)
        if parsed is not None:
            return parsed

    return None


def parse_spanish_datetime(text: str | None) -> datetime | None:
    """Parse a textual date such as ``5 de octubre de 2025 - 02:30 PM``.

    The time is optional (midnight when absent). Returns None for unknown month
    names or impossible dates.
    """
    if not text:
        return None

    match = _SPANISH_DATETIME_RE.search(strip_accents(text))
    if not match:
        return None

    day, month_name, year, clock, meridian = match.groups()
    month = MONTHS.get(month_name.lower())
    if month is None:
        return None

    time_text = f"{clock} {meridian}" if clock and meridian else clock
    hours, minutes, seconds = parse_time_components(time_text)
    try:
        return datetime(int(year), month, int(day), hours, minutes, seconds, tzinfo=LIMA_TZ)
    except ValueError:
        return None


def sanitize(value: Any) -> str | None:
    """Collapse whitespace; blank values become None."""
    if value is None:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return cleaned or None


def strip_trailing_labels(value: str | None, patterns: Patterns) -> str | None:
    """Remove boilerplate a greedy capture pulled in after the real value."""
    if value is None:
        return None
    for pattern in _as_list(patterns):
        value = pattern.sub("", value)
    return sanitize(value)


def compute_confidence(signals: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return max(0.0, min(1.0, signals / target))


def compact(values: Mapping[str, Any]) -> dict[str, Any]:
    """Drop None and empty-string entries."""
    return {key: value for key, value in values.items() if value is not None and value != ""}


def mask_card(last4: str | None) -> str | None:
    return f"****{last4}" if last4 else None
