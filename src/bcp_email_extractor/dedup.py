"""Deduplicate and sort transactions.

Works on both shapes a caller may hold: freshly extracted
``NormalizedTransaction`` objects and ``StoredTransaction`` records read back
from persistence (or plain dicts of either). Keys are read straight from the
key fields, so a record that is otherwise incomplete still deduplicates.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from bcp_email_extractor.models import Currency, NormalizedTransaction, StoredTransaction
from bcp_email_extractor.utils import is_blank

logger = structlog.get_logger()

TransactionLike = NormalizedTransaction | StoredTransaction | Mapping[str, Any]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DATETIME = TypeAdapter(datetime)

# Attribute name first, then the camelCase and storage spellings of a dict.
_OCCURRED_AT = ("occurred_at", "occurredAt")
_OPERATION_ID = ("operation_id", "operationId")
_OPERATION_NUMBER = ("operation_number", "operationNumber")
_MESSAGE_ID = ("message_id", "messageId")
_STORAGE_ID = ("id", "_id")


class DedupePolicy(str, Enum):
    """Which occurrence of a duplicated key survives."""

    FIRST_SEEN = "first"
    LAST_SEEN = "last"


def _field(record: Any, *names: str) -> Any:
    for name in names:
        if isinstance(record, Mapping):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return "" if is_blank(value) else str(value).strip()


def _to_datetime(value: Any) -> datetime | None:
    if is_blank(value):
        return None
    try:
        parsed = _DATETIME.validate_python(value)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _stored_amount(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return f"{value:.2f}"
    text = _text(value)
    try:
        return f"{float(text):.2f}"
    except ValueError:
        return text


def _is_normalized(record: Any) -> bool:
    if isinstance(record, NormalizedTransaction):
        return True
    return isinstance(record, Mapping) and any(name in record for name in _OCCURRED_AT)


def build_key_from_normalized(
    tx: NormalizedTransaction | Mapping[str, Any] | None,
) -> str | None:
    """Key a normalized transaction as ``occurredAt|currency|value|operationId``.

    Accepts the model or a camelCase/snake_case mapping of it; only the key
    fields are read.

    Returns:
        The key, or None when the date or the amount value is missing.
    """
    if tx is None:
        return None
    occurred_at = _to_datetime(_field(tx, *_OCCURRED_AT))
    amount = _field(tx, "amount")
    value = _text(_field(amount, "value")) if amount is not None else ""
    if occurred_at is None or not value:
        return None
    currency = _text(_field(amount, "currency")) or Currency.PEN.value
    operation_id = _text(_field(tx, *_OPERATION_ID))
    return "|".join((_utc_iso(occurred_at), currency, value, operation_id))


def build_key_from_stored(tx: StoredTransaction | Mapping[str, Any] | None) -> str | None:
    """Key a stored record as ``date|currency|amount|operationNumber|messageId``.

    Falls back to the storage id when the date or the amount is missing or
    unreadable.
    """
    if tx is None:
        return None
    occurred_at = _to_datetime(_field(tx, "date"))
    amount = _stored_amount(_field(tx, "amount"))
    if occurred_at is not None and amount:
        return "|".join(
            (
                _utc_iso(occurred_at),
                _text(_field(tx, "currency")) or Currency.PEN.value,
                amount,
                _text(_field(tx, *_OPERATION_NUMBER)),
                _text(_field(tx, *_MESSAGE_ID)),
            )
        )
    return _text(_field(tx, *_STORAGE_ID)) or None


def _key_and_date(item: Any) -> tuple[str | None, datetime | None]:
    if _is_normalized(item):
        key = build_key_from_normalized(item) or _text(_field(item, *_STORAGE_ID)) or None
        return key, _to_datetime(_field(item, *_OCCURRED_AT))
    if isinstance(item, (StoredTransaction, Mapping)):
        return build_key_from_stored(item), _to_datetime(_field(item, "date"))
    logger.debug("dedupe_record_unreadable", record_type=type(item).__name__)
    return None, None


def _timestamp(value: datetime | None) -> float:
    return (value or _EPOCH).timestamp()


def dedupe_and_sort(
    transactions: Iterable[TransactionLike],
    keep: DedupePolicy = DedupePolicy.FIRST_SEEN,
) -> list[Any]:
    """Drop duplicates and sort the survivors most recent first.

    Args:
        transactions: The complete batch, in the caller's priority order.
        keep: Which occurrence of a duplicated key survives.

    Returns:
        The surviving input objects (unchanged), sorted by date descending.
        Undated records sort last; records with neither a key nor a storage
        id are always kept.
    """
    items = list(transactions)
    entries = [(item, *_key_and_date(item)) for item in items]
    if keep is DedupePolicy.LAST_SEEN:
        entries.reverse()

    seen: set[str] = set()
    survivors: list[tuple[Any, datetime | None]] = []
    for item, key, occurred in entries:
        # Unkeyable records get a nonce so they never collide.
        dedupe_key = key or f"nonce:{uuid.uuid4()}"
        if dedupe_key in seen:
            continue
        seen.add(dedupe_key)
        survivors.append((item, occurred))

    if keep is DedupePolicy.LAST_SEEN:
        survivors.reverse()

    survivors.sort(key=lambda entry: _timestamp(entry[1]), reverse=True)

    logger.debug(
        "dedupe_completed",
        received=len(items),
        kept=len(survivors),
        dropped=len(items) - len(survivors),
        policy=keep.value,
    )
    return [item for item, _ in survivors]
