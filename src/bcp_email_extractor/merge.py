"""Reconcile a template parse with a fallback parse of the same email.

The primary (template) result is trusted by default. The fallback can win
outright when it is more confident, or fill in and clean up individual fields
when it is not. The merge never raises and never mutates its inputs.
"""

from __future__ import annotations

from typing import Any

import structlog

from bcp_email_extractor.models import (
    ExtractionPath,
    MergeReason,
    MergeResult,
    NormalizedTransaction,
    ParseResult,
    TransactionDetails,
)
from bcp_email_extractor.utils import is_blank, join_notes

logger = structlog.get_logger()

# Field-level reconciliation only ever touches these attributes.
MERGEABLE_FIELDS: tuple[str, ...] = (
    "merchant",
    "account_ref",
    "card_last4",
    "channel",
    "operation_id",
    "bank_dest",
    "beneficiary",
    "service_name",
    "service_holder",
    "service_code",
    "beneficiary_account",
    "location",
)

# A primary string this many times longer than the fallback's is treated as
# over-captured.
OVERCAPTURE_RATIO = 1.5


def should_replace(current: Any, candidate: Any) -> bool:
    """Decide whether the fallback value should replace the primary one.

    Args:
        current: The primary transaction's value.
        candidate: The fallback transaction's value.

    Returns:
        True if the primary value is empty and the fallback's is not, or if
        both are strings and the primary is more than 1.5x longer than the
        non-empty fallback value (after trimming).
    """
    if is_blank(current) and not is_blank(candidate):
        return True
    if isinstance(current, str) and isinstance(candidate, str):
        trimmed_current = current.strip()
        trimmed_candidate = candidate.strip()
        if trimmed_candidate and len(trimmed_current) > len(trimmed_candidate) * OVERCAPTURE_RATIO:
            return True
    return False


def merge_details(
    primary: TransactionDetails | None,
    fallback: TransactionDetails | None,
) -> TransactionDetails | None:
    """Combine two detail records; the primary's values win key by key."""
    if fallback is None:
        return primary
    if primary is None:
        return fallback

    merged: dict[str, Any] = {}
    for name, fallback_value in fallback:
        current = getattr(primary, name)
        if fallback_value is None:
            continue
        if current is None:
            merged[name] = fallback_value
            continue
        primary_values = {key: value for key, value in current if value is not None}
        merged[name] = fallback_value.model_copy(update=primary_values)

    return primary.model_copy(update=merged) if merged else primary


def _union(*groups: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return list(seen)


def _result(
    base: ParseResult,
    *,
    reason: MergeReason,
    winner: ExtractionPath,
    **overrides: Any,
) -> MergeResult:
    values: dict[str, Any] = {
        "success": base.success,
        "template": base.template,
        "transaction": base.transaction,
        "confidence": base.confidence,
        "notes": list(base.notes),
        "path": base.path,
    }
    values.update(overrides)
    result = MergeResult(winner=winner, reason=reason, **values)
    logger.debug(
        "merge_resolved",
        reason=reason.value,
        winner=winner.value,
        template=result.template.value if result.template else None,
        confidence=result.confidence,
    )
    return result


def _reconcile(
    primary_tx: NormalizedTransaction,
    fallback_tx: NormalizedTransaction,
) -> NormalizedTransaction:
    updates: dict[str, Any] = {
        name: getattr(fallback_tx, name)
        for name in MERGEABLE_FIELDS
        if should_replace(getattr(primary_tx, name), getattr(fallback_tx, name))
    }
    updates["details"] = merge_details(primary_tx.details, fallback_tx.details)
    updates["notes"] = join_notes(primary_tx.notes, fallback_tx.notes)
    updates["confidence"] = max(primary_tx.confidence, fallback_tx.confidence)
    return primary_tx.model_copy(update=updates)


def merge_parse_results(
    primary: ParseResult | None,
    fallback: ParseResult | None,
) -> MergeResult:
    """Merge a primary (template) result with a fallback result.

    Args:
        primary: Result of the template parsers, possibly unsuccessful.
        fallback: Result of the fallback path, or None if it produced nothing.

    Returns:
        The reconciled result, tagged with the path that won and why.
    """
    if primary is None or primary.transaction is None:
        if fallback is not None:
            return _result(
                fallback,
                reason=MergeReason.PRIMARY_MISSING,
                winner=ExtractionPath.FALLBACK,
            )
        return _result(
            primary or ParseResult.failure([]),
            reason=MergeReason.PRIMARY_MISSING,
            winner=ExtractionPath.PRIMARY,
        )

    if fallback is None or not fallback.success or fallback.transaction is None:
        return _result(
            primary,
            reason=MergeReason.FALLBACK_UNAVAILABLE,
            winner=ExtractionPath.PRIMARY,
        )

    primary_tx = primary.transaction
    fallback_tx = fallback.transaction

    if fallback_tx.template != primary_tx.template:
        return _result(
            primary,
            reason=MergeReason.TEMPLATE_MISMATCH,
            winner=ExtractionPath.PRIMARY,
        )

    if fallback_tx.confidence > primary_tx.confidence:
        winning_tx = fallback_tx.model_copy(
            update={"details": merge_details(primary_tx.details, fallback_tx.details)}
        )
        return _result(
            primary,
            reason=MergeReason.FALLBACK_HIGHER_CONFIDENCE,
            winner=ExtractionPath.FALLBACK,
            transaction=winning_tx,
            confidence=fallback_tx.confidence,
            notes=_union(primary.notes, fallback.notes),
        )

    merged_tx = _reconcile(primary_tx, fallback_tx)
    return _result(
        primary,
        reason=MergeReason.FIELD_RECONCILIATION,
        winner=ExtractionPath.PRIMARY,
        transaction=merged_tx,
        confidence=merged_tx.confidence,
        notes=_union(primary.notes, fallback.notes),
    )
