"""Template-agnostic fallback extraction.

Used alongside (or instead of) the template parsers: it finds less, but it
never depends on the bank keeping a template's exact labels.
"""

from __future__ import annotations

from bcp_email_extractor.fallback.builder import (
    DEFAULT_FALLBACK_TEMPLATE,
    TEMPLATE_INFERENCE_HINTS,
    build_fallback_transaction,
    build_notes,
    infer_template,
    resolve_merchant,
)
from bcp_email_extractor.fallback.text_extractor import extract_fallback_fields
from bcp_email_extractor.models import ExtractionPath, ParseResult, RawMessage

FALLBACK_NOTE = "fallback_parser"


def fallback_parse(message: RawMessage) -> ParseResult | None:
    """Extract and build a fallback transaction for one message.

    Returns:
        A successful ParseResult on the fallback path, or None when no
        transaction could be built.
    """
    fields = extract_fallback_fields(message.body, message.subject)
    transaction = build_fallback_transaction(fields, message.received_at)
    if transaction is None:
        return None
    return ParseResult.from_transaction(
        transaction, path=ExtractionPath.FALLBACK, notes=[FALLBACK_NOTE]
    )


__all__ = [
    "DEFAULT_FALLBACK_TEMPLATE",
    "FALLBACK_NOTE",
    "TEMPLATE_INFERENCE_HINTS",
    "build_fallback_transaction",
    "build_notes",
    "extract_fallback_fields",
    "fallback_parse",
    "infer_template",
    "resolve_merchant",
]
