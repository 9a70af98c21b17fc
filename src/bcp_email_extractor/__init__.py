"""BCP Email Extractor - bank notification emails to structured transactions.

This package turns plain-text BCP (Banco de Credito del Peru) notification
emails into normalized, reconciled and deduplicated transaction records.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from bcp_email_extractor.config import Settings, get_settings
from bcp_email_extractor.dedup import DedupePolicy, dedupe_and_sort
from bcp_email_extractor.merge import merge_parse_results
from bcp_email_extractor.models import MergeResult, NormalizedTransaction, RawMessage
from bcp_email_extractor.pipeline import parse_bcp_email, parse_many

__all__ = [
    "DedupePolicy",
    "MergeResult",
    "NormalizedTransaction",
    "RawMessage",
    "Settings",
    "dedupe_and_sort",
    "get_settings",
    "merge_parse_results",
    "parse_bcp_email",
    "parse_many",
    "__version__",
    "__author__",
]
