"""Utility functions for the BCP email extractor."""

import re
import unicodedata
from collections.abc import Iterable

# The bank's mailer sometimes emits U+FFFD where an accented letter should be.
REPLACEMENT_CHAR = "\ufffd"

# Only the separators the parsers and the merger write; a bare ";" or "|"
# inside a value stays put.
_NOTE_SPLIT_RE = re.compile(r";\s+|\s+\|\s+")


def strip_accents(text: str) -> str:
    """Remove diacritics and replacement characters from ``text``.

    Args:
        text: Raw text, possibly with accents or U+FFFD artifacts.

    Returns:
        The text with every combining mark removed ("Operación" -> "Operacion").
    """
    decomposed = unicodedata.normalize("NFD", text.replace(REPLACEMENT_CHAR, ""))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def is_blank(value: object) -> bool:
    """Return True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def split_notes(notes: str | Iterable[str] | None) -> list[str]:
    """Split a joined notes string (or a list of them) into individual items."""
    if notes is None:
        return []
    chunks = [notes] if isinstance(notes, str) else list(notes)
    items: list[str] = []
    for chunk in chunks:
        items.extend(part.strip() for part in _NOTE_SPLIT_RE.split(chunk) if part.strip())
    return items


def join_notes(*groups: str | Iterable[str] | None, separator: str = " | ") -> str | None:
    """Union note groups in first-seen order and join them.

    Returns:
        The joined notes, or None when there is nothing to report.
    """
    seen: dict[str, None] = {}
    for group in groups:
        for item in split_notes(group):
            seen.setdefault(item, None)
    return separator.join(seen) if seen else None
