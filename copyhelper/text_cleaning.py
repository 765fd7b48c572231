"""
Text cleanup shared by OCR output, page text and search snippets.
"""

import re

from copyhelper.config import get

SNIPPET_LENGTH = get("search", "snippet_length")
ELLIPSIS = "..."


def sanitize_text(text: str) -> str:
    """
    Remove illegal control characters from extracted text.

    Removes all ASCII control characters except common whitespace so the
    index file stays valid, diff-friendly JSON text.
    """
    if not text:
        return ""
    # Remove ASCII control chars (0x00-0x1F and 0x7F) except tab, newline, carriage return
    return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)


def normalize_whitespace(text: str) -> str:
    """Normalize excessive whitespace while preserving structure."""
    if not text:
        return ""
    # Replace multiple spaces with single space
    text = re.sub(r"[ \t]+", " ", text)
    # Replace 3+ newlines with 2
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate_snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """Cut to exactly `limit` characters plus an ellipsis when longer."""
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text
