"""
Line chunking of page words and page-fraction bounding boxes.
"""

from typing import List, Sequence

from copyhelper.config import get
from copyhelper.ingestion.pdf_parser import ParsedPage, ParsedWord
from copyhelper.models.index import NormalizedRect, TextChunk

LINE_TOLERANCE = get("ingestion", "line_tolerance")


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def normalized_rect(left: float, bottom: float, width: float, height: float,
                    page_width: float, page_height: float) -> NormalizedRect:
    """Page-fraction rect with a top-left origin from a bottom-left-origin box."""
    if page_width <= 0 or page_height <= 0:
        return NormalizedRect(x=0.0, y=0.0, width=0.0, height=0.0)

    x = _clamp(left / page_width)
    y = _clamp((page_height - (bottom + height)) / page_height)
    return NormalizedRect(
        x=x,
        y=y,
        width=min(_clamp(width / page_width), 1.0 - x),
        height=min(_clamp(height / page_height), 1.0 - y),
    )


def group_lines(words: Sequence[ParsedWord], tolerance: float = LINE_TOLERANCE) -> List[List[ParsedWord]]:
    """Group words into visual lines.

    Words are walked top to bottom (descending bottom edge, then left to
    right). A word joins the current line while its bottom edge is within
    `tolerance` of the bottom edge of the word that started the line.
    """
    ordered = sorted(words, key=lambda w: (-w.bottom, w.left))
    lines: List[List[ParsedWord]] = []
    line: List[ParsedWord] = []
    line_y = 0.0
    for word in ordered:
        if line and abs(word.bottom - line_y) <= tolerance:
            line.append(word)
            continue
        if line:
            lines.append(line)
        line = [word]
        line_y = word.bottom
    if line:
        lines.append(line)
    return lines


def build_chunk(line: Sequence[ParsedWord], page_width: float, page_height: float) -> TextChunk:
    words = sorted(line, key=lambda w: w.left)
    left = min(w.left for w in words)
    right = max(w.right for w in words)
    bottom = min(w.bottom for w in words)
    top = max(w.top for w in words)
    return TextChunk(
        text=" ".join(w.text for w in words),
        bounds=normalized_rect(left, bottom, right - left, top - bottom, page_width, page_height),
    )


def build_text_chunks(page: ParsedPage, tolerance: float = LINE_TOLERANCE) -> List[TextChunk]:
    """Unembedded text chunks for one page, in reading order."""
    return [build_chunk(line, page.width, page.height) for line in group_lines(page.words, tolerance)]
