"""
PDF parsing via PyMuPDF.

Pages are reported in PDF layout units with a bottom-left origin, the
convention the chunker works in. PyMuPDF itself uses a top-left origin,
so vertical coordinates are flipped here.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Protocol, Union

import fitz  # PyMuPDF

from copyhelper.errors import DocumentError
from copyhelper.logging_config import get_logger
from copyhelper.text_cleaning import sanitize_text

logger = get_logger(__name__)


@dataclass(frozen=True)
class ParsedWord:
    """A word with its box in layout units, bottom-left origin."""

    text: str
    left: float
    bottom: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def top(self) -> float:
        return self.bottom + self.height


@dataclass(frozen=True)
class ParsedImage:
    """Encoded bytes of an embedded raster image and where it is drawn."""

    data: bytes
    left: float
    bottom: float
    width: float
    height: float


@dataclass
class ParsedPage:
    number: int  # 1-based
    width: float
    height: float
    text: str = ""
    words: List[ParsedWord] = field(default_factory=list)
    images: List[ParsedImage] = field(default_factory=list)


class DocumentParser(Protocol):
    def parse(self, path: Union[str, Path]) -> Iterator[ParsedPage]:
        ...


def _flip(rect, page_height: float) -> tuple:
    """(left, bottom, width, height) from a top-left-origin fitz.Rect."""
    return (rect.x0, page_height - rect.y1, rect.width, rect.height)


class PdfParser:
    """DocumentParser backed by PyMuPDF. Failures raise DocumentError."""

    def parse(self, path: Union[str, Path]) -> Iterator[ParsedPage]:
        try:
            doc = fitz.open(str(path))
        except (RuntimeError, OSError, ValueError) as e:
            raise DocumentError(path, f"cannot open: {e}") from e

        with doc:
            if doc.needs_pass:
                raise DocumentError(path, "document is encrypted")
            for page in doc:
                try:
                    yield self._parse_page(doc, page)
                except (RuntimeError, ValueError) as e:
                    raise DocumentError(path, f"page {page.number + 1}: {e}") from e

    def _parse_page(self, doc, page) -> ParsedPage:
        height = page.rect.height
        parsed = ParsedPage(
            number=page.number + 1,
            width=page.rect.width,
            height=height,
            text=sanitize_text(page.get_text("text")),
        )

        # (x0, y0, x1, y1, word, block_no, line_no, word_no)
        for x0, y0, x1, y1, word, *_ in page.get_text("words"):
            if not word.strip():
                continue
            parsed.words.append(
                ParsedWord(sanitize_text(word), x0, height - y1, x1 - x0, y1 - y0)
            )

        for info in page.get_images(full=True):
            xref = info[0]
            try:
                extracted = doc.extract_image(xref)
                rects = page.get_image_rects(xref)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Skipping image xref {xref} on page {parsed.number}: {e}")
                continue
            data = (extracted or {}).get("image")
            if not data:
                continue
            for rect in rects:
                parsed.images.append(ParsedImage(data, *_flip(rect, height)))
        return parsed
