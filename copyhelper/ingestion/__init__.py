"""Document ingestion: parsing, line chunking and incremental indexing."""

from .chunking import build_text_chunks, group_lines, normalized_rect
from .indexer import DocumentIndexer, file_timestamp, prune_missing, remove
from .pdf_parser import DocumentParser, ParsedImage, ParsedPage, ParsedWord, PdfParser

__all__ = [
    "DocumentIndexer",
    "DocumentParser",
    "ParsedImage",
    "ParsedPage",
    "ParsedWord",
    "PdfParser",
    "build_text_chunks",
    "file_timestamp",
    "group_lines",
    "normalized_rect",
    "prune_missing",
    "remove",
]
