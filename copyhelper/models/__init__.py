"""Data models shared across capture, indexing and search."""

from .regions import Rect, Region, RegionKind
from .index import (
    CorpusIndex,
    DocumentIndex,
    ImageChunk,
    NormalizedRect,
    PageIndex,
    TextChunk,
    path_key,
)
from .results import Highlight, ProcessedCapture, SearchResult

__all__ = [
    # Segmentation
    "Rect",
    "Region",
    "RegionKind",
    # Index
    "CorpusIndex",
    "DocumentIndex",
    "ImageChunk",
    "NormalizedRect",
    "PageIndex",
    "TextChunk",
    "path_key",
    # Results
    "Highlight",
    "ProcessedCapture",
    "SearchResult",
]
