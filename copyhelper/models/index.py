"""
Corpus index models.

Bounding boxes are normalized (0-1) relative to page dimensions with a
top-left origin, making them resolution-independent. The whole corpus is
serialized as one JSON document.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class NormalizedRect(BaseModel):
    """Rectangle in page-fraction coordinates, origin top-left."""

    x: float = Field(ge=0.0, le=1.0, description="Left edge (0-1)")
    y: float = Field(ge=0.0, le=1.0, description="Top edge (0-1)")
    width: float = Field(ge=0.0, le=1.0, description="Width (0-1)")
    height: float = Field(ge=0.0, le=1.0, description="Height (0-1)")


class TextChunk(BaseModel):
    """Words sharing one visual line of a page."""

    text: str
    bounds: NormalizedRect
    embedding: Optional[List[float]] = None

    @property
    def is_embedded(self) -> bool:
        return bool(self.embedding)


class ImageChunk(BaseModel):
    """One embedded raster image of a page."""

    bounds: NormalizedRect
    embedding: Optional[List[float]] = None

    @property
    def is_embedded(self) -> bool:
        return bool(self.embedding)


class PageIndex(BaseModel):
    page_number: int = Field(ge=1, description="Page number (1-indexed)")
    page_width: float = 0.0
    page_height: float = 0.0
    full_text: str = ""
    text_chunks: List[TextChunk] = Field(default_factory=list)
    image_chunks: List[ImageChunk] = Field(default_factory=list)

    @property
    def has_chunks(self) -> bool:
        return bool(self.text_chunks or self.image_chunks)


class DocumentIndex(BaseModel):
    path: str
    # ISO-8601 UTC modification time of the file when it was indexed
    last_modified: str
    pages: List[PageIndex] = Field(default_factory=list)


def path_key(path: str) -> str:
    """Documents are keyed by path, case-insensitively."""
    return str(path).casefold()


class CorpusIndex(BaseModel):
    """All indexed documents.

    Treated as an immutable snapshot: operations that change the corpus
    return a new CorpusIndex instead of editing this one.
    """

    documents: List[DocumentIndex] = Field(default_factory=list)

    def find(self, path: str) -> Optional[DocumentIndex]:
        key = path_key(path)
        for doc in self.documents:
            if path_key(doc.path) == key:
                return doc
        return None

    def with_document(self, doc: DocumentIndex) -> "CorpusIndex":
        """New index with doc added, replacing any entry for the same path."""
        key = path_key(doc.path)
        kept = [d for d in self.documents if path_key(d.path) != key]
        return CorpusIndex(documents=kept + [doc])

    def without(self, path: str) -> "CorpusIndex":
        key = path_key(path)
        return CorpusIndex(
            documents=[d for d in self.documents if path_key(d.path) != key]
        )

    def page_text(self, path: str, page_number: int) -> Optional[str]:
        doc = self.find(path)
        if doc is None:
            return None
        for page in doc.pages:
            if page.page_number == page_number:
                return page.full_text
        return None

    @property
    def page_count(self) -> int:
        return sum(len(d.pages) for d in self.documents)

    def stats(self) -> List[Dict]:
        """Per-document counts, sorted by path."""
        rows = []
        for doc in sorted(self.documents, key=lambda d: path_key(d.path)):
            rows.append({
                "path": doc.path,
                "last_modified": doc.last_modified,
                "pages": len(doc.pages),
                "text_chunks": sum(len(p.text_chunks) for p in doc.pages),
                "image_chunks": sum(len(p.image_chunks) for p in doc.pages),
            })
        return rows
