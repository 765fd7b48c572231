"""
Incremental document indexing.

Documents are indexed one at a time; each is fully built (all pages and
embeddings) before it replaces its entry in a new CorpusIndex. A document
that fails to parse leaves the previous entry, if any, untouched.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from tqdm import tqdm

from copyhelper.config import get
from copyhelper.embeddings.engine import EmbeddingEngine
from copyhelper.errors import DocumentError, InferenceError
from copyhelper.imaging import decode_image_bytes
from copyhelper.ingestion.chunking import LINE_TOLERANCE, build_text_chunks, normalized_rect
from copyhelper.ingestion.pdf_parser import DocumentParser, ParsedPage, PdfParser
from copyhelper.logging_config import get_logger
from copyhelper.models.index import CorpusIndex, DocumentIndex, ImageChunk, PageIndex

logger = get_logger(__name__)

MIN_IMAGE_PX = get("ingestion", "min_image_px")

PathLike = Union[str, Path]


def file_timestamp(path: PathLike) -> str:
    """Last-modified time of a file as an ISO-8601 UTC string."""
    mtime = os.stat(path).st_mtime
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()


def document_key(path: PathLike) -> str:
    return os.path.abspath(str(path))


def remove(index: CorpusIndex, path: PathLike) -> CorpusIndex:
    """New index without the document at path (case-insensitive)."""
    if index.find(str(path)) is None and index.find(document_key(path)) is None:
        return index
    return index.without(str(path)).without(document_key(path))


def prune_missing(index: CorpusIndex) -> CorpusIndex:
    """New index without documents whose files no longer exist."""
    missing = [d.path for d in index.documents if not os.path.exists(d.path)]
    for path in missing:
        logger.info(f"Pruning missing document {path}")
        index = index.without(path)
    return index


class DocumentIndexer:
    """Builds DocumentIndex entries from files.

    Without an embedding engine chunks are stored unembedded; such an index
    can only be searched lexically.
    """

    def __init__(
        self,
        engine: Optional[EmbeddingEngine] = None,
        parser: Optional[DocumentParser] = None,
        min_image_px: int = MIN_IMAGE_PX,
        line_tolerance: float = LINE_TOLERANCE,
    ):
        self.engine = engine
        self.parser = parser or PdfParser()
        self.min_image_px = min_image_px
        self.line_tolerance = line_tolerance

    def index_document(self, path: PathLike) -> DocumentIndex:
        """Parse and embed one document from scratch."""
        key = document_key(path)
        last_modified = file_timestamp(key)
        pages = [self.index_page(page) for page in self.parser.parse(key)]
        return DocumentIndex(path=key, last_modified=last_modified, pages=pages)

    def index_page(self, page: ParsedPage) -> PageIndex:
        text_chunks = build_text_chunks(page, self.line_tolerance)
        if self.engine is not None:
            for chunk in text_chunks:
                if chunk.text.strip():
                    vector = self.engine.encode_text(chunk.text)
                    chunk.embedding = vector.tolist() if vector.size else None

        image_chunks = []
        for parsed in page.images:
            try:
                image = decode_image_bytes(parsed.data)
            except ValueError as e:
                logger.warning(f"Skipping unreadable image on page {page.number}: {e}")
                continue
            if image.width < self.min_image_px or image.height < self.min_image_px:
                continue

            embedding = None
            if self.engine is not None:
                vector = self.engine.encode_image(image)
                if vector.size == 0:
                    continue
                embedding = vector.tolist()

            image_chunks.append(ImageChunk(
                bounds=normalized_rect(
                    parsed.left, parsed.bottom, parsed.width, parsed.height,
                    page.width, page.height,
                ),
                embedding=embedding,
            ))

        return PageIndex(
            page_number=page.number,
            page_width=page.width,
            page_height=page.height,
            full_text=page.text or "",
            text_chunks=text_chunks,
            image_chunks=image_chunks,
        )

    def ingest(self, paths: Iterable[PathLike], index: CorpusIndex, progress: bool = False) -> CorpusIndex:
        """Index new or changed files; returns a new CorpusIndex.

        Missing files and files whose timestamp matches the stored entry are
        skipped. A failing document is logged and skipped; the rest of the
        batch still runs. Returns `index` itself when nothing changed.
        """
        paths = list(paths)
        for path in tqdm(paths, desc="Indexing", unit="doc", disable=not progress):
            key = document_key(path)
            if not os.path.isfile(key):
                logger.warning(f"Skipping missing file {key}")
                continue

            existing = index.find(key)
            if existing is not None and existing.last_modified == file_timestamp(key):
                logger.debug(f"Unchanged, skipping {key}")
                continue

            try:
                doc = self.index_document(key)
            except (DocumentError, InferenceError) as e:
                logger.error(f"Failed to index {key}: {e}")
                continue

            index = index.with_document(doc)
            logger.info(
                f"Indexed {key}",
                extra={"data": {"pages": len(doc.pages)}},
            )
        return index

    def reindex(self, index: CorpusIndex, path: PathLike) -> CorpusIndex:
        """Rebuild one document regardless of its timestamp.

        When the file is gone the document is removed instead.
        """
        key = document_key(path)
        if not os.path.isfile(key):
            logger.info(f"Removing {key}: file no longer exists")
            return remove(index, key)

        try:
            doc = self.index_document(key)
        except (DocumentError, InferenceError) as e:
            logger.error(f"Failed to reindex {key}: {e}")
            return index
        return index.with_document(doc)
