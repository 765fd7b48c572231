"""
Capture-and-search service.

Composes the capture pipeline, the embedding engine and ranking around an
IndexHandle. Each capture runs as one unit of work; submit_capture() puts
that unit on a background worker and returns a Future.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from copyhelper.capture.pipeline import CaptureProcessingPipeline
from copyhelper.config import get
from copyhelper.embeddings.engine import EmbeddingEngine
from copyhelper.imaging import ImageInput
from copyhelper.index.store import IndexHandle, IndexStore
from copyhelper.ingestion.indexer import DocumentIndexer, prune_missing, remove
from copyhelper.logging_config import get_logger, job_scope
from copyhelper.models.index import CorpusIndex
from copyhelper.models.results import ProcessedCapture, SearchResult
from copyhelper.query.lexical import search_lexical
from copyhelper.query.ranking import search

logger = get_logger(__name__)

DEFAULT_TOP_N = get("app", "default_top_n")
SEARCH_STRATEGY = get("search", "strategy")


class CopyHelperService:
    """Entry point for capture search and index maintenance."""

    def __init__(
        self,
        handle: IndexHandle,
        engine: Optional[EmbeddingEngine] = None,
        pipeline: Optional[CaptureProcessingPipeline] = None,
        indexer: Optional[DocumentIndexer] = None,
        max_workers: int = 1,
    ):
        self.handle = handle
        self.engine = engine
        self.pipeline = pipeline or CaptureProcessingPipeline()
        self.indexer = indexer or DocumentIndexer(engine=engine)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="capture")

    @classmethod
    def from_config(cls, index_path: Optional[Union[str, Path]] = None,
                    strategy: str = SEARCH_STRATEGY) -> "CopyHelperService":
        """Build from copyhelper.toml. Missing model files raise ResourceError."""
        engine = EmbeddingEngine.from_config() if strategy == "embedding" else None
        if engine is None:
            logger.info("No embedding model in use, searching lexically")
        return cls(IndexHandle(IndexStore(index_path)), engine=engine)

    @property
    def uses_embeddings(self) -> bool:
        return self.engine is not None

    def index(self) -> CorpusIndex:
        return self.handle.snapshot()

    # -- search -------------------------------------------------------------

    def search_capture(self, capture: ProcessedCapture, top_n: int = DEFAULT_TOP_N) -> List[SearchResult]:
        index = self.handle.snapshot()
        if not index.documents:
            return []

        if self.engine is None:
            return search_lexical(index, capture.text, top_n)

        text_vector = self.engine.encode_text(capture.text)
        image_vectors = self.engine.encode_images(capture.photos)
        return search(index, text_vector, image_vectors, top_n)

    def capture_and_search(self, image: ImageInput,
                           top_n: int = DEFAULT_TOP_N) -> Tuple[ProcessedCapture, List[SearchResult]]:
        capture = self.pipeline.process(image)
        results = self.search_capture(capture, top_n)
        logger.info(f"Capture search returned {len(results)} results")
        return capture, results

    def submit_capture(self, image: ImageInput,
                       top_n: int = DEFAULT_TOP_N) -> "Future[Tuple[ProcessedCapture, List[SearchResult]]]":
        def run():
            with job_scope():
                return self.capture_and_search(image, top_n)

        return self._executor.submit(run)

    # -- index maintenance --------------------------------------------------

    def ingest(self, paths: Iterable[Union[str, Path]], progress: bool = False) -> CorpusIndex:
        paths = list(paths)
        with job_scope():
            return self.handle.update(lambda index: self.indexer.ingest(paths, index, progress))

    def reindex(self, path: Union[str, Path]) -> CorpusIndex:
        with job_scope():
            return self.handle.update(lambda index: self.indexer.reindex(index, path))

    def remove(self, path: Union[str, Path]) -> CorpusIndex:
        return self.handle.update(lambda index: remove(index, path))

    def prune(self) -> CorpusIndex:
        return self.handle.update(prune_missing)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "CopyHelperService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
