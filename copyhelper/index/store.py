"""
On-disk corpus index and the in-memory snapshot cell.

The index is one indented JSON document, rewritten in full on every save.
Writes go to a sibling temp file that then replaces the real one, so a
crash mid-save never leaves a truncated index behind.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import ValidationError

from copyhelper.config import data_dir, get
from copyhelper.errors import IndexStoreError
from copyhelper.logging_config import get_logger
from copyhelper.models.index import CorpusIndex

logger = get_logger(__name__)


def default_index_path() -> Path:
    return data_dir() / get("app", "index_filename")


class IndexStore:
    """Load and save a CorpusIndex at a fixed path."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else default_index_path()

    def load(self) -> CorpusIndex:
        """Read the index. A missing file is an empty index."""
        if not self.path.exists():
            return CorpusIndex()
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IndexStoreError(f"Cannot read index {self.path}: {e}") from e
        if not raw.strip():
            return CorpusIndex()
        try:
            index = CorpusIndex.model_validate_json(raw)
        except ValidationError as e:
            raise IndexStoreError(f"Corrupt index {self.path}: {e}") from e
        logger.info(f"Loaded index with {len(index.documents)} documents from {self.path}")
        return index

    def save(self, index: CorpusIndex) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(index.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise IndexStoreError(f"Cannot write index {self.path}: {e}") from e
        logger.debug(f"Saved index with {len(index.documents)} documents")


class IndexHandle:
    """Holds the current CorpusIndex snapshot.

    Readers take snapshot() and keep using that value. Writers are
    serialized: each builds a new index from the current one, saves it and
    only then swaps it in.
    """

    def __init__(self, store: IndexStore, index: Optional[CorpusIndex] = None):
        self.store = store
        self._index = index if index is not None else store.load()
        self._write_lock = threading.Lock()

    def snapshot(self) -> CorpusIndex:
        return self._index

    def update(self, change: Callable[[CorpusIndex], CorpusIndex]) -> CorpusIndex:
        with self._write_lock:
            current = self._index
            updated = change(current)
            if updated is not current:
                self.store.save(updated)
                self._index = updated
            return self._index
