"""Persistence of the corpus index."""

from .store import IndexHandle, IndexStore, default_index_path

__all__ = ["IndexHandle", "IndexStore", "default_index_path"]
