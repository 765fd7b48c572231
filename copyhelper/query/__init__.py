"""Ranked search over the corpus index."""

from .lexical import search_lexical
from .ranking import cosine_similarity, search

__all__ = ["cosine_similarity", "search", "search_lexical"]
