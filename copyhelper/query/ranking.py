"""
Multimodal page ranking.

All stored and query vectors are unit length, so cosine similarity is a
plain dot product. Similarities are clamped to [0, 1], which keeps every
combined page score in that range as well.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from copyhelper.config import get
from copyhelper.models.index import CorpusIndex, DocumentIndex, NormalizedRect, PageIndex, TextChunk
from copyhelper.models.results import Highlight, SearchResult
from copyhelper.logging_config import get_logger
from copyhelper.text_cleaning import truncate_snippet

logger = get_logger(__name__)

TEXT_WEIGHT = get("search", "text_weight")
IMAGE_WEIGHT = get("search", "image_weight")
HIGHLIGHT_THRESHOLD = get("search", "highlight_threshold")
TEXT_TOP_K = get("search", "text_top_k")
IMAGE_TOP_K = get("search", "image_top_k")
DEFAULT_TOP_N = get("app", "default_top_n")


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> Optional[float]:
    """Dot product of two unit vectors clamped to [0, 1].

    Returns None when the vectors cannot be compared (empty or different
    lengths).
    """
    if a.size == 0 or b.size == 0 or a.shape != b.shape:
        return None
    return float(min(1.0, max(0.0, float(np.dot(a, b)))))


def combine_scores(text_score: float, image_score: float, has_text: bool, has_image: bool) -> float:
    if has_text and has_image:
        return TEXT_WEIGHT * text_score + IMAGE_WEIGHT * image_score
    if has_text:
        return text_score
    if has_image:
        return image_score
    return 0.0


def _top(scored: list, k: int) -> list:
    # sorted() is stable, so equal scores keep chunk order
    return sorted(scored, key=lambda s: s[1], reverse=True)[:k]


def build_result(
    doc: DocumentIndex,
    page: PageIndex,
    text_scored: Sequence[Tuple[TextChunk, float]],
    image_scored: Sequence[Tuple[int, NormalizedRect, float]],
    has_text: bool,
    has_image: bool,
) -> SearchResult:
    """Score, snippet and highlights for one page from its chunk similarities."""
    highlights: List[Highlight] = []

    text_score = 0.0
    snippet = page.full_text
    top_text = _top(list(text_scored), TEXT_TOP_K)
    if top_text:
        text_score = top_text[0][1]
        snippet = top_text[0][0].text
        for chunk, score in top_text:
            if score >= HIGHLIGHT_THRESHOLD:
                highlights.append(Highlight(bounds=chunk.bounds, kind="text"))

    image_score = 0.0
    top_image = sorted(image_scored, key=lambda s: s[2], reverse=True)[:IMAGE_TOP_K]
    if top_image:
        image_score = top_image[0][2]
        seen = set()
        for chunk_no, bounds, score in top_image:
            if score >= HIGHLIGHT_THRESHOLD and chunk_no not in seen:
                seen.add(chunk_no)
                highlights.append(Highlight(bounds=bounds, kind="image"))

    return SearchResult(
        document_path=doc.path,
        page_number=page.page_number,
        score=combine_scores(text_score, image_score, has_text, has_image),
        snippet=truncate_snippet(snippet),
        highlights=highlights,
    )


def _as_vector(values) -> np.ndarray:
    if values is None:
        return np.zeros(0, dtype=np.float32)
    return np.asarray(values, dtype=np.float32).reshape(-1)


def search(
    index: CorpusIndex,
    query_text: Optional[np.ndarray],
    query_images: Sequence[np.ndarray] = (),
    top_n: int = DEFAULT_TOP_N,
) -> List[SearchResult]:
    """Rank pages against a text vector and any number of image vectors.

    Pages on which no comparison could be made for any query modality are
    left out, so a query nothing can match returns an empty list.
    """
    text_vec = _as_vector(query_text)
    image_vecs = [v for v in (_as_vector(q) for q in query_images) if v.size > 0]
    has_text = text_vec.size > 0
    has_image = bool(image_vecs)

    if top_n <= 0 or not (has_text or has_image) or not index.documents:
        return []

    results: List[SearchResult] = []
    for doc in index.documents:
        for page in doc.pages:
            if not page.has_chunks:
                continue

            text_scored = []
            if has_text:
                for chunk in page.text_chunks:
                    if not chunk.is_embedded:
                        continue
                    sim = cosine_similarity(text_vec, _as_vector(chunk.embedding))
                    if sim is not None:
                        text_scored.append((chunk, sim))

            image_scored = []
            if has_image:
                for chunk_no, chunk in enumerate(page.image_chunks):
                    if not chunk.is_embedded:
                        continue
                    stored = _as_vector(chunk.embedding)
                    for query in image_vecs:
                        sim = cosine_similarity(query, stored)
                        if sim is not None:
                            image_scored.append((chunk_no, chunk.bounds, sim))

            if not text_scored and not image_scored:
                continue
            results.append(build_result(doc, page, text_scored, image_scored, has_text, has_image))

    ranked = sorted(results, key=lambda r: r.score, reverse=True)[:top_n]
    logger.debug(f"Scored {len(results)} pages, returning {len(ranked)}")
    return ranked
