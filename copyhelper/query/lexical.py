"""
Lexical fallback search for when no embedding model is installed.

Pages are scored by character n-gram Jaccard similarity between the query
text and each text chunk. Snippet, highlight and ranking rules are the
same as for embedding search.
"""

import re
from typing import FrozenSet, List

from copyhelper.config import get
from copyhelper.models.index import CorpusIndex
from copyhelper.models.results import SearchResult
from copyhelper.query.ranking import DEFAULT_TOP_N, build_result

NGRAM = get("search", "lexical", "ngram")


def normalize_for_matching(text: str) -> str:
    """Casefold and reduce to single-space separated word characters."""
    return " ".join(re.findall(r"\w+", text.casefold()))


def ngrams(text: str, n: int = NGRAM) -> FrozenSet[str]:
    normalized = normalize_for_matching(text)
    if not normalized:
        return frozenset()
    if len(normalized) < n:
        return frozenset([normalized])
    return frozenset(normalized[i:i + n] for i in range(len(normalized) - n + 1))


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def search_lexical(index: CorpusIndex, query_text: str, top_n: int = DEFAULT_TOP_N) -> List[SearchResult]:
    query = ngrams(query_text or "")
    if not query or top_n <= 0:
        return []

    results = []
    for doc in index.documents:
        for page in doc.pages:
            scored = [
                (chunk, jaccard(query, ngrams(chunk.text)))
                for chunk in page.text_chunks
                if chunk.text.strip()
            ]
            if not scored:
                continue
            results.append(build_result(doc, page, scored, [], True, False))

    return sorted(results, key=lambda r: r.score, reverse=True)[:top_n]
