from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

import numpy as np

from .errors import DimensionMismatch
from .models import Chunk, SearchResult

_log = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Vectors of different lengths raise `DimensionMismatch`. If either vector
    has zero norm the similarity is 0.0 so that NaN never reaches ranking.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def rank_chunks(query: Sequence[float], chunks: Iterable[Chunk], top_k: int) -> List[SearchResult]:
    """
    Exhaustively score every chunk against the query and keep the best `top_k`.

    Ordering is by descending similarity, then ascending chunk id so equal
    scores come back in a deterministic order.
    """
    if top_k <= 0:
        return []

    results = [SearchResult(chunk=chunk, similarity=cosine_similarity(query, chunk.embedding)) for chunk in chunks]
    results.sort(key=lambda r: (-r.similarity, r.chunk.id))
    _log.debug("Scored %d chunks, returning top %d", len(results), min(top_k, len(results)))
    return results[:top_k]


__all__ = ["cosine_similarity", "rank_chunks"]
