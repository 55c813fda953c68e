"""
Retrieval Search - rank cached embeddings against a query.

Implements:
- Cosine similarity scoring
- Top-K retrieval by linear scan
- Deterministic ordering with tie-breaks on entry id

A full scan costs O(n * D) per query. That is fine for a corpus of a few
hundred sections; past a few thousand entries an approximate index would be
needed.
"""

import logging
import math
from typing import List, Mapping, Sequence, Union

import numpy as np

from ..core.types import RankedHit

logger = logging.getLogger(__name__)

Vector = Union[Sequence[float], np.ndarray]


def cosine_similarity(vec_a: Vector, vec_b: Vector) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Cosine similarity score between -1 and 1; 0.0 if either vector is all zeros

    Raises:
        ValueError: If vectors have different dimensions or are empty
    """
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    if a.size == 0 or b.size == 0:
        raise ValueError("Vectors cannot be empty")

    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions must match: {a.size} != {b.size}")

    dot_product = float(np.dot(a, b))
    magnitude_a = math.sqrt(float(np.dot(a, a)))
    magnitude_b = math.sqrt(float(np.dot(b, b)))

    # Handle zero vectors
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def rank_candidates(
    query_embedding: Vector,
    candidates: Mapping[int, Vector],
    top_k: int,
) -> List[RankedHit]:
    """
    Score every candidate against the query and keep the best `top_k`.

    Args:
        query_embedding: Embedding vector for the query
        candidates: entry_id -> embedding
        top_k: Number of results to return

    Returns:
        At most min(top_k, len(candidates)) hits, by descending score,
        ties broken by ascending entry_id
    """
    if top_k <= 0 or not candidates:
        return []

    scored = []
    for entry_id, vector in candidates.items():
        try:
            score = cosine_similarity(query_embedding, vector)
        except ValueError as e:
            logger.warning(f"Skipping entry {entry_id}: {e}")
            continue
        scored.append((entry_id, score))

    # Sort by score descending, then by entry_id for deterministic tie-breaking
    scored.sort(key=lambda item: (-item[1], item[0]))

    return [
        RankedHit(entry_id=entry_id, score=score, rank=rank)
        for rank, (entry_id, score) in enumerate(scored[:top_k], start=1)
    ]


def rank(
    query_embedding: Vector,
    candidates: Mapping[int, Vector],
    k: int,
) -> List[int]:
    """Entry ids of the top `k` candidates, best first."""
    return [hit.entry_id for hit in rank_candidates(query_embedding, candidates, k)]
