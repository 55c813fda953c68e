"""
Retrieval: cosine ranking and the query service.
"""

from .search import cosine_similarity, rank, rank_candidates
from .service import DEFAULT_TOP_K, RetrievalService

__all__ = [
    "cosine_similarity",
    "rank",
    "rank_candidates",
    "DEFAULT_TOP_K",
    "RetrievalService",
]
