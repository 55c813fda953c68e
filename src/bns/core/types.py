"""
Core data types for the BNS section search module.

Uses dataclasses throughout; embeddings are float32 numpy arrays.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass
class Entry:
    """
    One legal-section record of the corpus.

    Attributes:
        section_no: Section number as printed in the source (e.g. '303')
        title: Short section title
        description: Full section text
        punishment: Prescribed punishment text
        entry_id: Storage-assigned identifier (None until saved)
        embedding: Fixed-length vector, or None until backfilled
    """
    section_no: str
    title: str
    description: str
    punishment: str
    entry_id: Optional[int] = None
    embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    def embedding_text(self) -> str:
        """Text that is encoded for this entry."""
        return f"{self.title} {self.description}"

    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) > 0

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize for callers; the embedding is never exposed."""
        return {
            "id": self.entry_id,
            "section_no": self.section_no,
            "title": self.title,
            "description": self.description,
            "punishment": self.punishment,
        }


@dataclass
class EncodeResult:
    """
    Outcome of encoding one text.

    A failed encode still carries a vector (all zeros, full length) so callers
    can continue in degraded mode; `success` tells them whether to trust it.
    """
    vector: np.ndarray
    success: bool = True
    error_message: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return not self.success


@dataclass
class RankedHit:
    """A single ranked candidate."""
    entry_id: int
    score: float
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {"entry_id": self.entry_id, "score": self.score, "rank": self.rank}


@dataclass
class BackfillReport:
    """
    Result of one ensure-all pass over the corpus.

    Attributes:
        total: Entries considered
        loaded: Entries whose persisted vector was loaded as-is
        encoded: Entries encoded and persisted during this pass
        already_cached: Entries skipped because the cache already held them
        storage_failures: entry_id -> error for failed persistence
        encode_failures: entry_id -> error for degraded encodes
        interrupted: True if the pass stopped at its deadline
    """
    total: int = 0
    loaded: int = 0
    encoded: int = 0
    already_cached: int = 0
    storage_failures: Dict[int, str] = field(default_factory=dict)
    encode_failures: Dict[int, str] = field(default_factory=dict)
    interrupted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not (self.storage_failures or self.encode_failures or self.interrupted or self.errors)

    @property
    def pending(self) -> int:
        """Entries still without a cached vector after this pass."""
        return self.total - self.loaded - self.encoded - self.already_cached

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "loaded": self.loaded,
            "encoded": self.encoded,
            "already_cached": self.already_cached,
            "pending": self.pending,
            "storage_failures": {str(k): v for k, v in self.storage_failures.items()},
            "encode_failures": {str(k): v for k, v in self.encode_failures.items()},
            "interrupted": self.interrupted,
            "errors": list(self.errors),
        }


@dataclass
class SearchResult:
    """
    Ordered search results for one query.

    Attributes:
        query_text: The raw query
        entries: Matching entries, best first (at most top_k)
        hits: Ranked hits backing `entries`, including dropped ids
        degraded: True if the query encode failed or lookups were dropped
        warnings: Human-readable reasons for degradation
    """
    query_text: str
    entries: List[Entry] = field(default_factory=list)
    hits: List[RankedHit] = field(default_factory=list)
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
