"""
Retrieval Service - answer a query with the most relevant BNS sections.

Flow per query: Encoder -> EmbeddingCache snapshot -> Ranker -> store lookup.
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import CorpusLoadError, StorageError
from ..core.types import BackfillReport, SearchResult
from ..ingest.corpus_loader import bootstrap_corpus
from ..storage.entry_store import EntryStore
from ..vector.cache import EmbeddingCache
from ..vector.encoder import TokenIdEncoder
from .search import rank_candidates


logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 4


class RetrievalService:
    """
    Orchestrates search over the embedding cache.

    One instance is shared by all concurrent callers. It owns the
    EmbeddingCache; the encoder and store are injected.

    Example:
        >>> service = RetrievalService(store, encoder)
        >>> service.start(corpus_path="data/bns.xlsx")
        >>> result = service.search("stealing a motorcycle")
        >>> [entry.section_no for entry in result.entries]
    """

    def __init__(
        self,
        store: EntryStore,
        encoder: TokenIdEncoder,
        cache: Optional[EmbeddingCache] = None,
        top_k: int = DEFAULT_TOP_K,
    ):
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")
        self.store = store
        self.encoder = encoder
        self.cache = cache or EmbeddingCache(encoder, store)
        self.top_k = top_k

    @property
    def ready(self) -> bool:
        """Whether queries can be encoded at all."""
        return self.encoder.ready

    def start(
        self,
        corpus_path: Optional[Union[str, Path]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> BackfillReport:
        """
        Startup sequence: import the corpus if the store is empty, then backfill.

        A corpus that cannot be read is logged; the service still starts with
        whatever the store holds.

        Args:
            corpus_path: Workbook or CSV to import into an empty store
            timeout_seconds: Deadline for the startup backfill
        """
        if corpus_path:
            try:
                bootstrap_corpus(self.store, corpus_path)
            except CorpusLoadError as e:
                logger.error(f"Error loading corpus: {e}")
            except StorageError as e:
                logger.error(f"Error saving corpus entries: {e}")
        return self.backfill(timeout_seconds=timeout_seconds)

    def backfill(self, timeout_seconds: Optional[float] = None) -> BackfillReport:
        """
        Ensure every stored entry has a cached vector.

        Raises:
            EncoderUnavailableError: If the encoder cannot run
        """
        try:
            entries = self.store.load_all()
        except StorageError as e:
            logger.error(f"Failed to load entries for backfill: {e}")
            report = BackfillReport()
            report.errors.append(str(e))
            return report
        return self.cache.ensure_all(entries, timeout_seconds=timeout_seconds)

    def search(self, query_text: str) -> SearchResult:
        """
        Return the top-k entries for a query, best first.

        Never pads: fewer than k entries come back when the corpus is small
        or a record lookup fails. Lookups that fail are dropped and reported
        in `warnings`.

        Raises:
            EncoderUnavailableError: If the encoder cannot run
        """
        query_id = uuid.uuid4().hex[:12]
        start_time = time.time()
        result = SearchResult(query_text=query_text)

        encoded = self.encoder.encode(query_text)
        if encoded.degraded:
            result.degraded = True
            result.warnings.append(f"Query encoding failed: {encoded.error_message}")

        candidates = self.cache.all()
        if not candidates:
            logger.info("Search on empty corpus", extra={"query_id": query_id})
            return result

        result.hits = rank_candidates(encoded.vector, candidates, self.top_k)

        for hit in result.hits:
            try:
                entry = self.store.find_by_id(hit.entry_id)
            except StorageError as e:
                logger.warning(
                    f"Dropping result, lookup failed: {e}",
                    extra={"query_id": query_id, "entry_id": hit.entry_id},
                )
                result.degraded = True
                result.warnings.append(f"Lookup failed for entry {hit.entry_id}")
                continue

            if entry is None:
                logger.warning(
                    "Dropping result, entry no longer stored",
                    extra={"query_id": query_id, "entry_id": hit.entry_id},
                )
                result.degraded = True
                result.warnings.append(f"Entry {hit.entry_id} not found")
                continue

            result.entries.append(entry)

        execution_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Returned {len(result.entries)} sections from {len(candidates)} candidates "
            f"in {execution_ms}ms (query: {query_text[:50]})",
            extra={"query_id": query_id},
        )
        return result
