"""
Embedding cache - in-memory entry_id -> vector map, write-through to storage.

The persisted Entry embedding is authoritative. A vector is published to the
cache only after it is in storage, so the cache never holds a vector that a
restart would not see again.
"""

import logging
import threading
import time
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from ..core.exceptions import StorageError
from ..core.types import BackfillReport, Entry
from ..storage.codec import compute_vector_hash
from ..storage.entry_store import EntryStore
from .encoder import TokenIdEncoder


logger = logging.getLogger(__name__)

PUBLISH_BATCH_SIZE = 64


class EmbeddingCache:
    """
    Write-through cache of entry embeddings.

    Concurrency: copy-on-write. The current map is an immutable snapshot;
    readers grab the reference without locking and never see a partial
    update. Writers serialize on a lock, copy the snapshot, add their
    vectors and publish the new snapshot with one reference assignment.

    Lifetime: owned by the RetrievalService, rebuilt at every startup by
    `ensure_all`.
    """

    def __init__(self, encoder: TokenIdEncoder, store: EntryStore):
        self.encoder = encoder
        self.store = store
        self._snapshot: Mapping[int, np.ndarray] = MappingProxyType({})
        self._write_lock = threading.Lock()
        self._encode_count = 0

    @property
    def encode_count(self) -> int:
        """Total encodes performed by backfill passes."""
        return self._encode_count

    def get(self, entry_id: int) -> Optional[np.ndarray]:
        """Return the cached vector for an entry, if present."""
        return self._snapshot.get(entry_id)

    def all(self) -> Mapping[int, np.ndarray]:
        """Immutable snapshot of every cached vector."""
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, entry_id: int) -> bool:
        return entry_id in self._snapshot

    def _publish(self, additions: Dict[int, np.ndarray]) -> None:
        """Swap in a new snapshot containing `additions`. Caller holds the write lock."""
        updated = dict(self._snapshot)
        for entry_id, vector in additions.items():
            frozen = np.array(vector, dtype=np.float32)
            frozen.setflags(write=False)
            updated[entry_id] = frozen
        self._snapshot = MappingProxyType(updated)

    def ensure_all(
        self,
        entries: Iterable[Entry],
        timeout_seconds: Optional[float] = None,
    ) -> BackfillReport:
        """
        Make sure every entry has a cached vector.

        Persisted vectors of the configured dimension are loaded as-is.
        Missing ones are encoded, persisted, then published. Running this
        twice performs no redundant encoding.

        Vectors are published in batches of PUBLISH_BATCH_SIZE, and whatever
        is pending when the pass ends (or fails) is published before the
        write lock is released.

        A storage failure for one entry is logged and recorded; that entry
        stays uncached and is retried on the next call. A degraded encode is
        handled the same way instead of persisting a zero vector.

        Args:
            entries: Entries to cover (normally `store.load_all()`)
            timeout_seconds: Stop between entries once this much time has passed

        Returns:
            BackfillReport describing the pass

        Raises:
            EncoderUnavailableError: If the encoder has no tokenizer
        """
        deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        dimension = self.encoder.dimension
        report = BackfillReport()

        with self._write_lock:
            pending: Dict[int, np.ndarray] = {}
            try:
                for entry in entries:
                    report.total += 1
                    entry_id = entry.entry_id

                    if entry_id is None:
                        report.errors.append(f"Entry for section {entry.section_no} has no id")
                        continue

                    if entry_id in self._snapshot or entry_id in pending:
                        report.already_cached += 1
                        continue

                    if deadline is not None and time.monotonic() > deadline:
                        report.interrupted = True
                        continue

                    if entry.has_embedding():
                        if len(entry.embedding) == dimension:
                            pending[entry_id] = entry.embedding
                            report.loaded += 1
                            if len(pending) >= PUBLISH_BATCH_SIZE:
                                self._publish(pending)
                                pending = {}
                            continue
                        logger.warning(
                            f"Stored embedding has dimension {len(entry.embedding)}, expected {dimension}; re-encoding",
                            extra={"entry_id": entry_id},
                        )

                    result = self.encoder.encode(entry.embedding_text())
                    self._encode_count += 1
                    if result.degraded:
                        logger.warning(
                            f"Encoding failed for entry, will retry on next backfill: {result.error_message}",
                            extra={"entry_id": entry_id, "section_no": entry.section_no},
                        )
                        report.encode_failures[entry_id] = result.error_message or "encoding failed"
                        continue

                    try:
                        self.store.update_embedding(entry_id, result.vector)
                    except StorageError as e:
                        logger.error(
                            f"Failed to persist embedding, skipping: {e}",
                            extra={"entry_id": entry_id, "section_no": entry.section_no},
                        )
                        report.storage_failures[entry_id] = str(e)
                        continue

                    entry.embedding = result.vector
                    pending[entry_id] = result.vector
                    report.encoded += 1
                    logger.debug(
                        f"Backfilled embedding {compute_vector_hash(result.vector)[:12]}",
                        extra={"entry_id": entry_id, "section_no": entry.section_no},
                    )
                    if len(pending) >= PUBLISH_BATCH_SIZE:
                        self._publish(pending)
                        pending = {}
            finally:
                if pending:
                    self._publish(pending)

        if report.interrupted:
            logger.warning(
                f"Backfill stopped at deadline with {report.pending} entries pending"
            )

        logger.info(
            f"Backfill pass: {report.total} entries, {report.loaded} loaded, "
            f"{report.encoded} encoded, {report.already_cached} already cached, "
            f"{len(report.storage_failures)} storage failures, "
            f"{len(report.encode_failures)} encode failures"
        )
        return report
