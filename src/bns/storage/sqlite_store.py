"""
SQLite-based entry store.

The default backend: a single local database file holding the corpus and
its embeddings.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from ..core.exceptions import EmbeddingCodecError, StorageError
from ..core.types import Entry
from .codec import decode_embedding, encode_embedding
from .entry_store import EntryStore


logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class SqliteEntryStore(EntryStore):
    """
    SQLite-based implementation of the entry store.

    One connection is shared by all threads; every statement runs under a
    lock so concurrent request threads never interleave on it. The sqlite
    busy timeout bounds how long a statement waits for the database.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = MEMORY_PATH,
        timeout_seconds: float = 5.0,
        auto_init: bool = True,
    ):
        """
        Initialize the SQLite entry store.

        Args:
            db_path: Path to the SQLite database file, or ':memory:'
            timeout_seconds: How long to wait on a locked database
            auto_init: Whether to create tables automatically
        """
        self.db_path = str(db_path)
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self.conn = None
        self._connect()

        if auto_init:
            self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        if self.db_path != MEMORY_PATH:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout_seconds,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open SQLite store {self.db_path}: {e}", backend="sqlite")
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite entry store: {self.db_path}")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                # AUTOINCREMENT keeps ids of deleted rows from being reused
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS bns_section (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        section_no TEXT NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL,
                        punishment TEXT NOT NULL,
                        embedding BLOB,
                        embedding_dim INTEGER,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                self.conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize schema: {e}", backend="sqlite")
        logger.debug("Initialized entry store schema")

    def _row_to_entry(self, row: sqlite3.Row) -> Entry:
        """
        Convert a database row to an Entry.

        An unreadable embedding blob is logged and dropped so the entry is
        re-encoded by the next backfill instead of failing the whole read.
        """
        try:
            embedding = decode_embedding(row["embedding"])
        except EmbeddingCodecError as e:
            logger.warning(
                f"Discarding unreadable embedding: {e}",
                extra={"entry_id": row["id"], "backend": "sqlite"},
            )
            embedding = None
        return Entry(
            entry_id=row["id"],
            section_no=row["section_no"],
            title=row["title"],
            description=row["description"],
            punishment=row["punishment"],
            embedding=embedding,
        )

    def load_all(self) -> List[Entry]:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT * FROM bns_section ORDER BY id")
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to load entries: {e}", backend="sqlite")
        return [self._row_to_entry(row) for row in rows]

    def save(self, entry: Entry) -> Entry:
        now = datetime.now(timezone.utc).isoformat()
        blob = encode_embedding(entry.embedding) if entry.has_embedding() else None
        dim = len(entry.embedding) if entry.has_embedding() else None

        with self._lock:
            try:
                cursor = self.conn.cursor()
                if entry.entry_id is None:
                    cursor.execute("""
                        INSERT INTO bns_section (
                            section_no, title, description, punishment,
                            embedding, embedding_dim, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        entry.section_no,
                        entry.title,
                        entry.description,
                        entry.punishment,
                        blob,
                        dim,
                        now,
                        now,
                    ))
                    entry_id = cursor.lastrowid
                else:
                    cursor.execute("""
                        UPDATE bns_section
                        SET section_no = ?, title = ?, description = ?, punishment = ?,
                            embedding = ?, embedding_dim = ?, updated_at = ?
                        WHERE id = ?
                    """, (
                        entry.section_no,
                        entry.title,
                        entry.description,
                        entry.punishment,
                        blob,
                        dim,
                        now,
                        entry.entry_id,
                    ))
                    if cursor.rowcount == 0:
                        self.conn.rollback()
                        raise StorageError(
                            f"Entry {entry.entry_id} does not exist",
                            entry_id=entry.entry_id,
                            backend="sqlite",
                        )
                    entry_id = entry.entry_id
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StorageError(f"Failed to save entry: {e}", entry_id=entry.entry_id, backend="sqlite")

        entry.entry_id = entry_id
        logger.debug(f"Saved entry {entry_id}", extra={"entry_id": entry_id, "section_no": entry.section_no})
        return entry

    def find_by_id(self, entry_id: int) -> Optional[Entry]:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT * FROM bns_section WHERE id = ?", (entry_id,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read entry {entry_id}: {e}", entry_id=entry_id, backend="sqlite")
        return self._row_to_entry(row) if row else None

    def update_embedding(self, entry_id: int, vector: np.ndarray) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("""
                    UPDATE bns_section
                    SET embedding = ?, embedding_dim = ?, updated_at = ?
                    WHERE id = ?
                """, (encode_embedding(vector), len(vector), now, entry_id))
                updated = cursor.rowcount
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StorageError(
                    f"Failed to persist embedding for entry {entry_id}: {e}",
                    entry_id=entry_id,
                    backend="sqlite",
                )
        if updated == 0:
            raise StorageError(f"Entry {entry_id} does not exist", entry_id=entry_id, backend="sqlite")

    def count(self) -> int:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM bns_section")
                return cursor.fetchone()[0]
            except sqlite3.Error as e:
                raise StorageError(f"Failed to count entries: {e}", backend="sqlite")

    def delete(self, entry_id: int) -> bool:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("DELETE FROM bns_section WHERE id = ?", (entry_id,))
                deleted = cursor.rowcount > 0
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StorageError(f"Failed to delete entry {entry_id}: {e}", entry_id=entry_id, backend="sqlite")
        return deleted

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed SQLite entry store")
