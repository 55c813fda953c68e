"""
SQL Server-based entry store.

For deployments that keep the corpus in a shared SQL Server database.
"""

import logging
import re
import threading
from typing import List, Optional

import numpy as np

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..core.exceptions import EmbeddingCodecError, StorageError
from ..core.types import Entry
from .codec import decode_embedding, encode_embedding
from .entry_store import EntryStore


logger = logging.getLogger(__name__)

_COLUMNS = "id, section_no, title, description, punishment, embedding"


class SqlServerEntryStore(EntryStore):
    """
    SQL Server-based implementation of the entry store.

    Each thread gets its own pyodbc connection. Login and query timeouts
    keep a stalled server from blocking request threads indefinitely.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "Bns",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "bns",
        login_timeout_seconds: int = 10,
        query_timeout_seconds: int = 30,
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server entry store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for tables (default: 'bns')
            login_timeout_seconds: Connection timeout
            query_timeout_seconds: Per-statement timeout
            auto_init: Whether to create schema and tables automatically
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerEntryStore. "
                "Install with: pip install pyodbc"
            )

        if not self._is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema
        self.login_timeout_seconds = login_timeout_seconds
        self.query_timeout_seconds = query_timeout_seconds

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self._thread_local = threading.local()
        self._connections = []
        self._connections_lock = threading.Lock()
        self._get_conn()
        logger.debug(f"Connected to SQL Server entry store (schema: {self.schema})")

        if auto_init:
            self._init_schema()

    @staticmethod
    def _is_valid_identifier(name: str) -> bool:
        """
        Validate that a name is a safe SQL identifier.

        Letters, digits and underscores only, starting with a letter or
        underscore, at most 128 characters.
        """
        if not name or len(name) > 128:
            return False
        return re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name) is not None

    def _get_conn(self):
        """Get (or create) a thread-local connection for safe concurrent use."""
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            try:
                conn = pyodbc.connect(self.connection_string, timeout=self.login_timeout_seconds)
            except pyodbc.Error as e:
                logger.error(f"Failed to connect to SQL Server: {e}")
                raise StorageError(f"Failed to connect to SQL Server: {e}", backend="sqlserver")
            conn.timeout = self.query_timeout_seconds
            self._thread_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema and tables."""
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot be parameterized
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = 'section' AND s.name = ?)
                BEGIN
                    CREATE TABLE [{self.schema}].[section] (
                        id BIGINT IDENTITY(1,1) PRIMARY KEY,
                        section_no NVARCHAR(50) NOT NULL,
                        title NVARCHAR(500) NOT NULL,
                        description NVARCHAR(MAX) NOT NULL,
                        punishment NVARCHAR(MAX) NOT NULL,
                        embedding VARBINARY(MAX),
                        embedding_dim INT,
                        created_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME(),
                        updated_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
                    )
                END
            """, (self.schema,))
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to initialize schema: {e}", backend="sqlserver")
        logger.debug("Initialized entry store schema")

    def _row_to_entry(self, row) -> Entry:
        try:
            embedding = decode_embedding(row[5])
        except EmbeddingCodecError as e:
            # Re-encoded by the next backfill
            logger.warning(
                f"Discarding unreadable embedding: {e}",
                extra={"entry_id": int(row[0]), "backend": "sqlserver"},
            )
            embedding = None
        return Entry(
            entry_id=int(row[0]),
            section_no=row[1],
            title=row[2],
            description=row[3],
            punishment=row[4],
            embedding=embedding,
        )

    def load_all(self) -> List[Entry]:
        try:
            cursor = self._get_conn().cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM [{self.schema}].[section] ORDER BY id")
            rows = cursor.fetchall()
        except pyodbc.Error as e:
            raise StorageError(f"Failed to load entries: {e}", backend="sqlserver")
        return [self._row_to_entry(row) for row in rows]

    def save(self, entry: Entry) -> Entry:
        blob = encode_embedding(entry.embedding) if entry.has_embedding() else None
        dim = len(entry.embedding) if entry.has_embedding() else None
        conn = self._get_conn()

        try:
            cursor = conn.cursor()
            if entry.entry_id is None:
                cursor.execute(f"""
                    INSERT INTO [{self.schema}].[section]
                        (section_no, title, description, punishment, embedding, embedding_dim)
                    OUTPUT INSERTED.id
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    entry.section_no,
                    entry.title,
                    entry.description,
                    entry.punishment,
                    blob,
                    dim,
                ))
                entry_id = int(cursor.fetchone()[0])
            else:
                cursor.execute(f"""
                    UPDATE [{self.schema}].[section]
                    SET section_no = ?, title = ?, description = ?, punishment = ?,
                        embedding = ?, embedding_dim = ?, updated_at = SYSUTCDATETIME()
                    WHERE id = ?
                """, (
                    entry.section_no,
                    entry.title,
                    entry.description,
                    entry.punishment,
                    blob,
                    dim,
                    entry.entry_id,
                ))
                if cursor.rowcount == 0:
                    conn.rollback()
                    raise StorageError(
                        f"Entry {entry.entry_id} does not exist",
                        entry_id=entry.entry_id,
                        backend="sqlserver",
                    )
                entry_id = entry.entry_id
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to save entry: {e}", entry_id=entry.entry_id, backend="sqlserver")

        entry.entry_id = entry_id
        return entry

    def find_by_id(self, entry_id: int) -> Optional[Entry]:
        try:
            cursor = self._get_conn().cursor()
            cursor.execute(
                f"SELECT {_COLUMNS} FROM [{self.schema}].[section] WHERE id = ?",
                (entry_id,)
            )
            row = cursor.fetchone()
        except pyodbc.Error as e:
            raise StorageError(f"Failed to read entry {entry_id}: {e}", entry_id=entry_id, backend="sqlserver")
        return self._row_to_entry(row) if row else None

    def update_embedding(self, entry_id: int, vector: np.ndarray) -> None:
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                UPDATE [{self.schema}].[section]
                SET embedding = ?, embedding_dim = ?, updated_at = SYSUTCDATETIME()
                WHERE id = ?
            """, (encode_embedding(vector), len(vector), entry_id))
            updated = cursor.rowcount
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            raise StorageError(
                f"Failed to persist embedding for entry {entry_id}: {e}",
                entry_id=entry_id,
                backend="sqlserver",
            )
        if updated == 0:
            raise StorageError(f"Entry {entry_id} does not exist", entry_id=entry_id, backend="sqlserver")

    def count(self) -> int:
        try:
            cursor = self._get_conn().cursor()
            cursor.execute(f"SELECT COUNT(*) FROM [{self.schema}].[section]")
            return int(cursor.fetchone()[0])
        except pyodbc.Error as e:
            raise StorageError(f"Failed to count entries: {e}", backend="sqlserver")

    def delete(self, entry_id: int) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(f"DELETE FROM [{self.schema}].[section] WHERE id = ?", (entry_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to delete entry {entry_id}: {e}", entry_id=entry_id, backend="sqlserver")
        return deleted

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except pyodbc.Error as e:
                    logger.debug(f"Error closing SQL Server connection: {e}")
            self._connections.clear()
        self._thread_local = threading.local()
