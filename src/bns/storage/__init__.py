"""
Entry store implementations.

The default backend is SQLite (SqliteEntryStore). SQL Server
(SqlServerEntryStore) needs the optional pyodbc dependency.

To select backend, set `storage.backend` in the config file or the
BNS_DB_BACKEND environment variable:
    - BNS_DB_BACKEND=sqlite (default)
    - BNS_DB_BACKEND=sqlserver
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .entry_store import EntryStore
from .sqlite_store import SqliteEntryStore


logger = logging.getLogger(__name__)


def _get_sqlserver_store():
    from .sqlserver_store import SqlServerEntryStore
    return SqlServerEntryStore


def create_entry_store(
    backend: str = "sqlite",
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    timeout_seconds: float = 5.0,
    # SQL Server options
    sqlserver: Optional[Dict[str, Any]] = None,
) -> EntryStore:
    """
    Factory function to create the configured entry store.

    Args:
        backend: Backend type ('sqlite' or 'sqlserver')
        db_path: Path to SQLite database file (default: local/bns.db)
        timeout_seconds: SQLite busy timeout
        sqlserver: Keyword arguments for SqlServerEntryStore

    Returns:
        EntryStore instance

    Raises:
        ValueError: If backend is not recognized
        ImportError: If pyodbc is missing for the sqlserver backend
    """
    backend = (backend or "sqlite").lower()

    if backend == "sqlite":
        if db_path is None:
            db_path = Path("local/bns.db")
        logger.info(f"Using SQLite entry store at {db_path}")
        return SqliteEntryStore(db_path=db_path, timeout_seconds=timeout_seconds)

    elif backend == "sqlserver":
        SqlServerEntryStore = _get_sqlserver_store()
        options = {k: v for k, v in (sqlserver or {}).items() if v is not None}
        logger.info(f"Using SQL Server entry store (schema: {options.get('schema', 'bns')})")
        return SqlServerEntryStore(**options)

    else:
        raise ValueError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'sqlite' (default), 'sqlserver'"
        )


def create_entry_store_from_config(storage_config: Dict[str, Any]) -> EntryStore:
    """Create the entry store described by the `storage` config section."""
    sqlite_config = storage_config.get("sqlite", {})
    return create_entry_store(
        backend=storage_config.get("backend", "sqlite"),
        db_path=sqlite_config.get("path"),
        timeout_seconds=sqlite_config.get("timeout_seconds", 5.0),
        sqlserver=storage_config.get("sqlserver"),
    )


__all__ = [
    "EntryStore",
    "SqliteEntryStore",
    "create_entry_store",
    "create_entry_store_from_config",
]
