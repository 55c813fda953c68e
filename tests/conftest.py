"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_connection_string() -> Optional[str]:
    """Build a connection string from the environment, or None if not configured."""
    conn_str = os.environ.get("BNS_SQLSERVER_CONN_STR")
    if conn_str:
        return conn_str

    password = os.environ.get("BNS_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")
    if not password:
        return None

    host = os.environ.get("BNS_SQLSERVER_HOST", "localhost")
    port = int(os.environ.get("BNS_SQLSERVER_PORT", "1433"))
    database = os.environ.get("BNS_SQLSERVER_DATABASE", "Bns")
    username = os.environ.get("BNS_SQLSERVER_USER", "sa")
    driver = os.environ.get("BNS_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server")

    return (
        f"Driver={{{driver}}};"
        f"Server={host},{port};"
        f"Database={database};"
        f"UID={username};"
        f"PWD={password};"
        f"TrustServerCertificate=yes"
    )


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    conn_str = sqlserver_connection_string()
    if not conn_str:
        return False

    try:
        import pyodbc

        conn = pyodbc.connect(conn_str, timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (SQLite store, local vocabulary)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set BNS_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Vocabulary fixtures
# ============================================================================

# BERT layout: [PAD]=0, [unused0..98]=1..99, [UNK]=100, [CLS]=101, [SEP]=102, [MASK]=103
SPECIAL_TOKENS = (
    ["[PAD]"]
    + [f"[unused{i}]" for i in range(99)]
    + ["[UNK]", "[CLS]", "[SEP]", "[MASK]"]
)
PAD_ID, UNK_ID, CLS_ID, SEP_ID = 0, 100, 101, 102
FIRST_WORD_ID = len(SPECIAL_TOKENS)

# Ids: the=104, of=105, theft=106, vehicle=107, murder=108, ...
LEGAL_WORDS = [
    "the", "of", "theft", "vehicle", "murder", "assault", "forgery",
    "punishment", "imprisonment", "fine", "whoever", "commits", "property",
]


@pytest.fixture
def make_vocab(tmp_path) -> Callable[..., Path]:
    """
    Factory writing a WordPiece vocab file.

    `first_word_id` pads the vocabulary with filler tokens so the first
    word lands on that id.
    """
    def _make(words: List[str], first_word_id: int = FIRST_WORD_ID, name: str = "vocab.txt") -> Path:
        fillers = [f"[unused{i}]" for i in range(99, 99 + first_word_id - FIRST_WORD_ID)]
        path = tmp_path / name
        path.write_text("\n".join(SPECIAL_TOKENS + fillers + list(words)) + "\n", encoding="utf-8")
        return path
    return _make


@pytest.fixture
def vocab_path(make_vocab) -> Path:
    return make_vocab(LEGAL_WORDS)


@pytest.fixture
def encoder(vocab_path):
    from bns.vector.encoder import TokenIdEncoder, load_tokenizer

    return TokenIdEncoder(load_tokenizer(vocab_path=vocab_path), max_length=128)


# ============================================================================
# Store fixtures
# ============================================================================

@pytest.fixture
def sqlite_store():
    """In-memory SQLite entry store."""
    from bns.storage.sqlite_store import SqliteEntryStore

    store = SqliteEntryStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def make_entry():
    """Factory for unsaved entries."""
    from bns.core.types import Entry

    def _make(title: str, description: str = "", section_no: str = "0", punishment: str = "") -> Entry:
        return Entry(
            section_no=section_no,
            title=title,
            description=description,
            punishment=punishment,
        )
    return _make


@pytest.fixture
def populated_store(sqlite_store, make_entry):
    """Store holding a handful of sections, without embeddings."""
    for number, (title, description) in enumerate([
        ("Theft", "Whoever commits theft of property"),
        ("Murder", "Whoever commits murder"),
        ("Assault", "Whoever commits assault"),
        ("Forgery", "Whoever commits forgery"),
        ("Theft of vehicle", "Theft of the vehicle"),
    ], start=303):
        sqlite_store.save(make_entry(title, description, section_no=str(number), punishment="imprisonment"))
    return sqlite_store
