"""
Unit tests for the SQLite entry store.
"""

import numpy as np
import pytest

from bns.core.exceptions import StorageError
from bns.core.types import Entry
from bns.storage import create_entry_store, create_entry_store_from_config
from bns.storage.sqlite_store import SqliteEntryStore


class TestSqliteEntryStore:
    """Tests for SqliteEntryStore CRUD."""

    def test_save_assigns_ids(self, sqlite_store, make_entry):
        """Test new entries get increasing ids."""
        first = sqlite_store.save(make_entry("Theft"))
        second = sqlite_store.save(make_entry("Murder"))

        assert first.entry_id == 1
        assert second.entry_id == 2
        assert sqlite_store.count() == 2

    def test_find_by_id(self, sqlite_store):
        """Test a saved entry reads back field for field."""
        saved = sqlite_store.save(Entry(
            section_no="303",
            title="Theft",
            description="Whoever commits theft",
            punishment="Imprisonment up to three years",
        ))

        found = sqlite_store.find_by_id(saved.entry_id)

        assert found == saved
        assert found.embedding is None

    def test_find_missing_returns_none(self, sqlite_store):
        """Test looking up an unknown id returns None."""
        assert sqlite_store.find_by_id(404) is None

    def test_load_all_in_id_order(self, populated_store):
        """Test load_all returns every entry ordered by id."""
        entries = populated_store.load_all()

        assert [entry.entry_id for entry in entries] == [1, 2, 3, 4, 5]
        assert entries[0].title == "Theft"

    def test_update_embedding_roundtrip(self, populated_store):
        """Test stored vectors read back exactly."""
        vector = np.zeros(128, dtype=np.float32)
        vector[:4] = [101, 29000, 30521, 102]

        populated_store.update_embedding(1, vector)
        found = populated_store.find_by_id(1)

        assert found.embedding.dtype == np.float32
        assert np.array_equal(found.embedding, vector)

    def test_unreadable_embedding_dropped(self, populated_store):
        """Test a corrupt blob reads back as no embedding instead of failing."""
        populated_store.conn.execute(
            "UPDATE bns_section SET embedding = ? WHERE id = 2", (b"\x01\x02\x03",)
        )
        populated_store.conn.commit()

        entries = populated_store.load_all()

        assert len(entries) == 5
        assert entries[1].embedding is None
        assert populated_store.find_by_id(2).embedding is None

    def test_update_embedding_missing_entry(self, sqlite_store):
        """Test writing a vector for an unknown id raises StorageError."""
        with pytest.raises(StorageError) as exc_info:
            sqlite_store.update_embedding(99, np.zeros(4, dtype=np.float32))

        assert exc_info.value.entry_id == 99

    def test_save_existing_updates(self, populated_store):
        """Test saving an entry with an id updates it in place."""
        entry = populated_store.find_by_id(2)
        entry.punishment = "Death or imprisonment for life"

        populated_store.save(entry)

        assert populated_store.find_by_id(2).punishment == "Death or imprisonment for life"
        assert populated_store.count() == 5

    def test_save_unknown_id_raises(self, sqlite_store, make_entry):
        """Test updating a nonexistent row raises StorageError."""
        entry = make_entry("Ghost")
        entry.entry_id = 42

        with pytest.raises(StorageError):
            sqlite_store.save(entry)

    def test_delete(self, populated_store):
        """Test delete removes the row and reports whether it existed."""
        assert populated_store.delete(3) is True
        assert populated_store.delete(3) is False
        assert populated_store.find_by_id(3) is None
        assert populated_store.count() == 4

    def test_ids_not_reused_after_delete(self, sqlite_store, make_entry):
        """Test a deleted id is never handed out again."""
        sqlite_store.save(make_entry("Theft"))
        second = sqlite_store.save(make_entry("Murder"))
        sqlite_store.delete(second.entry_id)

        third = sqlite_store.save(make_entry("Assault"))

        assert third.entry_id == 3

    def test_persists_across_connections(self, tmp_path, make_entry):
        """Test a file-backed store keeps entries and vectors after reopening."""
        db_path = tmp_path / "nested" / "bns.db"
        with SqliteEntryStore(db_path) as store:
            saved = store.save(make_entry("Theft"))
            store.update_embedding(saved.entry_id, np.arange(8, dtype=np.float32))

        with SqliteEntryStore(db_path) as store:
            found = store.find_by_id(saved.entry_id)

        assert found.title == "Theft"
        assert found.embedding.tolist() == list(range(8))


class TestStoreFactory:
    """Tests for create_entry_store."""

    def test_sqlite_backend(self, tmp_path):
        store = create_entry_store("sqlite", db_path=tmp_path / "bns.db")
        try:
            assert isinstance(store, SqliteEntryStore)
        finally:
            store.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            create_entry_store("postgres")

    def test_from_config(self, tmp_path):
        store = create_entry_store_from_config({
            "backend": "sqlite",
            "sqlite": {"path": str(tmp_path / "cfg.db"), "timeout_seconds": 1.0},
        })
        try:
            assert store.db_path == str(tmp_path / "cfg.db")
            assert store.timeout_seconds == 1.0
        finally:
            store.close()
