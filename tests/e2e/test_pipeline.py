"""
End-to-end tests: corpus file -> store -> backfill -> search.

Uses a file-backed SQLite store and a local WordPiece vocabulary, so no
network or database server is required.
"""

import numpy as np
import pytest

from bns.retrieval.service import RetrievalService
from bns.storage.sqlite_store import SqliteEntryStore
from bns.vector.cache import EmbeddingCache
from bns.vector.encoder import TokenIdEncoder, load_tokenizer


pytestmark = pytest.mark.e2e


def _write_corpus(path, rows):
    lines = ["Section,Title,Description,Punishment"]
    lines += [",".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def theft_vocab(make_vocab):
    """Vocabulary where only 'theft' is known, at id 1000."""
    return make_vocab(["theft"], first_word_id=1000, name="theft_vocab.txt")


@pytest.fixture
def store(tmp_path):
    store = SqliteEntryStore(tmp_path / "bns.db")
    yield store
    store.close()


class TestPipeline:

    def test_theft_query(self, tmp_path, store, theft_vocab):
        """
        Five sections, query 'Theft'.

        theft -> [CLS, 1000, SEP]; unknown words -> [UNK]:
            Theft            -> [101, 1000, 102]            cos 1.000
            Theft of vehicle -> [101, 1000, 100, 100, 102]  cos 0.990
            Murder/Assault/Forgery -> [101, 100, 102]       cos 0.682 (tied)
        """
        corpus = _write_corpus(tmp_path / "bns.csv", [
            ("303", "Theft", "", "Three years"),
            ("103", "Murder", "", "Death"),
            ("115", "Assault", "", "One year"),
            ("336", "Forgery", "", "Two years"),
            ("304", "Theft of vehicle", "", "Three years"),
        ])
        encoder = TokenIdEncoder(load_tokenizer(vocab_path=theft_vocab))
        service = RetrievalService(store, encoder)

        report = service.start(corpus_path=corpus)
        result = service.search("Theft")

        assert report.encoded == 5
        assert [entry.title for entry in result.entries[:2]] == ["Theft", "Theft of vehicle"]
        # Equal scores fall back to ascending id
        assert [entry.title for entry in result.entries[2:]] == ["Murder", "Assault"]
        assert result.hits[0].score == pytest.approx(1.0)
        assert result.hits[1].score == pytest.approx(0.990, abs=1e-3)
        assert result.hits[2].score == result.hits[3].score

    def test_empty_corpus(self, tmp_path, store, encoder):
        corpus = _write_corpus(tmp_path / "bns.csv", [])
        service = RetrievalService(store, encoder)

        service.start(corpus_path=corpus)
        result = service.search("anything")

        assert result.entries == []
        assert not result.degraded

    def test_two_entries_with_k_four(self, tmp_path, store, encoder):
        corpus = _write_corpus(tmp_path / "bns.csv", [
            ("303", "Theft", "Whoever commits theft", "Three years"),
            ("103", "Murder", "Whoever commits murder", "Death"),
        ])
        service = RetrievalService(store, encoder, top_k=4)

        service.start(corpus_path=corpus)
        result = service.search("theft")

        assert len(result) == 2

    def test_record_deleted_after_caching(self, tmp_path, store, encoder):
        """Test a cached id whose record vanished is dropped without error."""
        corpus = _write_corpus(tmp_path / "bns.csv", [
            ("303", "Theft", "Whoever commits theft", "Three years"),
            ("103", "Murder", "Whoever commits murder", "Death"),
            ("115", "Assault", "Whoever commits assault", "One year"),
        ])
        service = RetrievalService(store, encoder)
        service.start(corpus_path=corpus)

        store.delete(2)
        result = service.search("Murder Whoever commits murder")

        assert 2 in [hit.entry_id for hit in result.hits]
        assert [entry.entry_id for entry in result.entries] == [
            hit.entry_id for hit in result.hits if hit.entry_id != 2
        ]
        assert result.degraded

    def test_restart_reuses_persisted_vectors(self, tmp_path, encoder):
        """Test a second process start encodes nothing."""
        db_path = tmp_path / "restart.db"
        corpus = _write_corpus(tmp_path / "bns.csv", [
            ("303", "Theft", "Whoever commits theft", "Three years"),
            ("103", "Murder", "Whoever commits murder", "Death"),
        ])

        with SqliteEntryStore(db_path) as store:
            first = RetrievalService(store, encoder)
            first.start(corpus_path=corpus)
            vectors = {entry_id: vector.copy() for entry_id, vector in first.cache.all().items()}

        with SqliteEntryStore(db_path) as store:
            cache = EmbeddingCache(encoder, store)
            second = RetrievalService(store, encoder, cache=cache)
            report = second.start(corpus_path=corpus)

            assert store.count() == 2
            assert report.loaded == 2
            assert cache.encode_count == 0
            for entry_id, vector in vectors.items():
                assert np.array_equal(cache.get(entry_id), vector)
