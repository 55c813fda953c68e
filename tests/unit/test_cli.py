"""
Unit tests for the bns command line.
"""

import json
import logging

import pytest

from bns.cli import main


@pytest.fixture(autouse=True)
def reset_bns_logger():
    yield
    bns_logger = logging.getLogger("bns")
    for handler in list(bns_logger.handlers):
        bns_logger.removeHandler(handler)
    bns_logger.setLevel(logging.NOTSET)


@pytest.fixture
def cli_env(tmp_path, vocab_path, monkeypatch):
    corpus = tmp_path / "bns.csv"
    corpus.write_text(
        "Section,Title,Description,Punishment\n"
        "303,Theft,Whoever commits theft,Three years\n"
        "103,Murder,Whoever commits murder,Death\n"
        "115,Assault,Whoever commits assault,One year\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("BNS_SQLITE_PATH", str(tmp_path / "bns.db"))
    monkeypatch.setenv("BNS_TOKENIZER_VOCAB", str(vocab_path))
    for name in ("BNS_DB_BACKEND", "BNS_CORPUS_PATH", "BNS_TOP_K", "BNS_MAX_LENGTH"):
        monkeypatch.delenv(name, raising=False)
    return corpus


class TestCli:

    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_load_then_search(self, cli_env, capsys):
        assert main(["load", "--corpus", str(cli_env)]) == 0
        assert "Imported 3 sections" in capsys.readouterr().out

        assert main(["search", "Assault Whoever commits assault", "--json"]) == 0
        output = json.loads(capsys.readouterr().out)

        assert output["degraded"] is False
        assert [item["title"] for item in output["results"]][0] == "Assault"
        assert all("embedding" not in item for item in output["results"])

    def test_backfill_report(self, cli_env, capsys):
        main(["load", "--corpus", str(cli_env)])
        capsys.readouterr()

        assert main(["backfill"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["encoded"] == 3

        assert main(["backfill"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["encoded"] == 0
        assert report["loaded"] == 3

    def test_load_without_corpus(self, cli_env):
        assert main(["load"]) == 2

    def test_load_missing_corpus_file(self, cli_env, tmp_path):
        assert main(["load", "--corpus", str(tmp_path / "missing.xlsx")]) == 1

    def test_missing_config_file(self, cli_env, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml"), "backfill"]) == 2

    def test_search_without_vocab(self, cli_env, tmp_path, monkeypatch):
        monkeypatch.setenv("BNS_TOKENIZER_VOCAB", str(tmp_path / "missing.txt"))

        assert main(["search", "theft"]) == 3
