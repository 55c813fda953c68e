"""
Corpus ingestion.
"""

from .corpus_loader import bootstrap_corpus, read_corpus

__all__ = ["bootstrap_corpus", "read_corpus"]
