"""
BNS Section Search

Answers natural-language queries with the most relevant sections of the
Bharatiya Nyaya Sanhita corpus.

Key components:
- vector/encoder.py: deterministic token-id encoder
- vector/cache.py: write-through embedding cache
- retrieval/search.py: cosine similarity ranking
- retrieval/service.py: RetrievalService orchestrating a query
- storage/: entry storage backends (SQLite, SQL Server)
- ingest/: one-time corpus import from the spreadsheet
- api/: HTTP query endpoint
"""

__version__ = "0.1.0"
