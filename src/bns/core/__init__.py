"""
Core subpackage for BNS section search.

Contains types, exceptions, and logging utilities.
"""

from .types import (
    Entry,
    EncodeResult,
    RankedHit,
    BackfillReport,
    SearchResult,
)
from .exceptions import (
    BnsError,
    EncoderUnavailableError,
    StorageError,
    EmbeddingCodecError,
    CorpusLoadError,
    ConfigError,
)

__all__ = [
    # Types
    "Entry",
    "EncodeResult",
    "RankedHit",
    "BackfillReport",
    "SearchResult",
    # Exceptions
    "BnsError",
    "EncoderUnavailableError",
    "StorageError",
    "EmbeddingCodecError",
    "CorpusLoadError",
    "ConfigError",
]
