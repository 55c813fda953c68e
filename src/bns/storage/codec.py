"""
Binary codec for persisted embeddings.

Vectors are stored as little-endian float32 bytes (4 * D bytes), which
round-trips the token-id vectors losslessly.
"""

import hashlib
from typing import Optional

import numpy as np

from ..core.exceptions import EmbeddingCodecError

EMBEDDING_DTYPE = np.dtype("<f4")


def encode_embedding(vector: np.ndarray) -> bytes:
    """Serialize a 1-d vector to bytes."""
    array = np.asarray(vector, dtype=EMBEDDING_DTYPE)
    if array.ndim != 1:
        raise EmbeddingCodecError(f"Embedding must be 1-dimensional, got shape {array.shape}")
    return array.tobytes()


def decode_embedding(blob: Optional[bytes]) -> Optional[np.ndarray]:
    """
    Deserialize bytes produced by encode_embedding.

    Returns None for a missing or empty blob. The returned array is a
    writable copy, not a view on the blob.
    """
    if blob is None or len(blob) == 0:
        return None
    if len(blob) % EMBEDDING_DTYPE.itemsize != 0:
        raise EmbeddingCodecError(
            f"Embedding blob length {len(blob)} is not a multiple of {EMBEDDING_DTYPE.itemsize}"
        )
    return np.frombuffer(bytes(blob), dtype=EMBEDDING_DTYPE).astype(np.float32)


def compute_vector_hash(vector: np.ndarray) -> str:
    """SHA256 of the serialized vector, for integrity checks and logging."""
    return hashlib.sha256(encode_embedding(vector)).hexdigest()
