"""
Unit tests for the embedding blob codec.
"""

import numpy as np
import pytest

from bns.core.exceptions import EmbeddingCodecError, StorageError
from bns.storage.codec import compute_vector_hash, decode_embedding, encode_embedding


class TestEmbeddingCodec:

    def test_blob_is_little_endian_float32(self):
        """Test the wire layout is 4 bytes per component, little-endian."""
        blob = encode_embedding(np.array([1.0, 101.0], dtype=np.float32))

        assert len(blob) == 8
        assert blob[:4] == b"\x00\x00\x80\x3f"

    def test_token_ids_survive_exactly(self):
        """Test large integer ids round-trip without loss."""
        vector = np.array([101, 30521, 29999, 102, 0, 0], dtype=np.float32)

        decoded = decode_embedding(encode_embedding(vector))

        assert decoded.tolist() == [101.0, 30521.0, 29999.0, 102.0, 0.0, 0.0]

    def test_decoded_array_is_writable_copy(self):
        decoded = decode_embedding(encode_embedding(np.ones(3)))

        decoded[0] = 5.0
        assert decoded[0] == 5.0

    def test_missing_blob(self):
        assert decode_embedding(None) is None
        assert decode_embedding(b"") is None

    def test_truncated_blob(self):
        """Test a blob that is not a whole number of floats is rejected."""
        with pytest.raises(EmbeddingCodecError):
            decode_embedding(b"\x00\x00\x80")

    def test_codec_error_is_storage_error(self):
        assert issubclass(EmbeddingCodecError, StorageError)

    def test_rejects_matrix(self):
        with pytest.raises(EmbeddingCodecError, match="1-dimensional"):
            encode_embedding(np.zeros((2, 2)))

    def test_hash_is_stable(self):
        vector = np.array([101.0, 102.0], dtype=np.float32)

        assert compute_vector_hash(vector) == compute_vector_hash(vector.copy())
        assert compute_vector_hash(vector) != compute_vector_hash(vector[::-1].copy())
        assert len(compute_vector_hash(vector)) == 64
