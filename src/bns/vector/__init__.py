"""
Vector components: the token-id encoder and the write-through embedding cache.
"""

from .encoder import TokenIdEncoder, load_tokenizer
from .cache import EmbeddingCache

__all__ = ["TokenIdEncoder", "load_tokenizer", "EmbeddingCache"]
