"""
Token-id encoder.

Turns text into a fixed-length vector by tokenizing it with a BERT WordPiece
vocabulary and using the resulting token ids as the vector components:

    "Theft" -> [CLS] theft [SEP] -> [101.0, 11933.0, 102.0, 0.0, ..., 0.0]

This is a lexical placeholder, not a semantic model. What it guarantees is
reproducibility (same text, same vector) and a fixed dimension.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from tokenizers import BertWordPieceTokenizer, Tokenizer

from ..core.exceptions import EncoderUnavailableError
from ..core.types import EncodeResult


logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 128
DEFAULT_PRETRAINED = "bert-base-uncased"


def load_tokenizer(
    vocab_path: Optional[Union[str, Path]] = None,
    pretrained: Optional[str] = DEFAULT_PRETRAINED,
    revision: Optional[str] = None,
    lowercase: bool = True,
):
    """
    Load the tokenizer once at process start.

    A local `vocab.txt` (one WordPiece token per line, id = line number) takes
    precedence over a pretrained tokenizer name.

    Args:
        vocab_path: Path to a WordPiece vocabulary file
        pretrained: HuggingFace Hub tokenizer name (e.g. 'bert-base-uncased')
        revision: Hub revision to pin the vocabulary version
        lowercase: Lowercase text before tokenizing (local vocab only)

    Returns:
        A tokenizer whose `encode(text).ids` yields token ids

    Raises:
        EncoderUnavailableError: If no vocabulary can be loaded
    """
    if vocab_path:
        path = Path(vocab_path)
        if not path.exists():
            raise EncoderUnavailableError(f"Vocabulary file not found: {path}")
        try:
            tokenizer = BertWordPieceTokenizer.from_file(str(path), lowercase=lowercase)
        except Exception as e:
            raise EncoderUnavailableError(f"Failed to load vocabulary {path}: {e}") from e
        logger.info(f"Loaded WordPiece vocabulary from {path} ({tokenizer.get_vocab_size()} tokens)")
        return tokenizer

    if pretrained:
        try:
            tokenizer = Tokenizer.from_pretrained(pretrained, revision=revision or "main")
        except Exception as e:
            raise EncoderUnavailableError(f"Failed to load tokenizer '{pretrained}': {e}") from e
        logger.info(f"Loaded pretrained tokenizer {pretrained} (revision: {revision or 'main'})")
        return tokenizer

    raise EncoderUnavailableError("No tokenizer configured: set encoder.vocab_path or encoder.pretrained")


class TokenIdEncoder:
    """
    Deterministic text -> vector encoder.

    The vector is the token-id sequence, zero-padded on the right to
    `max_length` or truncated on the right to it. Empty text encodes to the
    all-zero vector. A tokenizer failure on a particular text also yields
    the all-zero vector, flagged as degraded in the EncodeResult.

    An encoder without a tokenizer is unavailable: `encode` raises
    EncoderUnavailableError.

    Ranking quality is lexical at best. Cosine over raw ids is dominated by
    the largest ids and by [CLS]/[SEP] sitting in the same positions, so with
    the default bert-base-uncased vocabulary short texts all score close to
    1.0 against each other ("Theft" vs "Murder" is about 0.9997, above
    "Theft" vs "Theft of vehicle" at about 0.93). Expect meaningful ordering
    only from queries that share leading tokens with an entry's text.

    Example:
        >>> encoder = TokenIdEncoder(load_tokenizer(vocab_path="vocab.txt"))
        >>> result = encoder.encode("theft of vehicle")
        >>> len(result.vector)
        128
    """

    def __init__(self, tokenizer=None, max_length: int = DEFAULT_MAX_LENGTH):
        """
        Initialize the encoder.

        Args:
            tokenizer: Object with `encode(text).ids`, or None if loading failed
            max_length: Embedding dimension D
        """
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self._tokenizer = tokenizer
        self.max_length = max_length

    @classmethod
    def from_config(cls, encoder_config: dict) -> "TokenIdEncoder":
        """
        Build the encoder from the `encoder` config section.

        A vocabulary that fails to load is logged and leaves the encoder
        unavailable instead of stopping the process.
        """
        max_length = encoder_config.get("max_length", DEFAULT_MAX_LENGTH)
        try:
            tokenizer = load_tokenizer(
                vocab_path=encoder_config.get("vocab_path"),
                pretrained=encoder_config.get("pretrained"),
                revision=encoder_config.get("revision"),
                lowercase=encoder_config.get("lowercase", True),
            )
        except EncoderUnavailableError as e:
            logger.error(f"Encoder unavailable: {e}")
            tokenizer = None
        return cls(tokenizer=tokenizer, max_length=max_length)

    @property
    def dimension(self) -> int:
        return self.max_length

    @property
    def ready(self) -> bool:
        return self._tokenizer is not None

    def zero_vector(self) -> np.ndarray:
        return np.zeros(self.max_length, dtype=np.float32)

    def encode(self, text: Optional[str]) -> EncodeResult:
        """
        Encode text into a vector of exactly `max_length` components.

        Raises:
            EncoderUnavailableError: If no tokenizer was loaded
        """
        if self._tokenizer is None:
            raise EncoderUnavailableError("Encoder has no tokenizer loaded")

        vector = self.zero_vector()
        if text is None or not text.strip():
            return EncodeResult(vector=vector)

        try:
            ids = list(self._tokenizer.encode(text).ids)
        except Exception as e:
            logger.warning(f"Tokenization failed, using zero vector: {e}")
            return EncodeResult(vector=vector, success=False, error_message=str(e))

        ids = ids[: self.max_length]
        vector[: len(ids)] = ids
        return EncodeResult(vector=vector)
