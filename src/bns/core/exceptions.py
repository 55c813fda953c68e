"""
Custom exceptions for the BNS section search module.
"""


class BnsError(Exception):
    """Base exception for all BNS search errors."""
    pass


class EncoderUnavailableError(BnsError):
    """
    The encoder cannot run at all.

    Raised when:
    - The tokenizer vocabulary could not be loaded at startup
    - An encoder was constructed without a tokenizer

    Per-text tokenization failures are NOT raised; they are reported as a
    degraded EncodeResult instead.
    """
    pass


class StorageError(BnsError):
    """
    Error reading from or writing to entry storage.

    Raised when:
    - The backing database is unreachable or times out
    - A read or write statement fails
    """

    def __init__(self, message: str, entry_id: int = None, backend: str = None):
        super().__init__(message)
        self.entry_id = entry_id
        self.backend = backend


class EmbeddingCodecError(StorageError):
    """A persisted embedding blob cannot be decoded."""
    pass


class CorpusLoadError(BnsError):
    """
    Error reading the static corpus spreadsheet.

    Raised when:
    - The corpus file does not exist
    - The workbook or CSV cannot be parsed
    - A row has fewer than the four expected columns
    """

    def __init__(self, message: str, path: str = None, row_number: int = None):
        super().__init__(message)
        self.path = path
        self.row_number = row_number


class ConfigError(BnsError):
    """
    Error in configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Configuration values are out of valid range
    """
    pass
