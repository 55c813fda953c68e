"""
Entry store interface for persisting corpus entries and their embeddings.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from ..core.types import Entry


class EntryStore(ABC):
    """
    Abstract base class for entry stores.

    Entry stores are the durable, authoritative copy of the corpus. The
    in-memory embedding cache is rebuilt from them at every startup.

    Implementations raise StorageError for any backend failure.
    """

    @abstractmethod
    def load_all(self) -> List[Entry]:
        """
        Load every stored entry, ordered by entry_id.

        Returns:
            List of entries, with embeddings where persisted
        """
        pass

    @abstractmethod
    def save(self, entry: Entry) -> Entry:
        """
        Insert a new entry, or update it when entry_id is already set.

        Args:
            entry: The entry to save

        Returns:
            The saved entry with its assigned entry_id
        """
        pass

    @abstractmethod
    def find_by_id(self, entry_id: int) -> Optional[Entry]:
        """
        Get a specific entry by ID.

        Args:
            entry_id: ID of the entry

        Returns:
            Entry if found, None otherwise
        """
        pass

    @abstractmethod
    def update_embedding(self, entry_id: int, vector: np.ndarray) -> None:
        """
        Persist the embedding of an existing entry.

        Args:
            entry_id: ID of the entry
            vector: Fixed-length embedding

        Raises:
            StorageError: If the write fails or the entry does not exist
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored entries."""
        pass

    @abstractmethod
    def delete(self, entry_id: int) -> bool:
        """
        Delete an entry.

        Returns:
            True if an entry was deleted
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the store and release resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()
