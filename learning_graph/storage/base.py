"""
Base storage interface for the learning graph.
"""

from abc import ABC, abstractmethod


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Implementations may use SQLite, PostgreSQL, an in-process dict, etc.
    """

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to storage backend."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to storage backend."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if storage is healthy and accessible."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if currently connected."""
        pass
