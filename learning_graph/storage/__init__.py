"""
Storage backends for the learning graph.

GraphStorage is the collaborator interface the services depend on;
InMemoryGraphStorage and SQLiteGraphStorage implement it.
"""

from .base import StorageBackend
from .documents import DocumentSource, InMemoryDocumentSource
from .graph import GraphStorage
from .memory import InMemoryGraphStorage
from .sqlite import SQLiteGraphStorage

__all__ = [
    "StorageBackend",
    "GraphStorage",
    "InMemoryGraphStorage",
    "SQLiteGraphStorage",
    "DocumentSource",
    "InMemoryDocumentSource",
]
