"""
Document store abstraction layer.

Provides the abstract DocumentStore interface and its implementations
(in-memory, SQLite, Cosmos DB). Each backend implements the same interface,
allowing seamless switching.
"""

from .base import DocumentStore, OrderBy
from .memory import MemoryDocumentStore

__all__ = [
    # Core classes
    "DocumentStore",
    "OrderBy",
    # Implementations
    "MemoryDocumentStore",
]
