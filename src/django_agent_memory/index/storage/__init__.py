from .base import BaseStorageQuerySet, StorageProvider
from .inmemory import InMemoryProvider
from .qdrant import QdrantProvider

__all__ = [
    "StorageProvider",
    "BaseStorageQuerySet",
    "InMemoryProvider",
    "QdrantProvider",
]
