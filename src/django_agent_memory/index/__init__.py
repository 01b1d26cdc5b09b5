from .base import MemoryIndex
from .embedding import CoreEmbeddingProvider, EmbeddingProvider
from .exceptions import (
    ConfigurationError,
    EmbeddingTimeout,
    MemoryIndexError,
    StoreUnavailable,
    UpstreamError,
)
from .schema import (
    Document,
    IndexResult,
    IndexStats,
    Record,
    Scope,
    SearchResult,
    SearchResults,
)
from .source import AgentsDirectorySource, GlobalSource, Source, WorkspaceSource
from .storage import InMemoryProvider, QdrantProvider, StorageProvider

_memory_index: MemoryIndex | None = None


def get_memory_index() -> MemoryIndex:
    """Return the index opened when the app started."""
    if _memory_index is None:
        raise StoreUnavailable(
            "The memory index has not been opened. Is 'django_agent_memory' in INSTALLED_APPS?"
        )
    return _memory_index


def set_memory_index(index: MemoryIndex | None) -> MemoryIndex | None:
    """Replace the app's index, returning the previous one (which is not closed)."""
    global _memory_index
    previous, _memory_index = _memory_index, index
    return previous


__all__ = [
    "AgentsDirectorySource",
    "ConfigurationError",
    "CoreEmbeddingProvider",
    "Document",
    "EmbeddingProvider",
    "EmbeddingTimeout",
    "GlobalSource",
    "IndexResult",
    "IndexStats",
    "InMemoryProvider",
    "MemoryIndex",
    "MemoryIndexError",
    "QdrantProvider",
    "Record",
    "Scope",
    "SearchResult",
    "SearchResults",
    "Source",
    "StorageProvider",
    "StoreUnavailable",
    "UpstreamError",
    "WorkspaceSource",
    "get_memory_index",
    "set_memory_index",
]
