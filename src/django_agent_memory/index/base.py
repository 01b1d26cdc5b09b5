import logging
from pathlib import Path
from typing import Iterable

from .embedding import CoreEmbeddingProvider, EmbeddingProvider
from .exceptions import ConfigurationError
from .indexer import Indexer
from .query import (
    DEFAULT_LIMIT,
    DEFAULT_MIN_SCORE,
    DEFAULT_SCOPE_TIMEOUT,
    DEFAULT_SNIPPET_LENGTH,
    QueryHandler,
)
from .schema import Document, IndexResult, IndexStats, Scope, SearchResults
from .scopes import DEFAULT_COLLECTION_PREFIX, ScopeStoreManager
from .source import AgentsDirectorySource, GlobalSource, Source, WorkspaceSource
from .stats import IndexAdmin
from .storage.base import StorageProvider

logger = logging.getLogger(__name__)


class MemoryIndex:
    """Semantic memory index over scope-partitioned vector stores.

    The index owns its storage connection: call ``open()`` before use and
    ``close()`` when done, or use it as a context manager::

        with MemoryIndex(embedding_provider=..., storage_provider=...) as index:
            await index.index_one(document)
    """

    def __init__(
        self,
        *,
        embedding_provider: EmbeddingProvider,
        storage_provider: StorageProvider,
        collection_prefix: str = DEFAULT_COLLECTION_PREFIX,
        scope_timeout: float | None = DEFAULT_SCOPE_TIMEOUT,
        snippet_length: int = DEFAULT_SNIPPET_LENGTH,
    ):
        self.embedding_provider = embedding_provider
        self.storage_provider = storage_provider
        self.scope_manager = ScopeStoreManager(
            storage_provider,
            dimensions=embedding_provider.dimensions,
            collection_prefix=collection_prefix,
        )
        self.indexer = Indexer(
            embedding_provider=embedding_provider, scope_manager=self.scope_manager
        )
        self.query_handler = QueryHandler(
            embedding_provider=embedding_provider,
            scope_manager=self.scope_manager,
            scope_timeout=scope_timeout,
            snippet_length=snippet_length,
        )
        self.admin = IndexAdmin(scope_manager=self.scope_manager)

    @classmethod
    def from_settings(cls) -> "MemoryIndex":
        """Build an index from the ``AGENT_MEMORY`` Django setting."""
        from django_agent_memory.conf import get_section

        embedding = get_section("EMBEDDING")
        storage = get_section("STORAGE")
        search = get_section("SEARCH")

        return cls(
            embedding_provider=build_embedding_provider(embedding),
            storage_provider=build_storage_provider(storage),
            collection_prefix=storage["COLLECTION_PREFIX"],
            scope_timeout=search["SCOPE_TIMEOUT"],
            snippet_length=search["SNIPPET_LENGTH"],
        )

    def open(self) -> "MemoryIndex":
        self.storage_provider.open()
        return self

    def close(self):
        self.storage_provider.close()

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc_info):
        self.close()

    async def index_one(self, document: Document) -> None:
        await self.indexer.index_one(document)

    async def index_many(self, documents: Iterable[Document]) -> IndexResult:
        return await self.indexer.index_many(documents)

    async def search(
        self,
        query: str,
        *,
        scope: Scope | str | None = None,
        scope_id: str | None = None,
        limit: int = DEFAULT_LIMIT,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> SearchResults:
        return await self.query_handler.search(
            query, scope=scope, scope_id=scope_id, limit=limit, min_score=min_score
        )

    async def stats(self) -> IndexStats:
        return await self.admin.stats()

    async def clear(self, scope: Scope | str | None = None) -> list[Scope]:
        return await self.admin.clear(scope)

    async def index_source(self, source: Source) -> IndexResult:
        logger.info(f"Getting documents from source {source.source_id}")
        return await self.index_many(list(source.get_documents()))

    async def index_workspace(self, workspace_id: str, path: Path | str) -> int:
        """Index the memory files of one agent workspace."""
        result = await self.index_source(WorkspaceSource(workspace_id, path))
        return result.count

    async def index_all_workspaces(self, agents_dir: Path | str) -> dict[str, int]:
        """Index every workspace under ``agents_dir``, returning counts per workspace."""
        counts = {}
        for workspace in AgentsDirectorySource(agents_dir).workspaces():
            result = await self.index_source(workspace)
            counts[workspace.workspace_id] = result.count
        return counts

    async def index_global(self, root: Path | str) -> int:
        """Index the fleet-wide tracker files at ``root``."""
        result = await self.index_source(GlobalSource(root))
        return result.count


def build_embedding_provider(options: dict) -> CoreEmbeddingProvider:
    from django_agent_memory.llm import LLMService

    llm_service = None
    if options.get("API_KEY"):
        create_kwargs = {"api_key": options["API_KEY"]}
        if options.get("API_BASE"):
            create_kwargs["api_base"] = options["API_BASE"]
        llm_service = LLMService.create(
            provider=options["PROVIDER"], model=options["MODEL"], **create_kwargs
        )
    else:
        logger.warning(
            "No embedding API key configured; indexing and search will be unavailable"
        )

    return CoreEmbeddingProvider(
        llm_service,
        dimensions=options["DIMENSIONS"],
        max_input_chars=options["MAX_INPUT_CHARS"],
        timeout=options["TIMEOUT"],
    )


def build_storage_provider(options: dict) -> StorageProvider:
    backend = options["BACKEND"]
    if backend == "inmemory":
        from .storage.inmemory import InMemoryProvider

        return InMemoryProvider()
    if backend == "qdrant":
        from .storage.qdrant import QdrantProvider

        return QdrantProvider(
            location=options.get("LOCATION"),
            path=options.get("PATH"),
            url=options.get("URL"),
            api_key=options.get("API_KEY"),
        )
    raise ConfigurationError(
        f"Unknown storage backend '{backend}'. Use 'qdrant' or 'inmemory'."
    )
