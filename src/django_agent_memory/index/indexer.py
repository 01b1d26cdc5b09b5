import asyncio
import logging
from typing import Iterable

from .embedding import EmbeddingProvider
from .exceptions import ConfigurationError, MemoryIndexError
from .schema import Document, IndexResult, Scope
from .scopes import ScopeStoreManager

logger = logging.getLogger(__name__)


def partition_by_scope(documents: Iterable[Document]) -> dict[Scope, list[Document]]:
    """Group documents by scope, keeping their input order within each group."""
    partitions: dict[Scope, list[Document]] = {}
    for document in documents:
        partitions.setdefault(document.scope, []).append(document)
    return partitions


class Indexer:
    """Embeds documents and writes them to their scope stores."""

    def __init__(
        self,
        *,
        embedding_provider: EmbeddingProvider,
        scope_manager: ScopeStoreManager,
    ):
        self.embedding_provider = embedding_provider
        self.scope_manager = scope_manager

    def _check_configured(self):
        if not self.embedding_provider.is_configured:
            raise ConfigurationError(
                f"Embedding provider {self.embedding_provider.provider_id} is not configured"
            )

    async def index_one(self, document: Document) -> None:
        self._check_configured()
        vector = await self.embedding_provider.embed(document.content)
        await self.scope_manager.write(document.scope, [document.to_record(vector)])
        logger.debug(f"Indexed document {document.id} into scope {document.scope.value}")

    async def index_partition(self, scope: Scope, documents: list[Document]) -> int:
        """Embed one scope's documents in a single batch and write them together.

        Nothing is written unless every document in the partition was embedded.
        """
        logger.info(f"Embedding {len(documents)} document(s) for scope {scope.value}")
        vectors = await self.embedding_provider.embed_batch(
            [document.content for document in documents]
        )
        records = [
            document.to_record(vector)
            for document, vector in zip(documents, vectors, strict=True)
        ]
        return await self.scope_manager.write(scope, records)

    async def index_many(self, documents: Iterable[Document]) -> IndexResult:
        """Index documents, one embedding call and one write per scope.

        Scopes are indexed concurrently and independently. A scope whose batch
        fails contributes nothing and is reported in ``IndexResult.failures``.
        If no scope succeeds the first failure is raised.
        """
        partitions = partition_by_scope(documents)
        if not partitions:
            return IndexResult(count=0)

        self._check_configured()

        scopes = list(partitions)
        outcomes = await asyncio.gather(
            *(self.index_partition(scope, partitions[scope]) for scope in scopes),
            return_exceptions=True,
        )

        result = IndexResult()
        errors: list[BaseException] = []
        for scope, outcome in zip(scopes, outcomes, strict=True):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, (MemoryIndexError, ValueError)):
                    raise outcome
                logger.warning(f"Indexing scope {scope.value} failed: {outcome}")
                result.failures[scope] = str(outcome)
                errors.append(outcome)
            else:
                result.count += outcome

        if errors and len(errors) == len(scopes):
            raise errors[0]

        logger.info(
            f"Indexed {result.count} document(s) across {len(scopes) - len(errors)} scope(s)"
        )
        return result
