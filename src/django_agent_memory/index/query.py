import asyncio
import logging
import math

from .embedding import EmbeddingProvider
from .schema import (
    RecordMatch,
    Scope,
    ScopeFailure,
    ScopeOutcome,
    SearchResult,
    SearchResults,
)
from .scopes import ScopeStoreManager

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_MIN_SCORE = 0.5
DEFAULT_SCOPE_TIMEOUT = 10.0
DEFAULT_SNIPPET_LENGTH = 500


def distance_to_score(distance: float) -> float:
    """Turn a cosine distance into a similarity score in [0, 1]."""
    return min(1.0, max(0.0, 1.0 - distance))


class QueryHandler:
    """Similarity search across one or every scope store."""

    def __init__(
        self,
        *,
        embedding_provider: EmbeddingProvider,
        scope_manager: ScopeStoreManager,
        scope_timeout: float | None = DEFAULT_SCOPE_TIMEOUT,
        snippet_length: int = DEFAULT_SNIPPET_LENGTH,
    ):
        self.embedding_provider = embedding_provider
        self.scope_manager = scope_manager
        self.scope_timeout = scope_timeout
        self.snippet_length = snippet_length

    def snippet(self, content: str) -> str:
        return content[: self.snippet_length]

    async def target_scopes(self, scope: Scope | None) -> list[Scope]:
        if scope is not None:
            return [scope]
        return sorted(await self.scope_manager.list_scopes(), key=lambda s: s.value)

    async def query_scope(
        self,
        scope: Scope,
        vector: list[float],
        *,
        limit: int,
        scope_id: str | None,
    ) -> list[RecordMatch] | None:
        store = await self.scope_manager.get(scope)
        if store is None:
            return None
        return await store.query(vector, limit=limit, scope_id=scope_id)

    async def search_scope(
        self,
        scope: Scope,
        vector: list[float],
        *,
        limit: int,
        scope_id: str | None,
    ) -> ScopeOutcome:
        """Query one scope store. Failures are recorded, never raised.

        The existence check and the query share one ``scope_timeout``.
        """
        try:
            matches = await asyncio.wait_for(
                self.query_scope(scope, vector, limit=limit, scope_id=scope_id),
                timeout=self.scope_timeout,
            )
            if matches is None:
                logger.debug(f"No store for scope {scope.value}, skipping")
                return ScopeOutcome(scope=scope)
        except asyncio.TimeoutError:
            error = f"timed out after {self.scope_timeout}s"
        except Exception as e:
            error = f"{e.__class__.__name__}: {e}"
        else:
            logger.debug(f"Scope {scope.value} returned {len(matches)} match(es)")
            return ScopeOutcome(scope=scope, matches=matches)

        logger.warning(f"Search in scope {scope.value} failed: {error}")
        return ScopeOutcome(scope=scope, failure=ScopeFailure(scope=scope, error=error))

    def merge(
        self, outcomes: list[ScopeOutcome], *, limit: int, min_score: float
    ) -> SearchResults:
        results = []
        failures = []
        for outcome in outcomes:
            if not outcome.ok:
                failures.append(outcome.failure)
                continue
            for match in outcome.matches:
                score = distance_to_score(match.distance)
                if score < min_score:
                    continue
                results.append(
                    SearchResult(
                        document=match.document,
                        score=score,
                        snippet=self.snippet(match.document.content),
                    )
                )

        results.sort(key=lambda result: (-result.score, result.document.id))
        return SearchResults(results=results[:limit], failures=failures)

    async def search(
        self,
        query: str,
        *,
        scope: Scope | str | None = None,
        scope_id: str | None = None,
        limit: int = DEFAULT_LIMIT,
        min_score: float = DEFAULT_MIN_SCORE,
    ) -> SearchResults:
        """Search the index.

        Args:
            query: The search query string
            scope: A single scope to search, or None/"all" for every existing scope
            scope_id: Only match documents with this exact scope id
            limit: Maximum number of results, overall and per scope
            min_score: Results scoring below this are dropped
        """
        if not query or not query.strip():
            raise ValueError("Search query cannot be empty")
        if limit < 1:
            raise ValueError("Search limit must be at least 1")
        if not math.isfinite(min_score) or not 0.0 <= min_score <= 1.0:
            raise ValueError("Search min_score must be a number between 0 and 1")

        scope = Scope.parse(scope)
        self.scope_manager.ensure_open()

        vector = await self.embedding_provider.embed(query)
        scopes = await self.target_scopes(scope)

        outcomes = await asyncio.gather(
            *(
                self.search_scope(s, vector, limit=limit, scope_id=scope_id)
                for s in scopes
            )
        )
        return self.merge(list(outcomes), limit=limit, min_score=min_score)
