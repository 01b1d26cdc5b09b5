import asyncio
import logging

from .schema import IndexStats, Scope, utcnow
from .scopes import ScopeStoreManager

logger = logging.getLogger(__name__)


class IndexAdmin:
    """Row counts and deletion across scope stores."""

    def __init__(self, *, scope_manager: ScopeStoreManager):
        self.scope_manager = scope_manager

    async def stats(self) -> IndexStats:
        scopes = sorted(await self.scope_manager.list_scopes(), key=lambda s: s.value)
        counts = await asyncio.gather(*(self.scope_manager.count(s) for s in scopes))
        # A store dropped since list_scopes counts as absent
        by_scope = {
            scope.value: count
            for scope, count in zip(scopes, counts, strict=True)
            if count is not None
        }
        return IndexStats(
            total_documents=sum(by_scope.values()),
            by_scope=by_scope,
            last_computed_at=utcnow(),
        )

    async def clear(self, scope: Scope | str | None = None) -> list[Scope]:
        """Drop one scope store, or every existing one when no scope is given.

        Returns the scopes that were actually dropped.
        """
        scope = Scope.parse(scope)
        if scope is not None:
            targets = [scope]
        else:
            targets = sorted(await self.scope_manager.list_scopes(), key=lambda s: s.value)

        dropped = []
        for target in targets:
            if await self.scope_manager.drop(target):
                dropped.append(target)

        logger.info(
            f"Cleared {len(dropped)} scope store(s): "
            f"{', '.join(s.value for s in dropped) or 'none'}"
        )
        return dropped
