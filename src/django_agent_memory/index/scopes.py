"""
Scope stores: one collection per scope, created lazily with a declared schema.

Storage calls are blocking, so every one of them runs in a worker thread. The
per-scope locks are ``threading.Lock``s taken inside those threads; they make
first creation happen exactly once and keep writers and drops of the same
scope from interleaving, whichever event loop the caller is running on.
"""

import asyncio
import logging
import threading

from .schema import Record, RecordMatch, Scope, StoreSchema
from .storage.base import BaseStorageQuerySet, StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_PREFIX = "memory_"


class ScopeStore:
    """Handle on the collection holding one scope's records."""

    def __init__(
        self,
        *,
        scope: Scope,
        collection_name: str,
        storage_provider: StorageProvider,
    ):
        self.scope = scope
        self.collection_name = collection_name
        self.storage_provider = storage_provider

    def __repr__(self):
        return f"<ScopeStore {self.scope.value} ({self.collection_name})>"

    def queryset(
        self, vector: list[float], *, limit: int, scope_id: str | None = None
    ) -> BaseStorageQuerySet:
        queryset = self.storage_provider.objects(self.collection_name).filter(
            vector=vector
        )
        if scope_id:
            queryset = queryset.filter(scope_id=scope_id)
        return queryset[:limit]

    async def query(
        self, vector: list[float], *, limit: int, scope_id: str | None = None
    ) -> list[RecordMatch]:
        queryset = self.queryset(vector, limit=limit, scope_id=scope_id)
        return await asyncio.to_thread(list, queryset)


class ScopeStoreManager:
    """Owns the scope stores of one storage provider."""

    def __init__(
        self,
        storage_provider: StorageProvider,
        *,
        dimensions: int,
        collection_prefix: str = DEFAULT_COLLECTION_PREFIX,
    ):
        self.storage_provider = storage_provider
        self.schema = StoreSchema(dimensions=dimensions)
        self.collection_prefix = collection_prefix
        self._locks = {scope: threading.Lock() for scope in Scope}

    def ensure_open(self):
        self.storage_provider.ensure_open()

    def collection_name(self, scope: Scope) -> str:
        return f"{self.collection_prefix}{Scope(scope).value}"

    def _handle(self, scope: Scope) -> ScopeStore:
        return ScopeStore(
            scope=scope,
            collection_name=self.collection_name(scope),
            storage_provider=self.storage_provider,
        )

    def _ensure_collection(self, scope: Scope) -> None:
        # Caller holds the scope lock
        collection_name = self.collection_name(scope)
        if not self.storage_provider.collection_exists(collection_name):
            self.storage_provider.create_collection(collection_name, self.schema)
            logger.info(
                f"Created scope store '{collection_name}' "
                f"({self.schema.dimensions} dimensions, {self.schema.distance})"
            )

    def _get_or_create(self, scope: Scope) -> None:
        with self._locks[scope]:
            self._ensure_collection(scope)

    def _write(self, scope: Scope, records: list[Record]) -> None:
        with self._locks[scope]:
            self._ensure_collection(scope)
            self.storage_provider.upsert(self.collection_name(scope), records)

    def _drop(self, scope: Scope) -> bool:
        collection_name = self.collection_name(scope)
        with self._locks[scope]:
            if not self.storage_provider.collection_exists(collection_name):
                return False
            self.storage_provider.drop_collection(collection_name)
        logger.info(f"Dropped scope store '{collection_name}'")
        return True

    def _count(self, scope: Scope) -> int | None:
        collection_name = self.collection_name(scope)
        with self._locks[scope]:
            if not self.storage_provider.collection_exists(collection_name):
                return None
            return self.storage_provider.count(collection_name)

    async def get_or_create(self, scope: Scope) -> ScopeStore:
        scope = Scope(scope)
        await asyncio.to_thread(self._get_or_create, scope)
        return self._handle(scope)

    async def get(self, scope: Scope) -> ScopeStore | None:
        """Return the store for ``scope`` if it has been created, without creating it."""
        scope = Scope(scope)
        exists = await asyncio.to_thread(
            self.storage_provider.collection_exists, self.collection_name(scope)
        )
        return self._handle(scope) if exists else None

    async def list_scopes(self) -> set[Scope]:
        collection_names = await asyncio.to_thread(
            self.storage_provider.list_collections
        )
        known = {self.collection_name(scope): scope for scope in Scope}
        return {known[name] for name in collection_names if name in known}

    async def write(self, scope: Scope, records: list[Record]) -> int:
        """Write records to a scope's store in one call, creating the store if needed."""
        if not records:
            return 0
        await asyncio.to_thread(self._write, Scope(scope), records)
        return len(records)

    async def count(self, scope: Scope) -> int | None:
        """Row count of a scope store, or None if it does not exist."""
        return await asyncio.to_thread(self._count, Scope(scope))

    async def drop(self, scope: Scope) -> bool:
        """Delete a scope store. Returns False if it did not exist."""
        return await asyncio.to_thread(self._drop, Scope(scope))
