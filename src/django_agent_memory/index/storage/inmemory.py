import numpy as np

from ..schema import Record, RecordMatch, StoreSchema
from .base import BaseStorageQuerySet, StorageProvider


class InMemoryQuerySet(BaseStorageQuerySet["InMemoryProvider"]):
    def run_query(self):
        vector, filter_map = self.get_query_arguments()
        collection = self.storage_provider.get_collection(self.collection_name)

        limit = self.limit or self.default_limit
        offset = self.offset or 0

        query = np.asarray(vector, dtype=float)
        query_norm = np.linalg.norm(query)

        matches = []
        # Snapshot, writers may upsert from another thread
        for record in list(collection.records.values()):
            if any(
                getattr(record, key, None) != value for key, value in filter_map.items()
            ):
                continue
            stored = np.asarray(record.vector, dtype=float)
            norm = query_norm * np.linalg.norm(stored)
            similarity = float(np.dot(query, stored) / norm) if norm else 0.0
            matches.append(RecordMatch(record.as_document(), 1.0 - similarity))

        matches.sort(key=lambda match: (match.distance, match.document.id))
        yield from matches[offset : offset + limit]


class InMemoryCollection:
    def __init__(self, schema: StoreSchema):
        self.schema = schema
        self.records: dict[str, Record] = {}


class InMemoryProvider(StorageProvider):
    """Simple in-memory storage for testing and development."""

    base_queryset_cls = InMemoryQuerySet

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.collections: dict[str, InMemoryCollection] = {}

    def get_collection(self, collection_name: str) -> InMemoryCollection:
        self.ensure_open()
        try:
            return self.collections[collection_name]
        except KeyError:
            raise KeyError(f"Collection '{collection_name}' does not exist") from None

    def list_collections(self) -> list[str]:
        self.ensure_open()
        return list(self.collections)

    def collection_exists(self, collection_name: str) -> bool:
        self.ensure_open()
        return collection_name in self.collections

    def create_collection(self, collection_name: str, schema: StoreSchema):
        self.ensure_open()
        if collection_name in self.collections:
            raise ValueError(f"Collection '{collection_name}' already exists")
        self.collections[collection_name] = InMemoryCollection(schema)

    def drop_collection(self, collection_name: str):
        self.ensure_open()
        self.collections.pop(collection_name, None)

    def upsert(self, collection_name: str, records: list[Record]):
        """Store records in memory."""
        collection = self.get_collection(collection_name)
        for record in records:
            if len(record.vector) != collection.schema.dimensions:
                raise ValueError(
                    f"Record '{record.id}' has {len(record.vector)} dimensions, "
                    f"collection '{collection_name}' expects {collection.schema.dimensions}"
                )
        for record in records:
            collection.records[record.id] = record

    def count(self, collection_name: str) -> int:
        return len(self.get_collection(collection_name).records)
