import functools
import logging
import uuid

from qdrant_client import QdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.exceptions import (
    ResponseHandlingException,
    UnexpectedResponse,
)
from qdrant_client.models import Distance

from ..exceptions import StoreUnavailable
from ..schema import Document, Record, RecordMatch, StoreSchema
from .base import BaseStorageQuerySet, StorageProvider

logger = logging.getLogger(__name__)

POINT_ID_NAMESPACE = uuid.UUID("5b2a1d8e-3c4f-4e0a-9f51-6d7c2b8a9e10")

DISTANCES = {
    "cosine": Distance.COSINE,
}

BACKEND_ERRORS = (UnexpectedResponse, ResponseHandlingException, ConnectionError)


def point_id(document_id: str) -> str:
    """Qdrant only accepts UUIDs and integers as point ids."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, document_id))


def translate_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self.ensure_open()
        try:
            return method(self, *args, **kwargs)
        except BACKEND_ERRORS as e:
            raise StoreUnavailable(f"Qdrant request failed: {e}") from e

    return wrapper


class QdrantQuerySet(BaseStorageQuerySet["QdrantProvider"]):
    def run_query(self):
        vector, filter_map = self.get_query_arguments()

        if self.offset:
            raise NotImplementedError(
                "Offsets are not supported for the Qdrant provider"
            )

        points = self.storage_provider.query(
            self.collection_name,
            vector,
            limit=self.limit or self.default_limit,
            filters=filter_map,
        )
        for point in points:
            # Qdrant reports cosine similarity as the score
            yield RecordMatch(Document.from_payload(point.payload), 1.0 - point.score)


class QdrantProvider(StorageProvider):
    """Vector storage using Qdrant.

    Pass ``location=":memory:"`` or ``path=`` for Qdrant's embedded local mode,
    or ``url=`` (and ``api_key=``) for a Qdrant server.
    """

    base_queryset_cls = QdrantQuerySet

    def __init__(
        self,
        *,
        location: str | None = None,
        path: str | None = None,
        url: str | None = None,
        api_key: str | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if not (location or path or url):
            location = ":memory:"
        self.client_options = {
            key: value
            for key, value in {
                "location": location,
                "path": path,
                "url": url,
                "api_key": api_key,
            }.items()
            if value
        }
        self.client: QdrantClient | None = None

    def open(self):
        if self.client is not None:
            return
        try:
            self.client = QdrantClient(**self.client_options)
        except (RuntimeError, *BACKEND_ERRORS) as e:
            raise StoreUnavailable(f"Could not open Qdrant storage: {e}") from e
        logger.info(
            f"Opened Qdrant storage ({', '.join(sorted(self.client_options))})"
        )
        super().open()

    def close(self):
        if self.client is not None:
            self.client.close()
            self.client = None
        super().close()

    @translate_errors
    def list_collections(self) -> list[str]:
        return [
            collection.name for collection in self.client.get_collections().collections
        ]

    @translate_errors
    def collection_exists(self, collection_name: str) -> bool:
        return self.client.collection_exists(collection_name)

    @translate_errors
    def create_collection(self, collection_name: str, schema: StoreSchema):
        self.client.create_collection(
            collection_name=collection_name,
            vectors_config=qdrant_models.VectorParams(
                size=schema.dimensions, distance=DISTANCES[schema.distance]
            ),
        )
        for field_name in schema.indexed_fields:
            self.client.create_payload_index(
                collection_name=collection_name,
                field_name=field_name,
                field_schema=qdrant_models.PayloadSchemaType.KEYWORD,
            )

    @translate_errors
    def drop_collection(self, collection_name: str):
        if self.client.collection_exists(collection_name):
            self.client.delete_collection(collection_name=collection_name)

    @translate_errors
    def upsert(self, collection_name: str, records: list[Record]):
        """Store records in the vector store."""
        points = [
            qdrant_models.PointStruct(
                id=point_id(record.id),
                vector=record.vector,
                payload=record.as_payload(),
            )
            for record in records
        ]
        if points:
            self.client.upsert(
                collection_name=collection_name, points=points, wait=True
            )

    @translate_errors
    def count(self, collection_name: str) -> int:
        return self.client.count(collection_name=collection_name, exact=True).count

    @translate_errors
    def query(
        self,
        collection_name: str,
        vector: list[float],
        *,
        limit: int,
        filters: dict | None = None,
    ) -> list[qdrant_models.ScoredPoint]:
        conditions = [
            qdrant_models.FieldCondition(
                key=key, match=qdrant_models.MatchValue(value=value)
            )
            for key, value in (filters or {}).items()
        ]
        response = self.client.query_points(
            collection_name=collection_name,
            query=vector,
            query_filter=qdrant_models.Filter(must=conditions) if conditions else None,
            limit=limit,
            with_payload=True,
        )
        return response.points
