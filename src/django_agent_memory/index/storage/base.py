from abc import ABC, abstractmethod
from typing import ClassVar, Generic, Iterable, Iterator, TypeVar

from queryish import Queryish

from ..exceptions import StoreUnavailable
from ..schema import Record, RecordMatch, StoreSchema

StorageProviderType = TypeVar("StorageProviderType", bound="StorageProvider")


class BaseStorageQuerySet(Queryish, Generic[StorageProviderType]):
    """Nearest-neighbour query against one collection.

    Filter with ``vector=`` (required) and optionally ``scope_id=``, then
    slice to set how many matches to fetch::

        provider.objects("memory_workspace").filter(vector=v, scope_id="kai")[:5]
    """

    storage_provider: StorageProviderType
    collection_name: str
    default_limit: int = 10

    def __init__(self, storage_provider=None, collection_name: str = ""):
        super().__init__()
        self.storage_provider = storage_provider
        self.collection_name = collection_name

    def get_query_arguments(self) -> tuple[list[float], dict]:
        if not self.storage_provider:
            raise ValueError("Storage provider is required")

        filter_map = {filter[0]: filter[1] for filter in self.filters}

        vector = filter_map.pop("vector", None)
        if vector is None:
            raise ValueError("vector filter is required")

        if self.ordering:
            raise NotImplementedError("Ordering is not supported for querying")

        return vector, filter_map

    def run_query(self) -> Iterator[RecordMatch]:
        """Execute the query and return the matches, closest first."""
        raise NotImplementedError


class StorageProvider(ABC):
    """Base class for vector storage backends.

    A provider owns one connection to the backend and manages named
    collections in it. Providers must be opened before use and closed when the
    owning index shuts down.
    """

    base_queryset_cls: ClassVar[type[BaseStorageQuerySet]]

    def __init__(self, **kwargs):
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self):
        self._open = True

    def close(self):
        self._open = False

    def ensure_open(self):
        if not self._open:
            raise StoreUnavailable(f"{self.__class__.__name__} is not open")

    def objects(self, collection_name: str) -> BaseStorageQuerySet:
        self.ensure_open()
        return self.base_queryset_cls(
            storage_provider=self, collection_name=collection_name
        )

    @abstractmethod
    def list_collections(self) -> list[str]:
        """Names of every collection that exists."""
        ...

    @abstractmethod
    def collection_exists(self, collection_name: str) -> bool: ...

    @abstractmethod
    def create_collection(self, collection_name: str, schema: StoreSchema):
        """Create an empty collection with the declared schema."""
        ...

    @abstractmethod
    def drop_collection(self, collection_name: str):
        """Delete a collection and everything in it."""
        ...

    @abstractmethod
    def upsert(self, collection_name: str, records: Iterable[Record]):
        """Write records, replacing any stored record with the same id."""
        ...

    @abstractmethod
    def count(self, collection_name: str) -> int: ...
