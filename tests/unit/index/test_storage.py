import threading
from unittest import mock

import pytest

from django_agent_memory.index.exceptions import StoreUnavailable
from django_agent_memory.index.schema import Record, Scope, StoreSchema
from django_agent_memory.index.storage.inmemory import InMemoryProvider
from django_agent_memory.index.storage.qdrant import QdrantProvider, point_id

SCHEMA = StoreSchema(dimensions=3)


def create_record(id="kai:MEMORY.md", content="Test content", vector=None, **kwargs):
    """Helper to create a record for testing."""
    return Record(
        id=id,
        content=content,
        scope=kwargs.pop("scope", Scope.WORKSPACE),
        scope_id=kwargs.pop("scope_id", "kai"),
        vector=vector or [0.1, 0.2, 0.3],
        **kwargs,
    )


class TestInMemoryProvider:
    """Tests for the InMemoryProvider."""

    @pytest.fixture
    def provider(self):
        provider = InMemoryProvider()
        provider.open()
        yield provider
        provider.close()

    def test_requires_open(self):
        provider = InMemoryProvider()
        with pytest.raises(StoreUnavailable):
            provider.list_collections()

    def test_create_and_list_collections(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)

        assert provider.list_collections() == ["memory_workspace"]
        assert provider.collection_exists("memory_workspace")
        assert provider.count("memory_workspace") == 0

    def test_create_existing_collection_fails(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        with pytest.raises(ValueError):
            provider.create_collection("memory_workspace", SCHEMA)

    def test_upsert_replaces_records_with_same_id(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)

        provider.upsert("memory_workspace", [create_record(content="old")])
        provider.upsert("memory_workspace", [create_record(content="new")])

        collection = provider.get_collection("memory_workspace")
        assert provider.count("memory_workspace") == 1
        assert collection.records["kai:MEMORY.md"].content == "new"

    def test_upsert_rejects_wrong_dimensions_without_writing(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)

        with pytest.raises(ValueError):
            provider.upsert(
                "memory_workspace",
                [
                    create_record(id="kai:a"),
                    create_record(id="kai:b", vector=[1.0, 0.0]),
                ],
            )

        assert provider.count("memory_workspace") == 0

    def test_drop_collection_is_idempotent(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)

        provider.drop_collection("memory_workspace")
        provider.drop_collection("memory_workspace")

        assert provider.list_collections() == []

    def test_queryset_orders_by_distance(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        provider.upsert(
            "memory_workspace",
            [
                create_record(id="kai:far", vector=[0.0, 1.0, 0.0]),
                create_record(id="kai:near", vector=[1.0, 0.1, 0.0]),
                create_record(id="kai:exact", vector=[2.0, 0.0, 0.0]),
            ],
        )

        matches = list(
            provider.objects("memory_workspace").filter(vector=[1.0, 0.0, 0.0])[:2]
        )

        assert [match.document.id for match in matches] == ["kai:exact", "kai:near"]
        assert matches[0].distance == pytest.approx(0.0)

    def test_queryset_filters_on_scope_id(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        provider.upsert(
            "memory_workspace",
            [
                create_record(id="kai:MEMORY.md", scope_id="kai"),
                create_record(id="nova:MEMORY.md", scope_id="nova"),
            ],
        )

        matches = list(
            provider.objects("memory_workspace").filter(
                vector=[0.1, 0.2, 0.3], scope_id="nova"
            )
        )

        assert [match.document.id for match in matches] == ["nova:MEMORY.md"]

    def test_queryset_requires_vector(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        with pytest.raises(ValueError, match="vector filter is required"):
            list(provider.objects("memory_workspace").filter(scope_id="kai"))

    def test_queryset_tolerates_concurrent_upserts(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        provider.upsert(
            "memory_workspace", [create_record(id=f"kai:{i}") for i in range(200)]
        )
        stop = threading.Event()

        def write():
            i = 0
            while not stop.is_set():
                provider.upsert("memory_workspace", [create_record(id=f"kai:new-{i}")])
                i += 1

        writer = threading.Thread(target=write)
        writer.start()
        try:
            for _ in range(50):
                matches = list(
                    provider.objects("memory_workspace").filter(vector=[0.1, 0.2, 0.3])[:5]
                )
                assert len(matches) == 5
        finally:
            stop.set()
            writer.join()

    @mock.patch("numpy.dot")
    @mock.patch("numpy.linalg.norm")
    def test_queryset_run_query(self, mock_norm, mock_dot, provider):
        """Test InMemoryQuerySet run_query with mocked numpy."""
        mock_dot.return_value = 0.5
        mock_norm.return_value = 1.0

        provider.create_collection("memory_workspace", SCHEMA)
        provider.upsert("memory_workspace", [create_record()])

        results = list(
            provider.objects("memory_workspace").filter(vector=[0.4, 0.5, 0.6])
        )

        assert len(results) == 1
        assert results[0].document.id == "kai:MEMORY.md"
        assert results[0].distance == pytest.approx(0.5)


class TestQdrantProvider:
    """Tests for the QdrantProvider in Qdrant's local in-memory mode."""

    @pytest.fixture
    def provider(self):
        provider = QdrantProvider(location=":memory:")
        provider.open()
        yield provider
        provider.close()

    def test_defaults_to_local_memory(self):
        assert QdrantProvider().client_options == {"location": ":memory:"}

    def test_requires_open(self):
        with pytest.raises(StoreUnavailable):
            QdrantProvider().list_collections()

    def test_point_ids_are_stable_uuids(self):
        assert point_id("kai:MEMORY.md") == point_id("kai:MEMORY.md")
        assert point_id("kai:MEMORY.md") != point_id("nova:MEMORY.md")

    def test_create_collection_declares_schema(self, provider):
        provider.create_collection("memory_global", SCHEMA)

        info = provider.client.get_collection("memory_global")
        assert info.config.params.vectors.size == 3
        assert info.points_count == 0
        assert provider.list_collections() == ["memory_global"]

    def test_upsert_and_query_round_trip(self, provider):
        provider.create_collection("memory_workspace", SCHEMA)
        provider.upsert(
            "memory_workspace",
            [
                create_record(id="kai:MEMORY.md", vector=[1.0, 0.0, 0.0]),
                create_record(
                    id="nova:MEMORY.md", scope_id="nova", vector=[0.0, 1.0, 0.0]
                ),
            ],
        )
        provider.upsert(
            "memory_workspace",
            [create_record(id="kai:MEMORY.md", content="updated", vector=[1.0, 0.0, 0.0])],
        )

        assert provider.count("memory_workspace") == 2

        matches = list(
            provider.objects("memory_workspace").filter(
                vector=[1.0, 0.0, 0.0], scope_id="kai"
            )[:5]
        )

        assert len(matches) == 1
        assert matches[0].document.id == "kai:MEMORY.md"
        assert matches[0].document.content == "updated"
        assert matches[0].document.scope == Scope.WORKSPACE
        assert matches[0].distance == pytest.approx(0.0, abs=1e-6)

    def test_drop_missing_collection_is_noop(self, provider):
        provider.drop_collection("memory_cross")
        assert provider.list_collections() == []

    def test_close_releases_client(self, provider):
        provider.close()
        assert provider.client is None
        with pytest.raises(StoreUnavailable):
            provider.count("memory_global")
