import pytest
from testapp.fakes import DIMENSIONS, FakeEmbeddingClient

from django_agent_memory.index import (
    CoreEmbeddingProvider,
    InMemoryProvider,
    MemoryIndex,
    QdrantProvider,
)
from django_agent_memory.llm import LLMService


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def embedding_provider(embedding_client):
    return CoreEmbeddingProvider(
        LLMService(client=embedding_client, model="fake-embedding"),
        dimensions=DIMENSIONS,
    )


@pytest.fixture
def unconfigured_provider():
    return CoreEmbeddingProvider(None, dimensions=DIMENSIONS)


@pytest.fixture(params=["inmemory", "qdrant"])
def storage_provider(request):
    if request.param == "qdrant":
        return QdrantProvider(location=":memory:")
    return InMemoryProvider()


@pytest.fixture
def memory_index(embedding_provider, storage_provider):
    with MemoryIndex(
        embedding_provider=embedding_provider,
        storage_provider=storage_provider,
        scope_timeout=2.0,
    ) as index:
        yield index
