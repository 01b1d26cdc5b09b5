import re
import threading
import time
from types import SimpleNamespace

from django_agent_memory.index import Document, Scope

DIMENSIONS = 64


def tokenize(text: str) -> list[str]:
    tokens = []
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        if len(token) > 3 and token.endswith("s"):
            token = token[:-1]
        tokens.append(token)
    return tokens


class FakeEmbeddingClient:
    """Stands in for an any-llm client.

    Each distinct (crudely stemmed) word gets its own dimension, so cosine
    similarity is word overlap. The last dimension is reserved for texts with
    no words at all.
    """

    PROVIDER_NAME = "fake"

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self.vocabulary: dict[str, int] = {}
        self.calls: list[list[str]] = []
        self.error: Exception | None = None
        self.delay = 0.0
        self._lock = threading.Lock()

    def vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in tokenize(text):
            with self._lock:
                slot = self.vocabulary.setdefault(token, len(self.vocabulary))
            vector[slot % (self.dimensions - 1)] += 1.0
        if not any(vector):
            vector[-1] = 1.0
        return vector

    def _embedding(self, *, model, inputs, **kwargs):
        texts = [inputs] if isinstance(inputs, str) else list(inputs)
        self.calls.append(texts)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            data=[
                SimpleNamespace(index=i, embedding=self.vector(text))
                for i, text in enumerate(texts)
            ]
        )


def make_document(
    id="kai:MEMORY.md",
    content="Kai loves lobsters and tidepools.",
    scope=Scope.WORKSPACE,
    scope_id="kai",
    **kwargs,
) -> Document:
    return Document(
        id=id,
        content=content,
        scope=scope,
        scope_id=scope_id,
        source_path=kwargs.pop("source_path", id.split(":", 1)[-1]),
        source_type=kwargs.pop("source_type", "memory"),
        **kwargs,
    )
