import asyncio
import logging
from abc import ABC, abstractmethod

from django_agent_memory.llm import LLMService

from .exceptions import ConfigurationError, EmbeddingTimeout, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_MAX_INPUT_CHARS = 32000
DEFAULT_TIMEOUT = 30.0


def truncate(text: str, max_chars: int) -> str:
    """Return the first ``max_chars`` code points of ``text``."""
    return text[:max_chars]


class EmbeddingProvider(ABC):
    """Base class for embedding providers which turn text into fixed-dimension vectors."""

    dimensions: int
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS

    @property
    def provider_id(self) -> str:
        """Get unique identifier for this provider."""
        return self.__class__.__name__

    @property
    def is_configured(self) -> bool:
        return True

    def prepare(self, texts: list[str]) -> list[str]:
        return [truncate(text, self.max_input_chars) for text in texts]

    async def embed(self, text: str) -> list[float]:
        """Embed a single string."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many strings in one call. Output order matches input order."""
        pass


class CoreEmbeddingProvider(EmbeddingProvider):
    """Embedding provider that uses the core embeddings API."""

    def __init__(
        self,
        llm_service: LLMService | None,
        *,
        dimensions: int,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        """Initialize with a core LLM Service instance.

        Args:
            llm_service: The LLM service, or None when no credential is configured
            dimensions: Length of every vector the model returns
            max_input_chars: Inputs are cut to this many characters before sending
            timeout: Seconds to wait for the provider before giving up
        """
        self.llm_service = llm_service
        self.dimensions = dimensions
        self.max_input_chars = max_input_chars
        self.timeout = timeout

    @property
    def provider_id(self) -> str:
        if self.llm_service is None:
            return "core_unconfigured"
        return f"core_{self.llm_service.service_id}"

    @property
    def is_configured(self) -> bool:
        return self.llm_service is not None

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not self.is_configured:
            raise ConfigurationError(
                "No embedding API key configured. Set AGENT_MEMORY['EMBEDDING']['API_KEY'] "
                "or the OPENAI_API_KEY environment variable."
            )

        if not texts:
            return []

        inputs = self.prepare(texts)

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self.llm_service.embedding, inputs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingTimeout(
                f"Embedding request to {self.provider_id} timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise UpstreamError(
                f"Embedding request to {self.provider_id} failed: {e}"
            ) from e

        return self._parse_response(response, expected=len(inputs))

    def _parse_response(self, response, *, expected: int) -> list[list[float]]:
        try:
            data = list(response.data)
            if all(getattr(item, "index", None) is not None for item in data):
                data.sort(key=lambda item: item.index)
            vectors = [list(item.embedding) for item in data]
        except (AttributeError, TypeError) as e:
            raise UpstreamError(
                f"Malformed embedding response from {self.provider_id}"
            ) from e

        if len(vectors) != expected:
            raise UpstreamError(
                f"Expected {expected} embeddings from {self.provider_id}, got {len(vectors)}"
            )

        for vector in vectors:
            if len(vector) != self.dimensions:
                raise UpstreamError(
                    f"Expected {self.dimensions}-dimension embeddings from "
                    f"{self.provider_id}, got {len(vector)}"
                )

        return vectors
