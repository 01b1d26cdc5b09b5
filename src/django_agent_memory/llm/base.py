import logging

from any_llm import AnyLLM

logger = logging.getLogger(__name__)


class LLMService:
    """Light wrapper around any-llm, used for embedding calls"""

    def __init__(self, *, client: AnyLLM, model: str):
        self.client = client
        self.model = model

    @classmethod
    def create(cls, *, provider: str, model: str, **kwargs) -> "LLMService":
        client = AnyLLM.create(provider=provider, **kwargs)
        return cls(client=client, model=model)

    @property
    def service_id(self) -> str:
        return f"{self.__class__.__name__}:{self.client.PROVIDER_NAME}:{self.model}"

    def embedding(self, inputs, **kwargs):
        logger.debug(f"Requesting embeddings from {self.service_id}")
        return self.client._embedding(model=self.model, inputs=inputs, **kwargs)
