import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class AgentMemoryConfig(AppConfig):
    name = "django_agent_memory"
    label = "django_agent_memory"
    verbose_name = "Agent Memory Index"

    def ready(self):
        from .index import StoreUnavailable, set_memory_index
        from .index.base import MemoryIndex

        index = MemoryIndex.from_settings()
        try:
            index.open()
        except StoreUnavailable as e:
            # Embedded Qdrant storage admits one process per folder
            logger.warning(f"Agent memory index is unavailable in this process: {e}")
            return
        set_memory_index(index)
        logger.info("Agent memory index opened")
