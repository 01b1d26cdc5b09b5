from django.core.exceptions import ImproperlyConfigured


class MemoryIndexError(Exception):
    code = "memory_index_error"


class ConfigurationError(MemoryIndexError, ImproperlyConfigured):
    """The embedding provider has no credential or service configured."""

    code = "configuration_error"


class UpstreamError(MemoryIndexError):
    """The embedding provider call failed or returned something unusable."""

    code = "upstream_error"


class EmbeddingTimeout(UpstreamError):
    code = "embedding_timeout"


class StoreUnavailable(MemoryIndexError):
    """The vector storage backend could not be reached or opened."""

    code = "store_unavailable"
