"""
Settings for the agent memory index.

Everything lives under the ``AGENT_MEMORY`` Django setting::

    AGENT_MEMORY = {
        "EMBEDDING": {"MODEL": "text-embedding-3-small", "API_KEY": "..."},
        "STORAGE": {"BACKEND": "qdrant", "PATH": "/var/lib/agent-memory"},
        "SEARCH": {"SCOPE_TIMEOUT": 5},
    }

Keys that are not set fall back to the environment variables the dashboard
has always read, and then to the defaults below.
"""

import os
from typing import Any

from django.conf import settings

DEFAULTS: dict[str, dict[str, Any]] = {
    "EMBEDDING": {
        "PROVIDER": "openai",
        "MODEL": "text-embedding-3-small",
        "API_KEY": None,
        "API_BASE": None,
        "DIMENSIONS": 1536,
        "MAX_INPUT_CHARS": 32000,
        "TIMEOUT": 30.0,
    },
    "STORAGE": {
        "BACKEND": "qdrant",
        "LOCATION": None,
        "PATH": None,
        "URL": None,
        "API_KEY": None,
        "COLLECTION_PREFIX": "memory_",
    },
    "SEARCH": {
        "SCOPE_TIMEOUT": 10.0,
        "SNIPPET_LENGTH": 500,
        "LIMIT": 10,
        "MIN_SCORE": 0.5,
    },
}

ENVIRONMENT_FALLBACKS = {
    ("EMBEDDING", "API_KEY"): "OPENAI_API_KEY",
    ("STORAGE", "PATH"): "AGENT_MEMORY_QDRANT_PATH",
    ("STORAGE", "URL"): "AGENT_MEMORY_QDRANT_URL",
}

DEFAULT_AGENTS_DIR = "/root/clawd/agents"
DEFAULT_WORKSPACE_ROOT = "/root/clawd"


def _user_settings() -> dict[str, Any]:
    return getattr(settings, "AGENT_MEMORY", None) or {}


def get_section(name: str) -> dict[str, Any]:
    """Return one settings section with defaults and environment fallbacks applied."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown AGENT_MEMORY section '{name}'")

    configured = _user_settings().get(name) or {}
    section = {**DEFAULTS[name], **configured}

    for (section_name, key), env_var in ENVIRONMENT_FALLBACKS.items():
        if section_name == name and section.get(key) is None:
            section[key] = os.environ.get(env_var) or None

    return section


def get_agents_dir() -> str:
    return (
        _user_settings().get("AGENTS_DIR")
        or os.environ.get("AGENTS_DIR")
        or DEFAULT_AGENTS_DIR
    )


def get_workspace_root() -> str:
    return (
        _user_settings().get("WORKSPACE_ROOT")
        or os.environ.get("WORKSPACE_ROOT")
        or DEFAULT_WORKSPACE_ROOT
    )
