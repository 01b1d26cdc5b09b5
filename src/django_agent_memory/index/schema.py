"""
Schema definitions for the memory index.

This module contains the core data structures passed between sources, the
indexer, the scope stores and the query engine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

ALL_SCOPES = "all"


class Scope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"
    WORKSPACE = "workspace"
    CROSS = "cross"

    @classmethod
    def parse(cls, value: "str | Scope | None") -> "Scope | None":
        """Parse a scope name. ``None``, ``""`` and ``"all"`` mean every scope."""
        if value is None or isinstance(value, cls):
            return value
        if value in ("", ALL_SCOPES):
            return None
        try:
            return cls(value)
        except ValueError as e:
            raise ValueError(
                f"Unknown scope '{value}'. Use one of: "
                f"{', '.join(scope.value for scope in cls)} or {ALL_SCOPES}"
            ) from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(kw_only=True)
class Document:
    """
    A unit of indexable content.

    Documents are produced by sources (agent workspaces, the fleet root) or
    handed in directly by callers. ``source_path``, ``source_type`` and
    ``metadata`` are provenance only; the index never interprets them.
    """

    id: str
    content: str
    scope: Scope
    scope_id: str | None = None
    source_path: str = ""
    source_type: str = "document"
    timestamp: datetime = field(default_factory=utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.scope = Scope(self.scope)

    def to_record(self, vector: list[float]) -> "Record":
        """Create a new Record with the given embedding vector."""
        return Record(
            id=self.id,
            content=self.content,
            scope=self.scope,
            scope_id=self.scope_id,
            source_path=self.source_path,
            source_type=self.source_type,
            timestamp=self.timestamp,
            metadata=self.metadata,
            vector=list(vector),
        )

    def as_payload(self) -> dict[str, Any]:
        """Flatten the document into plain JSON-compatible values."""
        return {
            "id": self.id,
            "content": self.content,
            "scope": self.scope.value,
            "scope_id": self.scope_id,
            "source_path": self.source_path,
            "source_type": self.source_type,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Document":
        timestamp = payload.get("timestamp")
        return cls(
            id=payload["id"],
            content=payload.get("content", ""),
            scope=Scope(payload["scope"]),
            scope_id=payload.get("scope_id") or None,
            source_path=payload.get("source_path", ""),
            source_type=payload.get("source_type", "document"),
            timestamp=(
                datetime.fromisoformat(timestamp)
                if isinstance(timestamp, str)
                else timestamp or utcnow()
            ),
            metadata=payload.get("metadata") or {},
        )


@dataclass(kw_only=True)
class Record(Document):
    """
    A document with its embedding vector.

    This is the form of content that gets written to a scope store.
    """

    vector: list[float]

    def as_document(self) -> Document:
        return Document.from_payload(self.as_payload())


@dataclass(frozen=True)
class StoreSchema:
    """Declared layout of a scope store, supplied when the store is created."""

    dimensions: int
    fields: tuple[str, ...] = (
        "id",
        "content",
        "scope",
        "scope_id",
        "source_path",
        "source_type",
        "timestamp",
        "metadata",
    )
    indexed_fields: tuple[str, ...] = ("id", "scope_id")
    distance: str = "cosine"


@dataclass
class RecordMatch:
    """A stored document and its cosine distance from the query vector."""

    document: Document
    distance: float


@dataclass
class SearchResult:
    document: Document
    score: float
    snippet: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "document": self.document.as_payload(),
            "score": self.score,
            "snippet": self.snippet,
        }


@dataclass
class ScopeFailure:
    scope: Scope
    error: str


@dataclass
class ScopeOutcome:
    """What one scope contributed to a search: matches, or a failure."""

    scope: Scope
    matches: list[RecordMatch] = field(default_factory=list)
    failure: ScopeFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class SearchResults:
    """Ranked search results, plus the scopes that could not be searched."""

    results: list[SearchResult] = field(default_factory=list)
    failures: list[ScopeFailure] = field(default_factory=list)

    def __iter__(self) -> Iterator[SearchResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, item):
        return self.results[item]

    @property
    def failed_scopes(self) -> list[str]:
        return [failure.scope.value for failure in self.failures]


@dataclass
class IndexResult:
    """Outcome of indexing a batch of documents."""

    count: int = 0
    failures: dict[Scope, str] = field(default_factory=dict)


@dataclass
class IndexStats:
    total_documents: int
    by_scope: dict[str, int]
    last_computed_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalDocuments": self.total_documents,
            "byScope": self.by_scope,
            "lastComputedAt": self.last_computed_at.isoformat(),
        }
