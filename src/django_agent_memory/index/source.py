import logging
from pathlib import Path
from typing import Iterable, Iterator, Protocol, runtime_checkable

from .schema import Document, Scope, utcnow

logger = logging.getLogger(__name__)

GLOBAL_FILES = ("PROJECTS.md", "BLOCKERS.md", "CONTACTS.md", "USER.md")


@runtime_checkable
class Source(Protocol):
    """Base source for providing documents for the index."""

    @property
    def source_id(self) -> str:
        """Get unique identifier for this source."""
        return self.__class__.__name__

    def get_documents(self) -> Iterable[Document]:
        """Get all documents from this source."""
        ...


def read_markdown(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Skipping unreadable file {path}: {e}")
        return None


class WorkspaceSource(Source):
    """Memory files of a single agent workspace.

    Reads ``MEMORY.md``, ``SOUL.md`` and the daily notes in ``memory/*.md``.
    """

    def __init__(self, workspace_id: str, path: Path | str):
        self.workspace_id = workspace_id
        self.path = Path(path)

    @property
    def source_id(self) -> str:
        return self.workspace_id

    def _files(self) -> Iterator[tuple[str, str]]:
        yield "MEMORY.md", "memory"
        yield "SOUL.md", "soul"

        memory_dir = self.path / "memory"
        if memory_dir.is_dir():
            for file in sorted(memory_dir.glob("*.md")):
                yield f"memory/{file.name}", "daily"

    def get_documents(self) -> Iterator[Document]:
        for relative_path, source_type in self._files():
            file_path = self.path / relative_path
            if not file_path.is_file():
                continue
            content = read_markdown(file_path)
            if content is None:
                continue
            yield Document(
                id=f"{self.workspace_id}:{relative_path}",
                content=content,
                scope=Scope.WORKSPACE,
                scope_id=self.workspace_id,
                source_path=relative_path,
                source_type=source_type,
                timestamp=utcnow(),
            )


class AgentsDirectorySource(Source):
    """Every agent workspace found directly under an agents directory."""

    def __init__(self, agents_dir: Path | str):
        self.agents_dir = Path(agents_dir)

    def workspaces(self) -> list[WorkspaceSource]:
        if not self.agents_dir.is_dir():
            logger.warning(f"Agents directory {self.agents_dir} does not exist")
            return []
        return [
            WorkspaceSource(entry.name, entry)
            for entry in sorted(self.agents_dir.iterdir())
            if entry.is_dir()
        ]

    def get_documents(self) -> Iterator[Document]:
        for workspace in self.workspaces():
            yield from workspace.get_documents()


class GlobalSource(Source):
    """Fleet-wide trackers at the workspace root (projects, blockers, contacts, user)."""

    def __init__(self, root: Path | str, files: Iterable[str] = GLOBAL_FILES):
        self.root = Path(root)
        self.files = tuple(files)

    def get_documents(self) -> Iterator[Document]:
        for file in self.files:
            file_path = self.root / file
            if not file_path.is_file():
                continue
            content = read_markdown(file_path)
            if content is None:
                continue
            yield Document(
                id=f"global:{file}",
                content=content,
                scope=Scope.GLOBAL,
                source_path=file,
                source_type="document",
                timestamp=utcnow(),
            )
