"""History collaborator contract consumed by the blame resolver."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from todo_origin.todos.model import CommitRef


class HistoryError(RuntimeError):
    """Base error for failures reading commits, ancestry, or diffs."""


class ChunkKind(enum.Enum):
    ADD = "add"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class Chunk:
    """A contiguous run of added or removed lines, newline-terminated."""

    kind: ChunkKind
    content: str


@dataclass(frozen=True, slots=True)
class FilePatch:
    """Changes to one file between two commits.

    ``to_path`` is ``None`` when the file does not exist on the "to" side.
    """

    from_path: str | None
    to_path: str | None
    is_binary: bool
    chunks: tuple[Chunk, ...]

    def added(self) -> Iterator[str]:
        for chunk in self.chunks:
            if chunk.kind is ChunkKind.ADD:
                yield chunk.content


class HistorySource(Protocol):
    """Read-only view over a versioned-snapshot history."""

    def resolve(self, ref: str) -> CommitRef: ...

    def iter_ancestors(self, start: str, *, first_parent: bool = False) -> Iterator[CommitRef]:
        """Yield ``start`` and its ancestors, most recent first."""
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool: ...

    def diff(self, old: str, new: str, paths: Sequence[str] = ()) -> tuple[FilePatch, ...]: ...


__all__ = ["Chunk", "ChunkKind", "FilePatch", "HistoryError", "HistorySource"]
