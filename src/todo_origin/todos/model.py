"""Action items extracted from comments and the commits they originate in."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache

from todo_origin.lexer.parser import Collection

DEFAULT_MARKERS: tuple[str, ...] = ("TODO",)


class OriginAlreadySetError(RuntimeError):
    """Raised when an item's origin commit is assigned twice."""


@dataclass(frozen=True, slots=True)
class CommitRef:
    """Read-only metadata for one commit."""

    id: str
    author_name: str
    author_email: str
    author_time: datetime
    summary: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:7]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "author_time": self.author_time.isoformat(),
            "summary": self.summary,
        }


@dataclass(eq=False, slots=True)
class Item:
    """A comment carrying an action-item marker.

    ``origin`` starts unset and may be assigned exactly once through
    :meth:`attribute`.
    """

    path: str
    collection: Collection
    text: str
    marker: str = "TODO"
    _origin: CommitRef | None = field(default=None, init=False, repr=False)

    @property
    def origin(self) -> CommitRef | None:
        return self._origin

    @property
    def is_attributed(self) -> bool:
        return self._origin is not None

    @property
    def raw_text(self) -> str:
        return self.collection.text

    @property
    def start_line(self) -> int:
        return self.collection.start.line

    @property
    def end_line(self) -> int:
        return self.collection.end.line

    def attribute(self, commit: CommitRef) -> None:
        if self._origin is not None:
            raise OriginAlreadySetError(
                f"{self.path}:{self.start_line} already attributed to {self._origin.id}"
            )
        self._origin = commit

    def sort_key(self) -> tuple[int, float]:
        if self._origin is None:
            return (0, 0.0)
        return (1, self._origin.author_time.timestamp())

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "text": self.text,
            "marker": self.marker,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "origin": None if self._origin is None else self._origin.to_dict(),
        }


def item_from_collection(
    path: str,
    collection: Collection,
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> Item | None:
    """Return an ``Item`` when the collection text contains a marker, else ``None``.

    The first marker occurrence plus one trailing ``:`` or ``,`` is removed and
    surrounding whitespace trimmed: ``"TODO: fix this"`` becomes ``"fix this"``.
    """
    text = collection.text
    for marker in markers:
        if marker not in text:
            continue
        display = _marker_pattern(marker).sub("", text, count=1).strip()
        return Item(path=path, collection=collection, text=display, marker=marker)
    return None


def items_from_collections(
    located: Iterable[tuple[str, Collection]],
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> list[Item]:
    items: list[Item] = []
    for path, collection in located:
        item = item_from_collection(path, collection, markers)
        if item is not None:
            items.append(item)
    return items


def sort_items(items: Iterable[Item]) -> list[Item]:
    """Order by origin author time; unknown origins first, in input order."""
    return sorted(items, key=Item.sort_key)


def count_attributed(items: Iterable[Item]) -> int:
    return sum(1 for item in items if item.is_attributed)


@lru_cache(maxsize=32)
def _marker_pattern(marker: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(marker)}[:,]?")


__all__ = [
    "CommitRef",
    "DEFAULT_MARKERS",
    "Item",
    "OriginAlreadySetError",
    "count_attributed",
    "item_from_collection",
    "items_from_collections",
    "sort_items",
]
