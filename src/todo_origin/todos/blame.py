"""
todo-origin — blame resolver

File: src/todo_origin/todos/blame.py

Purpose
- Attribute each item to the commit that introduced its comment text by
  walking history backward from a starting commit and diffing each step.

Functional requirements
- An item is attributed to ``prev`` when the step ``snapshot -> prev`` adds a
  chunk that contains the item's raw comment text in the item's file.
- Binary patches and patches without a destination file never match.
- Items still present at the root commit stay unknown.
- The cancellation token is checked before every step; cancellation is a
  normal, partial outcome.
- ``HistoryError`` propagates and origins assigned so far are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from todo_origin.todos.model import CommitRef, Item

if TYPE_CHECKING:
    from todo_origin.history.base import HistorySource
    from todo_origin.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CommitRef, int], None]


@dataclass(frozen=True, slots=True)
class BlameOutcome:
    """Summary of one resolver run."""

    steps: int
    resolved: int
    remaining: int
    cancelled: bool
    last_commit: CommitRef | None

    @property
    def complete(self) -> bool:
        return self.remaining == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "steps": self.steps,
            "resolved": self.resolved,
            "remaining": self.remaining,
            "cancelled": self.cancelled,
            "last_commit": None if self.last_commit is None else self.last_commit.id,
        }


def resolve_blame(
    items: Iterable[Item],
    history: HistorySource,
    from_commit: CommitRef,
    *,
    on_progress: ProgressCallback | None = None,
    cancel: CancellationToken | None = None,
    first_parent: bool = False,
) -> BlameOutcome:
    """Walk ancestors of ``from_commit`` and attribute unresolved items."""
    remaining = [item for item in items if not item.is_attributed]
    prev = from_commit
    steps = 0
    resolved = 0
    cancelled = False
    last_commit: CommitRef | None = None

    logger.debug(
        "blame walk starting",
        extra={"commit": from_commit.id, "pending": len(remaining)},
    )
    ancestors = history.iter_ancestors(from_commit.id, first_parent=first_parent)
    try:
        for snapshot in ancestors:
            if not remaining:
                break
            if cancel is not None and cancel.is_cancelled:
                cancelled = True
                break
            if snapshot.id == prev.id:
                continue

            steps += 1
            matched = _introduced_between(remaining, history, snapshot, prev)
            for item in matched:
                item.attribute(prev)
            resolved += len(matched)
            remaining = [item for item in remaining if not item.is_attributed]
            last_commit = snapshot

            if on_progress is not None:
                on_progress(snapshot, len(remaining))
            prev = snapshot
    finally:
        close = getattr(ancestors, "close", None)
        if close is not None:
            close()

    outcome = BlameOutcome(
        steps=steps,
        resolved=resolved,
        remaining=len(remaining),
        cancelled=cancelled,
        last_commit=last_commit,
    )
    logger.info("blame walk finished", extra={"commit": from_commit.id, **outcome.to_dict()})
    return outcome


def _introduced_between(
    pending: list[Item],
    history: HistorySource,
    snapshot: CommitRef,
    prev: CommitRef,
) -> list[Item]:
    if not history.is_ancestor(snapshot.id, prev.id):
        return []

    paths = sorted({item.path for item in pending})
    added: dict[str, list[str]] = {}
    for patch in history.diff(snapshot.id, prev.id, paths):
        if patch.is_binary or patch.to_path is None:
            continue
        added.setdefault(patch.to_path, []).extend(patch.added())

    return [
        item
        for item in pending
        if any(item.raw_text in chunk for chunk in added.get(item.path, ()))
    ]


__all__ = ["BlameOutcome", "ProgressCallback", "resolve_blame"]
