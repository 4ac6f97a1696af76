"""Output rendering for the todo-origin CLI.

File: src/todo_origin/ui/render.py

Purpose
- Render item and comment reports as plain text or JSON.
- Show a transient progress spinner on stderr while history is walked.

Functional requirements
- Plain-text and JSON output are deterministic for a given input and clock.
- The spinner only draws on an interactive terminal and never touches stdout.
"""

from __future__ import annotations

import json
import os
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

from rich.console import Console

from todo_origin.todos.model import count_attributed

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from rich.status import Status

    from todo_origin.lexer.parser import Collection
    from todo_origin.todos.blame import BlameOutcome
    from todo_origin.todos.model import CommitRef, Item

UNKNOWN_ORIGIN = "origin unknown"

_UNITS: tuple[tuple[str, int], ...] = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def format_relative_time(when: datetime, *, now: datetime | None = None) -> str:
    """Render ``when`` relative to ``now``: ``"3 days ago"``, ``"a minute ago"``."""

    reference = now if now is not None else datetime.now(UTC)
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)

    seconds = int((reference - when).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < 45:
        return "just now"
    for unit, size in _UNITS:
        count = seconds // size
        if count >= 1:
            if count == 1:
                article = "an" if unit == "hour" else "a"
                return f"{article} {unit} ago"
            return f"{count} {unit}s ago"
    return "a minute ago"


def build_report(
    items: Sequence[Item],
    *,
    root: str,
    head: CommitRef | None,
    outcome: BlameOutcome | None,
) -> dict[str, object]:
    """JSON-ready report for attributed items."""

    summary: dict[str, object] = {
        "root": root,
        "head": None if head is None else head.id,
        "total": len(items),
        "attributed": count_attributed(items),
        "blame": None if outcome is None else outcome.to_dict(),
    }
    return {"summary": summary, "items": [item.to_dict() for item in items]}


def build_comments_report(located: Sequence[tuple[str, Collection]], *, root: str) -> dict[str, object]:
    return {
        "summary": {"root": root, "total": len(located)},
        "items": [{"path": path, **collection.to_dict()} for path, collection in located],
    }


def render_json(report: dict[str, object]) -> str:
    return json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False)


class CLIRenderer:
    """Plain-text report renderer writing to ``stream`` (stdout by default)."""

    def __init__(self, *, stream: TextIO | None = None, verbose: bool = False) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout

    def text(self, line: str = "") -> None:
        print(line, file=self._stream)

    def json(self, report: dict[str, object]) -> None:
        print(render_json(report), file=self._stream)

    def items(self, items: Sequence[Item], *, now: datetime | None = None) -> None:
        for item in items:
            self.text(f"{_span_label(item.path, item.start_line, item.end_line)}  {item.text}")
            self.text(f"    {_origin_line(item.origin, now=now)}")
            if self.verbose and item.origin is not None and item.origin.summary:
                self.text(f"    {item.origin.summary}")

    def comments(self, located: Sequence[tuple[str, Collection]]) -> None:
        for path, collection in located:
            label = f"{path}:{collection.start.line}:{collection.start.column}"
            self.text(f"{label}  {collection.text.strip()}")

    def summary(self, items: Sequence[Item], outcome: BlameOutcome | None) -> None:
        attributed = count_attributed(items)
        line = f"{len(items)} item(s), {attributed} attributed"
        if outcome is not None:
            line = f"{line}, {outcome.steps} commit(s) walked"
            if outcome.cancelled:
                line = f"{line} (stopped early)"
        self.text()
        self.text(line)


class BlameProgress:
    """Context manager showing a rich spinner while the resolver runs."""

    def __init__(self, *, total: int, enabled: bool = True, console: Console | None = None) -> None:
        self._console = console if console is not None else Console(stderr=True)
        self._total = total
        self._enabled = enabled and self._console.is_terminal and not os.environ.get("CI")
        self._status: Status | None = None

    def __enter__(self) -> BlameProgress:
        if self._enabled:
            self._status = self._console.status(f"Walking history for {self._total} item(s)")
            self._status.start()
        return self

    def update(self, commit: CommitRef, remaining: int) -> None:
        if self._status is None:
            return
        resolved = self._total - remaining
        when = format_relative_time(commit.author_time)
        self._status.update(f"({resolved}/{self._total}) {commit.short_id}: {when}")

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


def _span_label(path: str, start_line: int, end_line: int) -> str:
    if start_line == end_line:
        return f"{path}:{start_line}"
    return f"{path}:{start_line}-{end_line}"


def _origin_line(origin: CommitRef | None, *, now: datetime | None) -> str:
    if origin is None:
        return UNKNOWN_ORIGIN
    when = format_relative_time(origin.author_time, now=now)
    return f"{origin.short_id} {origin.author_name} <{origin.author_email}> {when}"


__all__ = [
    "BlameProgress",
    "CLIRenderer",
    "UNKNOWN_ORIGIN",
    "build_comments_report",
    "build_report",
    "format_relative_time",
    "render_json",
]
