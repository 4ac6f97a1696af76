"""
todo-origin — streaming multi-boundary delimiter parser

File: src/todo_origin/lexer/parser.py

Purpose
- Extract located spans (comments) delimited by any boundary of a
  ``BoundaryTable`` from a text stream, one code point at a time.

Functional requirements
- Delimiters are compared as whole code points, never bytes.
- Overlapping starts resolve by table declaration order.
- A span still open at end of input is dropped, not reported.
- Stream read/decode failures raise ``ParseError``; no partial results.

Non-functional requirements
- O(N * B) for N code points and B boundaries; the window never grows beyond
  the longest delimiter plus one.
"""

from __future__ import annotations

import enum
import io
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from todo_origin.lexer.boundaries import Boundary, BoundaryTable

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from typing import TextIO

_READ_CHUNK_SIZE = 64 * 1024


class ParseError(RuntimeError):
    """Raised when the underlying text stream cannot be read."""


@dataclass(frozen=True, slots=True, order=True)
class Location:
    """1-based line and column; columns count code points."""

    line: int
    column: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True, slots=True)
class Collection:
    """Text captured between a matched start and end delimiter."""

    text: str
    boundary: Boundary
    start: Location
    end: Location

    def to_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "boundary": self.boundary.to_dict(),
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
        }


class _Mode(enum.Enum):
    SCANNING = "scanning"
    COLLECTING = "collecting"


@dataclass(slots=True)
class _OpenSpan:
    boundary: Boundary
    runes: list[str]
    start: Location | None = None


class BoundaryParser:
    """Reusable parser bound to one validated ``BoundaryTable``.

    Instances keep no state between ``parse`` calls, but a single call is not
    reentrant; share tables across threads, not parsers.
    """

    def __init__(self, table: BoundaryTable) -> None:
        if not isinstance(table, BoundaryTable):
            table = BoundaryTable(tuple(table))
        self._table = table
        self._window_size = table.window_size

    @property
    def table(self) -> BoundaryTable:
        return self._table

    def parse(self, stream: TextIO) -> list[Collection]:
        """Parse every terminated span in ``stream``."""
        try:
            return list(self.iter_collections(_iter_runes(stream)))
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(f"unable to read text stream: {exc}") from exc

    def parse_text(self, text: str) -> list[Collection]:
        return self.parse(io.StringIO(text))

    def iter_collections(self, runes: Iterable[str]) -> Iterator[Collection]:
        """Yield collections lazily from an iterable of single code points."""
        # Each entry is (rune, location); one extra slot keeps the rune that
        # precedes the longest end delimiter.
        window: deque[tuple[str, Location]] = deque(maxlen=self._window_size + 1)
        mode = _Mode.SCANNING
        span: _OpenSpan | None = None
        fresh = 0
        line = 1
        column = 1

        for rune in runes:
            location = Location(line, column)
            window.append((rune, location))

            if mode is _Mode.SCANNING:
                fresh += 1
                boundary = self._match_start(window, fresh)
                if boundary is not None:
                    mode = _Mode.COLLECTING
                    span = _OpenSpan(boundary=boundary, runes=[])
            else:
                assert span is not None
                span.runes.append(rune)
                if span.start is None:
                    span.start = location
                end = span.boundary.end
                if len(span.runes) >= len(end) and _window_endswith(window, end):
                    del span.runes[len(span.runes) - len(end) :]
                    # An empty span collapses to a single location.
                    last = window[-len(end) - 1][1] if span.runes else span.start
                    yield Collection(
                        text="".join(span.runes),
                        boundary=span.boundary,
                        start=span.start,
                        end=last,
                    )
                    mode = _Mode.SCANNING
                    span = None
                    fresh = 0

            if rune == "\n":
                line += 1
                column = 1
            else:
                column += 1

    def _match_start(self, window: deque[tuple[str, Location]], fresh: int) -> Boundary | None:
        for boundary in self._table.boundaries:
            start = boundary.start
            if len(start) <= fresh and _window_endswith(window, start):
                return boundary
        return None


def parse(stream: TextIO, table: BoundaryTable) -> list[Collection]:
    """Parse ``stream`` with a one-shot parser for ``table``."""
    return BoundaryParser(table).parse(stream)


def parse_text(text: str, table: BoundaryTable) -> list[Collection]:
    return BoundaryParser(table).parse_text(text)


def _iter_runes(stream: TextIO) -> Iterator[str]:
    for chunk in iter(partial(stream.read, _READ_CHUNK_SIZE), ""):
        yield from chunk


def _window_endswith(window: deque[tuple[str, Location]], delimiter: str) -> bool:
    size = len(delimiter)
    if size > len(window):
        return False
    for offset in range(1, size + 1):
        if window[-offset][0] != delimiter[-offset]:
            return False
    return True


__all__ = [
    "BoundaryParser",
    "Collection",
    "Location",
    "ParseError",
    "parse",
    "parse_text",
]
