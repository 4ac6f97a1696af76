"""Boundary (start/end delimiter) records and table validation."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass


class ConfigError(ValueError):
    """Raised when a boundary table or language file is invalid."""


@dataclass(frozen=True, slots=True)
class Boundary:
    """A start/end delimiter pair, e.g. ``("/*", "*/")``."""

    start: str
    end: str

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True, slots=True)
class BoundaryTable:
    """Ordered, validated set of boundaries used by one parser.

    Declaration order matters: when several starts match the same window the
    first declared boundary wins.
    """

    boundaries: tuple[Boundary, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.boundaries, tuple):
            object.__setattr__(self, "boundaries", tuple(self.boundaries))
        _validate(self.boundaries)

    @classmethod
    def of(cls, *pairs: tuple[str, str] | Boundary) -> BoundaryTable:
        """Build a table from ``Boundary`` records or ``(start, end)`` tuples."""
        return cls(tuple(_coerce(pair) for pair in pairs))

    @property
    def starts(self) -> tuple[str, ...]:
        return tuple(boundary.start for boundary in self.boundaries)

    @property
    def ends(self) -> tuple[str, ...]:
        return tuple(boundary.end for boundary in self.boundaries)

    @property
    def window_size(self) -> int:
        longest_start = max(len(start) for start in self.starts)
        longest_end = max(len(end) for end in self.ends)
        return max(longest_start, longest_end)

    def __iter__(self) -> Iterator[Boundary]:
        return iter(self.boundaries)

    def __len__(self) -> int:
        return len(self.boundaries)


def _coerce(pair: tuple[str, str] | Boundary) -> Boundary:
    if isinstance(pair, Boundary):
        return pair
    if not isinstance(pair, Sequence) or isinstance(pair, str) or len(pair) != 2:
        raise ConfigError(f"boundary must be a (start, end) pair, got {pair!r}")
    start, end = pair
    return Boundary(start=start, end=end)


def _validate(boundaries: Iterable[object]) -> None:
    materialized = tuple(boundaries)
    if not materialized:
        raise ConfigError("must supply at least one boundary")

    for boundary in materialized:
        if not isinstance(boundary, Boundary):
            raise ConfigError(f"expected Boundary, got {type(boundary).__name__}")
        if not isinstance(boundary.start, str) or not isinstance(boundary.end, str):
            raise ConfigError("boundary start and end must be strings")
        if boundary.start == "":
            raise ConfigError("start cannot be an empty string")
        if boundary.end == "":
            raise ConfigError(
                f"start boundary {boundary.start!r} must have a corresponding end boundary"
            )


__all__ = ["Boundary", "BoundaryTable", "ConfigError"]
