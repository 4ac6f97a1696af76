"""Directory walk that feeds source files to the boundary parser."""

from __future__ import annotations

import logging
import os
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Final

from todo_origin.lexer.parser import BoundaryParser, ParseError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from todo_origin.lexer.boundaries import BoundaryTable
    from todo_origin.lexer.languages import LanguageRegistry
    from todo_origin.lexer.parser import Collection

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES: Final[int] = 2_000_000
BINARY_SNIFF_BYTES: Final[int] = 8 * 1024

_ALWAYS_IGNORED_DIRS: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        ".tox",
        ".nox",
        "__pycache__",
        "node_modules",
        ".eggs",
    }
)


def search_dir(
    root: Path | str,
    *,
    registry: LanguageRegistry,
    repo_root: Path | str | None = None,
    exclude: Sequence[str] = (),
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> Iterator[tuple[str, Collection]]:
    """Yield ``(path, collection)`` for every comment under ``root``.

    Paths are POSIX and relative to ``repo_root`` (``root`` when omitted), in
    sorted order. Exclude globs match paths relative to ``root``.
    """
    scan_root = Path(root).resolve()
    base = scan_root if repo_root is None else Path(repo_root).resolve()
    parsers: dict[int, BoundaryParser] = {}

    for scan_rel, file_path in _collect_files(scan_root, exclude=exclude):
        table = registry.table_for(file_path.name)
        if table is None:
            continue
        if not _is_readable_text(file_path, max_file_bytes):
            continue

        rel = _relative_posix(file_path, base)
        if rel is None:
            logger.warning("skipping file outside repository root", extra={"path": scan_rel})
            continue

        parser = parsers.get(id(table))
        if parser is None:
            parser = parsers[id(table)] = BoundaryParser(table)
        for collection in _parse_file(file_path, parser):
            yield rel, collection


def parse_file(path: Path | str, table: BoundaryTable) -> list[Collection]:
    """Parse one file as UTF-8, replacing undecodable bytes."""
    return _parse_file(Path(path), BoundaryParser(table))


def _parse_file(path: Path, parser: BoundaryParser) -> list[Collection]:
    # newline="" keeps "\r" so comment text matches diff content byte for byte.
    try:
        with path.open("r", encoding="utf-8", errors="replace", newline="") as handle:
            return parser.parse(handle)
    except OSError as exc:
        raise ParseError(f"unable to read {path}: {exc}") from exc
    except ParseError as exc:
        raise ParseError(f"unable to parse {path}: {exc}") from exc


def _collect_files(scan_root: Path, *, exclude: Sequence[str]) -> list[tuple[str, Path]]:
    if scan_root.is_file():
        return [(scan_root.name, scan_root)]

    discovered: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(scan_root):
        current_dir = Path(dirpath)
        rel_dir = "" if current_dir == scan_root else current_dir.relative_to(scan_root).as_posix()

        kept_dirs: list[str] = []
        for dirname in sorted(dirnames):
            candidate = f"{rel_dir}/{dirname}" if rel_dir else dirname
            if _should_skip_directory(dirname, candidate, exclude):
                continue
            kept_dirs.append(dirname)
        dirnames[:] = kept_dirs

        for filename in filenames:
            file_path = current_dir / filename
            rel_file = f"{rel_dir}/{filename}" if rel_dir else filename
            if file_path.is_symlink() or _is_excluded(rel_file, exclude):
                continue
            discovered.append((rel_file, file_path))

    discovered.sort(key=lambda entry: entry[0])
    return discovered


def _should_skip_directory(dirname: str, rel_dir: str, exclude: Sequence[str]) -> bool:
    lowered = dirname.lower()
    if dirname in _ALWAYS_IGNORED_DIRS:
        return True
    if lowered.endswith("_cache") or lowered in {".cache", "caches"}:
        return True
    return _is_excluded(rel_dir, exclude)


def _is_excluded(rel_path: str, exclude: Sequence[str]) -> bool:
    name = PurePosixPath(rel_path).name
    return any(fnmatch(rel_path, pattern) or fnmatch(name, pattern) for pattern in exclude)


def _is_readable_text(path: Path, max_file_bytes: int) -> bool:
    try:
        size = path.stat().st_size
        if size > max_file_bytes:
            logger.debug("skipping oversized file", extra={"path": str(path), "size": size})
            return False
        with path.open("rb") as handle:
            head = handle.read(BINARY_SNIFF_BYTES)
    except OSError as exc:
        raise ParseError(f"unable to read {path}: {exc}") from exc
    return b"\x00" not in head


def _relative_posix(path: Path, root: Path) -> str | None:
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        return None


__all__ = ["BINARY_SNIFF_BYTES", "DEFAULT_MAX_FILE_BYTES", "parse_file", "search_dir"]
