"""Comment boundary tables keyed by file extension or file name."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePath

import yaml

from todo_origin.lexer.boundaries import Boundary, BoundaryTable, ConfigError

LINE = "\n"

C_STYLE = BoundaryTable.of(("//", LINE), ("/*", "*/"))
CSS = BoundaryTable.of(("/*", "*/"))
HASH = BoundaryTable.of(("#", LINE))
PYTHON = BoundaryTable.of(("#", LINE), ('"""', '"""'), ("'''", "'''"))
RUBY = BoundaryTable.of(("#", LINE), ("=begin", "=end"))
PHP = BoundaryTable.of(("//", LINE), ("#", LINE), ("/*", "*/"))
DOUBLE_DASH = BoundaryTable.of(("--", LINE))
SQL = BoundaryTable.of(("--", LINE), ("/*", "*/"))
HASKELL = BoundaryTable.of(("--", LINE), ("{-", "-}"))
SEMICOLON = BoundaryTable.of((";", LINE))
PERCENT = BoundaryTable.of(("%", LINE))
MARKUP = BoundaryTable.of(("<!--", "-->"))
OCAML = BoundaryTable.of(("(*", "*)"))

_BUILTIN_EXTENSIONS: dict[str, BoundaryTable] = {
    **dict.fromkeys(
        (
            ".c", ".h", ".cc", ".cpp", ".cxx", ".hpp", ".hh", ".cs", ".go", ".java",
            ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".kt", ".kts", ".swift",
            ".scala", ".rs", ".dart", ".groovy", ".gradle", ".m", ".mm", ".proto",
            ".scss", ".less", ".zig", ".v", ".sol", ".jsonc",
        ),
        C_STYLE,
    ),
    ".css": CSS,
    **dict.fromkeys(
        (
            ".sh", ".bash", ".zsh", ".fish", ".pl", ".pm", ".r", ".yaml", ".yml",
            ".toml", ".cfg", ".conf", ".ini", ".tf", ".ex", ".exs", ".nim", ".cmake",
            ".ps1", ".jl", ".mk", ".dockerfile",
        ),
        HASH,
    ),
    ".py": PYTHON,
    ".pyi": PYTHON,
    ".rb": RUBY,
    ".php": PHP,
    ".sql": SQL,
    ".lua": DOUBLE_DASH,
    ".hs": HASKELL,
    ".elm": HASKELL,
    **dict.fromkeys((".lisp", ".el", ".clj", ".cljs", ".scm", ".rkt", ".asm"), SEMICOLON),
    **dict.fromkeys((".tex", ".erl", ".hrl", ".matlab"), PERCENT),
    **dict.fromkeys((".html", ".htm", ".xml", ".md", ".svg", ".vue"), MARKUP),
    **dict.fromkeys((".ml", ".mli"), OCAML),
}

_BUILTIN_FILENAMES: dict[str, BoundaryTable] = {
    "Makefile": HASH,
    "makefile": HASH,
    "GNUmakefile": HASH,
    "Dockerfile": HASH,
    "CMakeLists.txt": HASH,
    "Gemfile": RUBY,
    "Rakefile": RUBY,
    "Jenkinsfile": C_STYLE,
}


@dataclass(slots=True)
class LanguageRegistry:
    """Resolves a path to the boundary table used to parse it.

    Exact file names win over extensions; extensions are matched lower-cased.
    """

    extensions: dict[str, BoundaryTable] = field(default_factory=dict)
    filenames: dict[str, BoundaryTable] = field(default_factory=dict)

    @classmethod
    def builtin(cls) -> LanguageRegistry:
        return cls(extensions=dict(_BUILTIN_EXTENSIONS), filenames=dict(_BUILTIN_FILENAMES))

    def table_for(self, path: str | PurePath) -> BoundaryTable | None:
        pure = PurePath(path)
        by_name = self.filenames.get(pure.name)
        if by_name is not None:
            return by_name
        suffix = pure.suffix.lower()
        if not suffix:
            return None
        return self.extensions.get(suffix)

    def merged(self, other: LanguageRegistry) -> LanguageRegistry:
        """Return a registry where ``other`` overrides entries of ``self``."""
        return LanguageRegistry(
            extensions={**self.extensions, **other.extensions},
            filenames={**self.filenames, **other.filenames},
        )


def load_language_file(path: str | Path) -> LanguageRegistry:
    """Load boundary overrides from a YAML file.

    Expected shape::

        extensions:
          .foo:
            - {start: "//", end: "\\n"}
        filenames:
          Jenkinsfile:
            - {start: "//", end: "\\n"}
    """
    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {source}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"unable to read language file {source}: {exc}") from exc

    if payload is None:
        return LanguageRegistry()
    if not isinstance(payload, Mapping):
        raise ConfigError(f"language file root must be a mapping: {source}")

    unknown = sorted(set(payload) - {"extensions", "filenames"})
    if unknown:
        raise ConfigError(f"unknown language file sections: {', '.join(map(str, unknown))}")

    extensions = {
        _normalize_extension(key): table
        for key, table in _parse_section(payload.get("extensions"), "extensions").items()
    }
    filenames = _parse_section(payload.get("filenames"), "filenames")
    return LanguageRegistry(extensions=extensions, filenames=filenames)


def _parse_section(raw: object, section: str) -> dict[str, BoundaryTable]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{section} must be a mapping")

    tables: dict[str, BoundaryTable] = {}
    for key in sorted(raw, key=str):
        entries = raw[key]
        if not isinstance(key, str) or not key:
            raise ConfigError(f"{section} keys must be non-empty strings")
        if not isinstance(entries, list):
            raise ConfigError(f"{section}.{key} must be a list of boundaries")
        boundaries: list[Boundary] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping) or set(entry) != {"start", "end"}:
                raise ConfigError(f"{section}.{key}[{index}] must define exactly start and end")
            boundaries.append(Boundary(start=entry["start"], end=entry["end"]))
        tables[key] = BoundaryTable(tuple(boundaries))
    return tables


def _normalize_extension(key: str) -> str:
    lowered = key.lower()
    return lowered if lowered.startswith(".") else f".{lowered}"


__all__ = [
    "C_STYLE",
    "HASH",
    "LanguageRegistry",
    "MARKUP",
    "PYTHON",
    "load_language_file",
]
