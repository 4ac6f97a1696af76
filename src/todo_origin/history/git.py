"""History source backed by the ``git`` command-line client."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from todo_origin.history.base import Chunk, ChunkKind, FilePatch, HistoryError
from todo_origin.todos.model import CommitRef

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_COMMIT_FORMAT = _FIELD_SEP.join(("%H", "%an", "%ae", "%aI", "%s"))
_DIFF_OPTIONS = (
    "--no-color",
    "--no-ext-diff",
    "--no-textconv",
    "--no-renames",
    "--unified=0",
    "--src-prefix=a/",
    "--dst-prefix=b/",
)
_QUOTED_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
    '"': '"',
    "\\": "\\",
}


class GitCommandError(HistoryError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class UnknownRevisionError(HistoryError):
    """Raised when a ref does not name a commit."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


class GitHistory:
    """Read-only history queries against a local repository."""

    def __init__(
        self,
        repo_path: Path | str,
        *,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self._env_overrides = dict(env_overrides or {})

    def toplevel(self) -> Path:
        """Return the working-tree root containing ``repo_path``."""
        output = self._run_git(["rev-parse", "--show-toplevel"]).stdout.strip()
        return Path(output).resolve()

    def resolve(self, ref: str) -> CommitRef:
        if not ref.strip() or ref.startswith("-"):
            raise UnknownRevisionError(f"invalid revision: {ref!r}")
        parsed = self._run_git(
            ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False
        )
        sha = parsed.stdout.strip()
        if parsed.returncode != 0 or not sha:
            raise UnknownRevisionError(f"revision does not name a commit: {ref}")
        shown = self._run_git(["show", "-s", f"--format={_COMMIT_FORMAT}", sha, "--"])
        return _parse_commit_line(shown.stdout.rstrip("\n"))

    def iter_ancestors(self, start: str, *, first_parent: bool = False) -> Iterator[CommitRef]:
        args = ["log", f"--format={_COMMIT_FORMAT}", "--no-show-signature"]
        if first_parent:
            args.append("--first-parent")
        args.extend([start, "--"])
        command = ("git", *args)
        logger.debug("streaming history", extra={"command": list(command)})

        try:
            process = subprocess.Popen(
                command,
                cwd=self.repo_path,
                env=self._env(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise HistoryError(f"unable to run git in {self.repo_path}: {exc}") from exc
        assert process.stdout is not None
        assert process.stderr is not None
        completed = False
        try:
            for line in process.stdout:
                record = _decode(line).rstrip("\n")
                if record:
                    yield _parse_commit_line(record)
            completed = True
        finally:
            if not completed:
                process.kill()
            stderr = _decode(process.stderr.read())
            process.stdout.close()
            process.stderr.close()
            returncode = process.wait()

        if returncode != 0:
            raise GitCommandError(
                command=command, returncode=returncode, stdout="", stderr=stderr
            )

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run_git(["merge-base", "--is-ancestor", ancestor, descendant], check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitCommandError(
            command=result.command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def diff(self, old: str, new: str, paths: Sequence[str] = ()) -> tuple[FilePatch, ...]:
        args = ["-c", "core.quotePath=false", "diff", *_DIFF_OPTIONS, old, new, "--"]
        # Pathspecs are rooted at the toplevel and matched literally.
        args.extend(f":(top,literal){path}" for path in paths)
        return parse_unified_diff(self._run_git(args).stdout)

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        env.update(self._env_overrides)
        return env

    def _run_git(self, args: Sequence[str], *, check: bool = True) -> CommandResult:
        command = ("git", *args)
        # Bytes in, explicit decode out: text mode would fold "\r\n" into "\n".
        try:
            completed = subprocess.run(
                command,
                cwd=self.repo_path,
                env=self._env(),
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise HistoryError(f"unable to run git in {self.repo_path}: {exc}") from exc

        result = CommandResult(
            command=command,
            cwd=self.repo_path.as_posix(),
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
        )
        if check and result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result


class _PatchBuilder:
    __slots__ = ("from_path", "to_path", "is_binary", "chunks", "_kind", "_lines")

    def __init__(self) -> None:
        self.from_path: str | None = None
        self.to_path: str | None = None
        self.is_binary = False
        self.chunks: list[Chunk] = []
        self._kind: ChunkKind | None = None
        self._lines: list[str] = []

    def line(self, kind: ChunkKind, text: str) -> None:
        if kind is not self._kind:
            self.close_chunk()
            self._kind = kind
        self._lines.append(text)

    def close_chunk(self) -> None:
        if self._kind is not None and self._lines:
            content = "".join(f"{text}\n" for text in self._lines)
            self.chunks.append(Chunk(kind=self._kind, content=content))
        self._kind = None
        self._lines = []

    def build(self) -> FilePatch:
        self.close_chunk()
        return FilePatch(
            from_path=self.from_path,
            to_path=self.to_path,
            is_binary=self.is_binary,
            chunks=tuple(self.chunks),
        )


def parse_unified_diff(output: str) -> tuple[FilePatch, ...]:
    """Parse ``git diff --unified=0`` output into per-file patches."""
    patches: list[FilePatch] = []
    current: _PatchBuilder | None = None
    in_hunk = False

    # Split on "\n" only: content lines may hold other line separators.
    for line in output.split("\n"):
        if line.startswith("diff --git "):
            if current is not None:
                patches.append(current.build())
            current = _PatchBuilder()
            in_hunk = False
            continue
        if current is None:
            continue

        if line.startswith("@@"):
            current.close_chunk()
            in_hunk = True
            continue

        if in_hunk:
            marker = line[:1]
            if marker == "+":
                current.line(ChunkKind.ADD, line[1:])
            elif marker == "-":
                current.line(ChunkKind.DELETE, line[1:])
            elif marker == "\\":
                continue
            else:
                current.close_chunk()
            continue

        if line.startswith("--- "):
            current.from_path = _header_path(line[4:], prefix="a/")
        elif line.startswith("+++ "):
            current.to_path = _header_path(line[4:], prefix="b/")
        elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
            current.is_binary = True

    if current is not None:
        patches.append(current.build())
    return tuple(patches)


def _header_path(raw: str, *, prefix: str) -> str | None:
    candidate = raw if raw.startswith('"') else raw.split("\t", 1)[0]
    candidate = _unquote_path(candidate.rstrip())
    if candidate == "/dev/null":
        return None
    if candidate.startswith(prefix):
        candidate = candidate[len(prefix) :]
    return PurePosixPath(candidate).as_posix()


def _unquote_path(raw: str) -> str:
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        return raw

    body = raw[1:-1]
    decoded = bytearray()
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            decoded.extend(char.encode("utf-8"))
            index += 1
            continue
        following = body[index + 1 : index + 2]
        if following in _QUOTED_ESCAPES:
            decoded.extend(_QUOTED_ESCAPES[following].encode("utf-8"))
            index += 2
            continue
        octal = body[index + 1 : index + 4]
        if len(octal) == 3 and all(digit in "01234567" for digit in octal):
            decoded.append(int(octal, 8))
            index += 4
            continue
        decoded.extend(char.encode("utf-8"))
        index += 1
    return decoded.decode("utf-8", errors="replace")


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def _parse_commit_line(record: str) -> CommitRef:
    parts = record.split(_FIELD_SEP, 4)
    if len(parts) != 5:
        raise HistoryError(f"unexpected commit record from git: {record!r}")
    sha, author_name, author_email, author_date, summary = parts
    try:
        author_time = datetime.fromisoformat(author_date)
    except ValueError as exc:
        raise HistoryError(f"unparseable author date {author_date!r} for {sha}") from exc
    return CommitRef(
        id=sha,
        author_name=author_name,
        author_email=author_email,
        author_time=author_time,
        summary=summary,
    )


__all__ = [
    "CommandResult",
    "GitCommandError",
    "GitHistory",
    "UnknownRevisionError",
    "parse_unified_diff",
]
