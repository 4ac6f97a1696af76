"""Command-line interface router for todo-origin."""

from __future__ import annotations

import argparse
import json
import logging
import secrets
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from todo_origin import __version__
from todo_origin.config import dump_effective_config, load_config
from todo_origin.config.schema import LOG_LEVELS
from todo_origin.history.base import HistoryError
from todo_origin.history.git import GitCommandError, GitHistory
from todo_origin.lexer.languages import LanguageRegistry, load_language_file
from todo_origin.observability import correlation_scope, setup_logging, shutdown_logging
from todo_origin.todos.blame import BlameOutcome, resolve_blame
from todo_origin.todos.model import CommitRef, Item, items_from_collections, sort_items
from todo_origin.todos.search import search_dir
from todo_origin.ui.render import (
    BlameProgress,
    CLIRenderer,
    build_comments_report,
    build_report,
)
from todo_origin.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="todo-origin",
        description=(
            "todo-origin: find TODO comments and the commits that introduced them.\n\n"
            "Common workflows:\n"
            "  todo-origin todos              TODOs under the current directory, oldest first\n"
            "  todo-origin todos src --json   Machine-readable report\n"
            "  todo-origin comments file.go   Every comment the lexer extracts\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("path", nargs="?", default=".", help="File or directory to scan.")
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./todo-origin.toml if present).",
    )
    common.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default="text",
        help="Report format.",
    )
    common.add_argument(
        "--json",
        dest="output_format",
        action="store_const",
        const="json",
        help="Shorthand for --format json.",
    )
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Override observability.log_level.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show commit subjects and INFO logs.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    todos_parser = subparsers.add_parser(
        "todos",
        parents=[common],
        help="List action items with the commit that introduced each one",
    )
    todos_parser.add_argument("--ref", default=None, help="Commit to start from (default: HEAD).")
    todos_parser.add_argument(
        "--no-blame",
        action="store_true",
        default=False,
        help="Skip history; report items without origins.",
    )
    todos_parser.add_argument(
        "--first-parent",
        action="store_true",
        default=False,
        help="Follow only the first parent of merge commits.",
    )
    todos_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds before the history walk stops early (0 disables).",
    )
    todos_parser.add_argument(
        "--marker",
        dest="markers",
        action="append",
        default=None,
        help="Marker to look for; repeatable (default: TODO).",
    )
    todos_parser.add_argument(
        "--no-progress",
        action="store_true",
        default=False,
        help="Do not show the progress spinner.",
    )
    todos_parser.set_defaults(handler=_cmd_todos)

    comments_parser = subparsers.add_parser(
        "comments",
        parents=[common],
        help="List every comment span found by the lexer",
    )
    comments_parser.set_defaults(handler=_cmd_comments)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
        description=(
            "Display the effective config after merging defaults, file, env, and flags.\n\n"
            "Examples:\n"
            "  todo-origin config\n"
            "  todo-origin config --config ci.toml --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_todos(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    scan_cfg = config["scan"]
    blame_cfg = config["blame"]
    target = _scan_target(args)
    renderer = CLIRenderer(verbose=args.verbose)

    with _logging_session(config, args, target):
        history: GitHistory | None = None
        repo_root = target if target.is_dir() else target.parent
        if blame_cfg["enabled"]:
            history = GitHistory(repo_root)
            repo_root = _toplevel(history)
            history = GitHistory(repo_root)

        located = list(
            search_dir(
                target,
                registry=_language_registry(scan_cfg),
                repo_root=repo_root,
                exclude=scan_cfg["exclude"],
                max_file_bytes=scan_cfg["max_file_bytes"],
            )
        )
        items = items_from_collections(located, scan_cfg["markers"])
        logger.info(
            "items found",
            extra={"files": len({path for path, _ in located}), "items": len(items)},
        )

        head: CommitRef | None = None
        outcome: BlameOutcome | None = None
        if history is not None:
            head = history.resolve(blame_cfg["ref"])
            with correlation_scope(commit=head.id):
                outcome = _blame(items, history, head, blame_cfg, show_progress=not args.no_progress)

        ordered = sort_items(items)
        if args.output_format == "json":
            renderer.json(
                build_report(ordered, root=target.as_posix(), head=head, outcome=outcome)
            )
        else:
            renderer.items(ordered)
            renderer.summary(ordered, outcome)
    return 0


def _cmd_comments(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    scan_cfg = config["scan"]
    target = _scan_target(args)
    renderer = CLIRenderer(verbose=args.verbose)

    with _logging_session(config, args, target):
        located = list(
            search_dir(
                target,
                registry=_language_registry(scan_cfg),
                exclude=scan_cfg["exclude"],
                max_file_bytes=scan_cfg["max_file_bytes"],
            )
        )
        if args.output_format == "json":
            renderer.json(build_comments_report(located, root=target.as_posix()))
        else:
            renderer.comments(located)
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    renderer = CLIRenderer(verbose=args.verbose)

    if args.output_format == "json":
        renderer.json({"command": "config", "config": config})
    else:
        renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _blame(
    items: list[Item],
    history: GitHistory,
    head: CommitRef,
    blame_cfg: Mapping[str, Any],
    *,
    show_progress: bool,
) -> BlameOutcome:
    timeout = float(blame_cfg["timeout_seconds"])
    cancel = CancellationToken(timeout_seconds=timeout or None)
    stop_when_remaining = int(blame_cfg["stop_when_remaining"])

    with BlameProgress(total=len(items), enabled=show_progress) as progress:

        def on_progress(commit: CommitRef, remaining: int) -> None:
            progress.update(commit, remaining)
            if stop_when_remaining and remaining <= stop_when_remaining:
                cancel.cancel("enough items resolved")

        outcome = resolve_blame(
            items,
            history,
            head,
            on_progress=on_progress,
            cancel=cancel,
            first_parent=bool(blame_cfg["first_parent"]),
        )

    if outcome.cancelled:
        logger.warning(
            "history walk stopped early",
            extra={"reason": cancel.reason or "cancelled", "remaining": outcome.remaining},
        )
    return outcome


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {
        "observability.log_level": args.log_level,
    }
    if args.verbose and args.log_level is None:
        overrides["observability.log_level"] = "INFO"
    if getattr(args, "ref", None) is not None:
        overrides["blame.ref"] = args.ref
    if getattr(args, "no_blame", False):
        overrides["blame.enabled"] = False
    if getattr(args, "first_parent", False):
        overrides["blame.first_parent"] = True
    if getattr(args, "timeout", None) is not None:
        overrides["blame.timeout_seconds"] = args.timeout
    if getattr(args, "markers", None):
        overrides["scan.markers"] = list(args.markers)
    return load_config(args.config_path, cli_overrides=overrides)


def _scan_target(args: argparse.Namespace) -> Path:
    candidate = Path(args.path).expanduser().resolve()
    if not candidate.exists():
        raise CLIError(f"path does not exist: {candidate}")
    return candidate


def _language_registry(scan_cfg: Mapping[str, Any]) -> LanguageRegistry:
    registry = LanguageRegistry.builtin()
    languages_file = scan_cfg["languages_file"]
    if languages_file:
        registry = registry.merged(load_language_file(languages_file))
    return registry


def _toplevel(history: GitHistory) -> Path:
    try:
        return history.toplevel()
    except GitCommandError as exc:
        raise HistoryError(
            f"{history.repo_path} is not inside a git work tree; use --no-blame to skip history"
        ) from exc


@contextmanager
def _logging_session(
    config: Mapping[str, Any], args: argparse.Namespace, target: Path
) -> Iterator[None]:
    run_id = _new_run_id()
    handle = setup_logging(config["observability"], run_id=run_id)
    try:
        with correlation_scope(run_id=run_id, repo=target.as_posix()):
            logger.debug(
                "command starting",
                extra={"cli_command": args.command, "config": dump_effective_config(config)},
            )
            yield
    finally:
        shutdown_logging(handle)


def _new_run_id() -> str:
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{secrets.token_hex(3)}"


__all__ = ["CLIError", "build_parser", "run_cli"]
