"""
todo-origin — unit tests for report rendering

File: tests/unit/ui/test_render.py

Purpose
- Validate relative time wording, text/JSON report output, and spinner gating.
"""

from __future__ import annotations

import io
import json
from datetime import UTC, datetime, timedelta, timezone

import pytest
from rich.console import Console

from todo_origin.lexer.languages import C_STYLE
from todo_origin.lexer.parser import parse_text
from todo_origin.todos.blame import BlameOutcome
from todo_origin.todos.model import CommitRef, Item, item_from_collection
from todo_origin.ui.render import (
    UNKNOWN_ORIGIN,
    BlameProgress,
    CLIRenderer,
    build_comments_report,
    build_report,
    format_relative_time,
)

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

COMMIT = CommitRef(
    id="0123456789abcdef0123456789abcdef01234567",
    author_name="Ada Lovelace",
    author_email="ada@example.com",
    author_time=NOW - timedelta(days=3),
    summary="Add the parser",
)


def _item(path: str, source: str) -> Item:
    (collection,) = parse_text(source, C_STYLE)
    item = item_from_collection(path, collection)
    assert item is not None
    return item


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(seconds=-5), "in the future"),
        (timedelta(seconds=10), "just now"),
        (timedelta(seconds=50), "a minute ago"),
        (timedelta(minutes=1), "a minute ago"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=1), "an hour ago"),
        (timedelta(hours=23), "23 hours ago"),
        (timedelta(days=1), "a day ago"),
        (timedelta(days=13), "a week ago"),
        (timedelta(days=45), "a month ago"),
        (timedelta(days=800), "2 years ago"),
    ],
)
def test_format_relative_time(delta: timedelta, expected: str) -> None:
    assert format_relative_time(NOW - delta, now=NOW) == expected


def test_relative_time_compares_across_offsets() -> None:
    plus_two = timezone(timedelta(hours=2))
    when = datetime(2024, 6, 1, 13, 0, tzinfo=plus_two)

    assert format_relative_time(when, now=NOW) == "an hour ago"


def test_items_render_origin_or_unknown_marker() -> None:
    known = _item("src/a.go", "// TODO: ship it\n")
    known.attribute(COMMIT)
    unknown = _item("src/b.go", "/* TODO: spans\n   lines */")
    stream = io.StringIO()

    CLIRenderer(stream=stream).items([unknown, known], now=NOW)

    assert stream.getvalue().splitlines() == [
        "src/b.go:1-2  spans",
        "   lines",
        f"    {UNKNOWN_ORIGIN}",
        "src/a.go:1  ship it",
        "    0123456 Ada Lovelace <ada@example.com> 3 days ago",
    ]


def test_verbose_items_include_commit_summary() -> None:
    known = _item("a.go", "// TODO: ship it\n")
    known.attribute(COMMIT)
    stream = io.StringIO()

    CLIRenderer(stream=stream, verbose=True).items([known], now=NOW)

    assert stream.getvalue().splitlines()[-1] == "    Add the parser"


def test_summary_line_reports_walk() -> None:
    known = _item("a.go", "// TODO: ship it\n")
    known.attribute(COMMIT)
    items = [known, _item("b.go", "// TODO: later\n")]
    outcome = BlameOutcome(steps=4, resolved=1, remaining=1, cancelled=True, last_commit=COMMIT)
    stream = io.StringIO()

    renderer = CLIRenderer(stream=stream)
    renderer.summary(items, outcome)
    renderer.summary(items, None)

    assert stream.getvalue().splitlines() == [
        "",
        "2 item(s), 1 attributed, 4 commit(s) walked (stopped early)",
        "",
        "2 item(s), 1 attributed",
    ]


def test_comments_render_location_and_stripped_text() -> None:
    located = [("a.go", collection) for collection in parse_text("x /* a */ // b\n", C_STYLE)]
    stream = io.StringIO()

    CLIRenderer(stream=stream).comments(located)

    assert stream.getvalue().splitlines() == ["a.go:1:5  a", "a.go:1:13  b"]


def test_build_report_shape() -> None:
    known = _item("a.go", "// TODO: ship it\n")
    known.attribute(COMMIT)
    outcome = BlameOutcome(steps=2, resolved=1, remaining=0, cancelled=False, last_commit=COMMIT)

    report = build_report([known], root="/repo", head=COMMIT, outcome=outcome)
    stream = io.StringIO()
    CLIRenderer(stream=stream).json(report)

    decoded = json.loads(stream.getvalue())
    assert decoded["summary"] == {
        "root": "/repo",
        "head": COMMIT.id,
        "total": 1,
        "attributed": 1,
        "blame": {
            "steps": 2,
            "resolved": 1,
            "remaining": 0,
            "cancelled": False,
            "last_commit": COMMIT.id,
        },
    }
    (item,) = decoded["items"]
    assert item["text"] == "ship it"
    assert item["marker"] == "TODO"
    assert item["origin"]["author_email"] == "ada@example.com"


def test_build_report_without_history() -> None:
    report = build_report([_item("a.go", "// TODO: x\n")], root="/repo", head=None, outcome=None)

    summary = report["summary"]
    assert isinstance(summary, dict)
    assert summary["head"] is None
    assert summary["blame"] is None
    assert summary["attributed"] == 0


def test_build_comments_report_shape() -> None:
    located = [("a.go", collection) for collection in parse_text("// hi\n", C_STYLE)]

    report = build_comments_report(located, root="/repo")

    assert report == {
        "summary": {"root": "/repo", "total": 1},
        "items": [
            {
                "path": "a.go",
                "text": " hi",
                "boundary": {"start": "//", "end": "\n"},
                "start": {"line": 1, "column": 3},
                "end": {"line": 1, "column": 5},
            }
        ],
    }


def test_progress_is_silent_off_terminal() -> None:
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False)

    with BlameProgress(total=2, console=console) as progress:
        progress.update(COMMIT, 1)

    assert buffer.getvalue() == ""


def test_progress_can_be_disabled_explicitly(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CI", raising=False)
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=True)

    with BlameProgress(total=2, enabled=False, console=console) as progress:
        progress.update(COMMIT, 1)

    assert buffer.getvalue() == ""


class _RecordingStatus:
    def __init__(self, message: str) -> None:
        self.messages = [message]
        self.running = False

    def start(self) -> None:
        self.running = True

    def update(self, message: str) -> None:
        self.messages.append(message)

    def stop(self) -> None:
        self.running = False


class _TerminalConsole:
    is_terminal = True

    def __init__(self) -> None:
        self.statuses: list[_RecordingStatus] = []

    def status(self, message: str) -> _RecordingStatus:
        status = _RecordingStatus(message)
        self.statuses.append(status)
        return status


def test_progress_shows_resolved_count_commit_and_age(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CI", raising=False)
    console = _TerminalConsole()

    with BlameProgress(total=2, console=console) as progress:  # type: ignore[arg-type]
        progress.update(COMMIT, 1)

    (status,) = console.statuses
    assert status.messages == [
        "Walking history for 2 item(s)",
        f"(1/2) 0123456: {format_relative_time(COMMIT.author_time)}",
    ]
    assert status.running is False
