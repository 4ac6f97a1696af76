"""
todo-origin — unit tests for the blame resolver

File: tests/unit/todos/test_blame.py

Purpose
- Validate backward-history attribution against an in-memory history source.

What this test file should cover
- Attribution to the commit whose diff adds the comment text.
- Monotonicity and the root-commit limitation.
- Cooperative cancellation before and during the walk.
- Binary/deleted patches never match; history errors keep earlier origins.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import UTC, datetime, timedelta

import pytest

from todo_origin.history.base import Chunk, ChunkKind, FilePatch, HistoryError
from todo_origin.lexer.languages import C_STYLE
from todo_origin.lexer.parser import parse_text
from todo_origin.todos.blame import resolve_blame
from todo_origin.todos.model import CommitRef, Item, item_from_collection
from todo_origin.utils.cancellation import CancellationToken

pytestmark = pytest.mark.unit

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


def _commit(sha: str, day: int) -> CommitRef:
    return CommitRef(
        id=sha,
        author_name=f"author-{sha}",
        author_email=f"{sha}@example.com",
        author_time=_EPOCH + timedelta(days=day),
        summary=f"commit {sha}",
    )


C1 = _commit("c1", 1)
C2 = _commit("c2", 2)
C3 = _commit("c3", 3)


def _item(path: str, line: str) -> Item:
    (collection,) = parse_text(line, C_STYLE)
    item = item_from_collection(path, collection)
    assert item is not None
    return item


def _added(path: str | None, *lines: str, binary: bool = False) -> FilePatch:
    content = "".join(f"{line}\n" for line in lines)
    return FilePatch(
        from_path=path,
        to_path=path,
        is_binary=binary,
        chunks=(Chunk(kind=ChunkKind.ADD, content=content),),
    )


class FakeHistory:
    """Linear history, newest first, with canned per-step patches."""

    def __init__(
        self,
        commits: Sequence[CommitRef],
        patches: dict[tuple[str, str], tuple[FilePatch, ...]],
        *,
        fail_on: tuple[str, str] | None = None,
    ) -> None:
        self.commits = list(commits)
        self.patches = patches
        self.fail_on = fail_on
        self.diff_calls: list[tuple[str, str, tuple[str, ...]]] = []
        self.closed = False

    def _index(self, sha: str) -> int:
        return [commit.id for commit in self.commits].index(sha)

    def resolve(self, ref: str) -> CommitRef:
        return self.commits[self._index(ref)]

    def iter_ancestors(self, start: str, *, first_parent: bool = False) -> Iterator[CommitRef]:
        try:
            yield from self.commits[self._index(start) :]
        finally:
            self.closed = True

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self._index(ancestor) >= self._index(descendant)

    def diff(self, old: str, new: str, paths: Sequence[str] = ()) -> tuple[FilePatch, ...]:
        self.diff_calls.append((old, new, tuple(paths)))
        if (old, new) == self.fail_on:
            raise HistoryError(f"cannot diff {old}..{new}")
        return self.patches.get((old, new), ())


def _three_commit_history(**kwargs: object) -> FakeHistory:
    return FakeHistory(
        [C3, C2, C1],
        {
            ("c2", "c3"): (_added("a.go", "// TODO: newest"),),
            ("c1", "c2"): (_added("b.go", "x := 1 // TODO: middle"),),
        },
        **kwargs,  # type: ignore[arg-type]
    )


def test_items_are_attributed_to_the_commit_that_added_them() -> None:
    newest = _item("a.go", "// TODO: newest\n")
    middle = _item("b.go", "x := 1 // TODO: middle\n")
    rooted = _item("c.go", "// TODO: since the beginning\n")
    history = _three_commit_history()
    progress: list[tuple[str, int]] = []

    outcome = resolve_blame(
        [newest, middle, rooted],
        history,
        C3,
        on_progress=lambda commit, remaining: progress.append((commit.id, remaining)),
    )

    assert newest.origin is C3
    assert middle.origin is C2
    assert rooted.origin is None
    assert progress == [("c2", 2), ("c1", 1)]
    assert outcome.steps == 2
    assert outcome.resolved == 2
    assert outcome.remaining == 1
    assert outcome.cancelled is False
    assert outcome.last_commit is C1
    assert history.closed


def test_origin_is_never_newer_than_starting_commit() -> None:
    items = [
        _item("a.go", "// TODO: newest\n"),
        _item("b.go", "x := 1 // TODO: middle\n"),
    ]

    resolve_blame(items, _three_commit_history(), C3)

    for item in items:
        assert item.origin is not None
        assert item.origin.author_time <= C3.author_time


def test_diff_is_requested_once_per_step_for_remaining_paths() -> None:
    items = [
        _item("b.go", "x := 1 // TODO: middle\n"),
        _item("a.go", "// TODO: newest\n"),
        _item("a.go", "// TODO: other\n"),
    ]
    history = _three_commit_history()

    resolve_blame(items, history, C3)

    assert history.diff_calls == [
        ("c2", "c3", ("a.go", "b.go")),
        ("c1", "c2", ("a.go", "b.go")),
    ]


def test_walk_stops_as_soon_as_every_item_is_resolved() -> None:
    newest = _item("a.go", "// TODO: newest\n")
    history = _three_commit_history()

    outcome = resolve_blame([newest], history, C3)

    assert outcome.steps == 1
    assert outcome.remaining == 0
    assert outcome.complete
    assert history.diff_calls == [("c2", "c3", ("a.go",))]


def test_item_present_since_root_commit_stays_unknown() -> None:
    only = _item("a.go", "// TODO: root\n")
    history = FakeHistory([C1], {})

    outcome = resolve_blame([only], history, C1)

    assert only.origin is None
    assert outcome.steps == 0
    assert outcome.remaining == 1
    assert history.diff_calls == []


def test_already_cancelled_token_resolves_nothing() -> None:
    items = [_item("a.go", "// TODO: newest\n")]
    history = _three_commit_history()
    token = CancellationToken()
    token.cancel()

    outcome = resolve_blame(items, history, C3, cancel=token)

    assert items[0].origin is None
    assert outcome.cancelled is True
    assert outcome.resolved == 0
    assert outcome.steps == 0
    assert history.diff_calls == []


def test_cancelling_from_progress_callback_stops_before_next_step() -> None:
    newest = _item("a.go", "// TODO: newest\n")
    middle = _item("b.go", "x := 1 // TODO: middle\n")
    token = CancellationToken()

    outcome = resolve_blame(
        [newest, middle],
        _three_commit_history(),
        C3,
        cancel=token,
        on_progress=lambda _commit, _remaining: token.cancel(),
    )

    assert newest.origin is C3
    assert middle.origin is None
    assert outcome.cancelled is True
    assert outcome.steps == 1


def test_binary_and_deleted_patches_never_match() -> None:
    item = _item("a.go", "// TODO: newest\n")
    deleted = FilePatch(
        from_path="a.go",
        to_path=None,
        is_binary=False,
        chunks=(Chunk(kind=ChunkKind.ADD, content="// TODO: newest\n"),),
    )
    history = FakeHistory(
        [C3, C2, C1],
        {
            ("c2", "c3"): (_added("a.go", "// TODO: newest", binary=True),),
            ("c1", "c2"): (deleted,),
        },
    )

    outcome = resolve_blame([item], history, C3)

    assert item.origin is None
    assert outcome.remaining == 1


def test_matching_text_in_another_file_or_deleted_chunk_does_not_count() -> None:
    item = _item("a.go", "// TODO: newest\n")
    removal = FilePatch(
        from_path="a.go",
        to_path="a.go",
        is_binary=False,
        chunks=(Chunk(kind=ChunkKind.DELETE, content="// TODO: newest\n"),),
    )
    history = FakeHistory(
        [C3, C2, C1],
        {
            ("c2", "c3"): (_added("other.go", "// TODO: newest"),),
            ("c1", "c2"): (removal,),
        },
    )

    resolve_blame([item], history, C3)

    assert item.origin is None


def test_history_error_propagates_and_keeps_assigned_origins() -> None:
    newest = _item("a.go", "// TODO: newest\n")
    middle = _item("b.go", "x := 1 // TODO: middle\n")
    history = _three_commit_history(fail_on=("c1", "c2"))

    with pytest.raises(HistoryError, match="cannot diff"):
        resolve_blame([newest, middle], history, C3)

    assert newest.origin is C3
    assert middle.origin is None


def test_pre_attributed_items_are_left_alone() -> None:
    newest = _item("a.go", "// TODO: newest\n")
    newest.attribute(C1)
    history = _three_commit_history()

    outcome = resolve_blame([newest], history, C3)

    assert newest.origin is C1
    assert outcome.steps == 0
    assert history.diff_calls == []


def test_non_ancestor_step_is_skipped_without_diffing() -> None:
    item = _item("a.go", "// TODO: newest\n")

    class Unrelated(FakeHistory):
        def is_ancestor(self, ancestor: str, descendant: str) -> bool:
            return False

    history = Unrelated([C3, C2, C1], {("c2", "c3"): (_added("a.go", "// TODO: newest"),)})

    outcome = resolve_blame([item], history, C3)

    assert item.origin is None
    assert outcome.steps == 2
    assert history.diff_calls == []
