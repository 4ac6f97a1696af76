"""Action items: filtering, ordering, discovery and origin attribution."""

from todo_origin.todos.blame import BlameOutcome, ProgressCallback, resolve_blame
from todo_origin.todos.model import (
    DEFAULT_MARKERS,
    CommitRef,
    Item,
    OriginAlreadySetError,
    count_attributed,
    item_from_collection,
    items_from_collections,
    sort_items,
)
from todo_origin.todos.search import search_dir

__all__ = [
    "BlameOutcome",
    "CommitRef",
    "DEFAULT_MARKERS",
    "Item",
    "OriginAlreadySetError",
    "ProgressCallback",
    "count_attributed",
    "item_from_collection",
    "items_from_collections",
    "resolve_blame",
    "search_dir",
    "sort_items",
]
