"""Repository history collaborators."""

from todo_origin.history.base import Chunk, ChunkKind, FilePatch, HistoryError, HistorySource
from todo_origin.history.git import GitCommandError, GitHistory, UnknownRevisionError

__all__ = [
    "Chunk",
    "ChunkKind",
    "FilePatch",
    "GitCommandError",
    "GitHistory",
    "HistoryError",
    "HistorySource",
    "UnknownRevisionError",
]
