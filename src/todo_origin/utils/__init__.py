"""Shared helpers."""

from todo_origin.utils.cancellation import CancellationToken

__all__ = ["CancellationToken"]
