"""Cooperative cancellation primitives for synchronous history walks."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class CancellationToken:
    """Cooperative cancellation token backed by ``threading.Event``.

    With ``timeout_seconds`` the token also reports itself cancelled once the
    deadline passes. A timeout of ``None`` or ``0`` means no deadline.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout_seconds is not None and timeout_seconds < 0:
            raise ValueError("timeout_seconds must be >= 0")
        self._event = threading.Event()
        self._clock = clock
        self._deadline = (
            clock() + timeout_seconds if timeout_seconds else None
        )
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str | None:
        """First reason given, or ``None`` while still running."""
        return self._reason


__all__ = ["CancellationToken"]
