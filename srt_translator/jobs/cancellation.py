"""Cooperative cancellation tokens checked at pipeline checkpoints."""

from typing import Optional


class CancellationToken:
    """
    Advisory cancellation flag with an optional parent.

    A child reports cancelled when it or any ancestor was cancelled.
    Tokens are never reset; a fresh generation replaces a cancelled one.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None, reason: str = ""):
        self._parent = parent
        self._cancelled = False
        self.reason = reason

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        if reason:
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.cancelled

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
