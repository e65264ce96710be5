"""
Cancellation primitive shared by runners and sessions.
"""

import asyncio


class AbortSignal:
    """
    Abort signal for graceful cancellation of a loop run.

    Based on asyncio.Event, supports:
    - Synchronous abort status check
    - Recording abort reason

    Examples:
        >>> signal = AbortSignal()
        >>> signal.abort("User cancelled")
        >>> signal.is_aborted()
        True
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None

    def abort(self, reason: str = "Operation cancelled"):
        """Trigger abort signal."""
        self._reason = reason
        self._event.set()

    def is_aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason


__all__ = ["AbortSignal"]
