"""Cooperative cancellation tokens threaded through annotation runs."""

from __future__ import annotations

import asyncio
import itertools

__all__ = ["CancellationToken"]

_TOKEN_IDS = itertools.count(1)


class CancellationToken:
    """Single-use cancellation flag shared by one orchestrator run.

    Cancelling never interrupts an awaited hover query; callers check the
    flag before issuing work and before consuming results.
    """

    __slots__ = ("document_id", "token_id", "_cancelled", "_event")

    def __init__(self, document_id: str | None = None) -> None:
        self.document_id = document_id
        self.token_id = next(_TOKEN_IDS)
        self._cancelled = False
        self._event: asyncio.Event | None = None

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "live"
        return f"CancellationToken(#{self.token_id}, {self.document_id!r}, {state})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for *seconds* unless cancelled first; return ``True`` if cancelled."""

        if self._cancelled:
            return True
        if self._event is None:
            self._event = asyncio.Event()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return self._cancelled
        return True
