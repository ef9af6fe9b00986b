"""Best-effort detection of a warmed-up hover service."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..editor.document_model import DocumentSnapshot
from ..services.hover import HoverService, has_content
from ..services.telemetry import emit
from .cancellation import CancellationToken
from .scanner import scan_line

__all__ = ["ReadinessProber"]

LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float, CancellationToken], Awaitable[bool]]


async def _token_sleep(seconds: float, token: CancellationToken) -> bool:
    return await token.sleep(seconds)


class ReadinessProber:
    """Polls the hover service with bounded exponential back-off.

    A probe attempt queries the first call site of each of the leading
    ``max_probe_lines`` lines; the first non-empty answer proves readiness.
    Between attempts the prober waits ``min(base_delay * 2**attempt, max_delay)``
    seconds until ``max_total_wait`` seconds have been spent waiting.
    """

    def __init__(
        self,
        hover_service: HoverService,
        *,
        max_probe_lines: int = 20,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        max_total_wait: float = 60.0,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._hover = hover_service
        self._max_probe_lines = max(0, int(max_probe_lines))
        self._base_delay = max(0.0, float(base_delay))
        self._max_delay = max(self._base_delay, float(max_delay))
        self._max_total_wait = max(0.0, float(max_total_wait))
        self._sleep = sleep or _token_sleep

    def delay_for(self, attempt: int) -> float:
        return min(self._base_delay * (2 ** attempt), self._max_delay)

    async def probe(self, document: DocumentSnapshot, token: CancellationToken) -> bool:
        """Return ``True`` once the hover service answers, ``False`` otherwise.

        Never raises for service errors; returns ``False`` straight away when
        *token* is cancelled.
        """

        waited = 0.0
        attempt = 0
        while waited < self._max_total_wait:
            if token.cancelled:
                return False
            if await self._attempt(document, token, attempt):
                LOGGER.debug(
                    "Hover service ready for %s after %d attempt(s), waited %.0fms",
                    document.document_id,
                    attempt + 1,
                    waited * 1000,
                )
                self._emit(document, True, waited, attempt + 1)
                return True
            if token.cancelled:
                return False
            delay = self.delay_for(attempt)
            LOGGER.debug(
                "Hover service not ready for %s (attempt %d); retrying in %.0fms (waited %.0fms)",
                document.document_id,
                attempt + 1,
                delay * 1000,
                waited * 1000,
            )
            if await self._sleep(delay, token):
                return False
            waited += delay
            attempt += 1
        LOGGER.info(
            "Hover service readiness not confirmed for %s after %.0fms; continuing",
            document.document_id,
            waited * 1000,
        )
        self._emit(document, False, waited, attempt)
        return False

    async def _attempt(self, document: DocumentSnapshot, token: CancellationToken, attempt: int) -> bool:
        try:
            for index in range(min(document.line_count, self._max_probe_lines)):
                site = scan_line(document.line_at(index), index).first()
                if site is None:
                    continue
                if token.cancelled:
                    return False
                fragments = await self._hover.query(document.document_id, site.line, site.character)
                if has_content(fragments):
                    return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.debug("Readiness probe %d failed for %s: %s", attempt + 1, document.document_id, exc)
        return False

    @staticmethod
    def _emit(document: DocumentSnapshot, ready: bool, waited: float, attempts: int) -> None:
        emit(
            "annotations.probe.end",
            {
                "document_id": document.document_id,
                "ready": ready,
                "attempts": attempts,
                "waited_ms": round(waited * 1000, 3),
            },
        )
