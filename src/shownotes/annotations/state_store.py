"""Per-document bookkeeping for annotation runs, caches, and debounce timers."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .cancellation import CancellationToken
from .models import Annotation, AnnotationSet

__all__ = ["DocumentStateStore"]

LOGGER = logging.getLogger(__name__)


class DocumentStateStore:
    """Owns the live run token, published annotations, and debounce slot per document.

    All methods are synchronous and are expected to be called from the event
    loop thread; cooperative scheduling keeps every mutation atomic.
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tokens: dict[str, CancellationToken] = {}
        self._cache: dict[str, AnnotationSet] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------
    def get_cached(self, document_id: str) -> AnnotationSet | None:
        return self._cache.get(document_id)

    def has_cached(self, document_id: str) -> bool:
        return document_id in self._cache

    def set_cached(
        self,
        document_id: str,
        annotations: tuple[Annotation, ...] | list[Annotation],
        *,
        token: CancellationToken | None = None,
    ) -> bool:
        """Replace the cached set for *document_id*.

        When *token* is given the commit is refused if that token was
        cancelled or another run has been registered for the document since,
        so a superseded run never clobbers a newer one.
        """

        current = self._tokens.get(document_id)
        if token is not None and (token.cancelled or (current is not None and current is not token)):
            LOGGER.debug("Discarding stale commit for %s (%r)", document_id, token)
            return False
        self._cache[document_id] = tuple(annotations)
        return True

    def invalidate(self, document_id: str) -> None:
        """Drop cached annotations and cancel any live run for *document_id*."""

        self._cache.pop(document_id, None)
        token = self._tokens.get(document_id)
        if token is not None:
            token.cancel()

    @property
    def cached_documents(self) -> tuple[str, ...]:
        return tuple(self._cache)

    # ------------------------------------------------------------------
    # Run handles
    # ------------------------------------------------------------------
    def begin_run(self, document_id: str) -> CancellationToken:
        previous = self._tokens.pop(document_id, None)
        if previous is not None:
            previous.cancel()
            LOGGER.debug("Cancelled previous run for %s (%r)", document_id, previous)
        token = CancellationToken(document_id)
        self._tokens[document_id] = token
        return token

    def end_run(self, document_id: str, token: CancellationToken) -> None:
        if self._tokens.get(document_id) is token:
            del self._tokens[document_id]

    def current_token(self, document_id: str) -> CancellationToken | None:
        return self._tokens.get(document_id)

    def cancel_run(self, document_id: str) -> None:
        token = self._tokens.pop(document_id, None)
        if token is not None:
            token.cancel()

    # ------------------------------------------------------------------
    # Debounce slot
    # ------------------------------------------------------------------
    def schedule(self, document_id: str, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        """Arm the single-slot timer for *document_id*, replacing any pending one."""

        self.cancel_scheduled(document_id)
        loop = self._loop or asyncio.get_running_loop()

        def _fire() -> None:
            if self._timers.get(document_id) is handle:
                del self._timers[document_id]
            callback()

        handle = loop.call_later(max(0.0, delay), _fire)
        self._timers[document_id] = handle
        return handle

    def cancel_scheduled(self, document_id: str) -> bool:
        handle = self._timers.pop(document_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_scheduled(self, document_id: str) -> bool:
        return document_id in self._timers

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self, document_id: str) -> None:
        """Forget everything about *document_id* (document closed)."""

        self.cancel_scheduled(document_id)
        self.invalidate(document_id)
        self._tokens.pop(document_id, None)

    def shutdown(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
        self._cache.clear()
