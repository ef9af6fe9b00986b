"""Drives readiness probing and batched line annotation for one document."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Protocol, Sequence

from ..editor.document_model import DocumentSnapshot
from ..services.hover import HoverService
from ..services.telemetry import emit
from .cancellation import CancellationToken
from .line_task import LineAnnotator
from .models import Annotation, AnnotationConfig, AnnotationRun, RunState
from .readiness import ReadinessProber
from .state_store import DocumentStateStore

__all__ = [
    "AnnotationOrchestrator",
    "ConfigSource",
    "DecorationSurface",
    "ProgressSurface",
]

LOGGER = logging.getLogger(__name__)

ConfigSource = Callable[[], AnnotationConfig]
LineTask = Callable[
    [DocumentSnapshot, int, AnnotationConfig, CancellationToken], Awaitable[Annotation | None]
]


class DecorationSurface(Protocol):
    """Host surface that renders inline annotations."""

    def render(self, document_id: str, annotations: Sequence[Annotation]) -> None:  # pragma: no cover
        ...

    def clear_all(self, document_id: str) -> None:  # pragma: no cover
        ...


class ProgressSurface(Protocol):
    """Host surface that reports run progress (e.g. a status bar item)."""

    def show_progress(self, document_id: str, completed: int, total: int) -> None:  # pragma: no cover
        ...

    def show_done(self, document_id: str, found: int, elapsed_ms: float) -> None:  # pragma: no cover
        ...

    def hide(self) -> None:  # pragma: no cover
        ...


class AnnotationOrchestrator:
    """Annotates every line of a document in bounded, cancellable batches."""

    def __init__(
        self,
        *,
        hover_service: HoverService,
        config_source: ConfigSource,
        renderer: DecorationSurface,
        progress: ProgressSurface,
        store: DocumentStateStore,
        prober: ReadinessProber | None = None,
        line_task: LineTask | None = None,
        batch_size: int = 10,
        publish_every: int = 5,
        progress_every: int = 5,
    ) -> None:
        self._config_source = config_source
        self._renderer = renderer
        self._progress = progress
        self._store = store
        self._prober = prober or ReadinessProber(hover_service)
        self._line_task = line_task or LineAnnotator(hover_service)
        self._batch_size = max(1, int(batch_size))
        self._publish_every = max(1, int(publish_every))
        self._progress_every = max(1, int(progress_every))

    @property
    def store(self) -> DocumentStateStore:
        return self._store

    async def run(self, document: DocumentSnapshot, token: CancellationToken) -> AnnotationRun:
        started = time.perf_counter()
        result = AnnotationRun(document_id=document.document_id, total_lines=document.line_count)
        emit(
            "annotations.run.start",
            {
                "document_id": document.document_id,
                "version_id": document.version_id,
                "language": document.language,
                "line_count": document.line_count,
            },
        )
        LOGGER.debug("Annotating %s (%d lines)", document.document_id, document.line_count)

        result.state = RunState.PROBING
        result.server_ready = await self._prober.probe(document, token)
        if token.cancelled:
            return self._finish_cancelled(result, started)

        config = self._config_source()
        result.state = RunState.SCANNING
        total = document.line_count
        self._progress.show_progress(document.document_id, 0, total)

        annotations: list[Annotation] = []
        completed = 0
        for batch_start in range(0, total, self._batch_size):
            if token.cancelled:
                return self._finish_cancelled(result, started)
            batch_end = min(total, batch_start + self._batch_size)
            outcomes = await asyncio.gather(
                *(self._line_task(document, index, config, token) for index in range(batch_start, batch_end)),
                return_exceptions=True,
            )
            if token.cancelled:
                return self._finish_cancelled(result, started)
            for index, outcome in zip(range(batch_start, batch_end), outcomes):
                completed += 1
                if completed % self._progress_every == 0 or completed == total:
                    self._progress.show_progress(document.document_id, completed, total)
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    LOGGER.debug("Line %d of %s failed: %s", index, document.document_id, outcome)
                    continue
                if outcome is None:
                    continue
                annotations.append(outcome)
                if len(annotations) % self._publish_every == 0:
                    self._renderer.render(document.document_id, tuple(annotations))
            result.completed_lines = completed

        final = tuple(annotations)
        if not self._store.set_cached(document.document_id, final, token=token):
            return self._finish_cancelled(result, started)
        result.annotations = final
        result.state = RunState.COMPLETED
        result.elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._renderer.render(document.document_id, final)
        self._progress.show_done(document.document_id, len(final), result.elapsed_ms)
        LOGGER.info(
            "Annotated %s: %d note(s) across %d line(s) in %.0fms",
            document.document_id,
            len(final),
            total,
            result.elapsed_ms,
        )
        self._emit_end(result)
        return result

    def _finish_cancelled(self, result: AnnotationRun, started: float) -> AnnotationRun:
        result.state = RunState.CANCELLED
        result.annotations = ()
        result.elapsed_ms = (time.perf_counter() - started) * 1000.0
        LOGGER.debug("Annotation run cancelled for %s", result.document_id)
        self._emit_end(result)
        return result

    @staticmethod
    def _emit_end(result: AnnotationRun) -> None:
        emit(
            "annotations.run.end",
            {
                "document_id": result.document_id,
                "status": result.state.value,
                "found": result.found,
                "line_count": result.total_lines,
                "completed_lines": result.completed_lines,
                "server_ready": result.server_ready,
                "latency_ms": round(result.elapsed_ms, 3),
            },
        )
