"""Routes host editor events into the annotation pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Iterable

from ..annotations.models import AnnotationRun, RunState
from ..annotations.orchestrator import (
    AnnotationOrchestrator,
    ConfigSource,
    DecorationSurface,
    ProgressSurface,
)
from ..annotations.readiness import ReadinessProber
from ..annotations.state_store import DocumentStateStore
from ..editor.document_model import DocumentSnapshot
from ..services.hover import HoverService
from ..services.settings import Settings

__all__ = ["AnnotationController"]

LOGGER = logging.getLogger(__name__)

RendererFactory = Callable[[], DecorationSurface]
ProgressFactory = Callable[[], ProgressSurface]


class AnnotationController:
    """Owns the per-document store and reacts to open/change/switch/close events.

    Rendering and progress surfaces are created lazily the first time a
    supported document shows up, mirroring how editor hosts defer UI
    resources until they are needed.
    """

    def __init__(
        self,
        *,
        hover_service: HoverService,
        renderer_factory: RendererFactory,
        progress_factory: ProgressFactory,
        settings: Settings | None = None,
        config_source: ConfigSource | None = None,
        store: DocumentStateStore | None = None,
        prober: ReadinessProber | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._hover = hover_service
        self._renderer_factory = renderer_factory
        self._progress_factory = progress_factory
        self._settings = settings or Settings()
        self._config_source = config_source or self._settings.annotation_config
        self._loop = loop
        self._store = store or DocumentStateStore(loop=loop)
        self._prober = prober
        self._languages = self._settings.language_allow_list()
        self._renderer: DecorationSurface | None = None
        self._progress: ProgressSurface | None = None
        self._orchestrator: AnnotationOrchestrator | None = None
        self._latest: dict[str, DocumentSnapshot] = {}
        self._tasks: set[asyncio.Task[AnnotationRun | None]] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def store(self) -> DocumentStateStore:
        return self._store

    @property
    def initialized(self) -> bool:
        return self._orchestrator is not None

    @property
    def renderer(self) -> DecorationSurface | None:
        return self._renderer

    @property
    def progress(self) -> ProgressSurface | None:
        return self._progress

    def is_supported(self, language: str | None) -> bool:
        return bool(language) and language.strip().lower() in self._languages

    # ------------------------------------------------------------------
    # Lazy initialisation
    # ------------------------------------------------------------------
    def ensure_initialized(self) -> bool:
        if self._orchestrator is not None:
            return True
        LOGGER.debug("Initialising annotation surfaces")
        try:
            renderer = self._renderer_factory()
            progress = self._progress_factory()
        except Exception:
            LOGGER.exception("Unable to create annotation surfaces")
            return False
        settings = self._settings
        prober = self._prober or ReadinessProber(
            self._hover,
            max_probe_lines=settings.probe_max_lines,
            base_delay=settings.probe_base_delay,
            max_delay=settings.probe_max_delay,
            max_total_wait=settings.probe_max_wait,
        )
        self._renderer = renderer
        self._progress = progress
        self._orchestrator = AnnotationOrchestrator(
            hover_service=self._hover,
            config_source=self._config_source,
            renderer=renderer,
            progress=progress,
            store=self._store,
            prober=prober,
            batch_size=settings.batch_size,
            publish_every=settings.publish_every,
            progress_every=settings.progress_every,
        )
        return True

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------
    def activate(self, visible_documents: Iterable[DocumentSnapshot]) -> list[asyncio.Task[AnnotationRun | None]]:
        """Start runs for documents that are already visible when the host starts."""

        tasks: list[asyncio.Task[AnnotationRun | None]] = []
        for document in visible_documents:
            if not self.is_supported(document.language):
                continue
            if not self.ensure_initialized():
                break
            tasks.append(self._spawn(document))
        if not tasks:
            LOGGER.debug("No supported documents visible; deferring initialisation")
        return tasks

    def document_opened(self, document: DocumentSnapshot) -> None:
        if not self.is_supported(document.language):
            return
        self.ensure_initialized()
        self._latest[document.document_id] = document
        # an opened buffer is not necessarily visible; the view switch drives the run
        LOGGER.debug("Opened %s document %s", document.language, document.document_id)

    def document_changed(self, document: DocumentSnapshot) -> None:
        """Invalidate the cache and (re)arm the debounce timer for *document*."""

        if not self.is_supported(document.language):
            return
        self.ensure_initialized()
        document_id = document.document_id
        self._latest[document_id] = document
        self._store.invalidate(document_id)
        self._store.schedule(
            document_id,
            self._settings.debounce_seconds,
            lambda: self._launch_latest(document_id),
        )
        LOGGER.debug("Change queued for %s (v%d)", document_id, document.version_id)

    async def active_view_changed(self, document: DocumentSnapshot | None) -> AnnotationRun | None:
        """Re-render cached annotations for the new view, or annotate it from scratch."""

        if document is None:
            LOGGER.debug("Active view cleared")
            return None
        if not self.is_supported(document.language):
            LOGGER.debug("Ignoring unsupported language %s", document.language)
            return None
        if not self.ensure_initialized():
            return None
        self._latest[document.document_id] = document
        cached = self._store.get_cached(document.document_id)
        if cached is not None and self._renderer is not None:
            LOGGER.debug("Restoring %d cached annotation(s) for %s", len(cached), document.document_id)
            self._renderer.render(document.document_id, cached)
            return None
        return await self.update(document)

    def document_closed(self, document_id: str) -> None:
        self._store.close(document_id)
        self._latest.pop(document_id, None)
        if self._renderer is not None:
            self._renderer.clear_all(document_id)
        LOGGER.debug("Closed %s", document_id)

    def refresh(self, document: DocumentSnapshot | None) -> asyncio.Task[AnnotationRun | None] | None:
        """Manual refresh: drop the cache for *document* and annotate it again."""

        if document is None or not self.is_supported(document.language):
            LOGGER.info("Refresh ignored: current document is not a supported language")
            return None
        if not self.ensure_initialized():
            return None
        LOGGER.debug("Manual refresh for %s", document.document_id)
        self._store.cancel_scheduled(document.document_id)
        self._store.invalidate(document.document_id)
        self._latest[document.document_id] = document
        return self._spawn(document)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    async def update(self, document: DocumentSnapshot) -> AnnotationRun | None:
        """Cancel any stale run for *document*, then annotate it."""

        orchestrator = self._orchestrator
        if orchestrator is None:
            LOGGER.error("Annotation surfaces are not initialised; skipping %s", document.document_id)
            return None
        document_id = document.document_id
        token = self._store.begin_run(document_id)
        try:
            result = await orchestrator.run(document, token)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Annotation run failed for %s", document_id)
            return None
        finally:
            self._store.end_run(document_id, token)
        if result.state is RunState.CANCELLED:
            LOGGER.debug("Run for %s cancelled", document_id)
            if self._store.current_token(document_id) is None and self._progress is not None:
                self._progress.hide()
        return result

    async def wait_idle(self) -> None:
        """Wait for every run spawned so far (including debounced ones that started)."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._store.shutdown()
        self._latest.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._progress is not None:
            self._progress.hide()

    def _launch_latest(self, document_id: str) -> None:
        document = self._latest.get(document_id)
        if document is None:
            return
        self._spawn(document)

    def _spawn(self, document: DocumentSnapshot) -> asyncio.Task[AnnotationRun | None]:
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self.update(document))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
