"""Status bar item reporting annotation progress, with optional Qt widgets."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

try:  # pragma: no cover - Qt imports are optional during tests
    from PySide6.QtWidgets import QLabel
except Exception:  # pragma: no cover - PySide6 not available
    QLabel = None  # type: ignore[assignment]

__all__ = ["AnnotationStatusBar", "status_bar_factory"]

LOGGER = logging.getLogger(__name__)

_TITLE = "Show Notes"
_BUSY_ICON = "⟳"
_DONE_ICON = "✓"


class AnnotationStatusBar:
    """Progress surface that tracks state headlessly and mirrors it into a label."""

    def __init__(
        self,
        *,
        hide_after: float = 3.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._hide_after = max(0.0, float(hide_after))
        self._loop = loop
        self._text = ""
        self._tooltip = ""
        self._visible = False
        self._done = False
        self._hide_handle: asyncio.TimerHandle | None = None
        self._label: Any = None

    # ------------------------------------------------------------------
    # Qt integration
    # ------------------------------------------------------------------
    def install(self, status_bar: Any | None) -> None:
        """Attach a label to a ``QStatusBar`` when Qt is available."""

        if status_bar is None or QLabel is None:
            return
        label = QLabel(self._text)
        label.setObjectName("shownotes-status")
        label.setContentsMargins(8, 0, 8, 0)
        try:
            status_bar.addPermanentWidget(label)
        except Exception:
            LOGGER.debug("Unable to install status label", exc_info=True)
            return
        self._label = label
        self._refresh_label()

    # ------------------------------------------------------------------
    # Progress surface
    # ------------------------------------------------------------------
    @property
    def label(self) -> Any:
        """The installed ``QLabel``, or ``None`` when running headless."""

        return self._label

    @property
    def text(self) -> str:
        return self._text

    @property
    def tooltip(self) -> str:
        return self._tooltip

    @property
    def visible(self) -> bool:
        return self._visible

    def show_progress(self, document_id: str, completed: int, total: int) -> None:
        self._cancel_hide()
        self._done = False
        self._text = f"{_BUSY_ICON} {_TITLE}: {completed}/{total}"
        self._tooltip = f"Processing: {document_id}"
        self._visible = True
        self._refresh_label()

    def show_done(self, document_id: str, found: int, elapsed_ms: float) -> None:
        self._cancel_hide()
        self._done = True
        self._text = f"{_DONE_ICON} {_TITLE}: {found} note(s) ({elapsed_ms:.0f}ms)"
        self._tooltip = f"Finished: {document_id}\nFound {found} note(s)"
        self._visible = True
        self._refresh_label()
        self._schedule_hide()

    def hide(self) -> None:
        self._cancel_hide()
        self._visible = False
        self._refresh_label()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _schedule_hide(self) -> None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
        self._hide_handle = loop.call_later(self._hide_after, self._hide_if_done)

    def _hide_if_done(self) -> None:
        self._hide_handle = None
        if self._done:
            self.hide()

    def _cancel_hide(self) -> None:
        if self._hide_handle is not None:
            self._hide_handle.cancel()
            self._hide_handle = None

    def _refresh_label(self) -> None:
        label = self._label
        if label is None:
            return
        try:
            label.setText(self._text)
            label.setToolTip(self._tooltip)
            label.setVisible(self._visible)
        except Exception:
            LOGGER.debug("Unable to refresh status label", exc_info=True)


def status_bar_factory(status_bar: Any | None, *, hide_after: float = 3.0) -> Callable[[], AnnotationStatusBar]:
    """Return a progress factory for :class:`AnnotationController`.

    Qt hosts pass their window's ``QStatusBar`` so the surface mounts a label
    there on first use; headless hosts pass ``None``.
    """

    def _factory() -> AnnotationStatusBar:
        surface = AnnotationStatusBar(hide_after=hide_after)
        surface.install(status_bar)
        return surface

    return _factory
