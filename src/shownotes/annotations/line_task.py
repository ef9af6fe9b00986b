"""Produces at most one inline annotation for a single document line."""

from __future__ import annotations

import asyncio
import logging

from ..editor.document_model import DocumentSnapshot
from ..services.hover import HoverService
from .cancellation import CancellationToken
from .extractor import extract_summary
from .models import Annotation, AnnotationConfig
from .scanner import is_skippable_line, scan_line

__all__ = ["LineAnnotator", "annotate_line"]

LOGGER = logging.getLogger(__name__)


async def annotate_line(
    document: DocumentSnapshot,
    line_index: int,
    config: AnnotationConfig,
    token: CancellationToken,
    hover_service: HoverService,
) -> Annotation | None:
    """Return an annotation for *line_index* or ``None``.

    Call sites are tried left to right and the first one whose hover yields a
    usable summary wins. Hover failures are logged and the next call site is
    tried; no exception escapes this function apart from task cancellation.
    """

    if token.cancelled:
        return None
    try:
        line_text = document.line_at(line_index)
    except IndexError:
        return None
    if is_skippable_line(line_text):
        return None

    for site in scan_line(line_text, line_index):
        if token.cancelled:
            return None
        try:
            fragments = await hover_service.query(document.document_id, site.line, site.character)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning(
                "Hover lookup failed for %s line %d (%s): %s",
                document.document_id,
                line_index,
                site.name,
                exc,
            )
            continue
        if token.cancelled:
            return None
        if not fragments:
            LOGGER.debug("No hover for %s at %d:%d", site.name, site.line, site.character)
            continue
        try:
            summary = extract_summary(fragments, config.max_length)
        except Exception:  # pragma: no cover - malformed payloads count as "no summary"
            LOGGER.debug("Unable to extract summary for %s", site.name, exc_info=True)
            continue
        if not summary:
            continue
        LOGGER.debug("Line %d: %s -> %r", line_index, site.name, summary)
        return Annotation(
            line=line_index,
            character=len(line_text),
            text=config.format_note(summary),
            style=config.style(),
        )
    return None


class LineAnnotator:
    """Binds a hover service so orchestrators can build per-line tasks."""

    def __init__(self, hover_service: HoverService) -> None:
        self._hover = hover_service

    async def __call__(
        self,
        document: DocumentSnapshot,
        line_index: int,
        config: AnnotationConfig,
        token: CancellationToken,
    ) -> Annotation | None:
        return await annotate_line(document, line_index, config, token, self._hover)
