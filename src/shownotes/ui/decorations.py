"""Rendering surfaces for inline annotations."""

from __future__ import annotations

import logging
from typing import Sequence

from ..annotations.models import Annotation, AnnotationSet
from ..editor.document_model import DocumentSnapshot

__all__ = ["InMemoryDecorationSurface", "format_annotated_lines"]

LOGGER = logging.getLogger(__name__)


class InMemoryDecorationSurface:
    """Keeps the currently rendered annotations for each document.

    Headless hosts (the CLI, tests) read :meth:`annotations_for` to decide
    what to display; every :meth:`render` replaces the previous set.
    """

    def __init__(self) -> None:
        self._rendered: dict[str, AnnotationSet] = {}
        self._render_counts: dict[str, int] = {}

    def render(self, document_id: str, annotations: Sequence[Annotation]) -> None:
        self._rendered[document_id] = tuple(annotations)
        self._render_counts[document_id] = self._render_counts.get(document_id, 0) + 1
        LOGGER.debug("Rendered %d annotation(s) for %s", len(annotations), document_id)

    def clear_all(self, document_id: str) -> None:
        self._rendered.pop(document_id, None)

    def annotations_for(self, document_id: str) -> AnnotationSet:
        return self._rendered.get(document_id, ())

    def render_count(self, document_id: str) -> int:
        return self._render_counts.get(document_id, 0)


def format_annotated_lines(document: DocumentSnapshot, annotations: Sequence[Annotation]) -> list[str]:
    """Return the document lines with each annotation's text appended at its anchor."""

    notes: dict[int, list[Annotation]] = {}
    for annotation in annotations:
        notes.setdefault(annotation.line, []).append(annotation)
    rendered: list[str] = []
    for index, line in enumerate(document.lines):
        for annotation in notes.get(index, ()):
            anchor = min(annotation.character, len(line))
            line = line[:anchor] + annotation.text + line[anchor:]
        rendered.append(line)
    return rendered
