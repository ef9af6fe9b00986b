"""Shared test helpers and stub classes.

Fakes for the hover service and host surfaces used across the annotation
tests. Import from here instead of redefining them per module.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Mapping, Sequence

from shownotes.annotations.models import Annotation
from shownotes.editor.document_model import DocumentSnapshot
from shownotes.services.hover import HoverFragment
from shownotes.ui.decorations import InMemoryDecorationSurface

_WORD_RE = re.compile(r"\w+")


class FakeHoverService:
    """Hover service answering by the identifier found at the queried position.

    ``docs`` maps identifiers to hover text, a list of fragments, or an
    exception instance to raise. ``empty_until`` makes the first N queries
    return ``None`` to simulate a language server that is still indexing.
    """

    def __init__(
        self,
        documents: Sequence[DocumentSnapshot] = (),
        docs: Mapping[str, Any] | None = None,
        *,
        delay: float = 0.0,
        empty_until: int = 0,
    ) -> None:
        self.documents = {document.document_id: document for document in documents}
        self.docs = dict(docs or {})
        self.delay = delay
        self.empty_until = empty_until
        self.calls: list[tuple[str, int, int]] = []

    def add_document(self, document: DocumentSnapshot) -> None:
        self.documents[document.document_id] = document

    def identifier_at(self, document_id: str, line: int, character: int) -> str | None:
        document = self.documents.get(document_id)
        if document is None:
            return None
        match = _WORD_RE.match(document.line_at(line), character)
        return match.group(0) if match else None

    def called_names(self) -> list[str | None]:
        return [self.identifier_at(*call) for call in self.calls]

    async def query(self, document_id: str, line: int, character: int) -> list[HoverFragment] | None:
        self.calls.append((document_id, line, character))
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        if len(self.calls) <= self.empty_until:
            return None
        name = self.identifier_at(document_id, line, character)
        answer = self.docs.get(name) if name else None
        if isinstance(answer, BaseException):
            raise answer
        if answer is None:
            return None
        if isinstance(answer, str):
            return [HoverFragment(answer)]
        return list(answer)


class RecordingProgress:
    """Progress surface capturing every call in order."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def show_progress(self, document_id: str, completed: int, total: int) -> None:
        self.events.append(("progress", document_id, completed, total))

    def show_done(self, document_id: str, found: int, elapsed_ms: float) -> None:
        self.events.append(("done", document_id, found))

    def hide(self) -> None:
        self.events.append(("hide",))

    def progress_steps(self) -> list[tuple[int, int]]:
        return [(event[2], event[3]) for event in self.events if event[0] == "progress"]


class RecordingDecorationSurface(InMemoryDecorationSurface):
    """In-memory surface that also keeps the history of rendered sets."""

    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[str, tuple[Annotation, ...]]] = []
        self.cleared: list[str] = []

    def render(self, document_id: str, annotations: Sequence[Annotation]) -> None:
        super().render(document_id, annotations)
        self.history.append((document_id, tuple(annotations)))

    def clear_all(self, document_id: str) -> None:
        super().clear_all(document_id)
        self.cleared.append(document_id)


def make_document(lines: Sequence[str], *, document_id: str = "file:///tmp/Demo.java", language: str = "java") -> DocumentSnapshot:
    return DocumentSnapshot(document_id=document_id, lines=tuple(lines), language=language)
