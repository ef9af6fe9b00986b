"""Value types shared by the annotation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "Annotation",
    "AnnotationConfig",
    "AnnotationRun",
    "AnnotationSet",
    "AnnotationStyle",
    "CallSite",
    "RunState",
]

DEFAULT_COMMENT_PREFIX = "//"
DEFAULT_MAX_LENGTH = 80
DEFAULT_COMMENT_COLOR = "#6A9955"
DEFAULT_FONT_STYLE = "italic"
DEFAULT_MARGIN = "0 0 0 1em"


@dataclass(frozen=True, slots=True)
class CallSite:
    """A position believed to be a function/method invocation."""

    line: int
    character: int
    name: str
    receiver: str | None = None


@dataclass(frozen=True, slots=True)
class AnnotationConfig:
    """Resolved configuration record, snapshotted once per run."""

    comment_prefix: str = DEFAULT_COMMENT_PREFIX
    max_length: int = DEFAULT_MAX_LENGTH
    comment_color: str = DEFAULT_COMMENT_COLOR
    font_style: str = DEFAULT_FONT_STYLE

    def style(self) -> "AnnotationStyle":
        return AnnotationStyle(color=self.comment_color, font_style=self.font_style)

    def format_note(self, summary: str) -> str:
        """Return the inline text rendered after a line for *summary*."""

        return f" {self.comment_prefix} {summary}"


@dataclass(frozen=True, slots=True)
class AnnotationStyle:
    color: str = DEFAULT_COMMENT_COLOR
    font_style: str = DEFAULT_FONT_STYLE
    margin: str = DEFAULT_MARGIN


@dataclass(frozen=True, slots=True)
class Annotation:
    """Inline note anchored at ``(line, character)``, normally the end of the line."""

    line: int
    character: int
    text: str
    style: AnnotationStyle = field(default_factory=AnnotationStyle)


AnnotationSet = tuple[Annotation, ...]


class RunState(str, Enum):
    """Lifecycle of one orchestrator run for a document."""

    IDLE = "idle"
    PROBING = "probing"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class AnnotationRun:
    """Outcome of :meth:`AnnotationOrchestrator.run`."""

    document_id: str
    state: RunState = RunState.IDLE
    annotations: AnnotationSet = ()
    total_lines: int = 0
    completed_lines: int = 0
    server_ready: bool | None = None
    elapsed_ms: float = 0.0

    @property
    def committed(self) -> bool:
        return self.state is RunState.COMPLETED

    @property
    def found(self) -> int:
        return len(self.annotations)
