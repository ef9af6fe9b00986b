"""Asynchronous, cancellable inline-annotation pipeline."""

from .cancellation import CancellationToken
from .extractor import extract_summary
from .line_task import LineAnnotator, annotate_line
from .models import (
    Annotation,
    AnnotationConfig,
    AnnotationRun,
    AnnotationSet,
    AnnotationStyle,
    CallSite,
    RunState,
)
from .orchestrator import AnnotationOrchestrator, DecorationSurface, ProgressSurface
from .readiness import ReadinessProber
from .scanner import CONTROL_KEYWORDS, LineScan, is_skippable_line, scan_line
from .state_store import DocumentStateStore

__all__ = [
    "Annotation",
    "AnnotationConfig",
    "AnnotationOrchestrator",
    "AnnotationRun",
    "AnnotationSet",
    "AnnotationStyle",
    "CONTROL_KEYWORDS",
    "CallSite",
    "CancellationToken",
    "DecorationSurface",
    "DocumentStateStore",
    "LineAnnotator",
    "LineScan",
    "ProgressSurface",
    "ReadinessProber",
    "RunState",
    "annotate_line",
    "extract_summary",
    "is_skippable_line",
    "scan_line",
]
