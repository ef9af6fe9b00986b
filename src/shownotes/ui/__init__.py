"""Host-facing controller and surfaces for inline annotations."""

from .controller import AnnotationController
from .decorations import InMemoryDecorationSurface, format_annotated_lines
from .status_bar import AnnotationStatusBar, status_bar_factory

__all__ = [
    "AnnotationController",
    "AnnotationStatusBar",
    "InMemoryDecorationSurface",
    "format_annotated_lines",
    "status_bar_factory",
]
