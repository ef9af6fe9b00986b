"""Editor package containing document snapshot models."""

from .document_model import (
    DocumentSnapshot,
    document_uri,
    language_for_path,
    split_lines,
)

__all__ = ["DocumentSnapshot", "document_uri", "language_for_path", "split_lines"]
