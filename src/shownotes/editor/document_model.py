"""Dataclasses representing read-only editor document snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

__all__ = ["DocumentSnapshot", "document_uri", "language_for_path", "split_lines"]

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

_LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".java": "java",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "typescript",
}


def split_lines(text: str) -> tuple[str, ...]:
    """Split *text* the way editors count lines (a trailing break opens an empty line)."""

    return tuple(_LINE_BREAK_RE.split(text))


def document_uri(path: Path | str) -> str:
    """Return the canonical ``file://`` identity for *path*."""

    return Path(path).expanduser().resolve().as_uri()


def language_for_path(path: Path | str | None, default: str = "plaintext") -> str:
    if path is None:
        return default
    suffix = Path(path).suffix.lower()
    return _LANGUAGE_BY_SUFFIX.get(suffix, default)


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """Immutable view of one open text buffer used for a single annotation run."""

    document_id: str
    lines: tuple[str, ...]
    language: str
    version_id: int = 1
    path: Optional[Path] = None

    @classmethod
    def from_text(
        cls,
        text: str,
        *,
        document_id: str | None = None,
        path: Path | str | None = None,
        language: str | None = None,
        version_id: int = 1,
    ) -> "DocumentSnapshot":
        """Build a snapshot from raw buffer text.

        Either *document_id* or *path* must be provided; when only a path is
        given the identity is its canonical URI and the language is inferred
        from the file suffix.
        """

        resolved_path = Path(path).expanduser().resolve() if path is not None else None
        if document_id is None:
            if resolved_path is None:
                raise ValueError("document_id or path is required")
            document_id = resolved_path.as_uri()
        tag = (language or language_for_path(resolved_path)).strip().lower()
        return cls(
            document_id=document_id,
            lines=split_lines(text),
            language=tag,
            version_id=version_id,
            path=resolved_path,
        )

    @classmethod
    def from_path(cls, path: Path | str, *, language: str | None = None) -> "DocumentSnapshot":
        target = Path(path)
        text = target.read_text(encoding="utf-8")
        return cls.from_text(text, path=target, language=language)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def line_at(self, index: int) -> str:
        """Return the text of line *index* (no line terminator)."""

        if index < 0 or index >= len(self.lines):
            raise IndexError(f"line {index} out of range for {self.document_id}")
        return self.lines[index]

    def with_lines(self, lines: Sequence[str]) -> "DocumentSnapshot":
        """Return the next version of this snapshot holding *lines*."""

        return DocumentSnapshot(
            document_id=self.document_id,
            lines=tuple(lines),
            language=self.language,
            version_id=self.version_id + 1,
            path=self.path,
        )

    def with_text(self, text: str) -> "DocumentSnapshot":
        return self.with_lines(split_lines(text))
