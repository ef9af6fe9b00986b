"""Heuristic call-site detection for a single line of source text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

from .models import CallSite

__all__ = ["CONTROL_KEYWORDS", "LineScan", "is_skippable_line", "scan_line"]

_CALL_RE = re.compile(r"(\w+\.)?(\w+)\s*\(")
_COMMENT_PREFIXES: tuple[str, ...] = ("//", "/*", "*")
CONTROL_KEYWORDS: frozenset[str] = frozenset({"if", "for", "while", "switch", "catch"})


def is_skippable_line(text: str) -> bool:
    """Return ``True`` for blank lines and lines that open or continue a comment."""

    stripped = text.strip()
    return not stripped or stripped.startswith(_COMMENT_PREFIXES)


@dataclass(frozen=True, slots=True)
class LineScan:
    """Restartable lazy sequence of call sites on one line.

    Every iteration re-runs the match from the start of the line, so the
    same scan can be consumed more than once without memoising results.
    """

    text: str
    line: int = 0

    def __iter__(self) -> Iterator[CallSite]:
        if is_skippable_line(self.text):
            return
        for match in _CALL_RE.finditer(self.text):
            receiver, name = match.group(1), match.group(2)
            if name in CONTROL_KEYWORDS:
                continue
            yield CallSite(
                line=self.line,
                character=match.start(2),
                name=name,
                receiver=receiver,
            )

    def first(self) -> CallSite | None:
        return next(iter(self), None)


def scan_line(text: str, line: int = 0) -> LineScan:
    return LineScan(text=text, line=line)
