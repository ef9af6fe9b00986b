"""Summary extraction from hover documentation fragments."""

from __future__ import annotations

import re
from typing import Any, Iterable

__all__ = ["ELLIPSIS", "extract_summary", "fragments_text"]

ELLIPSIS = "..."
_MIN_SUMMARY_CHARS = 4

_FENCE_RE = re.compile(r"^(?:```|~~~)[\w+#.-]*$")
_SEPARATOR_RE = re.compile(r"^-{3,}$")
_DECORATION_RE = re.compile(r"^(?:/\*+|\*+)\s*")
_EMPHASIS_RE = re.compile(r"^[*_]+")
_TAG_RE = re.compile(
    r"^@(?:param|returns?|throws|exception|see|since|deprecated)\b"
    r"|^(?:parameters|params|returns?|throws|参数|返回)[*_]*\s*[:：]",
    re.IGNORECASE,
)
_MODIFIER_RE = re.compile(r"^(?:public|private|protected|static|final|abstract|class|interface|enum)\s")
_SIGNATURE_RE = re.compile(r"^\w+\s*\(.*\)\s*(?::\s*\w+)?$")
_TYPE_TOKEN_RE = re.compile(r"^(?:java\.|void\s|int\s|String\s|boolean\s|long\s|double\s|float\s)")

_CLEANUP_STEPS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"^\*+\s*"), 1),
    (re.compile(r"\*+$"), 1),
    (re.compile(r"/\*+"), 1),
    (re.compile(r"\*+/"), 1),
    (re.compile(r"`"), 0),
    (re.compile(r"<[^>]+>"), 0),
    (re.compile(r"^\s*[-•]\s*"), 1),
)


def fragments_text(fragments: Iterable[Any] | None) -> str:
    """Join plain or rich-text fragments with newlines, ignoring unknown shapes."""

    parts: list[str] = []
    for fragment in fragments or ():
        if isinstance(fragment, str):
            parts.append(fragment)
            continue
        value = getattr(fragment, "value", None)
        if isinstance(value, str):
            parts.append(value)
    if not parts:
        return ""
    return "\n".join(parts) + "\n"


def extract_summary(fragments: Iterable[Any] | None, max_length: int = 80) -> str:
    """Return the first human-readable summary sentence found in *fragments*.

    Fenced code blocks, separators and signature boilerplate are skipped and
    scanning stops at the first structured doc tag (``@param`` and friends).
    The result is truncated to *max_length* with a trailing ellipsis, or is
    empty when nothing usable exists.
    """

    text = fragments_text(fragments)
    if not text:
        return ""
    in_code_block = False
    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if _FENCE_RE.match(line):
            in_code_block = not in_code_block
            continue
        if in_code_block or not line:
            continue
        if _SEPARATOR_RE.match(line):
            continue
        if _is_tag_line(line):
            break
        if _is_boilerplate(line):
            continue
        cleaned = _clean_line(line)
        if len(cleaned) >= _MIN_SUMMARY_CHARS:
            return _truncate(cleaned, max_length)
    return ""


def _is_tag_line(line: str) -> bool:
    bare = _EMPHASIS_RE.sub("", _DECORATION_RE.sub("", line))
    return bool(_TAG_RE.match(bare))


def _is_boilerplate(line: str) -> bool:
    return bool(_MODIFIER_RE.match(line) or _SIGNATURE_RE.match(line) or _TYPE_TOKEN_RE.match(line))


def _clean_line(line: str) -> str:
    cleaned = line
    for pattern, count in _CLEANUP_STEPS:
        cleaned = pattern.sub("", cleaned, count=count)
    return cleaned.strip()


def _truncate(text: str, max_length: int) -> str:
    limit = max(0, int(max_length))
    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS
