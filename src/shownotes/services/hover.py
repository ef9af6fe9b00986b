"""Hover service contract and helpers for normalising hover payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

__all__ = ["HoverFragment", "HoverService", "hover_fragments", "has_content"]


@dataclass(frozen=True, slots=True)
class HoverFragment:
    """One unit of hover text, either plain text or markdown."""

    value: str
    kind: str = "markdown"


class HoverService(Protocol):
    """Asynchronous source of documentation fragments for a document position.

    Implementations may return ``None`` or an empty sequence while the
    underlying language service is still indexing, and may raise on failure;
    callers treat errors as "no information available now".
    """

    async def query(
        self, document_id: str, line: int, character: int
    ) -> Sequence[HoverFragment] | None:  # pragma: no cover - protocol
        ...


def has_content(fragments: Sequence[Any] | None) -> bool:
    """Return ``True`` when *fragments* carries at least one non-blank text value."""

    for fragment in fragments or ():
        value = fragment if isinstance(fragment, str) else getattr(fragment, "value", None)
        if isinstance(value, str) and value.strip():
            return True
    return False


def hover_fragments(contents: Any) -> list[HoverFragment]:
    """Convert LSP ``Hover.contents`` into :class:`HoverFragment` values.

    Accepts ``MarkupContent`` (``{"kind", "value"}``), ``MarkedString``
    (plain strings or ``{"language", "value"}`` code blocks), and lists of
    either. Unrecognised shapes are dropped.
    """

    if contents is None:
        return []
    if isinstance(contents, list):
        fragments: list[HoverFragment] = []
        for item in contents:
            fragments.extend(hover_fragments(item))
        return fragments
    if isinstance(contents, str):
        return [HoverFragment(contents, kind="markdown")] if contents else []
    if isinstance(contents, dict):
        value = contents.get("value")
        if not isinstance(value, str) or not value:
            return []
        language = contents.get("language")
        if isinstance(language, str):
            return [HoverFragment(f"```{language}\n{value}\n```", kind="markdown")]
        kind = contents.get("kind")
        return [HoverFragment(value, kind=kind if kind in {"plaintext", "markdown"} else "markdown")]
    return []
