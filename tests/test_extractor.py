"""Tests for hover summary extraction."""

from __future__ import annotations

import pytest

from shownotes.annotations.extractor import ELLIPSIS, extract_summary, fragments_text
from shownotes.services.hover import HoverFragment


def test_javadoc_block_summary_stops_at_param_tag() -> None:
    fragments = ["/** Computes the sum.\n * @param a first\n */"]

    assert extract_summary(fragments, 80) == "Computes the sum."


def test_extraction_is_deterministic() -> None:
    fragments = [HoverFragment("```java\nint calc(int a, int b)\n```"), HoverFragment("Calculates a value.")]

    results = {extract_summary(fragments, 80) for _ in range(5)}

    assert results == {"Calculates a value."}


def test_truncates_long_summary_with_ellipsis() -> None:
    summary = "A" * 100

    result = extract_summary([summary], 20)

    assert len(result) == 20
    assert result.endswith(ELLIPSIS)
    assert result == "A" * 17 + ELLIPSIS


def test_summary_at_limit_is_not_truncated() -> None:
    assert extract_summary(["Exactly twenty chars"], 20) == "Exactly twenty chars"


def test_code_blocks_separators_and_signatures_are_skipped() -> None:
    text = "\n".join(
        [
            "```typescript",
            "function calc(a: number): number",
            "```",
            "---",
            "public static int calc(int a)",
            "calc(a, b)",
            "void run()",
            "Adds `a` to <b>b</b>.",
        ]
    )

    assert extract_summary([text], 80) == "Adds a to b."


def test_tag_before_summary_yields_empty() -> None:
    assert extract_summary(["@return the value\nLater prose that is ignored."], 80) == ""


def test_markdown_rendered_tags_stop_scanning() -> None:
    text = "```java\nint size()\n```\n*@param* `x` the value\nNot a summary."

    assert extract_summary([text], 80) == ""


def test_returns_prose_is_not_mistaken_for_tag() -> None:
    assert extract_summary(["Returns the number of elements."], 80) == "Returns the number of elements."


def test_localized_tags_stop_scanning() -> None:
    assert extract_summary(["参数: a 第一个\n描述文字不会被使用"], 80) == ""


def test_short_lines_and_bullets_are_cleaned() -> None:
    text = "* ok\n - Parses the configuration file. *"

    assert extract_summary([text], 80) == "Parses the configuration file."


def test_empty_or_unusable_fragments_yield_empty_string() -> None:
    assert extract_summary([], 80) == ""
    assert extract_summary(None, 80) == ""
    assert extract_summary([object(), 42], 80) == ""
    assert extract_summary(["", "   "], 80) == ""


def test_fragments_text_joins_plain_and_rich_values() -> None:
    joined = fragments_text(["plain", HoverFragment("rich"), {"value": "ignored"}])

    assert joined == "plain\nrich\n"


def test_tiny_max_length_cuts_without_marker() -> None:
    assert extract_summary(["Computes the sum."], 3) == "Com"


@pytest.mark.parametrize(
    "tag_line",
    [
        "@throws IOException when the file is missing",
        "@exception IllegalStateException if closed",
        "@see java.util.List#size()",
        "@since 1.8",
        "@deprecated use sizeOf instead",
        " * @returns the count",
        "* **Parameters:**",
        "**Returns:** the number of elements",
        "Throws: NullPointerException",
        "返回：元素个数",
    ],
)
def test_doc_tags_stop_scanning(tag_line: str) -> None:
    assert extract_summary([f"{tag_line}\nLater prose that is ignored."], 80) == ""
    assert extract_summary([f"Counts the elements.\n{tag_line}"], 80) == "Counts the elements."
