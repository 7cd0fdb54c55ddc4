"""Tests for chatfmt.core.segmentation — Segment pipeline."""

import pytest

from chatfmt.core.delimiters import Span
from chatfmt.core.segmentation import (
    EMPTY_PLACEHOLDER,
    Segment,
    SegmentKind,
    SegmentResult,
    merge_markdown,
    parse_fence_payload,
    segment,
)


def kinds(result: SegmentResult) -> list[str]:
    """Extract Segment kind values as a list of strings."""
    return [seg.kind.value for seg in result.segments]


def error_kinds(result: SegmentResult) -> list[str]:
    """Extract ParseError kind values as a list of strings."""
    return [e.kind.value for e in result.errors]


def text_of(raw: str, seg: Segment) -> str:
    """Extract the source text a Segment covers."""
    return raw[seg.span.start : seg.span.end]


# ─── Plain markdown ──────────────────────────────────────────────────────────


class TestPlainMarkdown:
    def test_no_structure(self):
        text = "Just some **bold** and _italic_ text."
        result = segment(text)
        assert kinds(result) == ["markdown"]
        assert text_of(text, result.segments[0]) == text
        assert result.errors == ()

    def test_empty_input(self):
        result = segment("")
        assert len(result.segments) == 1
        seg = result.segments[0]
        assert seg.kind == SegmentKind.MARKDOWN
        assert seg.text == EMPTY_PLACEHOLDER
        assert seg.span == Span(0, 0)


# ─── Code fences ─────────────────────────────────────────────────────────────


class TestCodeFence:
    def test_fence_is_opaque(self):
        text = "Intro\n```python\nx = $a$\n---\n| a | b | c |\n```\nAfter"
        result = segment(text)
        assert kinds(result) == ["markdown", "code", "markdown"]
        code = result.segments[1]
        assert code.language == "python"
        assert code.text == "x = $a$\n---\n| a | b | c |"
        assert code.span == Span(6, 45)
        assert result.math_tokens == ()

    def test_unclosed_fence_is_markdown(self):
        text = "text\n```py\nx = 1"
        result = segment(text)
        assert kinds(result) == ["markdown"]
        assert error_kinds(result) == ["unclosed_fence"]
        assert result.errors[0].span == Span(5, len(text))


class TestFencePayload:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("python\nprint(1)\n", ("python", "print(1)")),
            ("C++\nint x;\n", ("c++", "int x;")),
            ("\nplain\n", (None, "plain")),
            ("print(1)", (None, "print(1)")),
            ("not a lang\nx\n", (None, "not a lang\nx")),
        ],
    )
    def test_payload(self, raw, expected):
        assert parse_fence_payload(raw) == expected


# ─── Display math ────────────────────────────────────────────────────────────


class TestDisplayMath:
    def test_double_dollar(self):
        text = "$$\\frac{1}{3}$$ and inline $x$"
        result = segment(text)
        assert kinds(result) == ["math", "markdown"]
        math = result.segments[0]
        assert math.text == "\\frac{1}{3}"
        assert math.display
        assert [t.latex for t in result.math_tokens] == ["x"]

    def test_bracket_delimiters(self):
        text = "Before\n\\[ a^2 \\]\nAfter"
        result = segment(text)
        assert kinds(result) == ["markdown", "math", "markdown"]
        math = result.segments[1]
        assert math.span == Span(7, 16)
        assert math.text == "a^2"
        assert math.meta.open == "\\["

    def test_environment(self):
        result = segment("\\begin{align}a &= b\\end{align}")
        assert kinds(result) == ["math"]
        assert result.segments[0].text == "a &= b"
        assert result.segments[0].meta.open == "\\begin{align}"

    def test_empty_display_math_stays_literal(self):
        result = segment("$$ $$ text")
        assert kinds(result) == ["markdown"]
        assert result.math_tokens == ()

    def test_unclosed_display_math(self):
        text = "Start $$x + y"
        result = segment(text)
        assert kinds(result) == ["markdown"]
        assert error_kinds(result) == ["unclosed_math"]
        assert result.errors[0].span == Span(6, len(text))


# ─── Rules and tables ────────────────────────────────────────────────────────


class TestRulesAndTables:
    def test_rule(self):
        text = "Above\n---\nBelow"
        result = segment(text)
        assert kinds(result) == ["markdown", "rule", "markdown"]
        assert result.segments[1].span == Span(6, 10)

    def test_table_stops_at_blank_line(self):
        text = "Intro\n| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |\n\nAfter"
        result = segment(text)
        assert kinds(result) == ["markdown", "table", "markdown"]
        table = result.segments[1]
        assert table.span == Span(6, 48)
        assert table.text == "| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |"

    def test_table_stops_at_non_pipe_line(self):
        text = "| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |\nplain"
        assert kinds(segment(text)) == ["table", "markdown"]

    def test_two_column_header_is_not_table(self):
        assert kinds(segment("| a | b |\n|---|---|")) == ["markdown"]

    def test_table_math_left_verbatim(self):
        result = segment("| $x$ | b | c |\n|---|---|---|")
        assert kinds(result) == ["table"]
        assert result.math_tokens == ()
        assert "$x$" in result.segments[0].text


# ─── Inline math numbering ───────────────────────────────────────────────────


class TestInlineNumbering:
    def test_counter_shared_across_segments(self):
        text = "$x$\n```\ncode\n```\n$y$"
        result = segment(text)
        assert kinds(result) == ["markdown", "code", "markdown"]
        assert "ZZZMATHPLACEHOLDER0ZZZ" in result.segments[0].text
        assert "ZZZMATHPLACEHOLDER1ZZZ" in result.segments[2].text
        assert result.segments[1].language is None
        assert result.segments[1].text == "code"


# ─── Span coverage ───────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text",
    [
        "Just text",
        "Intro\n```python\nx = 1\n```\nAfter",
        "Before\n\\[ a^2 \\]\nAfter",
        "Above\n---\nBelow\n| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |\ntail $x$",
        "$$ $$ text $$y$$",
        "text\n```py\nunclosed",
    ],
)
def test_spans_cover_text(text):
    segments = segment(text).segments
    assert segments[0].span.start == 0
    assert segments[-1].span.end == len(text)
    for prev, nxt in zip(segments, segments[1:]):
        assert prev.span.end == nxt.span.start


def test_merge_markdown_only_merges_markdown():
    segments = [
        Segment(SegmentKind.MARKDOWN, Span(0, 2), "ab"),
        Segment(SegmentKind.MARKDOWN, Span(2, 4), "cd"),
        Segment(SegmentKind.RULE, Span(4, 8)),
        Segment(SegmentKind.RULE, Span(8, 12)),
    ]
    merged = merge_markdown(segments)
    assert [seg.kind for seg in merged] == [SegmentKind.MARKDOWN, SegmentKind.RULE, SegmentKind.RULE]
    assert merged[0] == Segment(SegmentKind.MARKDOWN, Span(0, 4), "abcd")
