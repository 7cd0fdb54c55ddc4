"""Segment normalized message text into typed Segments for rendering.

Parses message text into structural regions:
- MARKDOWN: prose, headings, lists (inline math replaced by placeholders)
- MATH: display math ($$...$$, \\[...\\], equation/align/multline/cases)
- CODE: triple-backtick fenced block, optional language tag
- RULE: horizontal divider line
- TABLE: pipe table (header + divider + rows), verbatim

Passes run in precedence order. Code fences are claimed first and are
opaque: nothing inside them is re-scanned. Display math is claimed next,
then rules and tables line by line. Adjacent markdown is merged, and
inline math extraction runs last over the merged markdown.

Every segment carries the Span it covers in the input; spans are
contiguous and cover [0, len(text)).

// [LAW:dataflow-not-control-flow] segment() is a pure function: text in, Segments out.
// [LAW:one-source-of-truth] All block segmentation logic lives here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from chatfmt.core.delimiters import (
    DISPLAY_MATH_DELIMITERS,
    Span,
    find_code_fences,
    find_next_close,
    find_next_open,
)
from chatfmt.core.inline_math import MathToken, extract_inline_math
from chatfmt.core.lines import is_blank, is_horizontal_rule, is_table_divider, is_table_header

logger = logging.getLogger(__name__)


# ─── Data model ──────────────────────────────────────────────────────────────


class SegmentKind(Enum):
    MARKDOWN = "markdown"
    MATH = "math"
    CODE = "code"
    RULE = "rule"
    TABLE = "table"


class ParseErrorKind(Enum):
    UNCLOSED_FENCE = "unclosed_fence"
    UNCLOSED_MATH = "unclosed_math"
    UNCLOSED_THINK = "unclosed_think"


@dataclass(frozen=True)
class CodeMeta:
    language: str | None
    inner_span: Span  # content between the fences, language line included


@dataclass(frozen=True)
class MathMeta:
    display: bool
    open: str
    close: str


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    span: Span
    text: str = ""
    meta: CodeMeta | MathMeta | None = None

    @property
    def language(self) -> str | None:
        return self.meta.language if isinstance(self.meta, CodeMeta) else None

    @property
    def display(self) -> bool:
        return self.meta.display if isinstance(self.meta, MathMeta) else False


@dataclass(frozen=True)
class ParseError:
    kind: ParseErrorKind
    span: Span
    details: str


@dataclass(frozen=True)
class SegmentResult:
    segments: tuple[Segment, ...]
    math_tokens: tuple[MathToken, ...]
    errors: tuple[ParseError, ...]


EMPTY_PLACEHOLDER = " "

# Language tag on the opening fence line
LANGUAGE_RE = re.compile(r"^[A-Za-z0-9_+\-#.]+$")


# ─── Segmentation algorithm ─────────────────────────────────────────────────


def segment(text: str) -> SegmentResult:
    """Segment text into typed Segments.

    Empty text yields a single whitespace markdown segment so renderers
    always have something to lay out.
    """
    if not text:
        return SegmentResult(
            (Segment(SegmentKind.MARKDOWN, Span(0, 0), EMPTY_PLACEHOLDER),), (), ()
        )

    errors: list[ParseError] = []
    segments: list[Segment] = []
    for piece in _fence_pass(text, errors):
        if piece.kind != SegmentKind.MARKDOWN:
            segments.append(piece)
            continue
        for sub in _display_math_pass(text, piece.span, errors):
            if sub.kind == SegmentKind.MARKDOWN:
                segments.extend(_line_pass(text, sub.span))
            else:
                segments.append(sub)

    merged = merge_markdown(segments)
    final, tokens = _extract_inline(merged)
    return SegmentResult(tuple(final), tuple(tokens), tuple(errors))


def _markdown(text: str, start: int, end: int) -> Segment:
    return Segment(SegmentKind.MARKDOWN, Span(start, end), text[start:end])


def _fence_pass(text: str, errors: list[ParseError]) -> list[Segment]:
    """Split out closed code fences; everything else is tentative markdown."""
    fences, unclosed_at = find_code_fences(text)
    pieces: list[Segment] = []
    pos = 0
    for outer, inner in fences:
        if outer.start > pos:
            pieces.append(_markdown(text, pos, outer.start))
        language, code = parse_fence_payload(text[inner.start:inner.end])
        pieces.append(Segment(SegmentKind.CODE, outer, code, CodeMeta(language, inner)))
        pos = outer.end
    if pos < len(text):
        pieces.append(_markdown(text, pos, len(text)))

    if unclosed_at is not None:
        logger.debug("unclosed code fence at offset %d", unclosed_at)
        errors.append(
            ParseError(
                ParseErrorKind.UNCLOSED_FENCE,
                Span(unclosed_at, len(text)),
                "Unclosed ``` fence",
            )
        )
    return pieces


def parse_fence_payload(raw: str) -> tuple[str | None, str]:
    """Split a fence interior into (language, code).

    The text on the opening fence line is the language when it is a bare
    identifier; a blank opening line is dropped. Trailing newlines go.
    """
    language = None
    payload = raw
    newline = raw.find("\n")
    if newline != -1:
        first_line = raw[:newline].strip()
        if not first_line:
            payload = raw[newline + 1:]
        elif LANGUAGE_RE.match(first_line):
            language = first_line.lower()
            payload = raw[newline + 1:]
    return language, payload.rstrip("\n")


def _display_math_pass(text: str, chunk: Span, errors: list[ParseError]) -> list[Segment]:
    """Claim display-math spans inside one markdown chunk."""
    pieces: list[Segment] = []
    chunk_text = text[chunk.start:chunk.end]
    pos = 0
    claimed_to = chunk.start  # absolute end of the last MATH segment

    while True:
        m = find_next_open(chunk_text, pos, DISPLAY_MATH_DELIMITERS)
        if m is None:
            break
        close = find_next_close(chunk_text, m.span.end, m.delimiter)
        if close is None:
            errors.append(
                ParseError(
                    ParseErrorKind.UNCLOSED_MATH,
                    Span(chunk.start + m.span.start, chunk.end),
                    f"Unclosed {m.delimiter.open} math block",
                )
            )
            break

        latex = chunk_text[m.span.end:close.start].strip()
        if not latex:
            # Nothing to typeset; leave the delimiters as literal text.
            pos = close.end
            continue

        math_start = chunk.start + m.span.start
        if math_start > claimed_to:
            pieces.append(_markdown(text, claimed_to, math_start))
        claimed_to = chunk.start + close.end
        pieces.append(
            Segment(
                SegmentKind.MATH,
                Span(math_start, claimed_to),
                latex,
                MathMeta(display=m.delimiter.display, open=m.delimiter.open, close=m.delimiter.close),
            )
        )
        pos = close.end

    if claimed_to < chunk.end:
        pieces.append(_markdown(text, claimed_to, chunk.end))
    return pieces


def _line_pass(text: str, chunk: Span) -> list[Segment]:
    """Split a markdown chunk into RULE, TABLE and MARKDOWN segments.

    Each line owns its trailing newline for span purposes.
    """
    lines: list[tuple[int, int, str]] = []  # (start, end incl. newline, line)
    pos = chunk.start
    while pos < chunk.end:
        nl = text.find("\n", pos, chunk.end)
        end = chunk.end if nl == -1 else nl + 1
        lines.append((pos, end, text[pos:nl if nl != -1 else chunk.end]))
        pos = end

    result: list[Segment] = []
    pending_start: int | None = None

    def flush(upto: int) -> None:
        nonlocal pending_start
        if pending_start is not None and upto > pending_start:
            result.append(_markdown(text, pending_start, upto))
        pending_start = None

    index = 0
    while index < len(lines):
        start, end, line = lines[index]

        if is_horizontal_rule(line):
            flush(start)
            result.append(Segment(SegmentKind.RULE, Span(start, end)))
            index += 1
            continue

        if (
            index + 1 < len(lines)
            and is_table_header(line)
            and is_table_divider(lines[index + 1][2])
        ):
            flush(start)
            table_lines = [line, lines[index + 1][2]]
            table_end = lines[index + 1][1]
            index += 2
            while index < len(lines):
                _, cand_end, candidate = lines[index]
                if "|" not in candidate or is_blank(candidate):
                    break
                table_lines.append(candidate)
                table_end = cand_end
                index += 1
            result.append(
                Segment(SegmentKind.TABLE, Span(start, table_end), "\n".join(table_lines))
            )
            continue

        if pending_start is None:
            pending_start = start
        index += 1

    flush(chunk.end)
    return result


def merge_markdown(segments: list[Segment]) -> list[Segment]:
    """Concatenate adjacent MARKDOWN segments; other kinds are never merged."""
    merged: list[Segment] = []
    for seg in segments:
        prev = merged[-1] if merged else None
        if (
            seg.kind == SegmentKind.MARKDOWN
            and prev is not None
            and prev.kind == SegmentKind.MARKDOWN
        ):
            merged[-1] = Segment(
                SegmentKind.MARKDOWN,
                Span(prev.span.start, seg.span.end),
                prev.text + seg.text,
            )
        else:
            merged.append(seg)
    return merged


def _extract_inline(segments: list[Segment]) -> tuple[list[Segment], list[MathToken]]:
    """Run inline math extraction over markdown with one shared counter."""
    tokens: list[MathToken] = []
    out: list[Segment] = []
    for seg in segments:
        if seg.kind != SegmentKind.MARKDOWN:
            out.append(seg)
            continue
        rewritten, found = extract_inline_math(seg.text, start_index=len(tokens))
        tokens.extend(found)
        out.append(Segment(SegmentKind.MARKDOWN, seg.span, rewritten))
    return out, tokens
