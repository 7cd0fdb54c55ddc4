"""Repair the markdown surface of model output before segmentation.

Models routinely emit `###Heading`, `-item`, `Intro: - a - b` and literal
`\\n` escapes. Left alone these collapse into one giant paragraph, so
normalize_markdown() rewrites them in a fixed order:

1. line endings, literal `\\n`, `<br>` tags
2. heading markers pushed to their own line, space after `#`
3. space after line-start `-` / `1.` markers
4. `": - "` label-then-list
5. jammed mid-line list markers
6. single leading newline trimmed
7. blank line between paragraphs and list blocks
8. remaining single newlines become hard breaks

Fenced code is passed through byte-for-byte; only prose regions are
rewritten. Inline and display math on a line are masked so list/heading
repairs never split a formula.

// [LAW:dataflow-not-control-flow] Every step is a str -> str function applied in order.
"""

from __future__ import annotations

import bisect
import re
from typing import Callable

from chatfmt.core.delimiters import (
    DISPLAY_MATH_DELIMITERS,
    INLINE_MATH_DELIMITERS,
    DelimiterMatch,
    find_code_fences,
    find_next_close,
    find_next_open,
    is_escaped,
)
from chatfmt.core.inline_math import looks_like_currency, looks_like_inline_math
from chatfmt.core.lines import (
    is_blank,
    is_block_boundary,
    is_fence_marker,
    is_list_line,
)


HARD_BREAK = "  \n"

# LaTeX commands that begin with `\n`; never read those as an escaped newline.
LATEX_N_COMMANDS = frozenset({
    "nLeftarrow", "nLeftrightarrow", "nRightarrow", "nVDash", "nVdash",
    "nabla", "natural", "ncong", "ne", "nearrow", "neg", "neq", "newcommand",
    "newenvironment", "newline", "newpage", "newtheorem", "nexists", "ngeq",
    "ngeqq", "ngeqslant", "ngtr", "ni", "nleftarrow", "nleftrightarrow",
    "nleq", "nleqq", "nleqslant", "nless", "nmid", "nobreak", "noindent",
    "nolimits", "nonumber", "normalsize", "not", "notag", "notin",
    "nparallel", "nprec", "npreceq", "nrightarrow", "nshortmid", "nsim",
    "nsubset", "nsubseteq", "nsucc", "nsucceq", "nsupset", "nsupseteq",
    "ntriangleleft", "ntrianglelefteq", "ntriangleright", "ntrianglerighteq",
    "nu", "nvDash", "nvdash", "nwarrow",
})


# ─── Regex patterns ──────────────────────────────────────────────────────────

_LITERAL_NEWLINE_RE = re.compile(r"\\n([A-Za-z]*)")
_LEAD_TOKEN_RE = re.compile(r"[^\s\\]+")
_BR_TAG_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)

# Mid-line heading: whitespace, then `#..` followed by space+text, or `##..` glued to text
_MIDLINE_HEADING_RE = re.compile(r"(?<=\S)[ \t]+(#{1,6}(?=[ \t]+\S)|#{2,6}(?=[^\s#]))")
_HEADING_SPACE_RE = re.compile(r"^([ \t]*#{1,6})(?=[^\s#])", re.MULTILINE)

_DASH_SPACE_RE = re.compile(r"^([ \t]*)-(?=[^\s\-\d>])", re.MULTILINE)
_NUMBER_SPACE_RE = re.compile(r"^([ \t]*)(\d+)\.(?=[^\s\d.])", re.MULTILINE)

_LABEL_LIST_RE = re.compile(r":[ \t]*-[ \t]+")

_ITEM_START = r"(?=\*\*[^*\n]+\*\*|`[^`\n]+`|\[[^\]\n]+\]|[A-Z])"
_JAMMED_BULLET_RE = re.compile(r"(?<=\S)[ \t]+([-*+])[ \t]+" + _ITEM_START)
_JAMMED_NUMBER_RE = re.compile(r"(?<=\S)[ \t]+(\d+\.)[ \t]+" + _ITEM_START)
_BOLD_ITEM_RE = re.compile(r"(?<=\S)[ \t]+(\*\*[^*\n]{2,}\*\*[ \t]*-[ \t]+)")
_BARE_MARKER_RE = re.compile(r"^([-*+]|\d+\.)$")

_MASK_DELIMITERS = DISPLAY_MATH_DELIMITERS + INLINE_MATH_DELIMITERS
_MASK_CHAR = "\x00"


# ─── Entry point ─────────────────────────────────────────────────────────────


def normalize_markdown(text: str) -> str:
    """Normalize model markdown; see the module docstring for the steps."""
    if not text:
        return text

    value = text.replace("\r\n", "\n").replace("\r", "\n")
    # A message with no real newline at all was escaped wholesale; unescape
    # it before fences are located so a fenced block can span lines again.
    if "\n" not in value:
        value = _unescape_literal_newlines(value)

    fences, _unclosed = find_code_fences(value)
    parts: list[str] = []
    pos = 0
    for outer, _inner in fences:
        parts.append(_normalize_prose(value[pos:outer.start], at_start=pos == 0))
        parts.append(value[outer.start:outer.end])
        pos = outer.end
    parts.append(_normalize_prose(value[pos:], at_start=pos == 0))
    return "".join(parts)


def _normalize_prose(chunk: str, *, at_start: bool) -> str:
    if not chunk:
        return chunk
    value = _unescape_literal_newlines(chunk)
    value = _BR_TAG_RE.sub("\n", value)
    value = repair_headings(value)
    value = repair_list_markers(value)
    value = _map_lines(value, _split_label_lists)
    value = _map_lines(value, _split_jammed_markers)
    if at_start and value.startswith("\n"):
        value = value[1:]
    value = separate_list_blocks(value)
    return preserve_single_newlines(value)


# ─── Step 1: newlines ────────────────────────────────────────────────────────


def _unescape_literal_newlines(text: str) -> str:
    """Turn literal `\\n` into newlines everywhere except inside closed math."""
    spans = _math_spans(text)
    span_starts = [start for start, _end in spans]

    def _replace(m: re.Match) -> str:
        if is_escaped(text, m.start()):
            return m.group(0)
        if "n" + m.group(1) in LATEX_N_COMMANDS:
            return m.group(0)
        at = bisect.bisect_right(span_starts, m.start()) - 1
        if at >= 0 and m.start() < spans[at][1]:
            return m.group(0)
        return "\n" + m.group(1)

    return _LITERAL_NEWLINE_RE.sub(_replace, text)


def _math_spans(text: str) -> list[tuple[int, int]]:
    """Closed display spans, plus inline spans the `$` classifier accepts."""
    spans: list[tuple[int, int]] = []
    pos = 0
    while True:
        m = find_next_open(text, pos, _MASK_DELIMITERS)
        if m is None:
            break
        close = find_next_close(text, m.span.end, m.delimiter)
        if close is None:
            break
        if not m.delimiter.display and not _is_inline_math(text[m.span.end:close.start], m):
            # A rejected `$` closer may open the next real span.
            pos = m.span.end if m.delimiter.open == "$" else close.end
            continue
        spans.append((m.span.start, close.end))
        pos = close.end
    return spans


def _is_inline_math(payload: str, m: DelimiterMatch) -> bool:
    # `$10\nand $20` is two prices around an escaped newline.
    lead = _LEAD_TOKEN_RE.match(payload.strip())
    if lead and looks_like_currency(lead.group(0)):
        return False
    return looks_like_inline_math(payload, m.delimiter)


# ─── Line helpers ────────────────────────────────────────────────────────────


def _map_lines(value: str, fn: Callable[[str], str]) -> str:
    return "\n".join(fn(line) for line in value.split("\n"))


def _math_mask(line: str) -> str:
    """Return line with every closed math span replaced by mask characters."""
    masked = list(line)
    pos = 0
    while True:
        m = find_next_open(line, pos, _MASK_DELIMITERS)
        if m is None:
            break
        close = find_next_close(line, m.span.end, m.delimiter)
        if close is None:
            break
        for i in range(m.span.start, close.end):
            masked[i] = _MASK_CHAR
        pos = close.end
    return "".join(masked)


def _sub_outside_math(
    pattern: re.Pattern, line: str, build: Callable[[str, re.Match], str]
) -> str:
    """Like pattern.sub(), but matches are found with math spans masked out.

    build() receives the original line and the match (positions are shared
    between the masked and original text).
    """
    masked = _math_mask(line)
    out: list[str] = []
    last = 0
    for m in pattern.finditer(masked):
        out.append(line[last:m.start()])
        out.append(build(line, m))
        last = m.end()
    if not out:
        return line
    out.append(line[last:])
    return "".join(out)


def _group(line: str, m: re.Match, index: int) -> str:
    return line[m.start(index):m.end(index)]


# ─── Steps 2-5: marker repairs ───────────────────────────────────────────────


def repair_headings(value: str) -> str:
    """Push mid-line heading markers to a new line; space after `#`."""

    def _midline(line: str) -> str:
        if "|" in line:  # table rows use `#` as a column label
            return line
        return _sub_outside_math(
            _MIDLINE_HEADING_RE, line, lambda src, m: "\n" + _group(src, m, 1)
        )

    value = _map_lines(value, _midline)
    return _HEADING_SPACE_RE.sub(r"\1 ", value)


def repair_list_markers(value: str) -> str:
    """Insert the missing space after a line-start `-` or `N.` marker."""
    value = _DASH_SPACE_RE.sub(r"\1- ", value)
    return _NUMBER_SPACE_RE.sub(r"\1\2. ", value)


def _split_label_lists(line: str) -> str:
    if "|" in line:
        return line
    return _sub_outside_math(_LABEL_LIST_RE, line, lambda src, m: ":\n- ")


def _split_jammed_markers(line: str) -> str:
    if "|" in line:
        return line
    line = _sub_outside_math(
        _JAMMED_BULLET_RE, line, lambda src, m: "\n" + _group(src, m, 1) + " "
    )
    line = _map_lines(line, lambda part: _sub_outside_math(
        _JAMMED_NUMBER_RE, part, lambda src, m: "\n" + _group(src, m, 1) + " "
    ))
    return _map_lines(line, lambda part: _sub_outside_math(_BOLD_ITEM_RE, part, _bold_item))


def _bold_item(line: str, m: re.Match) -> str:
    # `- **Term** - text` is already an item; only split mid-paragraph runs.
    if _BARE_MARKER_RE.match(line[:m.start()].strip()):
        return line[m.start():m.end()]
    return "\n- " + _group(line, m, 1)


# ─── Step 7: list block spacing ──────────────────────────────────────────────


def separate_list_blocks(value: str) -> str:
    """Ensure a blank line between a list block and adjacent paragraphs."""
    lines = value.split("\n")
    if len(lines) <= 1:
        return value

    out: list[str] = []
    in_fence = False
    for line in lines:
        if is_fence_marker(line):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue

        if is_list_line(line):
            if out and not is_blank(out[-1]) and not is_list_line(out[-1]):
                out.append("")
            out.append(line)
            continue

        if not is_blank(line) and out and is_list_line(out[-1]):
            out.append("")
        out.append(line)

    return "\n".join(out)


# ─── Step 8: hard breaks ─────────────────────────────────────────────────────


def _protected_boundaries(value: str, lines: list[str]) -> set[int]:
    """Indices i whose newline (lines[i] -> lines[i + 1]) must stay soft.

    Newlines touching a fence line and newlines inside a display-math span
    that crosses lines are protected. A span closed on its own line
    protects nothing.
    """
    protected: set[int] = set()

    in_fence = False
    for index, line in enumerate(lines):
        if is_fence_marker(line):
            in_fence = not in_fence
        elif not in_fence:
            continue
        protected.update((index - 1, index))

    starts: list[int] = []
    offset = 0
    for line in lines:
        starts.append(offset)
        offset += len(line) + 1

    pos = 0
    while True:
        m = find_next_open(value, pos, DISPLAY_MATH_DELIMITERS)
        if m is None:
            break
        close = find_next_close(value, m.span.end, m.delimiter)
        if close is None:
            break
        first = bisect.bisect_right(starts, m.span.start) - 1
        last = bisect.bisect_right(starts, close.end - 1) - 1
        protected.update(range(first, last))
        pos = close.end
    return protected


def preserve_single_newlines(value: str) -> str:
    """Turn soft single newlines between prose lines into hard breaks."""
    lines = value.split("\n")
    if len(lines) <= 1:
        return value

    protected = _protected_boundaries(value, lines)
    out: list[str] = []
    for index, line in enumerate(lines):
        out.append(line)
        if index == len(lines) - 1:
            continue
        following = lines[index + 1]
        soft = (
            not is_blank(line)
            and not is_blank(following)
            and index not in protected
            and not line.endswith("  ")
            and not is_block_boundary(line, following)
        )
        out.append(HARD_BREAK if soft else "\n")
    return "".join(out)
