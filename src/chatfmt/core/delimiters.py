"""Escape-parity scanning and delimiter matching.

Every structural search in chatfmt (fences, display math, inline math)
goes through find_next_open() / find_next_close() so escape handling and
the `$` exclusion rules live in one place.

// [LAW:one-source-of-truth] Delimiter catalogs are defined here only.
// [LAW:single-enforcer] Escape parity is decided by is_escaped() only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ─── Data model ──────────────────────────────────────────────────────────────


class DelimiterKind(Enum):
    MATH = "math"
    CODE = "code"


@dataclass(frozen=True)
class Delimiter:
    open: str
    close: str
    kind: DelimiterKind
    display: bool = False


@dataclass(frozen=True)
class Span:
    start: int
    end: int  # exclusive


@dataclass(frozen=True)
class DelimiterMatch:
    span: Span
    delimiter: Delimiter


# ─── Catalogs (priority order) ───────────────────────────────────────────────


def _env(name: str) -> Delimiter:
    return Delimiter(
        "\\begin{" + name + "}", "\\end{" + name + "}", DelimiterKind.MATH, display=True
    )


INLINE_MATH_DELIMITERS: tuple[Delimiter, ...] = (
    Delimiter("\\(", "\\)", DelimiterKind.MATH),
    Delimiter("$", "$", DelimiterKind.MATH),
)

DISPLAY_MATH_DELIMITERS: tuple[Delimiter, ...] = (
    _env("equation*"),
    _env("equation"),
    _env("align*"),
    _env("align"),
    _env("multline*"),
    _env("multline"),
    _env("cases*"),
    _env("cases"),
    Delimiter("$$", "$$", DelimiterKind.MATH, display=True),
    Delimiter("\\[", "\\]", DelimiterKind.MATH, display=True),
)

CODE_FENCE = Delimiter("```", "```", DelimiterKind.CODE)
CODE_FENCE_DELIMITERS: tuple[Delimiter, ...] = (CODE_FENCE,)


# ─── Scanning ────────────────────────────────────────────────────────────────


def is_escaped(text: str, index: int) -> bool:
    """True if text[index] is preceded by an odd run of backslashes."""
    if index <= 0:
        return False
    count = 0
    cursor = min(index, len(text)) - 1
    while cursor >= 0 and text[cursor] == "\\":
        count += 1
        cursor -= 1
    return count % 2 == 1


def _dollar_run_end(text: str, index: int) -> int:
    """Return the index just past the run of `$` containing text[index]."""
    end = index
    while end < len(text) and text[end] == "$":
        end += 1
    return end


def _in_dollar_run(text: str, index: int) -> bool:
    """True if the `$` at index touches another `$` (i.e. is part of `$$`)."""
    before = index > 0 and text[index - 1] == "$"
    after = index + 1 < len(text) and text[index + 1] == "$"
    return before or after


def _scan_open(text: str, start: int, delimiter: Delimiter) -> int:
    """Return the offset of the next valid opener for one delimiter, or -1."""
    single_dollar = delimiter.open == "$"
    search = start
    while search < len(text):
        pos = text.find(delimiter.open, search)
        if pos == -1:
            return -1
        if is_escaped(text, pos):
            search = pos + len(delimiter.open)
            continue
        if single_dollar:
            if _in_dollar_run(text, pos):
                search = _dollar_run_end(text, pos)
                continue
            # `5$` price notation never opens math.
            if pos > 0 and text[pos - 1].isdigit():
                search = pos + 1
                continue
        return pos
    return -1


def find_next_open(
    text: str, start: int, delimiters: tuple[Delimiter, ...]
) -> DelimiterMatch | None:
    """Earliest unescaped opener among delimiters at or after start.

    Ties on start offset go to the delimiter listed first.
    """
    best: DelimiterMatch | None = None
    for delimiter in delimiters:
        pos = _scan_open(text, start, delimiter)
        if pos == -1:
            continue
        if best is None or pos < best.span.start:
            best = DelimiterMatch(Span(pos, pos + len(delimiter.open)), delimiter)
    return best


def find_next_close(text: str, start: int, delimiter: Delimiter) -> Span | None:
    """Span of the next unescaped closer for delimiter, or None if absent."""
    single_dollar = delimiter.close == "$"
    search = start
    while search < len(text):
        pos = text.find(delimiter.close, search)
        if pos == -1:
            return None
        if is_escaped(text, pos):
            search = pos + len(delimiter.close)
            continue
        if single_dollar and _in_dollar_run(text, pos):
            search = _dollar_run_end(text, pos)
            continue
        return Span(pos, pos + len(delimiter.close))
    return None


def find_code_fences(text: str) -> tuple[list[tuple[Span, Span]], int | None]:
    """Locate closed triple-backtick fences.

    Returns (fences, unclosed_at): each fence as (outer span, inner span),
    plus the offset of a trailing opener that never closes (or None).
    """
    fences: list[tuple[Span, Span]] = []
    pos = 0
    while True:
        m = find_next_open(text, pos, CODE_FENCE_DELIMITERS)
        if m is None:
            return fences, None
        close = find_next_close(text, m.span.end, m.delimiter)
        if close is None:
            return fences, m.span.start
        fences.append((Span(m.span.start, close.end), Span(m.span.end, close.start)))
        pos = close.end
