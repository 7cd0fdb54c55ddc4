"""Inline math extraction: `\\(...\\)` and `$...$` spans become placeholders.

The markdown renderer downstream knows nothing about LaTeX, so accepted
spans are swapped for opaque placeholders and handed back as an ordered
token list. Renderers paint each token where its placeholder sits.

Dollar signs are ambiguous in chat output (prices, shell variables, prose),
so `$...$` spans go through looks_like_inline_math() before they are taken.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from chatfmt.core.delimiters import (
    INLINE_MATH_DELIMITERS,
    Delimiter,
    find_next_close,
    find_next_open,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "ZZZMATHPLACEHOLDER"
PLACEHOLDER_SUFFIX = "ZZZ"
PLACEHOLDER_RE = re.compile(PLACEHOLDER_PREFIX + r"(\d+)" + PLACEHOLDER_SUFFIX)

MAX_INLINE_MATH_CHARS = 120
MAX_PROSE_WORDS = 3

_CURRENCY_RE = re.compile(r"^\d{1,3}(,\d{3})*(\.\d{1,2})?$|^\d+(\.\d{1,2})?$")
_OPERATOR_RE = re.compile(r"[=+\-*/^_<>]")
_LETTER_RE = re.compile(r"[A-Za-z]")
_DIGIT_RE = re.compile(r"\d")


@dataclass(frozen=True)
class MathToken:
    placeholder: str
    latex: str


def make_placeholder(index: int) -> str:
    return f"{PLACEHOLDER_PREFIX}{index}{PLACEHOLDER_SUFFIX}"


def looks_like_currency(value: str) -> bool:
    return _CURRENCY_RE.match(value) is not None


def looks_like_inline_math(content: str, delimiter: Delimiter) -> bool:
    """Decide whether a delimited span is math or coincidental prose.

    `\\(...\\)` is unambiguous. `$...$` is accepted on LaTeX commands,
    operators, brackets or braces; rejected for prices, environments,
    bare numbers and multi-word prose.
    """
    if delimiter.open == "\\(":
        return True

    content = content.strip()
    if not content or len(content) > MAX_INLINE_MATH_CHARS:
        return False
    if looks_like_currency(content):
        return False
    if "\\begin{" in content or "\\end{" in content:
        return False

    if "\\" in content or _OPERATOR_RE.search(content):
        return True
    if any(ch in content for ch in "()[]{}"):
        return True

    has_letters = _LETTER_RE.search(content) is not None
    has_digits = _DIGIT_RE.search(content) is not None
    words = content.split()

    if has_digits and not has_letters:
        return False
    if has_digits:
        # "$5 and solve $": prose that happens to start at a price.
        return len(words) == 1 or not any(looks_like_currency(w) for w in words)

    if len(words) > MAX_PROSE_WORDS:
        return False
    return len(words) == 1 and has_letters


def extract_inline_math(text: str, start_index: int = 0) -> tuple[str, list[MathToken]]:
    """Replace inline math spans with placeholders.

    Returns (rewritten, tokens). Placeholders are numbered from start_index
    so several chunks of one message can share a numbering.
    """
    if not text:
        return "", []

    out: list[str] = []
    tokens: list[MathToken] = []
    counter = start_index
    cursor = 0

    while True:
        m = find_next_open(text, cursor, INLINE_MATH_DELIMITERS)
        if m is None:
            break
        out.append(text[cursor:m.span.start])
        close = find_next_close(text, m.span.end, m.delimiter)

        if close is None:
            logger.debug("unterminated inline math %r at offset %d", m.delimiter.open, m.span.start)
            out.append(text[m.span.start:])
            cursor = len(text)
            break

        raw = text[m.span.end:close.start]
        if "\n" in raw:
            out.append(text[m.span.start:close.end])
            cursor = close.end
            continue

        latex = raw.strip()
        if not latex or not looks_like_inline_math(latex, m.delimiter):
            if m.delimiter.open == "$":
                # The rejected closer may open the next real span.
                out.append(text[m.span.start:m.span.end])
                cursor = m.span.end
            else:
                out.append(text[m.span.start:close.end])
                cursor = close.end
            continue

        placeholder = make_placeholder(counter)
        counter += 1
        out.append(placeholder)
        tokens.append(MathToken(placeholder=placeholder, latex=latex))
        cursor = close.end

    out.append(text[cursor:])
    return "".join(out), tokens


def restore_inline_math(
    text: str, tokens: list[MathToken] | tuple[MathToken, ...], template: str = "${latex}$"
) -> str:
    """Substitute placeholders back with their LaTeX using template."""
    by_placeholder = {token.placeholder: token.latex for token in tokens}

    def _replace(m: re.Match) -> str:
        latex = by_placeholder.get(m.group(0))
        if latex is None:
            return m.group(0)
        return template.replace("{latex}", latex)

    return PLACEHOLDER_RE.sub(_replace, text)
