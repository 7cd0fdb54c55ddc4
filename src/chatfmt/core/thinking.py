"""Split `<think>...</think>` reasoning out of assistant output."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


@dataclass(frozen=True)
class ThinkingSplit:
    visible: str
    reasoning: str
    unclosed_at: int | None = None  # raw offset of a <think> that never closed


def split_thinking(text: str) -> ThinkingSplit:
    """Separate reasoning spans from the visible answer.

    No nesting: the first `</think>` after a `<think>` closes it. An
    unterminated `<think>` swallows the rest of the text as reasoning.
    """
    visible_parts: list[str] = []
    reasoning_parts: list[str] = []
    unclosed_at: int | None = None
    pos = 0

    while True:
        open_pos = text.find(THINK_OPEN, pos)
        if open_pos == -1:
            break
        visible_parts.append(text[pos:open_pos])
        inner_start = open_pos + len(THINK_OPEN)
        close_pos = text.find(THINK_CLOSE, inner_start)

        if close_pos == -1:
            section = text[inner_start:].strip()
            if section:
                reasoning_parts.append(section)
            unclosed_at = open_pos
            pos = len(text)
            logger.debug("unclosed <think> at offset %d", open_pos)
            break

        section = text[inner_start:close_pos].strip()
        if section:
            reasoning_parts.append(section)
        pos = close_pos + len(THINK_CLOSE)

    visible_parts.append(text[pos:])
    visible = "".join(visible_parts).replace(THINK_OPEN, "").replace(THINK_CLOSE, "")
    return ThinkingSplit(
        visible=visible.strip(),
        reasoning="\n\n".join(reasoning_parts),
        unclosed_at=unclosed_at,
    )
