"""Format one chat message: reasoning split, normalization, segmentation.

format_message() is the entry point renderers call on every content
change (including each streamed token), so it stays a pure function of
(content, role).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from chatfmt.core.delimiters import Span
from chatfmt.core.inline_math import MathToken
from chatfmt.core.normalizer import normalize_markdown
from chatfmt.core.segmentation import (
    ParseError,
    ParseErrorKind,
    Segment,
    SegmentKind,
    segment,
)
from chatfmt.core.thinking import split_thinking
from chatfmt.io.perf_logging import monitor_slow_path

logger = logging.getLogger(__name__)


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class FormattedMessage:
    role: Role
    normalized: str
    segments: tuple[Segment, ...]
    math_tokens: tuple[MathToken, ...]
    reasoning: str
    errors: tuple[ParseError, ...]


def format_message(content: str, role: Role = Role.ASSISTANT) -> FormattedMessage:
    """Turn raw message content into segments plus reasoning text.

    Only assistant messages have <think> spans split out. Never raises:
    anomalies are reported in FormattedMessage.errors.
    """
    with monitor_slow_path(
        "format.message",
        logger=logger,
        context=lambda: {"role": role.value, "chars": len(content)},
    ):
        errors: list[ParseError] = []
        visible = content
        reasoning = ""
        if role == Role.ASSISTANT:
            split = split_thinking(content)
            visible = split.visible
            reasoning = split.reasoning
            if split.unclosed_at is not None:
                errors.append(
                    ParseError(
                        ParseErrorKind.UNCLOSED_THINK,
                        Span(split.unclosed_at, len(content)),
                        "Unclosed <think> tag (offsets into raw content)",
                    )
                )

        normalized = normalize_markdown(visible)
        result = segment(normalized)
        errors.extend(result.errors)

    return FormattedMessage(
        role=role,
        normalized=normalized,
        segments=result.segments,
        math_tokens=result.math_tokens,
        reasoning=reasoning,
        errors=tuple(errors),
    )


def _span_dict(span: Span) -> dict:
    return {"start": span.start, "end": span.end}


def segment_to_dict(seg: Segment) -> dict:
    out: dict = {"kind": seg.kind.value, "span": _span_dict(seg.span), "text": seg.text}
    if seg.kind == SegmentKind.CODE:
        out["language"] = seg.language
    elif seg.kind == SegmentKind.MATH:
        out["display"] = seg.display
    return out


def message_to_dict(message: FormattedMessage) -> dict:
    """JSON-ready view of a formatted message."""
    return {
        "role": message.role.value,
        "normalized": message.normalized,
        "segments": [segment_to_dict(seg) for seg in message.segments],
        "math_tokens": [
            {"placeholder": t.placeholder, "latex": t.latex} for t in message.math_tokens
        ],
        "reasoning": message.reasoning,
        "errors": [
            {"kind": e.kind.value, "span": _span_dict(e.span), "details": e.details}
            for e in message.errors
        ],
    }
