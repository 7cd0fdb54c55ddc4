"""Rich rendering for FormattedMessage structures.

Converts the Segment sequence from chatfmt.core into Rich renderables.
Dispatch is by SegmentKind through SEGMENT_RENDERERS; each renderer gets
the segment and the message it belongs to (for math tokens).

Pygments Syntax() is for message content (code fences, display math).
Structural chrome (panels, rules, reasoning) uses plain Rich styles.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from rich.console import ConsoleRenderable, Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from chatfmt.core.inline_math import MathToken, restore_inline_math
from chatfmt.core.latex import sanitize_latex, uses_display_layout
from chatfmt.core.message import FormattedMessage
from chatfmt.core.segmentation import Segment, SegmentKind
from chatfmt.io.perf_logging import monitor_slow_path

logger = logging.getLogger(__name__)

_BACKTICK_RUN_RE = re.compile(r"`+")


@dataclass(frozen=True)
class RenderOptions:
    code_theme: str = "monokai"
    show_reasoning: bool = False


# ─── Inline math ─────────────────────────────────────────────────────────────


def markdown_with_inline_math(text: str, tokens: tuple[MathToken, ...]) -> str:
    """Replace placeholders with sanitized LaTeX shown as inline code.

    No placeholder survives: terminals have no glyph renderer, so the
    LaTeX source is the readable fallback.
    """
    spans = tuple(MathToken(t.placeholder, code_span(sanitize_latex(t.latex))) for t in tokens)
    return restore_inline_math(text, spans, template="{latex}")


def code_span(latex: str) -> str:
    """Markdown inline code whose fence is longer than any backtick run in latex."""
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(latex)), default=0)
    fence = "`" * (longest + 1)
    if latex.startswith("`") or latex.endswith("`"):
        latex = f" {latex} "
    return f"{fence}{latex}{fence}"


# ─── Tables ──────────────────────────────────────────────────────────────────


def split_table_row(line: str) -> list[str]:
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|"):
        row = row[:-1]
    return [cell.strip() for cell in row.split("|")]


def _justify(divider_cell: str) -> str:
    cell = divider_cell.strip()
    if cell.startswith(":") and cell.endswith(":"):
        return "center"
    if cell.endswith(":"):
        return "right"
    return "left"


def build_table(raw: str) -> Table:
    """Build a Rich Table from header, divider and row lines."""
    lines = raw.split("\n")
    header = split_table_row(lines[0])
    divider = split_table_row(lines[1]) if len(lines) > 1 else []
    table = Table(show_lines=False)
    for index, name in enumerate(header):
        justify = _justify(divider[index]) if index < len(divider) else "left"
        table.add_column(Markdown(name), justify=justify)
    for line in lines[2:]:
        cells = split_table_row(line)
        cells = (cells + [""] * len(header))[: len(header)]
        table.add_row(*(Markdown(cell) for cell in cells))
    return table


# ─── Segment renderers ───────────────────────────────────────────────────────


def _render_markdown(seg: Segment, message: FormattedMessage, opts: RenderOptions):
    if not seg.text.strip():
        return None
    return Markdown(
        markdown_with_inline_math(seg.text, message.math_tokens),
        code_theme=opts.code_theme,
    )


def _render_math(seg: Segment, message: FormattedMessage, opts: RenderOptions):
    latex = sanitize_latex(seg.text)
    title = "math (multi-line)" if uses_display_layout(latex) else "math"
    return Panel(
        Syntax(latex, "latex", theme=opts.code_theme, word_wrap=True),
        title=title,
        title_align="left",
        border_style="dim",
        expand=False,
    )


def _render_code(seg: Segment, message: FormattedMessage, opts: RenderOptions):
    return Syntax(seg.text, seg.language or "text", theme=opts.code_theme)


def _render_rule(seg: Segment, message: FormattedMessage, opts: RenderOptions):
    return Rule(style="dim")


def _render_table(seg: Segment, message: FormattedMessage, opts: RenderOptions):
    return build_table(seg.text)


SEGMENT_RENDERERS: dict[
    SegmentKind, Callable[[Segment, FormattedMessage, RenderOptions], ConsoleRenderable | None]
] = {
    SegmentKind.MARKDOWN: _render_markdown,
    SegmentKind.MATH: _render_math,
    SegmentKind.CODE: _render_code,
    SegmentKind.RULE: _render_rule,
    SegmentKind.TABLE: _render_table,
}


def render_reasoning(reasoning: str) -> ConsoleRenderable:
    return Panel(
        Text(reasoning, style="dim italic"),
        title="reasoning",
        title_align="left",
        border_style="dim",
    )


def render_message(
    message: FormattedMessage,
    *,
    code_theme: str = "monokai",
    show_reasoning: bool = False,
) -> ConsoleRenderable:
    """Render a formatted message as one Rich renderable."""
    opts = RenderOptions(code_theme=code_theme, show_reasoning=show_reasoning)
    with monitor_slow_path(
        "render.message",
        logger=logger,
        context=lambda: {"segments": len(message.segments)},
    ):
        parts: list[ConsoleRenderable] = []
        if opts.show_reasoning and message.reasoning:
            parts.append(render_reasoning(message.reasoning))
        for seg in message.segments:
            renderable = SEGMENT_RENDERERS[seg.kind](seg, message, opts)
            if renderable is not None:
                parts.append(renderable)

    if not parts:
        return Text("")
    if len(parts) == 1:
        return parts[0]
    return Group(*parts)
