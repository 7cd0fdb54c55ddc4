"""LaTeX cleanup for renderers that cannot typeset every command.

Terminal output shows LaTeX as text, so wrappers like \\boxed{...} and
\\text{...} are unwrapped to their content and style-only commands are
dropped.
"""

from __future__ import annotations

from chatfmt.core.delimiters import is_escaped

# Commands whose braced argument is kept and the command itself dropped
UNWRAPPED_COMMANDS: tuple[str, ...] = ("boxed", "text", "mathrm")

_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("\\dfrac", "\\frac"),
    ("\\tfrac", "\\frac"),
    ("\\displaystyle", ""),
)

_DISPLAY_MARKERS: tuple[str, ...] = (
    "\\begin{cases}",
    "\\begin{cases*}",
    "\\begin{aligned}",
    "\\begin{matrix}",
)


def matching_closing_brace(source: str, open_index: int) -> int | None:
    """Index of the `}` balancing the `{` at open_index, or None.

    Escaped braces (`\\{`, `\\}`) do not count toward depth.
    """
    depth = 0
    for index in range(open_index, len(source)):
        ch = source[index]
        if ch == "{" and not is_escaped(source, index):
            depth += 1
        elif ch == "}" and not is_escaped(source, index):
            depth -= 1
            if depth == 0:
                return index
    return None


def unwrap_command(source: str, command: str) -> str:
    """Replace every `\\command{body}` with `body`.

    A command not followed by `{` is kept as written. An unbalanced brace
    leaves the rest of the source untouched.
    """
    needle = "\\" + command
    out: list[str] = []
    cursor = 0

    while True:
        found = source.find(needle, cursor)
        if found == -1:
            break
        out.append(source[cursor:found])
        after = found + len(needle)
        # \textbf is not \text
        if after < len(source) and source[after].isalpha():
            out.append(needle)
            cursor = after
            continue

        brace = after
        while brace < len(source) and source[brace].isspace():
            brace += 1
        if brace >= len(source) or source[brace] != "{":
            out.append(needle)
            cursor = after
            continue

        close = matching_closing_brace(source, brace)
        if close is None:
            out.append(source[found:])
            cursor = len(source)
            break
        out.append(source[brace + 1:close])
        cursor = close + 1

    out.append(source[cursor:])
    return "".join(out)


def sanitize_latex(latex: str) -> str:
    value = latex
    for old, new in _REPLACEMENTS:
        value = value.replace(old, new)
    for command in UNWRAPPED_COMMANDS:
        value = unwrap_command(value, command)
    return value


def uses_display_layout(latex: str) -> bool:
    """True for multi-row LaTeX that needs block layout even inline."""
    compact = latex.replace(" ", "")
    if any(marker in compact for marker in _DISPLAY_MARKERS):
        return True
    return "\\\\" in compact
