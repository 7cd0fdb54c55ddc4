"""Line classifiers shared by the normalizer and the block segmenter.

Each predicate takes one line (no trailing newline) and answers a single
structural question about it.

// [LAW:one-source-of-truth] Line-structure rules live here; callers never re-derive them.
"""

from __future__ import annotations

import re


# ─── Regex patterns ──────────────────────────────────────────────────────────

HEADING_RE = re.compile(r"^#{1,6}\s+")
LIST_ITEM_RE = re.compile(r"^([-*+]|\d+\.)\s+")
TABLE_DIVIDER_RE = re.compile(r"^\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)+\|?$")


# ─── Predicates ──────────────────────────────────────────────────────────────


def is_list_line(line: str) -> bool:
    """A bullet (`-`, `*`, `+`) or numbered item at any indent."""
    return LIST_ITEM_RE.match(line.strip()) is not None


def is_heading_line(line: str) -> bool:
    return HEADING_RE.match(line.strip()) is not None


def is_horizontal_rule(line: str) -> bool:
    """Three or more of the same `-`, `*` or `_` and nothing else."""
    trimmed = line.strip()
    if len(trimmed) < 3:
        return False
    return any(trimmed == ch * len(trimmed) for ch in "-*_")


def is_table_header(line: str) -> bool:
    if "|" not in line:
        return False
    fields = [field for field in line.split("|") if field]
    return len(fields) >= 3


def is_table_divider(line: str) -> bool:
    return TABLE_DIVIDER_RE.match(line.strip()) is not None


def is_fence_marker(line: str) -> bool:
    return line.strip().startswith("```")


def is_blank(line: str) -> bool:
    return not line.strip()


def is_block_boundary(current: str, following: str) -> bool:
    """True when a newline between two lines already separates blocks.

    A single newline that is not a block boundary gets turned into a hard
    break by the normalizer.
    """
    cur = current.strip()
    nxt = following.strip()

    if is_fence_marker(cur) or is_fence_marker(nxt):
        return True
    if cur.startswith(">") or nxt.startswith(">"):
        return True
    if is_heading_line(nxt) or is_list_line(nxt) or is_horizontal_rule(nxt):
        return True
    if "|" in cur or "|" in nxt:
        return True
    for opener in ("$$", "\\[", "\\begin{"):
        if cur.startswith(opener) or nxt.startswith(opener):
            return True
    return False
