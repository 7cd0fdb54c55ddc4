"""Tests for chatfmt.core.normalizer — markdown surface repairs."""

import pytest

from chatfmt.core.normalizer import (
    HARD_BREAK,
    normalize_markdown,
    preserve_single_newlines,
    repair_headings,
    repair_list_markers,
    separate_list_blocks,
)


# ─── Newlines and break tags ─────────────────────────────────────────────────


class TestNewlines:
    def test_empty(self):
        assert normalize_markdown("") == ""

    def test_crlf_unified(self):
        assert normalize_markdown("a\r\nb") == "a" + HARD_BREAK + "b"

    def test_literal_backslash_n(self):
        assert normalize_markdown("First\\nSecond") == "First" + HARD_BREAK + "Second"

    def test_latex_command_starting_with_n_survives(self):
        text = "Gradient $\\nabla f$ points uphill"
        assert normalize_markdown(text) == text

    @pytest.mark.parametrize(
        "text",
        [
            "$$\\begin{aligned} a &= b \\nonumber \\\\ c &= d \\notag \\end{aligned}$$",
            "So $p \\nRightarrow q$ and $A \\nsubset B$.",
            "Order $a \\ntriangleleft b$ and $x \\nleqslant y$",
        ],
    )
    def test_literal_n_inside_math_untouched(self, text):
        assert normalize_markdown(text) == text

    @pytest.mark.parametrize("command", ["nonumber", "notag", "nRightarrow", "newpage", "nVdash"])
    def test_n_commands_outside_math_survive(self, command):
        text = f"Then \\{command} here"
        assert normalize_markdown(text) == text

    def test_literal_n_after_math_still_breaks(self):
        assert normalize_markdown("Use $\\nabla f$\\nThen step") == (
            "Use $\\nabla f$" + HARD_BREAK + "Then step"
        )

    def test_literal_n_between_prices_breaks(self):
        assert normalize_markdown("Costs $10\\nand $20 more") == (
            "Costs $10" + HARD_BREAK + "and $20 more"
        )

    def test_br_variants(self):
        result = normalize_markdown("one<br>two<br/>three<BR />four")
        assert result == HARD_BREAK.join(["one", "two", "three", "four"])

    def test_single_leading_newline_trimmed(self):
        assert normalize_markdown("\nHello") == "Hello"


# ─── Headings ────────────────────────────────────────────────────────────────


class TestHeadings:
    def test_missing_space(self):
        assert "### Step 2" in normalize_markdown("###Step 2")

    def test_midline_marker_pushed_to_new_line(self):
        assert "\n### Step 2" in normalize_markdown("Intro ###Step 2")

    def test_midline_marker_with_space(self):
        assert repair_headings("Done. ## Next part") == "Done.\n## Next part"

    @pytest.mark.parametrize("text", ["C# and F# are languages.", "Item #1 is best"])
    def test_hash_in_prose_untouched(self, text):
        assert normalize_markdown(text) == text

    def test_table_hash_column_untouched(self):
        text = "| # | Name | Score |\n|---|---|---|\n| 1 | Ann | 9 |"
        assert normalize_markdown(text) == text


# ─── List markers ────────────────────────────────────────────────────────────


class TestListMarkers:
    def test_missing_space_after_markers(self):
        assert repair_list_markers("-item\n1.First") == "- item\n1. First"

    @pytest.mark.parametrize("text", ["-5 degrees", "---", "->x", "3.14 is pi"])
    def test_non_markers_untouched(self, text):
        assert repair_list_markers(text) == text

    def test_label_then_list(self):
        assert normalize_markdown("Options: - Apple - Banana") == (
            "Options:\n\n- Apple\n- Banana"
        )

    def test_jammed_bold_items(self):
        result = normalize_markdown("Here are examples: - **Flower** - A beautiful flower")
        assert "\n- **Flower**" in result
        assert "\n- A beautiful flower" in result

    def test_jammed_numbers(self):
        assert normalize_markdown("Steps: 1. First 2. Second") == (
            "Steps:\n\n1. First\n2. Second"
        )

    def test_dash_in_prose_untouched(self):
        text = "The cost - $50 - was high."
        assert normalize_markdown(text) == text

    def test_dash_inside_math_untouched(self):
        text = "Solve $a - B$ now"
        assert normalize_markdown(text) == text


# ─── Block spacing and hard breaks ───────────────────────────────────────────


class TestBlockSpacing:
    def test_blank_line_around_list(self):
        assert normalize_markdown("Intro\n- a\n- b\nAfter") == "Intro\n\n- a\n- b\n\nAfter"

    def test_separate_list_blocks_keeps_fenced_lines(self):
        text = "```\ntext\n- not a list\n```"
        assert separate_list_blocks(text) == text

    def test_hard_break_between_prose_lines(self):
        assert normalize_markdown("line one\nline two") == "line one" + HARD_BREAK + "line two"

    def test_paragraph_break_untouched(self):
        assert preserve_single_newlines("a\n\nb") == "a\n\nb"

    def test_display_math_lines_not_broken(self):
        text = "Start\n$$\na+b\n$$\nEnd"
        assert normalize_markdown(text) == text

    def test_one_line_display_math_in_prose_still_breaks(self):
        assert normalize_markdown("So $$x=1$$ holds\nNext line") == (
            "So $$x=1$$ holds" + HARD_BREAK + "Next line"
        )

    def test_newline_inside_display_span_kept_soft(self):
        text = "Energy $$E =\nmc^2$$ holds"
        assert normalize_markdown(text) == text


# ─── Code fences ─────────────────────────────────────────────────────────────


class TestCodeFences:
    def test_fence_content_verbatim(self):
        text = "Intro:\n```python\nx = 1 - 2\n#comment\n```\nDone"
        assert normalize_markdown(text) == text


# ─── Idempotence ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text",
    [
        "###Step 2",
        "Here are examples: - **Flower** - A beautiful flower",
        "line one\nline two",
        "Options: - Apple - Banana",
        "Intro\n- a\n- b\nAfter",
    ],
)
def test_normalize_is_stable_on_its_output(text):
    once = normalize_markdown(text)
    assert normalize_markdown(once) == once
