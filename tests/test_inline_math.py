"""Tests for chatfmt.core.inline_math — placeholder extraction and the $ classifier."""

import pytest

from chatfmt.core.delimiters import INLINE_MATH_DELIMITERS
from chatfmt.core.inline_math import (
    PLACEHOLDER_RE,
    MathToken,
    extract_inline_math,
    looks_like_currency,
    looks_like_inline_math,
    make_placeholder,
    restore_inline_math,
)

PAREN, DOLLAR = INLINE_MATH_DELIMITERS


def latex_of(tokens: list[MathToken]) -> list[str]:
    return [t.latex for t in tokens]


# ─── Dollar ambiguity ────────────────────────────────────────────────────────


class TestDollarHandling:
    def test_escaped_dollar_preserved(self):
        rewritten, tokens = extract_inline_math("Cost is \\$5 but math is $x+1$.")
        assert latex_of(tokens) == ["x+1"]
        assert "\\$5" in rewritten

    def test_currency_rejected(self):
        text = "This costs $5 and tax is $2.99."
        rewritten, tokens = extract_inline_math(text)
        assert tokens == []
        assert rewritten == text

    def test_math_after_currency(self):
        rewritten, tokens = extract_inline_math("Price is $5 and solve $x^2$ now.")
        assert latex_of(tokens) == ["x^2"]
        assert "$5" in rewritten

    def test_double_dollar_left_alone(self):
        rewritten, tokens = extract_inline_math("$$\\frac{1}{3}$$ and inline $x$")
        assert latex_of(tokens) == ["x"]
        assert rewritten.startswith("$$\\frac{1}{3}$$ and inline ")

    def test_environment_rejected(self):
        text = "$\\begin{pmatrix}1\\end{pmatrix}$"
        assert extract_inline_math(text) == (text, [])

    def test_prose_rejected(self):
        text = "I paid $not really math$ today"
        assert extract_inline_math(text) == (text, [])

    def test_unterminated(self):
        assert extract_inline_math("cost $x") == ("cost $x", [])

    def test_span_with_newline_is_copied(self):
        rewritten, tokens = extract_inline_math("$a\nb$ then $y$")
        assert latex_of(tokens) == ["y"]
        assert rewritten.startswith("$a\nb$ then ")


# ─── Placeholders ────────────────────────────────────────────────────────────


class TestPlaceholders:
    def test_paren_delimiters(self):
        rewritten, tokens = extract_inline_math("see \\(a+b\\) ok")
        assert rewritten == "see " + make_placeholder(0) + " ok"
        assert tokens == [MathToken(make_placeholder(0), "a+b")]

    def test_start_index(self):
        rewritten, tokens = extract_inline_math("$x$", start_index=3)
        assert rewritten == "ZZZMATHPLACEHOLDER3ZZZ"
        assert tokens[0].placeholder == rewritten

    def test_token_count_matches_placeholders(self):
        text = "1. Area is $\\pi r^2$\n2. Perimeter is $2\\pi r$\n3. Ratio is $r/2$"
        rewritten, tokens = extract_inline_math(text)
        assert latex_of(tokens) == ["\\pi r^2", "2\\pi r", "r/2"]
        assert len(PLACEHOLDER_RE.findall(rewritten)) == len(tokens)

    def test_restore_reproduces_input(self):
        text = "Let $x$ and \\(y^2\\) be given"
        rewritten, tokens = extract_inline_math(text)
        assert restore_inline_math(rewritten, tokens) == "Let $x$ and $y^2$ be given"

    def test_restore_custom_template(self):
        tokens = [MathToken(make_placeholder(0), "x")]
        assert restore_inline_math(make_placeholder(0) + "!", tokens, "`{latex}`") == "`x`!"

    def test_restore_unknown_placeholder_left(self):
        text = make_placeholder(7)
        assert restore_inline_math(text, []) == text


# ─── Classifier ──────────────────────────────────────────────────────────────


class TestClassifier:
    @pytest.mark.parametrize("value", ["5", "2.99", "1,000", "1,234.50"])
    def test_currency(self, value):
        assert looks_like_currency(value)

    @pytest.mark.parametrize("value", ["x", "5x", "1.234"])
    def test_not_currency(self, value):
        assert not looks_like_currency(value)

    @pytest.mark.parametrize("content", ["x", "x^2", "\\alpha", "f(x)", "2n", "a_i"])
    def test_accepts_math(self, content):
        assert looks_like_inline_math(content, DOLLAR)

    @pytest.mark.parametrize(
        "content", ["", "42", "two words", "a b c d", "5 and tax is", "x" * 121]
    )
    def test_rejects_non_math(self, content):
        assert not looks_like_inline_math(content, DOLLAR)

    def test_paren_always_accepted(self):
        assert looks_like_inline_math("some words here and more", PAREN)
