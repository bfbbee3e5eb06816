"""
Unit tests for cloze and formula template parsing.

Run: pytest tests/unit/test_cloze.py -v
"""

from mnemonic.cloze import (
    ClozeDeletion,
    count_cloze_deletions,
    generate_cloze_cards,
    generate_formula_cards,
    has_cloze,
    has_formula,
    parse_cloze,
    parse_formula,
    render_cloze_back,
    render_cloze_front,
)


class TestParseCloze:
    """Test parse_cloze."""

    def test_basic(self):
        result = parse_cloze("The {{c1::capital}} of France")

        assert result.deletions == [ClozeDeletion(index=1, text="capital")]
        assert result.max_index == 1

    def test_hint(self):
        result = parse_cloze("{{c1::Paris::city}} is beautiful")

        assert result.deletions == [ClozeDeletion(index=1, text="Paris", hint="city")]

    def test_multiple(self):
        result = parse_cloze("{{c1::Paris}} is in {{c2::France}}")

        assert [d.text for d in result.deletions] == ["Paris", "France"]
        assert result.max_index == 2

    def test_non_sequential_indices(self):
        result = parse_cloze("{{c1::a}} {{c5::b}} {{c3::c}}")

        assert len(result.deletions) == 3
        assert result.max_index == 5

    def test_no_cloze(self):
        for text in ("", "plain text"):
            result = parse_cloze(text)
            assert result.deletions == []
            assert result.max_index == 0


class TestRenderCloze:
    """Test front/back rendering."""

    def test_front_hides_target(self):
        assert render_cloze_front("The {{c1::capital}} of France", 1) == "The [...] of France"

    def test_front_shows_hint(self):
        assert render_cloze_front("{{c1::Paris::city}} is beautiful", 1) == "[city] is beautiful"

    def test_front_reveals_others(self):
        assert render_cloze_front("{{c1::Paris}} is in {{c2::France}}", 1) == "[...] is in France"

    def test_front_per_index(self):
        template = "{{c1::A}} and {{c2::B}} and {{c3::C}}"

        assert render_cloze_front(template, 1) == "[...] and B and C"
        assert render_cloze_front(template, 2) == "A and [...] and C"
        assert render_cloze_front(template, 3) == "A and B and [...]"

    def test_same_index_hidden_together(self):
        assert render_cloze_front("{{c1::x}} + {{c1::y}}", 1) == "[...] + [...]"

    def test_back_highlights_target(self):
        assert render_cloze_back("The {{c1::capital}} of France", 1) == "The **capital** of France"

    def test_back_reveals_others(self):
        assert render_cloze_back("{{c1::Paris}} is in {{c2::France}}", 1) == "**Paris** is in France"

    def test_back_drops_hint(self):
        assert render_cloze_back("{{c1::Paris::city}}", 1) == "**Paris**"


class TestClozeHelpers:
    """Test has_cloze, count_cloze_deletions and generate_cloze_cards."""

    def test_has_cloze(self):
        assert has_cloze("This has {{c1::cloze}}")
        assert not has_cloze("This has no cloze")
        assert not has_cloze("")

    def test_repeated_calls_independent(self):
        assert has_cloze("{{c1::test}}")
        assert not has_cloze("no cloze")
        assert has_cloze("{{c1::another}}")

    def test_count(self):
        assert count_cloze_deletions("{{c1::one}}") == 1
        assert count_cloze_deletions("{{c1::one}} {{c2::two}}") == 2
        assert count_cloze_deletions("{{c1::one}} {{c3::three}}") == 3
        assert count_cloze_deletions("no cloze here") == 0

    def test_generate(self):
        cards = generate_cloze_cards("{{c1::Paris}} is in {{c2::France}}")

        assert len(cards) == 2
        assert cards[0].front == "[...] is in France"
        assert cards[0].back == "**Paris** is in France"
        assert cards[0].cloze_index == 1
        assert cards[1].front == "Paris is in [...]"
        assert cards[1].back == "Paris is in **France**"
        assert cards[1].cloze_index == 2

    def test_generate_fills_index_gaps(self):
        cards = generate_cloze_cards("{{c1::a}} {{c3::c}}")

        assert [c.cloze_index for c in cards] == [1, 2, 3]
        assert cards[1].front == "a c"

    def test_generate_none(self):
        assert generate_cloze_cards("no clozes") == []

    def test_special_characters(self):
        cards = generate_cloze_cards("Formula: {{c1::E = mc^2}}")

        assert cards[0].back == "Formula: **E = mc^2**"


class TestFormula:
    """Test formula parsing and card generation."""

    def test_parse(self):
        pair = parse_formula("{{f::Determinant 2x2::ad - bc}}")

        assert pair.name == "Determinant 2x2"
        assert pair.formula == "ad - bc"

    def test_parse_trims(self):
        pair = parse_formula("{{f::  Area of circle ::  \\pi r^2  }}")

        assert pair.name == "Area of circle"
        assert pair.formula == "\\pi r^2"

    def test_parse_formula_with_braces(self):
        pair = parse_formula("{{f::Quadratic::\\frac{-b}{2a}}}")

        assert pair.formula.startswith("\\frac{-b")

    def test_parse_first_only(self):
        pair = parse_formula("{{f::One::1}} {{f::Two::2}}")

        assert pair.name == "One"

    def test_parse_none(self):
        assert parse_formula("no formula") is None

    def test_has_formula(self):
        assert has_formula("{{f::x::y}}")
        assert not has_formula("{{c1::x}}")

    def test_generate_wraps(self):
        forward, reverse = generate_formula_cards("{{f::Determinant::ad - bc}}")

        assert (forward.front, forward.back, forward.is_reverse) == ("Determinant", "$ad - bc$", False)
        assert (reverse.front, reverse.back, reverse.is_reverse) == ("$ad - bc$", "Determinant", True)

    def test_generate_keeps_existing_dollars(self):
        forward, _ = generate_formula_cards("{{f::Euler::$e^{i\\pi} + 1 = 0$}}")

        assert forward.back == "$e^{i\\pi} + 1 = 0$"

    def test_generate_none(self):
        assert generate_formula_cards("nothing here") == []
