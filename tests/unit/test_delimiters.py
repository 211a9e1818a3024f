import pytest
from mathsophos.pipeline.delimiters import normalize_delimiters, scan_delimiters, split_math


def test_paren_and_bracket_delimiters_become_dollars():
    src = "La somme \\( a+b \\) vaut \\[ c \\]"
    assert normalize_delimiters(src) == "La somme $ a+b $ vaut $$ c $$"


def test_canonical_spans_are_kept():
    src = "Soit $x$ et $$\\frac{1}{2}$$."
    assert normalize_delimiters(src) == src


def test_boundary_whitespace_is_tidied():
    assert normalize_delimiters("$   x   $") == "$ x $"
    assert normalize_delimiters("\\[\t\t y \\]") == "$$ y $$"


@pytest.mark.parametrize(
    "src",
    [
        "La somme \\( a+b \\) vaut \\[ c \\]",
        "Prix: $5 et $10",
        "Cela coûte $5 $10 au total",
        "\\(5 \\)",
        "$a$$b$",
        "$\\text{a $b$ c}$ suite",
        "unclosed \\( x",
        "`code $x$` puis \\(y\\)",
        "```\n\\(x\\)\n```\n\\(y\\)",
        "\\[ a \\\\ b \\]",
        "$$ x\n\nsuite $$",
        "",
    ],
)
def test_normalize_is_idempotent(src):
    once = normalize_delimiters(src)
    assert normalize_delimiters(once) == once


def test_currency_is_left_alone():
    assert normalize_delimiters("Cela coûte $5 $10 au total") == "Cela coûte $5 $10 au total"
    assert normalize_delimiters("entre $5 et $10") == "entre $5 et $10"


def test_digit_math_is_still_math():
    assert split_math("$5$") == [(True, "$5$")]
    assert split_math("$2+3=5$") == [(True, "$2+3=5$")]


def test_fenced_code_is_untouched():
    src = "```\n\\(x\\)\n```\n\\(y\\)"
    assert normalize_delimiters(src) == "```\n\\(x\\)\n```\n$y$"


def test_inline_code_is_untouched():
    assert normalize_delimiters("`\\(x\\)` et \\(y\\)") == "`\\(x\\)` et $y$"


def test_closer_inside_text_group_does_not_end_span():
    src = "\\( \\text{a \\) b} \\)"
    assert normalize_delimiters(src) == "$ \\text{a \\) b} $"


def test_inline_span_does_not_cross_blank_line():
    src = "\\( a\n\nb \\)"
    scan = scan_delimiters(src)
    assert scan.text == src
    assert scan.unmatched[0].token == "\\("


def test_unmatched_opener_is_reported_not_fatal():
    scan = scan_delimiters("a \\( b")
    assert scan.text == "a \\( b"
    assert len(scan.unmatched) == 1
    assert scan.unmatched[0].position == 2


def test_paren_span_with_bare_dollar_is_not_converted():
    scan = scan_delimiters("\\( a $ b \\)")
    assert scan.text == "\\( a $ b \\)"
    assert scan.unmatched


def test_split_math_round_trips_source():
    src = "a $x$ b \\(y\\) c"
    parts = split_math(src)
    assert parts[:3] == [(False, "a "), (True, "$x$"), (False, " b ")]
    assert "".join(p for _, p in parts) == src
