
import pytest
from mathsophos.pipeline.text_utils import (
    _brace_balance,
    _find_group_end,
    _fold_accents,
    _normalize_text,
    _replace_command,
    _replace_literal_newlines,
    _split_fenced,
)

def test_normalize_text_basic():
    # Test basic whitespace and unicode normalization
    text = "Hello   World\u00A0"  # \u00A0 is NBSP
    assert _normalize_text(text) == "Hello World"

def test_smart_quotes():
    text_smart_quotes = "\u201cHello\u201d"
    assert _normalize_text(text_smart_quotes) == '"Hello"'

def test_ligature_replacement():
    # fi ligature
    text = "ﬁeld"
    assert _normalize_text(text) == "field"

def test_fold_accents():
    assert _fold_accents("Théorèmes et Propriétés") == "theoremes et proprietes"
    assert _fold_accents("") == ""

def test_split_fenced_keeps_every_character():
    text = "a\n```\ncode\n```\nb"
    parts = _split_fenced(text)
    assert parts == [(False, "a\n"), (True, "```\ncode\n```\n"), (False, "b")]

def test_split_fenced_unclosed_fence_runs_to_end():
    parts = _split_fenced("a\n~~~\ncode")
    assert parts[-1] == (True, "~~~\ncode")

def test_find_group_end_nested():
    text = r"\frac{a_{1}}{b}"
    assert _find_group_end(text, 5) == 11
    assert _find_group_end("{a", 0) == -1

def test_brace_balance_ignores_escaped_braces():
    assert _brace_balance(r"\{ a \} {b") == 1
    assert _brace_balance(r"\sqrt{x}") == 0

def test_replace_command_nested_argument():
    out = _replace_command(r"\textbf{a \emph{b}} c", "textbf", lambda a: f"**{a}**")
    assert out == r"**a \emph{b}** c"

def test_replace_command_keeps_unbalanced():
    assert _replace_command(r"\textbf{a", "textbf", lambda a: a) == r"\textbf{a"

def test_literal_newlines():
    assert _replace_literal_newlines("a\\nb") == "a\nb"
    assert _replace_literal_newlines("$a \\neq b \\ne c$") == "$a \\neq b \\ne c$"
    # escaped backslash followed by n
    assert _replace_literal_newlines("a\\\\nb") == "a\\\\nb"
