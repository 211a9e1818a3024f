from mathsophos.pipeline.models import SectionType
from mathsophos.pipeline.renderer import render_markdown, render_math, sanitize_html


def test_one_bad_span_does_not_break_the_others():
    result = render_markdown("Soit $x^2$ et $\\left( x + 1$ puis $$\\frac{a}{b}$$.")
    assert result.html.count('class="math-error"') == 1
    assert result.html.count("<math") == 2
    assert len(result.math_errors) == 1


def test_render_math_error_marker_escapes_source():
    errors = []
    out = render_math("\\begin{x} <b>", display=True, errors=errors)
    assert out.startswith('<span class="math-error"')
    assert "&lt;b&gt;" in out
    assert errors


def test_display_math_block():
    result = render_markdown("$$\n\\frac{a}{b}\n$$")
    assert '<div class="math-display">' in result.html
    assert 'display="block"' in result.html


def test_unclosed_environment_in_math_block():
    result = render_markdown("$$\n\\begin{x}\n$$")
    assert "math-error" in result.html
    assert result.block_errors == []


def test_typed_section_is_boxed():
    result = render_markdown("## 1. Définitions\n\nUne définition.")
    assert '<section class="lesson-box box-definition"' in result.html
    assert "\U0001F4DD" in result.html
    assert result.sections[0].type == SectionType.DEFINITION


def test_default_section_is_plain():
    result = render_markdown("## Erreurs courantes\n\nTexte.")
    assert "lesson-box" not in result.html
    assert "<h2>Erreurs courantes</h2>" in result.html


def test_raw_script_is_escaped():
    html = render_markdown("Texte <script>alert(1)</script> fin").html
    assert "<script" not in html
    assert "&lt;script&gt;" in html


def test_event_handlers_are_dropped():
    html = render_markdown('<div onclick="x()" class="a">Hi</div>').html
    assert "onclick" not in html
    assert '<div class="a">' in html


def test_javascript_urls_are_dropped():
    html = render_markdown('Voir <a href="javascript:alert(1)">x</a>.').html
    assert "javascript" not in html


def test_latex_table_html_renders_cell_math():
    md = '<table class="latex-table"><tbody><tr><td>$x$</td><td>$1$</td></tr></tbody></table>'
    html = render_markdown(md).html
    assert '<table class="latex-table">' in html
    assert html.count("<math") == 2


def test_pipe_table_with_math():
    html = render_markdown("| a | b |\n|---|---|\n| $x$ | 2 |").html
    assert "<table>" in html
    assert "<math" in html


def test_code_block_math_is_not_rendered():
    html = render_markdown("```\n$x$\n```").html
    assert "<math" not in html
    assert "$x$" in html


def test_sanitize_html_attributes():
    assert sanitize_html('<img src="javascript:x" alt="a" onerror="y">') == '<img alt="a">'
    assert sanitize_html("<!-- note --><p>ok</p>") == "<p>ok</p>"
