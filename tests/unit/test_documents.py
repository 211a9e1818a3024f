import pytest
from mathsophos.pipeline.documents import convert_to_markdown


def test_array_becomes_html_table_with_math_cells():
    src = r"\begin{array}{|c|c|}\hline x & 1 \\ \hline y & 2 \\ \hline\end{array}"
    out = convert_to_markdown(src)
    assert '<table class="latex-table">' in out
    assert out.count("<tr>") == 2
    assert out.count("<td>") == 4
    assert "<td>$x$</td><td>$1$</td>" in out
    assert "<td>$y$</td><td>$2$</td>" in out


def test_double_backslash_row_separator_from_json_is_accepted():
    src = "\\begin{array}{cc} x & 1 \\\\\\\\ y & 2 \\end{array}"
    out = convert_to_markdown(src)
    assert out.count("<tr>") == 2
    assert "<td>$y$</td><td>$2$</td>" in out


def test_display_wrapper_around_table_is_dropped():
    src = "$$\\begin{array}{cc} a & b \\\\ c & d \\end{array}$$"
    out = convert_to_markdown(src)
    assert "$$" not in out
    assert "<td>$a$</td><td>$b$</td>" in out


def test_tabular_cells_are_escaped_text():
    src = r"\begin{tabular}{|l|r|} Nom & A<B \\ \textbf{Total} & $x$ \end{tabular}"
    out = convert_to_markdown(src)
    assert "<td>Nom</td><td>A&lt;B</td>" in out
    assert "<td><strong>Total</strong></td><td>$x$</td>" in out


def test_ragged_rows_are_padded():
    out = convert_to_markdown("\\begin{array}{c} a & b \\\\ c")
    assert "<td>$c$</td><td></td>" in out


def test_tabular_inside_math_becomes_array():
    src = "$$ \\begin{tabular}{cc} a & b \\end{tabular} + x $$"
    out = convert_to_markdown(src)
    assert "\\begin{array}" in out
    assert "<table" not in out


@pytest.mark.parametrize(
    "src",
    [
        r"\begin{tabular}{cc} a & b \end{tabular}",
        r"\begin{tabular}{c} a",
        "$$ \\begin{tabular}{c} a \\end{tabular} + 1 $$",
        "```\n\\begin{tabular}{c}\n```",
    ],
)
def test_no_tabular_survives(src):
    assert "\\begin{tabular}" not in convert_to_markdown(src)


def test_includegraphics_linewidth():
    out = convert_to_markdown(r"\includegraphics[width=0.5\linewidth]{foo.png}")
    assert '<img src="/uploads/foo.png"' in out
    assert 'alt="foo"' in out
    assert "width: 50%" in out
    assert "\\includegraphics" not in out


def test_includegraphics_defaults_and_units():
    assert "width: 100%" in convert_to_markdown(r"\includegraphics{a.png}")
    assert "width: 151px" in convert_to_markdown(r"\includegraphics[width=4cm]{a.png}")


def test_image_base_url_and_absolute_paths():
    out = convert_to_markdown(r"\includegraphics{./img/a.png}", image_base_url="https://cdn.test/")
    assert 'src="https://cdn.test/img/a.png"' in out
    out = convert_to_markdown(r"\includegraphics{https://x.org/a.png}")
    assert 'src="https://x.org/a.png"' in out


def test_itemize_and_enumerate():
    out = convert_to_markdown("\\begin{itemize}\n\\item Un\n\\item Deux $x$\n\\end{itemize}")
    assert "- Un\n- Deux $x$" in out
    out = convert_to_markdown("\\begin{enumerate}\n\\item A\n\\item B\n\\end{enumerate}")
    assert "1. A\n2. B" in out


def test_document_commands():
    out = convert_to_markdown("\\section{Limites} \\textbf{gras} et \\textit{it} \\underline{u}")
    assert "## Limites" in out
    assert "**gras**" in out
    assert "*it*" in out
    assert "<u>u</u>" in out


def test_commands_inside_math_are_kept():
    assert convert_to_markdown("$\\textbf{x}$") == "$\\textbf{x}$"


def test_line_break_outside_math():
    assert convert_to_markdown("a \\\\ b") == "a <br/>b"
    assert convert_to_markdown("$a \\\\ b$") == "$a \\\\ b$"


def test_equation_environment():
    assert convert_to_markdown("\\begin{equation} E=mc^2 \\end{equation}") == "$$E=mc^2$$"
