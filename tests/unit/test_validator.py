import pytest
from mathsophos.pipeline.validator import (
    ValidationPolicy,
    sanitize_content,
    validate_content,
    validate_latex_syntax,
)


@pytest.mark.parametrize("text", ["", "   \n ", "(AI reply placeholder)", "TODO", "Lorem ipsum dolor sit amet"])
def test_empty_and_placeholder_content_is_rejected(text):
    report = validate_content(text)
    assert report.should_reject
    assert not report.is_valid


def test_literal_newline_is_a_soft_defect():
    text = "Première ligne\\nDeuxième ligne avec $x^2$."
    report = validate_content(text)
    assert not report.is_valid
    assert not report.should_reject

    result = sanitize_content(text)
    assert result.was_modified
    assert result.sanitized == "Première ligne\nDeuxième ligne avec $x^2$."


def test_sanitize_is_idempotent():
    once = sanitize_content("Première ligne\\nDeuxième ligne avec $x^2$.").sanitized
    again = sanitize_content(once)
    assert not again.was_modified
    assert again.sanitized == once


def test_latex_commands_starting_with_n_are_kept():
    text = "On a $a \\neq b$ et $\\nabla f$."
    assert sanitize_content(text).sanitized == text
    assert validate_content(text).is_valid


def test_clean_content_is_valid():
    report = validate_content("Soit $f(x) = x^2$. Alors $f'(x) = 2x$ pour tout réel $x$.")
    assert report.is_valid
    assert report.errors == []


@pytest.mark.parametrize(
    "text",
    [
        "Voir <script>alert(1)</script>",
        '<img src="a.png" onerror="alert(1)">',
        "\\input{/etc/passwd}",
        "\\immediate\\write18{rm -rf /}",
    ],
)
def test_injected_directives_are_rejected(text):
    assert validate_content(text).should_reject


def test_sanitize_does_not_hide_directives():
    assert "<script>" in sanitize_content("Voir <script>x</script>").sanitized


def test_garbage_is_rejected():
    assert validate_content("La fonction Sx1 est croissante.").should_reject


def test_wrong_identity_is_rejected():
    report = validate_content(r"On a $\ln(ab) = \ln(a + b)$ pour tout $a, b > 0$.")
    assert report.should_reject
    assert "mathematically incorrect" in report.errors[0]


def test_double_escaped_commands_are_repaired():
    result = sanitize_content(r"Calculer $\\frac{1}{2}$")
    assert result.sanitized == r"Calculer $\frac{1}{2}$"


def test_qeq1_artifact_is_repaired():
    assert sanitize_content("somme pour qeq1").sanitized == "somme pour q \\neq 1"


def test_missing_closing_brace_is_soft():
    text = r"Soit $\sqrt{x$ un réel."
    report = validate_content(text)
    assert not report.should_reject
    assert any("Unbalanced braces" in e for e in report.errors)
    assert sanitize_content(text).sanitized == r"Soit $\sqrt{x}$ un réel."


def test_latex_error_threshold_comes_from_policy():
    text = " ".join([r"$\frac{1}$"] * 6)
    assert len(validate_latex_syntax(text)) == 6
    assert validate_content(text).should_reject
    assert not validate_content(text, ValidationPolicy(max_latex_errors=10)).should_reject


def test_malformed_limit():
    assert validate_latex_syntax(r"$\lim_{x} f$")
    assert validate_latex_syntax(r"$\lim_{x \to 0} f$") == []
    assert validate_latex_syntax(r"$\lim_{x \rightarrow 0} f$") == []


def test_repeated_sentences_are_reported_not_rejected():
    text = "Ceci est une phrase assez longue. Ceci est une phrase assez longue."
    report = validate_content(text)
    assert not report.is_valid
    assert not report.should_reject


def test_fenced_code_is_not_sanitized():
    text = "```\nprint('a\\nb')\n```"
    assert not sanitize_content(text).was_modified


def test_report_serializes_with_camel_case_keys():
    dumped = validate_content("").model_dump(by_alias=True)
    assert dumped == {"isValid": False, "shouldReject": True, "errors": ["Content is empty"]}


def test_qeq1_inside_fenced_code_is_kept():
    text = "```\nqeq1 = 3\n```\nsomme pour qeq1"
    assert sanitize_content(text).sanitized == "```\nqeq1 = 3\n```\nsomme pour q \\neq 1"
