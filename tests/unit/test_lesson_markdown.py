from mathsophos.pipeline.lesson_markdown import (
    convert_exercise_json_to_markdown,
    convert_lesson_json_to_markdown,
    normalize_newlines,
    strip_chapter_header,
)

LESSON = {
    "lesson": {
        "introduction": "Intro\\nSuite",
        "definitions": [{"term": "Suite", "definition": "Une suite $u_n$", "example": "$u_n = n$"}],
        "formulas": [{"formula": "$$a^2$$", "explanation": "Carré"}],
        "exercises": [{"question": "Calculer", "hints": ["Indice"], "solution": "42"}],
        "summary": "Fin",
    }
}

EXERCISE = {"problemText": "Soit f", "hints": ["h1", "h2"], "solution": "S", "answer": "A", "explanation": "E"}


def test_normalize_newlines():
    assert normalize_newlines("a\\nb\\n\\n\\n\\nc") == "a\nb\n\nc"
    assert normalize_newlines("$a \\neq b$") == "$a \\neq b$"
    assert normalize_newlines(None) == ""


def test_lesson_sections_are_numbered():
    md = convert_lesson_json_to_markdown(LESSON)
    assert md.startswith("## 1. Introduction\n\nIntro\nSuite\n\n")
    assert "## 2. Définitions" in md
    assert "**Suite**\n\nUne suite $u_n$" in md
    assert "*Exemple :* $u_n = n$" in md
    assert "## 3. Formules Importantes\n\n$$a^2$$\n\nCarré" in md
    assert "## 4. Exercices d'Application" in md
    assert "## 5. Résumé\n\nFin" in md


def test_lesson_exercise_hints_and_solution_are_collapsed():
    md = convert_lesson_json_to_markdown(LESSON)
    assert "<details>\n<summary>Indices</summary>\n\n- Indice\n\n</details>" in md
    assert "<summary>Solution</summary>\n\n42" in md


def test_lesson_header_is_prepended():
    md = convert_lesson_json_to_markdown({"summary": "Fin"}, header="# Chapitre 1\n\n")
    assert md.startswith("# Chapitre 1\n\n## 1. Résumé")


def test_legacy_content_layout():
    md = convert_lesson_json_to_markdown({"content": {"introduction": {"hook": "Accroche"}, "summary": {"key_points": ["p1"]}}})
    assert "## Introduction\n\nAccroche" in md
    assert "## Résumé\n\n- p1" in md


def test_exercise_web_layout():
    md = convert_exercise_json_to_markdown(EXERCISE)
    assert md.startswith("## Énoncé\n\nSoit f")
    assert "<summary>Indice 2</summary>\n\nh2" in md
    assert "<summary>Réponse</summary>" in md
    assert "<summary>Explication</summary>" in md


def test_exercise_pdf_layout():
    md = convert_exercise_json_to_markdown({"exercise": EXERCISE}, for_pdf=True)
    assert "### Indice 1\n\nh1" in md
    assert "## Solution\n\nS" in md
    assert "<details>" not in md


def test_answer_equal_to_solution_is_not_repeated():
    md = convert_exercise_json_to_markdown({"solution": "S", "answer": "S"})
    assert "Réponse" not in md


def test_strip_chapter_header():
    content = (
        "---MathSophos Platform | Prof:Mohamed Nagchi\n"
        "**Filière:** MIPC | **Module:** Analyse | **Leçon:** Analyse 1\n"
        "**Chapitre 1:** les suites\n"
        "---\n\n"
        "## 1. Introduction\n\nTexte"
    )
    assert strip_chapter_header(content) == "## 1. Introduction\n\nTexte"


def test_content_without_banner_is_kept():
    content = "---\n\n## Titre\n\nTexte"
    assert strip_chapter_header(content) == content
