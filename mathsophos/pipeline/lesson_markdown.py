"""
Generated lesson / exercise JSON -> Markdown.

The model returns structured JSON (introduction, definitions, theorems, ...).
These helpers lay it out as the Markdown stored for a lesson: numbered "##"
sections whose titles the renderer recognises, and <details> blocks for hints
and solutions.
"""
from __future__ import annotations

import re
from typing import Any

from .errors import PayloadShapeError
from .text_utils import _normalize_line_endings, _replace_literal_newlines

_BANNER_RE = re.compile(r"MathSophos Platform.*Prof\s*:", re.I)
_BANNER_META_RE = re.compile(r"^\**(?:Filière|Module|Leçon)\s*:\**", re.I)
_BANNER_CHAPTER_RE = re.compile(r"^\**Chapitre\s+\d+\s*:\**")


def normalize_newlines(text: str) -> str:
    """Literal "\\n" -> newline (LaTeX such as \\neq is kept), CRLF -> LF, 3+ newlines -> 2."""
    if not text:
        return ""
    text = _normalize_line_endings(_replace_literal_newlines(str(text)))
    return re.sub(r"\n{3,}", "\n\n", text)


def _strip_math_wrapper(formula: str) -> str:
    f = formula.strip()
    for opener, closer in (("$$", "$$"), ("\\[", "\\]"), ("$", "$")):
        if len(f) >= len(opener) + len(closer) and f.startswith(opener) and f.endswith(closer):
            return f[len(opener):len(f) - len(closer)].strip()
    return f


def _items(value: Any) -> list:
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def _record(item: Any, key: str, where: str) -> dict:
    """A list entry as a dict; a bare string stands for its main field."""
    if isinstance(item, dict):
        return item
    if isinstance(item, str):
        return {key: item}
    raise PayloadShapeError(f"Expected an object or a string in {where!r}, got {type(item).__name__}")


def _details(summary: str, body: str) -> str:
    return f"<details>\n<summary>{summary}</summary>\n\n{body}\n\n</details>\n\n"


def convert_lesson_json_to_markdown(data: dict, header: str = "") -> str:
    if not isinstance(data, dict):
        raise PayloadShapeError(f"Expected a lesson object, got {type(data).__name__}")
    lesson = data.get("lesson") or data
    if isinstance(lesson, str):
        # the whole lesson came back as one Markdown string
        return header + normalize_newlines(lesson) + "\n\n"
    if not isinstance(lesson, dict):
        raise PayloadShapeError(f"Expected an object in 'lesson', got {type(lesson).__name__}")

    parts: list[str] = [header] if header else []
    count = 0

    def section(title: str) -> None:
        nonlocal count
        count += 1
        parts.append(f"## {count}. {title}\n\n")

    def bold(title: Any) -> None:
        if title:
            parts.append(f"**{title}**\n\n")

    if lesson.get("introduction"):
        section("Introduction")
        parts.append(f"{normalize_newlines(lesson['introduction'])}\n\n")

    definitions = [_record(d, "definition", "definitions") for d in _items(lesson.get("definitions"))]
    if definitions:
        section("Définitions")
        for d in definitions:
            bold(d.get("term"))
            parts.append(f"{normalize_newlines(d.get('definition', ''))}\n\n")
            if d.get("example"):
                parts.append(f"*Exemple :* {normalize_newlines(d['example'])}\n\n")
            parts.append("---\n\n")

    theorems = [_record(t, "statement", "theorems") for t in _items(lesson.get("theorems"))]
    if theorems:
        section("Théorèmes et Propriétés")
        for t in theorems:
            bold(t.get("name"))
            parts.append(f"_Énoncé :_ {normalize_newlines(t.get('statement', ''))}\n\n")
            if t.get("proof"):
                parts.append(f"_Démonstration :_ {normalize_newlines(t['proof'])}\n\n")
            if t.get("application"):
                parts.append(f"_Application :_ {normalize_newlines(t['application'])}\n\n")
            parts.append("---\n\n")

    formulas = [_record(f, "formula", "formulas") for f in _items(lesson.get("formulas"))]
    if formulas:
        section("Formules Importantes")
        for f in formulas:
            parts.append(f"$${_strip_math_wrapper(str(f.get('formula', '')))}$$\n\n")
            if f.get("explanation"):
                parts.append(f"{normalize_newlines(f['explanation'])}\n\n")
            if f.get("variables"):
                parts.append(f"_Variables :_ {normalize_newlines(f['variables'])}\n\n")
            parts.append("---\n\n")

    examples = [_record(ex, "problem", "examples") for ex in _items(lesson.get("examples"))]
    if examples:
        section("Exemples")
        for n, ex in enumerate(examples, start=1):
            title = f" : {ex['title']}" if ex.get("title") else ""
            parts.append(f"**Exemple {n}{title}**\n\n")
            if ex.get("problem"):
                parts.append(f"_Problème :_ {normalize_newlines(ex['problem'])}\n\n")
            if ex.get("solution"):
                parts.append(f"_Solution :_\n\n{normalize_newlines(ex['solution'])}\n\n")
            if ex.get("explanation"):
                parts.append(f"_Explication :_ {normalize_newlines(ex['explanation'])}\n\n")
            parts.append("---\n\n")

    exercises = [_record(ex, "question", "exercises") for ex in _items(lesson.get("exercises"))]
    if exercises:
        section("Exercices d'Application")
        for n, ex in enumerate(exercises, start=1):
            parts.append(f"**Exercice {n}**\n\n{normalize_newlines(ex.get('question', ''))}\n\n")
            hints = _items(ex.get("hints"))
            if hints:
                bullets = "\n".join(f"- {normalize_newlines(h)}" for h in hints)
                parts.append(_details("Indices", bullets))
            solution = ex.get("solution") or ex.get("answer")
            if solution:
                parts.append(_details("Solution", normalize_newlines(solution)))
            parts.append("---\n\n")

    if lesson.get("summary"):
        section("Résumé")
        parts.append(f"{normalize_newlines(lesson['summary'])}\n\n")

    mistakes = _items(lesson.get("commonMistakes"))
    if mistakes:
        section("Erreurs Courantes à Éviter")
        parts.append("\n".join(f"- {normalize_newlines(m)}" for m in mistakes) + "\n\n")

    # Older generations nested everything under "content".
    content = lesson.get("content") or {}
    if isinstance(content, dict):
        intro = content.get("introduction")
        if intro and not lesson.get("introduction"):
            intro = _record(intro, "hook", "content.introduction")
            parts.append("## Introduction\n\n")
            if intro.get("hook"):
                parts.append(f"{normalize_newlines(intro['hook'])}\n\n")
            if intro.get("real_world_connection"):
                parts.append(f"**Application pratique :** {normalize_newlines(intro['real_world_connection'])}\n\n")
        theory = content.get("theory") or {}
        old_defs = _items(theory.get("definitions")) if isinstance(theory, dict) else []
        if old_defs and not definitions:
            parts.append("## Définitions\n\n")
            for d in old_defs:
                d = _record(d, "definition", "content.theory.definitions")
                term = f"**{d['term']}** : " if d.get("term") else ""
                parts.append(f"{term}{normalize_newlines(d.get('definition', ''))}\n\n")
                if d.get("example"):
                    parts.append(f"*Exemple :* {normalize_newlines(d['example'])}\n\n")
        summary = content.get("summary") or {}
        points = _items(summary.get("key_points")) if isinstance(summary, dict) else []
        if points and not lesson.get("summary"):
            parts.append("## Résumé\n\n" + "\n".join(f"- {normalize_newlines(p)}" for p in points) + "\n\n")

    return "".join(parts)


def convert_exercise_json_to_markdown(data: dict, for_pdf: bool = False) -> str:
    """
    Lay out one exercise. Web output hides hints and solutions in <details>;
    for_pdf=True uses plain sections instead. A bare string is the statement.
    """
    if not isinstance(data, dict):
        raise PayloadShapeError(f"Expected an exercise object, got {type(data).__name__}")
    ex = _record(data.get("exercise") or data, "problemText", "exercise")
    parts: list[str] = []

    if ex.get("problemText"):
        parts.append(f"## Énoncé\n\n{normalize_newlines(ex['problemText'])}\n\n")

    hints = _items(ex.get("hints"))
    if hints:
        parts.append("## Indices\n\n")
        for n, hint in enumerate(hints, start=1):
            body = normalize_newlines(hint)
            parts.append(f"### Indice {n}\n\n{body}\n\n" if for_pdf else _details(f"Indice {n}", body))

    def block(title: str, value: str) -> None:
        body = normalize_newlines(value)
        parts.append(f"## {title}\n\n{body}\n\n" if for_pdf else _details(title, body))

    if ex.get("solution"):
        block("Solution", ex["solution"])
    if ex.get("answer") and ex.get("answer") != ex.get("solution"):
        block("Réponse", ex["answer"])
    if ex.get("explanation"):
        block("Explication", ex["explanation"])

    return "".join(parts)


def _is_banner_line(line: str) -> bool:
    s = line.strip()
    if not s or s == "---":
        return True
    s = s.lstrip("-").strip()
    return bool(_BANNER_RE.search(s) or _BANNER_META_RE.match(s) or _BANNER_CHAPTER_RE.match(s))


def strip_chapter_header(content: str) -> str:
    """
    Remove the "MathSophos Platform | Prof: ..." banner that older chapters
    carried at the top of their Markdown. Content without the banner is
    returned unchanged (apart from surrounding whitespace).
    """
    if not content:
        return content or ""
    lines = content.split("\n")
    i = 0
    saw_banner = False
    while i < len(lines) and _is_banner_line(lines[i]):
        if _BANNER_RE.search(lines[i]):
            saw_banner = True
        i += 1
    if not saw_banner:
        return content.strip()
    return "\n".join(lines[i:]).strip()
