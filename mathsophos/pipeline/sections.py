from __future__ import annotations

import re

from .models import Block, Document, Section, SectionType
from .text_utils import _FENCE_RE, _fold_accents, _normalize_text

_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
_RULE_RE = re.compile(r"^\s{0,3}([-*_])(?:\s*\1){2,}\s*$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_TABLE_SEP_RE = re.compile(r"^\s*\|?\s*:?-{1,}:?\s*(?:\|\s*:?-{1,}:?\s*)*\|?\s*$")
_HTML_START_RE = re.compile(r"^\s{0,3}</?[A-Za-z][A-Za-z0-9]*(?:\s|>|/|$)")
_NUMBERING_RE = re.compile(r"^\s*(?:\d+(?:\.\d+)*|[IVXLC]+(?=[.)\s]))[.)]?\s*[-:]?\s*")

# First hit wins, in this order.
_SECTION_KEYWORDS: tuple[tuple[SectionType, tuple[str, ...]], ...] = (
    (SectionType.INTRODUCTION, ("introduction",)),
    (SectionType.DEFINITION, ("definition",)),
    (SectionType.THEOREM, ("theoreme", "theorem", "propriete")),
    (SectionType.FORMULA, ("formule", "formula")),
    (SectionType.EXAMPLE, ("exemple", "example")),
    (SectionType.EXERCISE, ("exercice", "exercise")),
    (SectionType.SUMMARY, ("resume", "summary")),
)


def classify(heading: str) -> SectionType:
    """'2. Théorèmes et propriétés' -> SectionType.THEOREM."""
    text = _fold_accents(_NUMBERING_RE.sub("", _normalize_text(heading), count=1))
    for section_type, keywords in _SECTION_KEYWORDS:
        if any(k in text for k in keywords):
            return section_type
    return SectionType.DEFAULT


def _is_blank(line: str) -> bool:
    return not line.strip()


def _starts_block(line: str) -> bool:
    s = line.lstrip()
    return bool(
        _HEADING_RE.match(line)
        or _FENCE_RE.match(line)
        or _RULE_RE.match(line)
        or s.startswith("$$")
    )


def _take_fence(lines: list[str], i: int) -> int:
    tok = _FENCE_RE.match(lines[i]).group(1)
    j = i + 1
    while j < len(lines):
        m = _FENCE_RE.match(lines[j])
        if m and m.group(1)[0] == tok[0] and len(m.group(1)) >= len(tok):
            return j + 1
        j += 1
    return j


def _take_display_math(lines: list[str], i: int) -> tuple[int, bool]:
    """(end, closed) for a block opening with '$$' on lines[i]."""
    first = lines[i].strip()
    if len(first) >= 4 and first.endswith("$$") and first.count("$$") >= 2:
        return i + 1, True
    blank_run = 0
    j = i + 1
    while j < len(lines):
        if _is_blank(lines[j]):
            blank_run += 1
            if blank_run >= 2:
                break
        else:
            blank_run = 0
            if "$$" in lines[j]:
                return j + 1, lines[j].strip().endswith("$$")
        j += 1
    return i + 1, False


def _take_list(lines: list[str], i: int) -> int:
    j = i + 1
    while j < len(lines):
        if _is_blank(lines[j]):
            k = j
            while k < len(lines) and _is_blank(lines[k]):
                k += 1
            # a loose list continues with another item or an indented line
            if k < len(lines) and (_LIST_ITEM_RE.match(lines[k]) or lines[k].startswith("  ")):
                j = k
                continue
            break
        if _HEADING_RE.match(lines[j]) or _FENCE_RE.match(lines[j]) or _RULE_RE.match(lines[j]):
            break
        j += 1
    return j


def _take_until_blank(lines: list[str], i: int, *, stop_on_block: bool) -> int:
    j = i + 1
    while j < len(lines) and not _is_blank(lines[j]):
        if stop_on_block and _starts_block(lines[j]):
            break
        j += 1
    return j


def parse_blocks(md: str) -> list[Block]:
    """Split Markdown into top-level blocks; math and code blocks keep their source text."""
    lines = (md or "").replace("\r\n", "\n").split("\n")
    blocks: list[Block] = []
    i = 0
    n = len(lines)
    while i < n:
        line = lines[i]
        if _is_blank(line):
            i += 1
            continue

        if _FENCE_RE.match(line):
            j = _take_fence(lines, i)
            blocks.append(Block(kind="code", text="\n".join(lines[i:j])))
            i = j
            continue

        m = _HEADING_RE.match(line)
        if m:
            blocks.append(Block(kind="heading", text=m.group(2), level=len(m.group(1))))
            i += 1
            continue

        if line.lstrip().startswith("$$"):
            j, closed = _take_display_math(lines, i)
            if closed:
                blocks.append(Block(kind="math", text="\n".join(lines[i:j]).strip()))
                i = j
                continue

        if _RULE_RE.match(line):
            blocks.append(Block(kind="rule", text=line.strip()))
            i += 1
            continue

        if "|" in line and i + 1 < n and _TABLE_SEP_RE.match(lines[i + 1]):
            j = i + 2
            while j < n and "|" in lines[j] and not _is_blank(lines[j]):
                j += 1
            blocks.append(Block(kind="table", text="\n".join(lines[i:j])))
            i = j
            continue

        if _HTML_START_RE.match(line):
            j = _take_until_blank(lines, i, stop_on_block=False)
            blocks.append(Block(kind="html", text="\n".join(lines[i:j])))
            i = j
            continue

        if _LIST_ITEM_RE.match(line):
            j = _take_list(lines, i)
            blocks.append(Block(kind="list", text="\n".join(lines[i:j]).rstrip()))
            i = j
            continue

        j = _take_until_blank(lines, i, stop_on_block=True)
        blocks.append(Block(kind="paragraph", text="\n".join(lines[i:j])))
        i = j
    return blocks


def group_sections(blocks: list[Block]) -> Document:
    """
    Group blocks under headings.

    A heading opens a section that runs until the next heading of the same or
    a higher level (fewer or equal '#'). Deeper headings stay in the body.
    Blocks before the first heading form the preamble.
    """
    doc = Document()
    current: Section | None = None
    for block in blocks:
        if block.kind == "heading":
            level = block.level or 1
            if current is None or level <= current.level:
                current = Section(type=classify(block.text), heading=block.text, level=level)
                doc.sections.append(current)
                continue
        if current is None:
            doc.preamble.append(block)
        else:
            current.body.append(block)
    return doc
