"""
Render normalized lesson Markdown to HTML.

Blocks are rendered one at a time with Python-Markdown so a broken block
degrades to an inline error box instead of taking the page down. Math spans
are swapped for opaque placeholders before Markdown runs, and turned into
MathML (latex2mathml) afterwards. Raw HTML is filtered to the tags produced
by the converters (tables, images, details/summary, ...).
"""
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import markdown
from latex2mathml.converter import convert as latex2mathml_convert

from .delimiters import iter_segments
from .models import Block, RenderResult, Section, SectionType
from .sections import group_sections, parse_blocks
from .text_utils import _brace_balance

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "sane_lists", "nl2br"]

_PLACEHOLDER_RE = re.compile(r"MATHPH(\d+)END")

SAFE_TAGS = frozenset({
    "a", "b", "blockquote", "br", "code", "del", "details", "div", "em", "figcaption", "figure",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "s", "section",
    "span", "strong", "sub", "summary", "sup", "table", "tbody", "td", "tfoot", "th", "thead", "tr",
    "u", "ul",
})
SAFE_ATTRS = frozenset({
    "align", "alt", "class", "colspan", "height", "href", "id", "open", "rowspan", "src", "start",
    "style", "title", "width",
})
_URL_ATTRS = frozenset({"href", "src"})

_TAG_RE = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9]*)((?:\s+[^<>]*?)?)\s*(/?)>")
_ATTR_RE = re.compile(r"""([A-Za-z_:][-A-Za-z0-9_:.]*)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s"'>]+))?""")
_COMMENT_RE = re.compile(r"<!--[\s\S]*?(?:-->|$)")

# colour, icon
SECTION_STYLES: dict[SectionType, tuple[str, str]] = {
    SectionType.INTRODUCTION: ("#3b82f6", "\U0001F4D6"),
    SectionType.DEFINITION: ("#22c55e", "\U0001F4DD"),
    SectionType.THEOREM: ("#a855f7", "\U0001F4D0"),
    SectionType.FORMULA: ("#ef4444", "\u222B"),
    SectionType.EXAMPLE: ("#eab308", "\U0001F4A1"),
    SectionType.EXERCISE: ("#f97316", "\u270D\uFE0F"),
    SectionType.SUMMARY: ("#6b7280", "\U0001F4CB"),
}


@dataclass
class _RenderContext:
    md: markdown.Markdown
    math_errors: list[str] = field(default_factory=list)
    block_errors: list[str] = field(default_factory=list)


# -------------------------
# HTML safelist
# -------------------------

def _unsafe_url(value: str) -> bool:
    v = re.sub(r"[\s\x00-\x1f]+", "", html.unescape(value)).lower()
    return v.startswith(("javascript:", "vbscript:", "data:text"))


def _clean_attrs(raw: str) -> str:
    kept: list[str] = []
    for m in _ATTR_RE.finditer(raw or ""):
        name = m.group(1).lower()
        value = m.group(2)
        if name not in SAFE_ATTRS:
            continue
        if value is None:
            kept.append(name)
            continue
        if value[:1] in "\"'":
            value = value[1:-1]
        if name in _URL_ATTRS and _unsafe_url(value):
            continue
        if name == "style" and re.search(r"expression\s*\(|javascript:|url\s*\(", value, re.I):
            continue
        kept.append(f'{name}="{html.escape(html.unescape(value), quote=True)}"')
    return (" " + " ".join(kept)) if kept else ""


def sanitize_html(fragment: str) -> str:
    """Keep safelisted tags (with safe attributes only); escape every other tag."""
    fragment = _COMMENT_RE.sub("", fragment)
    fragment = re.sub(r"<(?=[!?])", "&lt;", fragment)

    def repl(m: re.Match) -> str:
        closing, name, attrs, self_close = m.groups()
        tag = name.lower()
        if tag not in SAFE_TAGS:
            return html.escape(m.group(0), quote=False)
        if closing:
            return f"</{tag}>"
        return f"<{tag}{_clean_attrs(attrs)}{' /' if self_close else ''}>"

    return _TAG_RE.sub(repl, fragment)


# -------------------------
# Math
# -------------------------

def _math_problem(latex: str) -> Optional[str]:
    """Structural pre-check; returns a short description of the problem or None."""
    if _brace_balance(latex) != 0:
        return "unbalanced braces"
    lefts = len(re.findall(r"\\left(?![A-Za-z])", latex))
    rights = len(re.findall(r"\\right(?![A-Za-z])", latex))
    if lefts != rights:
        return "unbalanced \\left/\\right"
    stack: list[str] = []
    for kind, env in re.findall(r"\\(begin|end)\s*\{([^}]*)\}", latex):
        if kind == "begin":
            stack.append(env)
        elif not stack or stack.pop() != env:
            return f"unmatched \\end{{{env}}}"
    if stack:
        return f"unclosed \\begin{{{stack[-1]}}}"
    return None


def render_math(latex: str, display: bool = False, errors: Optional[list[str]] = None) -> str:
    """MathML for one span, or an inline error marker. Never raises."""
    src = (latex or "").strip()
    problem = _math_problem(src)
    if problem is None:
        try:
            return latex2mathml_convert(src, display="block" if display else "inline")
        except Exception as e:  # latex2mathml raises many unrelated exception types
            problem = str(e) or e.__class__.__name__
    logger.warning("Math render failed (%s): %s", problem, src[:80])
    if errors is not None:
        errors.append(f"{problem}: {src}")
    return f'<span class="math-error" title="{html.escape(problem, quote=True)}">{html.escape(src)}</span>'


def _swap_math(text: str) -> tuple[str, list[tuple[str, bool]]]:
    spans: list[tuple[str, bool]] = []
    out: list[str] = []
    segments, _ = iter_segments(text)
    for seg in segments:
        if seg.is_math:
            out.append(f"MATHPH{len(spans)}END")
            spans.append((seg.body, seg.display))
        else:
            out.append(seg.raw)
    return "".join(out), spans


def _restore_math(fragment: str, spans: list[tuple[str, bool]], ctx: _RenderContext) -> str:
    def repl(m: re.Match) -> str:
        idx = int(m.group(1))
        if idx >= len(spans):
            return m.group(0)
        body, display = spans[idx]
        return render_math(body, display, ctx.math_errors)

    return _PLACEHOLDER_RE.sub(repl, fragment)


# -------------------------
# Blocks and sections
# -------------------------

def _single_display_span(text: str) -> Optional[str]:
    segments, _ = iter_segments(text)
    math = [s for s in segments if s.is_math]
    rest = "".join(s.raw for s in segments if not s.is_math)
    if len(math) == 1 and math[0].display and not rest.strip():
        return math[0].body
    return None


def _markdown_source(block: Block) -> str:
    if block.kind == "heading":
        return "#" * (block.level or 2) + " " + block.text
    return block.text


def _render_block(block: Block, ctx: _RenderContext) -> str:
    try:
        if block.kind == "math":
            body = _single_display_span(block.text)
            if body is not None:
                return f'<div class="math-display">{render_math(body, True, ctx.math_errors)}</div>'
        if block.kind == "code":
            ctx.md.reset()
            return sanitize_html(ctx.md.convert(block.text))

        src, spans = _swap_math(_markdown_source(block))
        ctx.md.reset()
        out = sanitize_html(ctx.md.convert(src))
        return _restore_math(out, spans, ctx)
    except Exception as e:
        # one broken block must not take the rest of the document with it
        logger.warning("Block render failed (%s): %s", block.kind, e)
        ctx.block_errors.append(f"{block.kind}: {e}")
        return f'<div class="render-error">{html.escape(block.text)}</div>'


def _render_blocks(blocks: list[Block], ctx: _RenderContext) -> str:
    return "\n".join(_render_block(b, ctx) for b in blocks)


def _render_heading(section: Section, ctx: _RenderContext, icon: str = "") -> str:
    level = min(max(section.level, 1), 6)
    out = _render_block(Block(kind="heading", text=section.heading, level=level), ctx)
    if icon:
        out = re.sub(r"^(<h\d[^>]*>)", lambda m: m.group(1) + f'<span class="section-icon">{icon}</span> ', out, count=1)
    return out


def _render_section(section: Section, ctx: _RenderContext) -> str:
    body = _render_blocks(section.body, ctx)
    style = SECTION_STYLES.get(section.type)
    if style is None:
        return _render_heading(section, ctx) + ("\n" + body if body else "")
    colour, icon = style
    return (
        f'<section class="lesson-box box-{section.type.value}" '
        f'style="border-left: 4px solid {colour}; padding: 1rem 1.5rem; margin: 2rem 0;">\n'
        f"{_render_heading(section, ctx, icon)}\n{body}\n</section>"
    )


def render_markdown(md: str) -> RenderResult:
    """
    NormalizedContent -> HTML.

    Malformed math becomes <span class="math-error">, a block that fails to
    render becomes <div class="render-error">; nothing is raised.
    """
    doc = group_sections(parse_blocks(md or ""))
    ctx = _RenderContext(md=markdown.Markdown(extensions=MARKDOWN_EXTENSIONS))

    parts: list[str] = []
    if doc.preamble:
        parts.append(_render_blocks(doc.preamble, ctx))
    parts.extend(_render_section(s, ctx) for s in doc.sections)

    if ctx.math_errors or ctx.block_errors:
        logger.warning(
            "Rendered with %d math error(s) and %d block error(s)", len(ctx.math_errors), len(ctx.block_errors)
        )
    return RenderResult(
        html="\n".join(p for p in parts if p),
        sections=doc.sections,
        math_errors=ctx.math_errors,
        block_errors=ctx.block_errors,
    )
