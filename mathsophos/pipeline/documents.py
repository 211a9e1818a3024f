"""
LaTeX document commands -> Markdown.

Authors paste fragments of full LaTeX documents (lists, tables, figures,
sectioning) into lessons. The renderer only understands Markdown with `$`
math, so those structural commands are rewritten here:

- equation / align environments    -> $$ ... $$
- \\includegraphics / \\figure       -> <img class="latex-image">
- array / tabular outside math      -> <table class="latex-table">
- itemize / enumerate               -> Markdown lists
- \\textbf, \\textit, \\section, ...  -> Markdown emphasis and headings

Math spans and fenced code are swapped for opaque tokens while the prose
rules run, then restored.
"""
from __future__ import annotations

import html
import logging
import re
from typing import Optional

from .delimiters import iter_segments
from .text_utils import _find_group_end, _replace_command

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_BASE_URL = "/uploads/"
PX_PER_CM = 37.8

_TOKEN_RE = re.compile(r"\x00(\d+)\x00")

_EQUATION_ENV_RE = re.compile(r"\\begin\{(equation\*?|displaymath)\}([\s\S]*?)\\end\{\1\}")
_ALIGN_ENV_RE = re.compile(r"\\begin\{(align\*?)\}([\s\S]*?)\\end\{\1\}")

_INCLUDEGRAPHICS_RE = re.compile(r"\\includegraphics\s*(?:\[([^\]]*)\])?\s*\{([^{}]+)\}")
_FIGURE_RE = re.compile(r"\\figure\s*\{([^{}]+)\}(?:\s*\{([^{}]*)\})?")
_BARE_INCLUDEGRAPHICS_RE = re.compile(r"\\includegraphics\s*(?:\[[^\]]*\])?\s*(?:\{[^{}]*\})?")
_ABSOLUTE_SRC_RE = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.-]*:|/)")

_TABLE_BEGIN_RE = re.compile(r"\\begin\{(array|tabular)\}")
_TABLE_RULE_RE = re.compile(r"\\(?:hline|toprule|midrule|bottomrule)(?![A-Za-z])|\\cline\s*\{[^}]*\}")
_ROW_SPACING_RE = re.compile(r"^\s*\[[^\]]*\]")

_LIST_ENV_RE = re.compile(
    r"\\begin\{(itemize|enumerate)\}"
    r"((?:(?!\\begin\{(?:itemize|enumerate)\})[\s\S])*?)"
    r"\\end\{\1\}"
)
_ITEM_SPLIT_RE = re.compile(r"\\item(?![A-Za-z])\s*(?:\[[^\]]*\])?")

_LINE_BREAK_RE = re.compile(r"\\\\(?:\[[^\]]*\])?[ \t]*|\\newline(?![A-Za-z])[ \t]*")
_FIGURE_WRAPPER_RE = re.compile(r"\\(?:begin\{(?:figure|center)\*?\}(?:\[[^\]]*\])?|end\{(?:figure|center)\*?\}|centering(?![A-Za-z]))")


# -------------------------
# Math protection
# -------------------------

def _protect(text: str) -> tuple[str, list[str]]:
    store: list[str] = []
    out: list[str] = []
    segments, _ = iter_segments(text)
    for seg in segments:
        if seg.is_math or seg.is_code:
            out.append(f"\x00{len(store)}\x00")
            store.append(seg.raw)
        else:
            out.append(seg.raw)
    return "".join(out), store


def _restore(text: str, store: list[str]) -> str:
    if not store:
        return text
    return _TOKEN_RE.sub(lambda m: store[int(m.group(1))], text)


def _map_segments(text: str, fn, *, math: bool = False) -> str:
    """Apply fn to each prose segment (and to math segments when math=True). Code is never touched."""
    segments, _ = iter_segments(text)
    out: list[str] = []
    for seg in segments:
        if seg.is_code or (seg.is_math and not math):
            out.append(seg.raw)
        else:
            out.append(fn(seg.raw))
    return "".join(out)


# -------------------------
# Equations
# -------------------------

def _convert_equation_envs(chunk: str) -> str:
    chunk = _EQUATION_ENV_RE.sub(lambda m: f"$${m.group(2).strip()}$$", chunk)
    return _ALIGN_ENV_RE.sub(lambda m: f"$$\\begin{{aligned}}{m.group(2).strip()}\\end{{aligned}}$$", chunk)


# -------------------------
# Images
# -------------------------

def _parse_options(opts: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for part in (opts or "").split(","):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        out[key.strip().lower()] = value.strip()
    return out


def _css_dimension(dim: str) -> Optional[str]:
    """
    Convert a LaTeX length to CSS.

    0.5\\linewidth -> 50%, 4cm -> 151px, 30mm -> 113px, 200 -> 200px.
    Lengths that cannot be read return None.
    """
    dim = (dim or "").strip()
    if not dim:
        return None
    try:
        m = re.fullmatch(r"([\d.]*)\s*\\(?:linewidth|textwidth|columnwidth|hsize)", dim)
        if m:
            factor = float(m.group(1)) if m.group(1) else 1.0
            return f"{round(factor * 100, 2):g}%"
        m = re.fullmatch(r"([\d.]+)\s*(cm|mm|pt|px|%)", dim)
        if m:
            value, unit = float(m.group(1)), m.group(2)
            if unit == "cm":
                return f"{round(value * PX_PER_CM)}px"
            if unit == "mm":
                return f"{round(value * PX_PER_CM / 10)}px"
            if unit == "pt":
                return f"{round(value * 4 / 3)}px"
            return f"{value:g}{unit}"
        if re.fullmatch(r"[\d.]+", dim):
            return f"{float(dim):g}px"
    except ValueError:
        pass
    logger.debug("Unreadable image dimension %r", dim)
    return None


def _image_src(path: str, base_url: str) -> str:
    path = path.strip()
    if _ABSOLUTE_SRC_RE.match(path):
        return path
    if path.startswith("./"):
        path = path[2:]
    if not base_url:
        return path
    return base_url.rstrip("/") + "/" + path


def _image_tag(path: str, opts: str, base_url: str) -> str:
    options = _parse_options(opts)
    width = _css_dimension(options.get("width", ""))
    if width is None and "scale" in options:
        try:
            width = f"{round(float(options['scale']) * 100, 2):g}%"
        except ValueError:
            width = None
    height = _css_dimension(options.get("height", ""))

    src = _image_src(path, base_url)
    stem = path.strip().rsplit("/", 1)[-1].rsplit(".", 1)[0]
    style = f"width: {width or '100%'}; height: {height or 'auto'}; max-width: 100%;"
    return (
        f'<img src="{html.escape(src, quote=True)}" alt="{html.escape(stem, quote=True)}" '
        f'style="{style}" class="latex-image" />'
    )


def _convert_images(chunk: str, base_url: str) -> str:
    chunk = _INCLUDEGRAPHICS_RE.sub(lambda m: _image_tag(m.group(2), m.group(1) or "", base_url), chunk)
    chunk = _FIGURE_RE.sub(lambda m: _image_tag(m.group(1), m.group(2) or "", base_url), chunk)
    if "\\includegraphics" in chunk:
        logger.debug("Dropping malformed \\includegraphics")
        chunk = _BARE_INCLUDEGRAPHICS_RE.sub("", chunk)
    return chunk


# -------------------------
# Tables
# -------------------------

def _find_env_end(text: str, env: str, start: int) -> tuple[int, int]:
    """(start, stop) of the \\end{env} closing the environment opened before `start`."""
    tok = re.compile(r"\\(begin|end)\{" + re.escape(env) + r"\}")
    depth = 1
    for m in tok.finditer(text, start):
        depth += 1 if m.group(1) == "begin" else -1
        if depth == 0:
            return m.start(), m.end()
    return len(text), len(text)


def _skip_column_spec(body: str) -> str:
    """Drop the optional [pos] and the {cols} argument that follow \\begin{array}."""
    m = re.match(r"\s*\[[^\]]*\]", body)
    if m:
        body = body[m.end():]
    m = re.match(r"\s*\{", body)
    if m:
        close = _find_group_end(body, m.end() - 1)
        if close >= 0:
            body = body[close + 1:]
    return body


def _split_top_level(body: str, sep: str) -> list[str]:
    """Split on `sep` ("\\\\" or "&") outside braces and nested environments."""
    parts: list[str] = []
    depth = 0
    env_depth = 0
    start = 0
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch == "\\":
            if sep == "\\\\" and body.startswith("\\\\", i) and depth == 0 and env_depth == 0:
                parts.append(body[start:i])
                i += 2
                start = i
                continue
            if body.startswith("\\begin{", i):
                env_depth += 1
            elif body.startswith("\\end{", i):
                env_depth = max(0, env_depth - 1)
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(0, depth - 1)
        elif ch == sep and depth == 0 and env_depth == 0:
            parts.append(body[start:i])
            start = i + 1
        i += 1
    parts.append(body[start:])
    return parts


def _tabular_cell(cell: str) -> str:
    cell = html.escape(cell, quote=False)
    cell = _replace_command(cell, "textbf", lambda a: f"<strong>{a}</strong>")
    cell = _replace_command(cell, "textit", lambda a: f"<em>{a}</em>")
    cell = _replace_command(cell, "emph", lambda a: f"<em>{a}</em>")
    return _replace_command(cell, "underline", lambda a: f"<u>{a}</u>")


def _table_rows(body: str) -> list[list[str]]:
    rows: list[list[str]] = []
    for raw_row in _split_top_level(body, "\\\\"):
        row = _ROW_SPACING_RE.sub("", raw_row)
        row = _TABLE_RULE_RE.sub("", row)
        if not row.strip():
            continue
        rows.append([" ".join(cell.split()) for cell in _split_top_level(row, "&")])
    return rows


def _table_html(env: str, body: str) -> str:
    rows = _table_rows(_skip_column_spec(body))
    width = max((len(r) for r in rows), default=0)
    lines = ['<table class="latex-table"><tbody>']
    for row in rows:
        row = row + [""] * (width - len(row))
        if env == "array":
            cells = [f"${c}$" if c else "" for c in row]
        else:
            cells = [_tabular_cell(c) for c in row]
        lines.append("<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>")
    lines.append("</tbody></table>")
    return "\n\n" + "".join(lines) + "\n\n"


def _convert_tables(text: str) -> str:
    out: list[str] = []
    pos = 0
    while True:
        m = _TABLE_BEGIN_RE.search(text, pos)
        if not m:
            break
        env = m.group(1)
        end_start, end_stop = _find_env_end(text, env, m.end())
        if end_start == len(text):
            logger.debug("\\begin{%s} without \\end; using the rest of the text", env)
        out.append(text[pos:m.start()])
        out.append(_table_html(env, text[m.end():end_start]))
        pos = end_stop
    out.append(text[pos:])
    return "".join(out)


def _strip_table_wrappers(text: str) -> str:
    """`$$\\begin{array}...\\end{array}$$` -> the bare environment, so it converts as a table."""
    segments, _ = iter_segments(text)
    out: list[str] = []
    for seg in segments:
        body = seg.body.strip() if seg.is_math and seg.display else ""
        m = _TABLE_BEGIN_RE.match(body)
        if m and _find_env_end(body, m.group(1), m.end())[1] == len(body):
            out.append(body)
        else:
            out.append(seg.raw)
    return "".join(out)


# -------------------------
# Lists and inline commands
# -------------------------

def _list_markdown(env: str, body: str) -> str:
    items = [p.strip() for p in _ITEM_SPLIT_RE.split(body)[1:]]
    lines: list[str] = []
    for n, item in enumerate((i for i in items if i), start=1):
        marker = f"{n}." if env == "enumerate" else "-"
        pad = " " * (len(marker) + 1)
        lines.append(f"{marker} " + item.replace("\n", "\n" + pad))
    return "\n" + "\n".join(lines) + "\n"


def _convert_lists(text: str) -> str:
    # innermost first so nested lists indent under their parent item
    while True:
        new = _LIST_ENV_RE.sub(lambda m: _list_markdown(m.group(1), m.group(2)), text)
        if new == text:
            return text
        text = new


def _heading(level: int):
    return lambda arg: "\n" + "#" * level + " " + " ".join(arg.split()) + "\n"


def _convert_commands(text: str) -> str:
    text = _replace_command(text, "textbf", lambda a: f"**{a.strip()}**")
    text = _replace_command(text, "textit", lambda a: f"*{a.strip()}*")
    text = _replace_command(text, "emph", lambda a: f"*{a.strip()}*")
    text = _replace_command(text, "underline", lambda a: f"<u>{a}</u>")
    text = _replace_command(text, "caption", lambda a: f"\n*{a.strip()}*\n")
    text = _FIGURE_WRAPPER_RE.sub("", text)
    for name, level in (("subsubsection", 4), ("subsection", 3), ("section", 2)):
        text = _replace_command(text, name + "*", _heading(level))
        text = _replace_command(text, name, _heading(level))
    return _LINE_BREAK_RE.sub("<br/>", text)


def convert_to_markdown(text: str, image_base_url: str = DEFAULT_IMAGE_BASE_URL) -> str:
    if not text:
        return ""

    text = _strip_table_wrappers(text)
    text = _map_segments(text, _convert_equation_envs)
    text = _map_segments(text, lambda chunk: _convert_images(chunk, image_base_url), math=True)

    protected, store = _protect(text)
    protected = _convert_tables(protected)
    protected = _convert_lists(protected)
    protected = _convert_commands(protected)
    protected = re.sub(r"\n{3,}", "\n\n", protected)
    text = _restore(protected, store)

    # tabular left inside math (or code) is rendered by the math engine as array
    return text.replace("\\begin{tabular}", "\\begin{array}").replace("\\end{tabular}", "\\end{array}")
