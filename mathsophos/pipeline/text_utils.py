from __future__ import annotations

import re
import unicodedata

_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")

# Typographic characters that editors paste from word processors.
_TYPOGRAPHIC_REPL: dict[str, str] = {
    "\u201c": "\"",   # left double quote
    "\u201d": "\"",   # right double quote
    "\u2018": "'",    # left single quote
    "\u2019": "'",    # right single quote
    "\u00a0": " ",    # no-break space
    "\u202f": " ",    # narrow no-break space
}


def _normalize_text(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKC", s)
    for k, v in _TYPOGRAPHIC_REPL.items():
        s = s.replace(k, v)
    s = re.sub(r"[ \t]+", " ", s)
    return s.strip()


def _fold_accents(s: str) -> str:
    """'Théorème' -> 'theoreme' (casefolded, combining marks dropped)."""
    if not s:
        return ""
    decomposed = unicodedata.normalize("NFKD", s)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def _normalize_line_endings(s: str) -> str:
    return s.replace("\r\n", "\n").replace("\r", "\n")


def _is_escaped(text: str, i: int) -> bool:
    """True when text[i] is preceded by an odd number of backslashes."""
    n = 0
    j = i - 1
    while j >= 0 and text[j] == "\\":
        n += 1
        j -= 1
    return n % 2 == 1


def _split_fenced(text: str) -> list[tuple[bool, str]]:
    """
    Split text into (is_code, segment) pieces on fenced code blocks.

    A fence opens on a line starting with ``` (or ~~~) and closes on the next
    line starting with a fence of the same character at least as long.
    An unclosed fence runs to the end of the input.
    """
    if not text:
        return []
    out: list[tuple[bool, str]] = []
    buf: list[str] = []
    in_fence = False
    fence_tok = ""

    def flush(is_code: bool) -> None:
        nonlocal buf
        if buf:
            out.append((is_code, "".join(buf)))
        buf = []

    for line in text.splitlines(keepends=True):
        m = _FENCE_RE.match(line)
        if not in_fence:
            if m:
                flush(False)
                in_fence = True
                fence_tok = m.group(1)
            buf.append(line)
            continue
        buf.append(line)
        if m and m.group(1)[0] == fence_tok[0] and len(m.group(1)) >= len(fence_tok):
            flush(True)
            in_fence = False
    flush(in_fence)
    return out


def _find_group_end(text: str, open_index: int) -> int:
    """
    Given text[open_index] == '{', return the index of its matching '}'.
    Escaped braces (\\{ \\}) are ignored. Returns -1 when unbalanced.
    """
    depth = 0
    i = open_index
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _brace_balance(s: str) -> int:
    """Unescaped '{' count minus unescaped '}' count."""
    bal = 0
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            bal += 1
        elif ch == "}":
            bal -= 1
        i += 1
    return bal


def _replace_command(text: str, name: str, repl) -> str:
    """
    Replace every `\\name{arg}` by repl(arg), reading arg with brace matching
    so nested groups survive. Occurrences with an unbalanced argument are kept.
    """
    pat = re.compile(r"\\" + re.escape(name) + r"(?![A-Za-z])\s*\{")
    out: list[str] = []
    pos = 0
    while True:
        m = pat.search(text, pos)
        if not m:
            break
        open_idx = m.end() - 1
        close_idx = _find_group_end(text, open_idx)
        if close_idx < 0:
            break
        out.append(text[pos:m.start()])
        out.append(repl(text[open_idx + 1:close_idx]))
        pos = close_idx + 1
    out.append(text[pos:])
    return "".join(out)


# LaTeX commands that start with a letter JSON also uses as an escape (\n, \r, \t).
_LATEX_NRT_COMMANDS = (
    "nabla", "natural", "ncong", "nearrow", "neg", "neq", "newcommand", "newline", "nexists",
    "ngeq", "ngtr", "nLeftarrow", "nleftarrow", "nleftrightarrow", "nleq", "nless", "nmid", "noindent",
    "normalsize", "not", "notin", "nparallel", "nRightarrow", "nrightarrow", "nsim", "nsubseteq", "nu",
    "nwarrow",
    "rangle", "rbrace", "rbrack", "rceil", "rfloor", "rho", "right", "rightarrow", "rightharpoonup",
    "rightleftharpoons", "rm", "rVert", "rvert",
    "tag", "tan", "tanh", "tau", "tbinom", "text", "textbf", "textcolor", "textit", "textmd",
    "textnormal", "textrm", "textsc", "textsf", "textsl", "textstyle", "texttt", "textup", "tfrac",
    "therefore", "theta", "thicksim", "tilde", "times", "tiny", "to", "top", "triangle", "triangleq",
    "tt", "twoheadrightarrow",
)


def _alternation(names) -> str:
    return "(?:" + "|".join(sorted(names, key=len, reverse=True)) + r")(?![A-Za-z])"


# A two-character "\n" left in parsed content, unless it starts \neq, \nabla, \ne, ...
_LITERAL_NEWLINE_RE = re.compile(
    r"(?<!\\)\\n(?!"
    + _alternation(c[1:] for c in _LATEX_NRT_COMMANDS + ("ne", "ni") if c.startswith("n"))
    + ")"
)


def _replace_literal_newlines(s: str) -> str:
    return _LITERAL_NEWLINE_RE.sub("\n", s)
