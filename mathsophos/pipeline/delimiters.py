"""
Math delimiter normalization.

Rewrites the ad-hoc math boundaries found in authored and generated content
into one convention:
- inline math: $...$   (from \\( ... \\))
- display math: $$...$$ (from \\[ ... \\])

Fenced code blocks and inline code spans are copied verbatim.
"""
from __future__ import annotations

import logging
import re
from typing import NamedTuple

from .models import DelimiterIssue, DelimiterScan
from .text_utils import _is_escaped, _split_fenced

logger = logging.getLogger(__name__)

# Inline spans stop at a paragraph break, display spans at two blank lines.
_INLINE_BOUNDARY_RE = re.compile(r"\n[ \t]*\n")
_DISPLAY_BOUNDARY_RE = re.compile(r"\n[ \t]*\n[ \t]*\n")
_CURRENCY_BODY_RE = re.compile(r"[\d\s.,]+")


class Segment(NamedTuple):
    is_math: bool
    raw: str           # exact source text, delimiters included
    body: str = ""     # math body without delimiters
    display: bool = False
    opener: str = ""   # "$", "$$", "\\(" or "\\["
    is_code: bool = False


def _boundary(s: str, start: int, display: bool) -> int:
    pat = _DISPLAY_BOUNDARY_RE if display else _INLINE_BOUNDARY_RE
    m = pat.search(s, start)
    return m.start() if m else len(s)


def _find_closer(s: str, start: int, closer: str, limit: int) -> int:
    """
    Index of `closer` in s[start:limit] at brace depth 0.

    Braces count only when unescaped, so the `}` or `$` of a \\text{...}
    argument never ends the span. When no depth-0 closer exists, the first
    closer regardless of depth is returned (-1 if there is none at all).
    """
    depth = 0
    first_any = -1
    i = start
    width = len(closer)
    while i < limit:
        ch = s[i]
        if ch == "\\":
            if closer[0] == "\\" and s.startswith(closer, i) and i + width <= limit:
                if depth == 0:
                    return i
                if first_any < 0:
                    first_any = i
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(0, depth - 1)
        elif ch == "$" and closer[0] == "$" and s.startswith(closer, i) and i + width <= limit:
            if depth == 0:
                return i
            if first_any < 0:
                first_any = i
            i += width
            continue
        i += 1
    return first_any


def _looks_like_currency(s: str, open_i: int, close_j: int) -> bool:
    """
    Best-effort guard against prices such as "$5 $10" or "$5 and $10".

    A single-dollar span is currency when it sits on one line, the opener is
    immediately followed by a digit, and either the closing `$` is immediately
    followed by a digit, or the body ends with whitespace and holds nothing but
    digits, whitespace, '.' and ','. "$5$" and "$2+3=5$" stay math.
    """
    body = s[open_i + 1:close_j]
    if not body or "\n" in body or not body[0].isdigit():
        return False
    after = s[close_j + 1:close_j + 2]
    if after.isdigit():
        return True
    return body[-1] in " \t" and bool(_CURRENCY_BODY_RE.fullmatch(body))


def _has_bare_dollar(body: str) -> bool:
    return any(ch == "$" and not _is_escaped(body, i) for i, ch in enumerate(body))


def _run_length(s: str, i: int, ch: str) -> int:
    j = i
    while j < len(s) and s[j] == ch:
        j += 1
    return j - i


def _skip_code_span(s: str, i: int) -> int:
    """Return the index just past the inline code span starting at s[i] == '`', or -1."""
    run = _run_length(s, i, "`")
    limit = _boundary(s, i, display=False)
    j = i + run
    while j < limit:
        if s[j] == "`":
            k = _run_length(s, j, "`")
            if k == run:
                return j + k
            j += k
            continue
        j += 1
    return -1


def _scan_prose(s: str, offset: int, out: list[Segment], issues: list[DelimiterIssue]) -> None:
    buf: list[str] = []

    def flush() -> None:
        if buf:
            out.append(Segment(False, "".join(buf)))
            buf.clear()

    def unmatched(token: str, pos: int, message: str) -> None:
        issues.append(DelimiterIssue(token=token, position=offset + pos, message=message))

    n = len(s)
    i = 0
    while i < n:
        ch = s[i]
        if ch == "`":
            end = _skip_code_span(s, i)
            run = _run_length(s, i, "`")
            if end < 0:
                buf.append(s[i:i + run])
                i += run
            else:
                buf.append(s[i:end])
                i = end
            continue

        if ch == "\\":
            nxt = s[i + 1:i + 2]
            if nxt in ("(", "["):
                display = nxt == "["
                closer = "\\]" if display else "\\)"
                limit = _boundary(s, i + 2, display)
                j = _find_closer(s, i + 2, closer, limit)
                if j >= 0:
                    body = s[i + 2:j]
                    if _has_bare_dollar(body):
                        unmatched(s[i:i + 2], i, "math span contains a bare '$'; left unchanged")
                        buf.append(s[i:j + 2])
                    else:
                        flush()
                        out.append(Segment(True, s[i:j + 2], body, display, s[i:i + 2]))
                    i = j + 2
                    continue
                unmatched(s[i:i + 2], i, f"no matching {closer}")
            buf.append(s[i:i + 2])
            i += 2
            continue

        if ch == "$":
            if s.startswith("$$", i):
                limit = _boundary(s, i + 2, display=True)
                j = _find_closer(s, i + 2, "$$", limit)
                if j >= 0:
                    flush()
                    out.append(Segment(True, s[i:j + 2], s[i + 2:j], True, "$$"))
                    i = j + 2
                    continue
                unmatched("$$", i, "no matching $$")
                buf.append("$$")
                i += 2
                continue
            limit = _boundary(s, i + 1, display=False)
            j = _find_closer(s, i + 1, "$", limit)
            if j >= 0 and not _looks_like_currency(s, i, j):
                flush()
                out.append(Segment(True, s[i:j + 1], s[i + 1:j], False, "$"))
                i = j + 1
                continue
            if j < 0:
                unmatched("$", i, "no matching $")
            buf.append("$")
            i += 1
            continue

        buf.append(ch)
        i += 1
    flush()


def iter_segments(text: str) -> tuple[list[Segment], list[DelimiterIssue]]:
    """Split text into prose and math segments; concatenating `raw` gives back the input."""
    segments: list[Segment] = []
    issues: list[DelimiterIssue] = []
    offset = 0
    for is_code, chunk in _split_fenced(text or ""):
        if is_code:
            segments.append(Segment(False, chunk, is_code=True))
        else:
            _scan_prose(chunk, offset, segments, issues)
        offset += len(chunk)
    return segments, issues


def split_math(text: str) -> list[tuple[bool, str]]:
    segments, _ = iter_segments(text)
    return [(seg.is_math, seg.raw) for seg in segments]


def _tidy_boundary(body: str) -> str:
    body = re.sub(r"^[ \t]{2,}", " ", body)
    return re.sub(r"[ \t]{2,}$", " ", body)


def _canonical(seg: Segment) -> str:
    fence = "$$" if seg.display else "$"
    body = _tidy_boundary(seg.body)
    if not seg.display and body[:1].isdigit():
        # "$5 $" would read back as a price
        body = body.rstrip(" \t")
    return fence + body + fence


def scan_delimiters(text: str) -> DelimiterScan:
    if not text:
        return DelimiterScan(text=text or "")
    segments, issues = iter_segments(text)
    out = "".join(_canonical(seg) if seg.is_math else seg.raw for seg in segments)
    for issue in issues:
        logger.debug("Unmatched math delimiter %r at %d: %s", issue.token, issue.position, issue.message)
    return DelimiterScan(text=out, unmatched=issues)


def normalize_delimiters(text: str) -> str:
    return scan_delimiters(text).text
