"""
Validation and soft repair of generated lesson content.

validate_content() decides whether a generated field can be kept:
- should_reject: unsalvageable (empty, placeholder-only, known garbage,
  wrong identities, injected directives, too many LaTeX errors); the caller
  must regenerate and never persist it.
- is_valid=False without should_reject: defects that sanitize_content()
  repairs (literal "\\n", double-escaped commands, known artifacts).

Both functions are pure.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from .delimiters import iter_segments
from .models import SanitizeResult, ValidationReport
from .text_utils import _brace_balance, _fold_accents, _replace_literal_newlines, _split_fenced

logger = logging.getLogger(__name__)


# Nonsense seen in real model output.
GARBAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"uéglin|teintze|Vivérification|Établissement d'étude|cognatrice", re.I),
    re.compile(r"S_3\s*e\s*1|Slim\(.*?\)|SDf|equitimptique", re.I),
    re.compile(r"Extra-close branc|missing open brace", re.I),
    re.compile(r"Sx\d"),
    re.compile(r"\\to\s*\\\+\s*\\ln\(nx\)"),
    re.compile(r"Vrac\{"),
    # output cut off inside a command
    re.compile(r"\\frac\{[^}]*\Z|\\lim_\{[^}]*\Z"),
)

MATH_ERROR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\\ln\(ab\)\s*=\s*\\ln\(a\s*\+\s*b\)"),
    re.compile(r"\\ln\([^)]*\s*\+\s*[^)]*\)\s*=\s*\\ln\([^)]*\)\s*\\cdot\s*\\ln\([^)]*\)", re.I),
    re.compile(r"\\log_a x = \\frac\{\\ln x\}\{\\ln a\\ln b\}"),
)

DIRECTIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<\s*script\b", re.I),
    re.compile(r"<\s*iframe\b", re.I),
    re.compile(r"javascript\s*:", re.I),
    re.compile(r"<[^>]*\son[a-z]+\s*=", re.I),
    re.compile(r"\\(?:input|include)\s*\{"),
    re.compile(r"\\write18"),
    re.compile(r"\\immediate\s*\\write"),
    re.compile(r"\\openout"),
)

# Matched against each line, accent- and case-folded.
_PLACEHOLDER_LINE_RES = tuple(
    re.compile(p + r"[.!]*")
    for p in (
        r"\(?ai reply placeholder\)?",
        r"lorem ipsum.*",
        r"todo",
        r"tbd",
        r"n/?a",
        r"\.{3,}",
        r"contenu a venir",
        r"a completer",
        r"\[(?:inserer|insert)[^\]]*\]",
        r"placeholder",
    )
)

_DOUBLE_ESCAPED_RE = re.compile(
    r"(?<!\\)\\\\("
    r"frac|dfrac|sqrt|sum|prod|int|lim|infty|alpha|beta|gamma|delta|epsilon|varepsilon|theta|lambda|mu|pi"
    r"|sigma|omega|mathbb|mathrm|mathcal|cdot|times|leq?|geq?|neq|vec|overline|ln|log|exp|sin|cos|tan"
    r")(?![A-Za-z])"
)
_LITERAL_CRLF_RE = re.compile(r"(?<!\\)\\r\\n")
_QEQ1_RE = re.compile(r"(?<![A-Za-z\\])qeq\s*1|q\\neq1")


@dataclass(frozen=True)
class ValidationPolicy:
    max_latex_errors: int = 5
    min_repeated_sentence: int = 20
    reject_placeholders: bool = True
    repair_braces: bool = True
    garbage_patterns: tuple[re.Pattern[str], ...] = GARBAGE_PATTERNS
    math_error_patterns: tuple[re.Pattern[str], ...] = MATH_ERROR_PATTERNS
    directive_patterns: tuple[re.Pattern[str], ...] = DIRECTIVE_PATTERNS


DEFAULT_POLICY = ValidationPolicy()


def _is_placeholder_only(text: str) -> bool:
    lines = [ln.strip(" \t#*_>-:") for ln in _fold_accents(text).splitlines()]
    lines = [ln for ln in lines if ln]
    if not lines:
        return False
    return all(any(p.fullmatch(ln) for p in _PLACEHOLDER_LINE_RES) for ln in lines)


def _has_repeated_sentence(text: str, min_len: int) -> bool:
    seen: set[str] = set()
    for sentence in re.split(r"[.!?]+", text):
        s = sentence.strip()
        if len(s) <= min_len:
            continue
        if s in seen:
            return True
        seen.add(s)
    return False


def validate_latex_syntax(text: str) -> list[str]:
    """Structural problems inside math spans, one message per problem."""
    errors: list[str] = []
    segments, _ = iter_segments(text)
    math = [seg for seg in segments if seg.is_math]
    for n, seg in enumerate(math, start=1):
        preview = seg.raw[:50]
        if _brace_balance(seg.body) != 0:
            errors.append(f"Unbalanced braces in LaTeX block {n}: {preview}...")
        if "\\frac{" in seg.body and "}{" not in seg.body:
            errors.append(f"Malformed fraction in: {preview}...")
        if "\\lim_" in seg.body and "\\to" not in seg.body and "\\rightarrow" not in seg.body:
            errors.append(f"Malformed limit in: {preview}...")
    return errors


# -------------------------
# Soft fixes
# -------------------------

def _map_prose(text: str, fn: Callable[[str], str]) -> str:
    return "".join(chunk if is_code else fn(chunk) for is_code, chunk in _split_fenced(text))


def _fix_line_endings(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _map_prose(text, lambda s: _LITERAL_CRLF_RE.sub("\n", s))


def _fix_literal_newlines(text: str) -> str:
    return _map_prose(text, _replace_literal_newlines)


def _fix_double_escaped(text: str) -> str:
    return _map_prose(text, lambda s: _DOUBLE_ESCAPED_RE.sub(r"\\\1", s))


def _fix_qeq1(text: str) -> str:
    return _map_prose(text, lambda s: _QEQ1_RE.sub(r"q \\neq 1", s))


def _close_inline_braces(text: str) -> str:
    segments, _ = iter_segments(text)
    out: list[str] = []
    for seg in segments:
        missing = _brace_balance(seg.body) if seg.is_math and not seg.display else 0
        if missing > 0:
            closer = seg.raw[len(seg.raw) - len(seg.opener):]
            out.append(seg.opener + seg.body + "}" * missing + closer)
        else:
            out.append(seg.raw)
    return "".join(out)


_SOFT_FIXES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("Windows line endings or literal \\r\\n sequences", _fix_line_endings),
    ("Literal \\n sequences instead of line breaks", _fix_literal_newlines),
    ("Double-escaped LaTeX commands", _fix_double_escaped),
    ("Known q \\neq 1 artifact", _fix_qeq1),
)


def validate_content(text: str, policy: Optional[ValidationPolicy] = None) -> ValidationReport:
    policy = policy or DEFAULT_POLICY
    errors: list[str] = []
    reject = False

    if not text or not text.strip():
        logger.warning("Content rejected: empty")
        return ValidationReport(is_valid=False, should_reject=True, errors=["Content is empty"])

    if policy.reject_placeholders and _is_placeholder_only(text):
        errors.append("Content is placeholder-only")
        reject = True
    if any(p.search(text) for p in policy.garbage_patterns):
        errors.append("Content contains forbidden nonsense text or patterns")
        reject = True
    if any(p.search(text) for p in policy.math_error_patterns):
        errors.append("Content contains mathematically incorrect statements")
        reject = True
    for p in policy.directive_patterns:
        m = p.search(text)
        if m:
            errors.append(f"Content contains an injected directive: {m.group(0)!r}")
            reject = True

    if _has_repeated_sentence(text, policy.min_repeated_sentence):
        errors.append("Content contains repeated meaningless phrases")

    latex_errors = validate_latex_syntax(text)
    errors.extend(latex_errors)
    if len(latex_errors) > policy.max_latex_errors:
        reject = True

    errors.extend(msg for msg, fix in _SOFT_FIXES if fix(text) != text)

    if reject:
        logger.warning("Content rejected: %s", "; ".join(errors))
    return ValidationReport(is_valid=not errors, should_reject=reject, errors=errors)


def sanitize_content(text: str, policy: Optional[ValidationPolicy] = None) -> SanitizeResult:
    """
    Apply the soft fixes only. Reject-class content is left in place so that
    validate_content() still flags it.
    """
    policy = policy or DEFAULT_POLICY
    if not text:
        return SanitizeResult(sanitized=text or "", was_modified=False)

    out = text
    for _, fix in _SOFT_FIXES:
        out = fix(out)
    if policy.repair_braces:
        out = _close_inline_braces(out)

    modified = out != text
    if modified:
        logger.debug("Sanitized content (%d -> %d chars)", len(text), len(out))
    return SanitizeResult(sanitized=out, was_modified=modified)
