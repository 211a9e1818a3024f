from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .errors import LlmJsonError
from .text_utils import _LATEX_NRT_COMMANDS, _alternation

logger = logging.getLogger(__name__)

_HEX4_RE = re.compile(r"[0-9a-fA-F]{4}")

# "\ne" and "\ni" are left out: after a real newline they are ordinary French words.
_NRT_COMMAND_RE = re.compile(_alternation(_LATEX_NRT_COMMANDS))

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _is_valid_json(raw: str) -> bool:
    try:
        json.loads(raw)
    except ValueError:
        return False
    return True


def _repair_escape(raw: str, i: int) -> tuple[str, int]:
    """Rewrite the backslash at raw[i] (inside a string literal). Returns (text, next index)."""
    nxt = raw[i + 1:i + 2]
    if not nxt:
        return "\\\\", i + 1
    if nxt in "\"\\/":
        return raw[i:i + 2], i + 2
    if nxt == "u" and _HEX4_RE.match(raw, i + 2):
        return raw[i:i + 6], i + 6
    if nxt in "bf":
        # \beta, \frac: a letter follows, so it is LaTeX rather than backspace / form feed
        if raw[i + 2:i + 3].isalpha():
            return "\\\\" + nxt, i + 2
        return raw[i:i + 2], i + 2
    if nxt in "nrt":
        if _NRT_COMMAND_RE.match(raw, i + 1):
            return "\\\\" + nxt, i + 2
        return raw[i:i + 2], i + 2
    # \v, \s, \l, \{, ... are not JSON escapes at all
    return "\\\\", i + 1


def fix_latex_json_escapes(raw: str) -> str:
    """
    Make LaTeX-bearing model output parseable as JSON.

    Models write "\\frac" or "\\beta" inside JSON strings without doubling the
    backslash, and put raw newlines in string values. Inside string literals
    this doubles backslashes that start LaTeX commands and escapes control
    characters. Text outside strings is never touched, and input that already
    parses is returned unchanged.
    """
    if not raw or _is_valid_json(raw):
        return raw

    out: list[str] = []
    in_string = False
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            i += 1
            continue

        if ch == '"':
            in_string = False
            out.append(ch)
            i += 1
        elif ch == "\\":
            piece, i = _repair_escape(raw, i)
            out.append(piece)
        elif ch in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[ch])
            i += 1
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
            i += 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _strip_code_fences(raw: str) -> Optional[str]:
    s = raw.strip()
    if "```" not in s:
        return None
    s = re.sub(r"^```(?:\w+)?\s*\n?", "", s)
    s = re.sub(r"\n?\s*```\s*$", "", s)
    return s.replace("```", "").strip()


def _slice_object(raw: str) -> Optional[str]:
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return raw[start:end + 1]


_STRATEGIES = (
    ("direct", lambda s: s),
    ("strip_fences", _strip_code_fences),
    ("slice_object", _slice_object),
)


def parse_llm_json(raw: str) -> Any:
    """
    Parse a model completion that is supposed to be a JSON object.

    Tries the repaired text as is, then without Markdown code fences, then the
    span from the first '{' to the last '}'. Raises LlmJsonError when all fail.
    """
    attempts: list[str] = []
    for name, extract in _STRATEGIES:
        candidate = extract(raw or "")
        if not candidate:
            attempts.append(f"{name}: nothing to parse")
            continue
        try:
            value = json.loads(fix_latex_json_escapes(candidate))
        except ValueError as e:
            attempts.append(f"{name}: {e}")
            continue
        logger.debug("Parsed model JSON with strategy %s", name)
        return value
    logger.warning("Model output is not JSON (%d strategies failed)", len(attempts))
    raise LlmJsonError("Could not parse the model output as JSON", attempts)
