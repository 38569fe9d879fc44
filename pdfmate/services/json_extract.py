# =============================================================================
# Tolerant JSON Extraction — structured data out of free-form model output
# =============================================================================
#
# LLMs asked for "JSON only" still wrap it in ```json fences, add a sentence
# of preamble, or trail off with commentary. extract_json() finds the first
# balanced JSON array or object in the text that actually parses.
#
#   'Here you go:\n```json\n[{"q": 1}]\n```'  →  [{"q": 1}]
#   'no json here'                           →  ParseError
# =============================================================================

from __future__ import annotations

import json
import re
from typing import Any

from pdfmate.errors import ParseError

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_CLOSERS = {"[": "]", "{": "}"}


def extract_json(text: str) -> Any:
    """
    Parse the first JSON array or object embedded in `text`.

    Fenced code blocks are tried first, then the raw text. Within each
    candidate, every "[" or "{" is tried as a start position until a
    balanced substring parses.

    Raises:
        ParseError: If no parseable JSON array/object is found.
    """
    if not text or not text.strip():
        raise ParseError("Model returned an empty response")

    candidates = [match.group(1) for match in _FENCE_RE.finditer(text)]
    candidates.append(text)

    for candidate in candidates:
        value = _first_balanced_value(candidate)
        if value is not None:
            return value

    preview = text.strip()[:80]
    raise ParseError(f"No JSON array or object found in model output: {preview!r}")


def _first_balanced_value(text: str) -> Any | None:
    for start, char in enumerate(text):
        if char not in _CLOSERS:
            continue
        end = _balanced_end(text, start)
        if end is None:
            continue
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            continue
    return None


def _balanced_end(text: str, start: int) -> int | None:
    """Index of the bracket closing the one at `start`, ignoring string contents."""
    stack = [_CLOSERS[text[start]]]
    in_string = False
    escaped = False

    for index in range(start + 1, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("]", "}"):
            if char != stack.pop():
                return None
            if not stack:
                return index
    return None
