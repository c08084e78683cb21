"""Recover a JSON object from free-form oracle output."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional

from avvcheck.errors import MalformedOutputError

LOGGER = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_FENCE_MARKER_RE = re.compile(r"```[ \t]*(?:json|JSON)?")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_SMART_QUOTES = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',
        "«": '"',
        "»": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "′": "'",
    }
)


def _loads_object(candidate: Optional[str]) -> Optional[Dict[str, Any]]:
    if candidate is None or not candidate.strip():
        return None
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _fenced_blocks(text: str) -> Iterator[str]:
    for match in _FENCED_BLOCK_RE.finditer(text):
        yield match.group(1)


def find_balanced_object(text: str) -> Optional[str]:
    """Return the substring from the first ``{`` to its matching ``}``.

    Braces inside string literals are ignored and backslash escapes are
    honoured. Returns ``None`` when the object is never closed.
    """

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
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
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : position + 1]
    return None


def repair_json_text(text: str) -> str:
    """Apply the bounded set of lossy repairs used as a last resort."""

    repaired = text.lstrip("\ufeff")
    repaired = repaired.translate(_SMART_QUOTES)
    repaired = _FENCE_MARKER_RE.sub("", repaired)
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def extract_json(raw_output: str) -> Dict[str, Any]:
    """Recover the structured record embedded in *raw_output*.

    Raises :class:`MalformedOutputError` when nothing parseable is found.
    """

    if not raw_output or not raw_output.strip():
        raise MalformedOutputError("Oracle returned an empty response")

    for block in _fenced_blocks(raw_output):
        parsed = _loads_object(block)
        if parsed is not None:
            return parsed

    candidate = find_balanced_object(raw_output)
    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed

    repaired = repair_json_text(raw_output)
    parsed = _loads_object(find_balanced_object(repaired))
    if parsed is not None:
        LOGGER.info("Recovered oracle output after lossy repairs")
        return parsed

    preview = raw_output.strip()[:120]
    raise MalformedOutputError(f"No JSON object found in oracle output: {preview!r}")


__all__ = ["extract_json", "find_balanced_object", "repair_json_text"]
