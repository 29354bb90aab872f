# src/utils/json_parser.py

"""
Permissive JSON extraction for text that came from a person or a model.

Pasted portfolios and agent replies often wrap the JSON document in prose or a
markdown code fence. ``parse_llm_json`` tries, in order: the whole text, every
fenced block, then every balanced ``{...}`` / ``[...]`` span, and returns the
first candidate that decodes.
"""

import json
import math
import re
from typing import Any, Iterator

from src.utils.logging import setup_logger

LOGGER = setup_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

_PAIRS = {"{": "}", "[": "]"}


class JSONExtractionError(ValueError):
    """No decodable JSON document was found in the text."""


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every top-level balanced object/array span, respecting string literals."""
    i = 0
    n = len(text)
    while i < n:
        opener = text[i]
        if opener not in _PAIRS:
            i += 1
            continue

        stack = [_PAIRS[opener]]
        in_string = False
        escaped = False
        j = i + 1
        while j < n and stack:
            ch = text[j]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch in _PAIRS:
                stack.append(_PAIRS[ch])
            elif ch == stack[-1]:
                stack.pop()
            elif ch in "}]":
                # Mismatched closer, abandon this start position
                break
            j += 1

        if not stack:
            yield text[i:j]
            i = j
        else:
            i += 1


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        # Models like to leave trailing commas behind
        value = json.loads(_TRAILING_COMMA_RE.sub(r"\1", candidate))
        LOGGER.debug("Recovered JSON by stripping trailing commas")
        return value


def parse_llm_json(text: str) -> Any:
    """
    Extract the first JSON document embedded in ``text``.

    Args:
        text: Raw text, e.g. a pasted portfolio or an agent's reply

    Returns:
        The decoded JSON value (usually a dict)

    Raises:
        JSONExtractionError: if nothing in the text decodes as JSON

    Example:
        parse_llm_json('Here you go:\\n```json\\n{"portfolio_id": "P1"}\\n```')
        -> {"portfolio_id": "P1"}
    """
    if not isinstance(text, str):
        raise JSONExtractionError(f"Expected text, got {type(text).__name__}")

    stripped = text.strip()
    if not stripped:
        raise JSONExtractionError("No JSON content found: input is empty")

    candidates = [stripped]
    candidates.extend(match.group(1) for match in _FENCE_RE.finditer(stripped))
    candidates.extend(_balanced_spans(stripped))

    for candidate in candidates:
        try:
            return _loads(candidate)
        except json.JSONDecodeError:
            continue

    raise JSONExtractionError("No valid JSON object could be extracted from the input")


def try_parse_llm_json(text: Any) -> Any:
    """Like ``parse_llm_json`` but returns ``None`` instead of raising."""
    try:
        return parse_llm_json(text)
    except JSONExtractionError:
        return None


def js_normalize(value: Any) -> Any:
    """
    Recursively rewrite numbers the way JavaScript would serialize them.

    Whole-number floats become ints (``45.0`` -> ``45``) and NaN/Infinity become
    ``None``, so ``json.dumps`` output matches ``JSON.stringify``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, dict):
        return {key: js_normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [js_normalize(item) for item in value]
    return value
