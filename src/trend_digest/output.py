"""Output contract for model text: JSON extraction and field sanitizing."""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Iterable
from typing import Any

import structlog

from trend_digest.exceptions import MalformedOutputError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

_OPENERS = {"{": "}", "[": "]"}

# Emoji, pictographs and dingbats, plus the invisible joiners and
# selectors that glue multi-codepoint emoji together.
_PICTOGRAPHIC_RE = re.compile(
    "["
    "\U0001f000-\U0001faff"
    "\u2600-\u27bf"
    "\u2300-\u23ff"
    "\u2b00-\u2bff"
    "\u2194-\u2199\u21a9\u21aa"
    "\u2122\u2139\u24c2"
    "\u25aa\u25ab\u25b6\u25c0\u25fb-\u25fe"
    "\u3030\u303d\u3297\u3299"
    "\u00a9\u00ae"
    "\u200d\u20e3"
    "\ufe00-\ufe0f"
    "\U000e0020-\U000e007f"
    "]"
)
_GENERAL_PUNCTUATION_RE = re.compile("[\u2000-\u206f]")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_SANITIZED_FIELDS = ("subject", "title", "sections[].title")


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def _balanced_end(text: str, start: int) -> int | None:
    """Index just past the bracket matching ``text[start]``, string-aware."""
    stack = [_OPENERS[text[start]]]
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
        elif char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in "}]":
            if char != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return index + 1
    return None


def _top_level_spans(text: str) -> list[str] | None:
    """Balanced spans that are not nested in another span.

    Returns None when an opener never balances: everything after it
    belongs to a truncated or broken value.
    """
    spans: list[str] = []
    index = 0
    while index < len(text):
        if text[index] in _OPENERS:
            end = _balanced_end(text, index)
            if end is None:
                return None
            spans.append(text[index:end])
            index = end
        else:
            index += 1
    return spans


def _parses(span: str) -> bool:
    try:
        json.loads(span)
    except json.JSONDecodeError:
        return False
    return True


def extract_json(text: str) -> str:
    """Return the JSON object or array embedded in model text.

    Fenced code blocks are searched before the surrounding prose. Within
    each region only outermost spans are candidates, and the longest one
    that parses wins, so a citation like ``[1]`` never beats the real
    payload. If no candidate parses, the first balanced span is returned
    so the caller's parse reports the real error. An opener that never
    balances means the output was cut off; the text then comes back
    unchanged rather than as a fragment nested inside it.

    Args:
        text: Free-form model output.

    Returns:
        The outermost JSON span, or ``text`` itself.
    """
    regions = [match.group(1) for match in _JSON_FENCE_RE.finditer(text)]
    regions.append(text)

    first_balanced: str | None = None
    for region in regions:
        spans = _top_level_spans(region)
        if spans is None:
            return text
        parseable = [span for span in spans if _parses(span)]
        if parseable:
            return max(parseable, key=len)
        if first_balanced is None and spans:
            first_balanced = spans[0]

    return first_balanced if first_balanced is not None else text


def parse_json_output(text: str) -> Any:
    """Extract and parse JSON from model text.

    Raises:
        MalformedOutputError: If no parseable JSON value is present.
    """
    candidate = extract_json(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        logger.warning("malformed_model_output", error=str(exc), preview=text[:200])
        raise MalformedOutputError(f"Model output is not valid JSON: {exc}", raw_text=text) from exc


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------


def sanitize_text(text: str) -> str:
    """Strip emoji and pictographic symbols, then normalize whitespace."""
    cleaned = _PICTOGRAPHIC_RE.sub("", text)
    cleaned = _GENERAL_PUNCTUATION_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def _sanitize_path(node: Any, parts: list[str]) -> None:
    if not parts or not isinstance(node, dict):
        return
    head, rest = parts[0], parts[1:]

    if head.endswith("[]"):
        items = node.get(head[:-2])
        if isinstance(items, list):
            for item in items:
                _sanitize_path(item, rest)
        return

    if rest:
        _sanitize_path(node.get(head), rest)
    elif isinstance(node.get(head), str):
        node[head] = sanitize_text(node[head])


def sanitize_artifact(
    artifact: dict[str, Any],
    fields: Iterable[str] = DEFAULT_SANITIZED_FIELDS,
) -> dict[str, Any]:
    """Return a copy of ``artifact`` with the designated text fields sanitized.

    Field paths use dots for nesting and ``[]`` for lists, e.g.
    ``sections[].title``. Fields not named are left as generated.
    """
    cleaned = copy.deepcopy(artifact)
    for path in fields:
        _sanitize_path(cleaned, path.split("."))
    return cleaned
