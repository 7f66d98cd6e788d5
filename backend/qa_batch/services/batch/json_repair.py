"""Best-effort repair of truncated or malformed JSON returned by the AI.

The AI flow frequently stops mid-object when it runs out of output tokens.
repair_json() recovers what it can and reports the outcome as a
RepairResult; it never raises.

Attempts, in order:
  1. direct parse of the first {...} span
  2. close an open string, drop a dangling comma, complete a dangling
     colon with null, then append the missing closers
  3. drop the last incomplete element before the end and close again
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

_OPENERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class RepairResult:
    ok: bool
    value: Any = None
    repaired: bool = False
    error: Optional[str] = None


@dataclass
class _ScanState:
    stack: list
    in_string: bool
    dangling_escape: bool
    # Index of the last ',' or opener outside strings, -1 if none
    last_separator: int
    last_opener: int


def extract_json_span(text: str) -> Optional[str]:
    """Return the first balanced {...} object in text.

    Braces inside strings are ignored. When the first object never
    closes (output cut mid-object), the rest of the text from its '{'
    is returned so it can still be repaired.
    """
    if not text:
        return None

    brace_count = 0
    start_index = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"' and start_index != -1:
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            if start_index == -1:
                start_index = i
            brace_count += 1
        elif char == "}" and start_index != -1:
            brace_count -= 1
            if brace_count == 0:
                return text[start_index:i + 1]

    if start_index == -1:
        return None
    return text[start_index:].rstrip()


def _scan(text: str) -> _ScanState:
    stack: list[str] = []
    in_string = False
    escape_next = False
    last_separator = -1
    last_opener = -1

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in _OPENERS:
            stack.append(char)
            last_opener = i
        elif char in "}]":
            if stack:
                stack.pop()
        elif char == ",":
            last_separator = i

    return _ScanState(stack, in_string, escape_next, last_separator, last_opener)


def _close(text: str) -> str:
    """Close an open string, fix a dangling ',' or ':' and balance closers."""
    state = _scan(text)
    if state.dangling_escape:
        text = text[:-1]
    if state.in_string:
        text += '"'

    text = text.rstrip()
    if text.endswith(","):
        text = text[:-1].rstrip()
    if text.endswith(":"):
        text += " null"

    closers = "".join(_OPENERS[c] for c in reversed(state.stack))
    return text + closers


def _drop_last_fragment(text: str) -> str:
    """Cut back to the last ',' or opener outside a string."""
    state = _scan(text)
    if state.last_separator > state.last_opener:
        return text[:state.last_separator]
    if state.last_opener >= 0:
        return text[:state.last_opener + 1]
    return text


def _try_parse(text: str) -> tuple[Any, Optional[str]]:
    try:
        return json.loads(text), None
    except (ValueError, RecursionError) as e:
        return None, str(e) or type(e).__name__


def repair_json(raw: str) -> RepairResult:
    """Parse the first JSON object in raw, repairing truncation if needed."""
    span = extract_json_span(raw or "")
    if span is None:
        return RepairResult(ok=False, error="No JSON object found in response")

    value, err = _try_parse(span)
    if err is None:
        return RepairResult(ok=True, value=value)

    closed = _close(span)
    value, err = _try_parse(closed)
    if err is None:
        logger.warning("Repaired truncated JSON response")
        return RepairResult(ok=True, value=value, repaired=True)

    trimmed = _close(_drop_last_fragment(span))
    value, err = _try_parse(trimmed)
    if err is None:
        logger.warning("Repaired JSON response after dropping incomplete element")
        return RepairResult(ok=True, value=value, repaired=True)

    logger.error("All JSON repair attempts failed: %s", span[:200])
    return RepairResult(ok=False, error=f"Invalid JSON in response: {err}")
