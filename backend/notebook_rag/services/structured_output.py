"""
Parsing of JSON produced by the language model.

Models wrap JSON in prose or code fences, leave trailing commas, forget to
quote keys and get cut off mid-array. All repair heuristics live behind
parse_structured() so callers only ever see a ParseOutcome.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

from notebook_rag.core.exceptions import ParseError

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_UNQUOTED_KEY = re.compile(r'([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:')

_CLOSERS = {"{": "}", "[": "]"}
MAX_CANDIDATES = 5


@dataclass
class ParseOutcome:
    value: Any = None
    error: Optional[ParseError] = None
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def _next_opener(text: str, pos: int) -> int:
    for i in range(pos, len(text)):
        if text[i] in "{[":
            return i
    return -1


def extract_json_span(text: str, start: int = None) -> Optional[str]:
    """
    Returns the top-level {...} or [...] span beginning at the first opener
    (or at `start`). An unterminated span runs to the end of the text.
    """
    if start is None:
        start = _next_opener(text, 0)
        if start == -1:
            return None

    depth = 0
    quote = None
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if quote:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return text[start:]


def top_level_spans(text: str) -> Iterator[str]:
    """Yields successive top-level spans; openers nested inside a span are never candidates."""
    pos = 0
    for _ in range(MAX_CANDIDATES):
        start = _next_opener(text, pos)
        if start == -1:
            return
        span = extract_json_span(text, start)
        yield span
        pos = start + len(span)


def split_strings(text: str) -> List[Tuple[bool, str]]:
    """
    Splits text into (is_string, segment) pairs. Single-quoted strings come
    back double-quoted; an unterminated string is returned without its
    closing quote.
    """
    segments = []
    buf = []
    quote = None
    escape = False
    for ch in text:
        if quote is None:
            if ch in "\"'":
                if buf:
                    segments.append((False, "".join(buf)))
                buf = ['"']
                quote = ch
            else:
                buf.append(ch)
            continue

        if escape:
            escape = False
            if quote == "'" and ch == "'":
                # \' is not a JSON escape
                buf[-1] = "'"
            else:
                buf.append(ch)
        elif ch == "\\":
            escape = True
            buf.append(ch)
        elif ch == quote:
            buf.append('"')
            segments.append((True, "".join(buf)))
            buf = []
            quote = None
        elif ch == '"':
            buf.append('\\"')
        else:
            buf.append(ch)

    if buf:
        segments.append((quote is not None, "".join(buf)))
    return segments


def _sub_outside_strings(pattern: re.Pattern, repl: str, text: str) -> str:
    return "".join(
        segment if is_string else pattern.sub(repl, segment)
        for is_string, segment in split_strings(text)
    )


def normalize_json(candidate: str) -> str:
    """Applies the textual repairs for common model malformations, leaving string contents alone."""
    fixed = _CONTROL_CHARS.sub(" ", candidate)
    fixed = _sub_outside_strings(_UNQUOTED_KEY, r'\1"\2":', fixed)
    return _sub_outside_strings(_TRAILING_COMMA, r"\1", fixed)


def close_truncated(candidate: str) -> str:
    """Closes an unterminated string and appends missing closers in nesting order."""
    stack = []
    in_string = False
    escape = False
    for ch in candidate:
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]" and stack:
            stack.pop()

    fixed = candidate
    if in_string:
        if escape:
            fixed = fixed[:-1]
        fixed += '"'
    if not stack:
        return fixed

    fixed = fixed.rstrip()
    while fixed.endswith(","):
        fixed = fixed[:-1].rstrip()
    if fixed.endswith(":"):
        fixed += " null"
    return fixed + "".join(_CLOSERS[opener] for opener in reversed(stack))


def _parse_candidate(span: str) -> ParseOutcome:
    try:
        return ParseOutcome(value=json.loads(span))
    except json.JSONDecodeError:
        pass

    repaired = _sub_outside_strings(_TRAILING_COMMA, r"\1", close_truncated(normalize_json(span)))
    try:
        return ParseOutcome(value=json.loads(repaired), repaired=True)
    except json.JSONDecodeError as e:
        return ParseOutcome(error=ParseError(
            "Failed to parse JSON after cleanup",
            detail=f"{e.msg} at position {e.pos}; input starts with: {repaired[:200]}",
        ))


def parse_structured(text: str, expect: type = None) -> ParseOutcome:
    """
    Locates, repairs and parses the JSON value in a model response.

    Only top-level spans are tried, in order. `expect` (dict or list) skips
    spans of the wrong shape, so prose like "[Note] here is the map: {...}"
    still yields the object.
    """
    if not text or not text.strip():
        return ParseOutcome(error=ParseError("Empty response", detail="The model returned no text."))

    first_error = None
    for span in top_level_spans(text):
        outcome = _parse_candidate(span)
        if outcome.ok and (expect is None or isinstance(outcome.value, expect)):
            if outcome.repaired:
                logger.info("Structured output required repair before parsing.")
            return outcome
        if outcome.ok:
            outcome = ParseOutcome(error=ParseError(
                "Unexpected JSON shape",
                detail=f"Expected {expect.__name__}, got {type(outcome.value).__name__}",
            ))
        first_error = first_error or outcome.error

    if first_error is None:
        return ParseOutcome(error=ParseError("No JSON object found in response", detail=text[:200]))

    logger.warning(f"Structured output could not be parsed: {first_error.detail}")
    return ParseOutcome(error=first_error)
