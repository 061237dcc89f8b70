"""
src/utils/json_parser.py — Tolerant JSON decoding of language-model replies.

Model replies are untrusted text. They may arrive:
  - wrapped in markdown code fences (```json ... ```)
  - with raw newlines / tabs inside string values, or a trailing comma
  - surrounded by a sentence of prose before or after the JSON
  - as a one-element array around the object that was asked for

`parse_model_json` applies the cleanup stages cumulatively and returns the
first stage that decodes. `parse_reply` then validates the decoded object
against a pydantic schema so callers never touch raw dicts.
"""

import json
import logging
import re
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")

_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}
_CLOSERS = {"{": "}", "[": "]"}


def strip_fences(raw: str) -> str:
    """Drop a leading ```lang line and a trailing ``` line."""
    text = _FENCE_OPEN.sub("", raw.strip())
    return _FENCE_CLOSE.sub("", text).strip()


def normalise_literals(raw: str) -> str:
    """Single string-aware pass over `raw`.

    Inside string literals, control characters are escaped. Outside them, a
    comma directly followed by a closing bracket is dropped. Structural
    whitespace is left alone.
    """
    out: list[str] = []
    inside = False
    escaped = False
    for pos, ch in enumerate(raw):
        if inside:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                inside = False
            elif ord(ch) < 0x20:
                out.append(_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
                continue
        elif ch == '"':
            inside = True
        elif ch == "," and raw[pos + 1:].lstrip()[:1] in ("}", "]"):
            continue
        out.append(ch)
    return "".join(out)


def extract_json_block(raw: str) -> str:
    """Return the balanced block opened by the first { or [ in `raw`, or `raw` itself."""
    starts = [i for i in (raw.find("{"), raw.find("[")) if i != -1]
    if not starts:
        return raw
    start = min(starts)
    opener, closer = raw[start], _CLOSERS[raw[start]]
    depth = 0
    inside = False
    escaped = False
    for pos in range(start, len(raw)):
        ch = raw[pos]
        if inside:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                inside = False
        elif ch == '"':
            inside = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return raw[start:pos + 1]
    return raw


_STAGES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("fences", strip_fences),
    ("literals", normalise_literals),
    ("block", extract_json_block),
)


def parse_model_json(raw: str, context: str = "") -> Any:
    """Decode a JSON reply from the model, cleaning common formatting noise.

    Args:
        raw:     Raw text content of the model reply.
        context: Label for error logging (e.g. "article classification").

    Raises:
        json.JSONDecodeError: if no cleanup stage produces valid JSON.
    """
    if not raw or not raw.strip():
        raise json.JSONDecodeError("Empty response", raw or "", 0)

    text = raw
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        last_error = exc

    for stage, clean in _STAGES:
        text = clean(text)
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            last_error = exc
            continue
        logger.debug("parse_model_json[%s]: decoded after '%s' cleanup", context, stage)
        return value

    logger.error("parse_model_json[%s] could not decode reply. raw[:300]=%s", context, raw[:300])
    raise last_error


def parse_reply(raw: str, schema: type[SchemaT], context: str = "") -> SchemaT:
    """Decode `raw` and validate it against `schema`.

    A one-element array holding an object is unwrapped first.

    Raises:
        json.JSONDecodeError: reply is not JSON at all.
        ValueError: JSON decoded but is not an object, or fails validation.
    """
    label = context or "model reply"
    data = parse_model_json(raw, context=context)
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        raise ValueError(f"{label}: expected a JSON object, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        logger.warning("parse_reply[%s]: schema validation failed: %s", label, exc)
        raise ValueError(f"{label} failed validation") from exc
