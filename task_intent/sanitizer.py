"""
Cleanup and repair of oracle output.

The oracle is asked for a single JSON object but may wrap it in markdown
fences, chat before or after it, or get truncated by its own output budget.
`decode` runs the recovery stages in order (direct parse, then repair) and
reports which one succeeded.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ParseError

logger = logging.getLogger("task-intent.sanitizer")

_FENCE_OPEN_RE = re.compile(r"^```[\w-]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')


def sanitize(raw: Optional[str]) -> str:
    """Strip code fences and narrow to the outermost ``{...}`` span."""
    if not raw or not isinstance(raw, str):
        return ""

    cleaned = raw.strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    cleaned = cleaned.strip()

    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first:last + 1]
    elif first != -1:
        # Truncated before the closing brace; keep from the opener on
        cleaned = cleaned[first:]

    return cleaned


def repair(cleaned: str) -> str:
    """Close structures left open by truncation.

    Appends the missing closing brackets, then the missing closing braces,
    and removes trailing commas before a closer. Assumes one top-level
    object that is well formed up to the truncation point.
    """
    repaired = cleaned.strip()

    # Truncated inside a string value
    if len(_UNESCAPED_QUOTE_RE.findall(repaired)) % 2 == 1:
        repaired += '"'

    open_braces = repaired.count("{") - repaired.count("}")
    open_brackets = repaired.count("[") - repaired.count("]")

    if open_brackets > 0:
        repaired += "]" * open_brackets
    elif open_brackets < 0:
        repaired = _drop_last(repaired, "]", -open_brackets)

    if open_braces > 0:
        repaired += "}" * open_braces
    elif open_braces < 0:
        repaired = _drop_last(repaired, "}", -open_braces)

    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def _drop_last(text: str, closer: str, count: int) -> str:
    for _ in range(count):
        pos = text.rfind(closer)
        text = text[:pos] + text[pos + 1:]
    return text


@dataclass
class DecodeResult:
    """Outcome of decoding one oracle response."""

    payload: Optional[Dict[str, Any]] = None
    stage: Optional[str] = None  # "direct" | "repaired"
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None

    def unwrap(self) -> Dict[str, Any]:
        if self.payload is None:
            raise ParseError(self.error or "no structured object in oracle output")
        return self.payload


def _load(text: str, stage: str) -> DecodeResult:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        return DecodeResult(error=f"{stage}: {exc.msg} at position {exc.pos}")
    if not isinstance(value, dict):
        return DecodeResult(error=f"{stage}: expected an object, got {type(value).__name__}")
    return DecodeResult(payload=value, stage=stage)


def decode(raw: Optional[str]) -> DecodeResult:
    """Sanitize and parse oracle output, repairing it once if needed."""
    cleaned = sanitize(raw)
    if not cleaned:
        return DecodeResult(error="empty oracle output")

    direct = _load(cleaned, "direct")
    if direct.ok:
        return direct

    logger.info(f"Invalid JSON from oracle ({direct.error}), attempting repair")
    repaired = _load(repair(cleaned), "repaired")
    if repaired.ok:
        return repaired

    logger.warning(f"JSON repair failed: {repaired.error}")
    return DecodeResult(error=f"{direct.error}; {repaired.error}")
