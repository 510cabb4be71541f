"""
Recursive Unwrapper - extracts human-readable text from structured payloads.

The producing workflow engine has no schema contract, so payloads are matched
against a small set of known shapes (a tagged union) instead of ad hoc field lookups:

- PlainText:    already a string
- WrappedText:  {"response": "..."} or one level deeper {"output": {"text": "..."}}
- ListPayload:  [...], each element unwrapped on its own
- ScalarValue:  number / bool / null
- UnknownShape: an object with none of the known fields (pretty-printed)

Field priority and the nesting cap come from ContentSettings. Text kept as-is
at the nesting cap is flagged depth_capped; passing the NormalizedContent
back into normalize_payload returns it unchanged.
Never raises; never returns empty text unless the input was empty.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, List, Optional, Sequence, Tuple, Union

from planchat.config import settings
from planchat.content.classifier import ContentKind, classify_content, parse_structured

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class WrappedText:
    path: Tuple[str, ...]  # ("response",) or ("output", "text")
    text: str


@dataclass(frozen=True)
class ListPayload:
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class ScalarValue:
    value: Any


@dataclass(frozen=True)
class UnknownShape:
    raw_value: Any


PayloadShape = Union[PlainText, WrappedText, ListPayload, ScalarValue, UnknownShape]


@dataclass
class NormalizedContent:
    """Result of running a payload through classification and unwrapping."""
    kind: ContentKind  # kind of the ORIGINAL payload
    text: str
    shapes: List[str] = field(default_factory=list)  # shape names seen while unwrapping
    depth_capped: bool = False  # unwrapping stopped at the nesting cap; text is terminal

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def _find_field(obj: dict, field_priority: Sequence[str]) -> Optional[Tuple[str, str]]:
    for name in field_priority:
        value = obj.get(name)
        if isinstance(value, str) and value.strip():
            return name, value
    return None


def detect_shape(value: Any, field_priority: Optional[Sequence[str]] = None) -> PayloadShape:
    """
    Match a decoded value against the known producer shapes.

    Top-level fields are searched first in priority order; then objects nested
    one level down (priority-named fields first, then the rest in document order).
    """
    if field_priority is None:
        field_priority = settings.unwrap_field_priority

    if isinstance(value, str):
        return PlainText(value)

    if isinstance(value, list):
        return ListPayload(tuple(value))

    if not isinstance(value, dict):
        return ScalarValue(value)

    found = _find_field(value, field_priority)
    if found:
        return WrappedText((found[0],), found[1])

    nested_keys = [name for name in field_priority if isinstance(value.get(name), dict)]
    nested_keys += [key for key, item in value.items() if isinstance(item, dict) and key not in nested_keys]
    for key in nested_keys:
        found = _find_field(value[key], field_priority)
        if found:
            return WrappedText((key, found[0]), found[1])

    return UnknownShape(value)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def _decode_string_literal(text: str) -> Optional[str]:
    """Decode a doubly-escaped payload ("{\\"response\\": ...}") to its inner text."""
    trimmed = text.strip()
    if len(trimmed) < 2 or trimmed[0] != '"' or trimmed[-1] != '"':
        return None
    try:
        decoded = json.loads(trimmed)
    except ValueError:
        return None
    if isinstance(decoded, str) and parse_structured(decoded)[0]:
        return decoded
    return None


class _Unwrapper:
    def __init__(self, field_priority: Sequence[str], max_depth: int):
        self.field_priority = list(field_priority)
        self.max_depth = max_depth
        self.shapes: List[str] = []
        self.depth_capped = False

    def from_text(self, text: str, depth: int) -> str:
        if depth >= self.max_depth:
            if _decode_string_literal(text) is not None or parse_structured(text)[0]:
                logger.warning(f"[UNWRAPPER] Nesting cap {self.max_depth} reached, keeping the remaining wrapper as text")
                self.depth_capped = True
            return text

        inner = _decode_string_literal(text)
        if inner is not None:
            logger.debug("[UNWRAPPER] Decoded doubly-escaped payload")
            return self.from_text(inner, depth + 1)

        is_structured, value = parse_structured(text)
        if not is_structured:
            return text
        return self.from_value(value, depth + 1)

    def from_value(self, value: Any, depth: int) -> str:
        shape = detect_shape(value, self.field_priority)
        self.shapes.append(type(shape).__name__)

        if isinstance(shape, (PlainText, WrappedText)):
            if isinstance(shape, WrappedText):
                logger.debug(f"[UNWRAPPER] Extracted text from field path {'.'.join(shape.path)}")
            if classify_content(shape.text) is ContentKind.STRUCTURED_DATA:
                return self.from_text(shape.text, depth)
            return shape.text

        if isinstance(shape, ListPayload):
            parts = []
            for item in shape.items:
                if isinstance(item, str):
                    part = self.from_text(item, depth)
                else:
                    part = self.from_value(item, depth)
                if part.strip():
                    parts.append(part)
            return "\n\n".join(parts) if parts else _dump(list(shape.items))

        if isinstance(shape, ScalarValue):
            return _dump(shape.value)

        logger.debug("[UNWRAPPER] No known wrapper field, falling back to a pretty-printed dump")
        return _dump(shape.raw_value)


def unwrap_payload(
    payload: Any,
    field_priority: Optional[Sequence[str]] = None,
    max_depth: Optional[int] = None,
) -> str:
    """
    Extract the human-readable text from a structured-data payload.

    Args:
        payload: JSON text, or an already-decoded dict/list
        field_priority: Field names tried in order (defaults from settings)
        max_depth: Nesting cap; after it the extracted string is returned as-is

    Returns:
        NormalizedText. Text that is not structured data is returned unchanged.
    """
    return _unwrap(payload, field_priority, max_depth).text


@dataclass
class _UnwrapResult:
    text: str
    shapes: List[str]
    depth_capped: bool = False


def _unwrap(payload: Any, field_priority, max_depth) -> _UnwrapResult:
    unwrapper = _Unwrapper(
        field_priority if field_priority is not None else settings.unwrap_field_priority,
        max_depth if max_depth is not None else settings.unwrap_max_depth,
    )
    if payload is None:
        text = ""
    elif isinstance(payload, (dict, list)):
        text = unwrapper.from_value(payload, 1)
    else:
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8', errors='replace')
        text = unwrapper.from_text(str(payload), 0)
    return _UnwrapResult(text, list(unwrapper.shapes), unwrapper.depth_capped)


@lru_cache(maxsize=512)
def _normalize_text_cached(
    text: str, field_priority: Tuple[str, ...], max_depth: int
) -> Tuple[ContentKind, str, Tuple[str, ...], bool]:
    kind = classify_content(text)
    if kind is ContentKind.STRUCTURED_DATA or _decode_string_literal(text) is not None:
        result = _unwrap(text, field_priority, max_depth)
        return kind, result.text, tuple(result.shapes), result.depth_capped
    return kind, text, (), False


def normalize_payload(
    payload: Any,
    field_priority: Optional[Sequence[str]] = None,
    max_depth: Optional[int] = None,
) -> NormalizedContent:
    """
    Run the Classifier + Unwrapper pipeline over a raw payload.

    String payloads are memoized; decoded dict/list payloads are not.
    An already NormalizedContent payload is terminal and returned as-is, so
    text kept at the nesting cap is never unwrapped a second time.
    """
    if isinstance(payload, NormalizedContent):
        return payload

    priority = tuple(field_priority if field_priority is not None else settings.unwrap_field_priority)
    depth = max_depth if max_depth is not None else settings.unwrap_max_depth

    if isinstance(payload, bytes):
        payload = payload.decode('utf-8', errors='replace')

    if payload is None:
        return NormalizedContent(kind=ContentKind.PROSE_PLAIN, text="")

    if isinstance(payload, (dict, list)):
        result = _unwrap(payload, priority, depth)
        return NormalizedContent(kind=ContentKind.STRUCTURED_DATA, text=result.text,
                                 shapes=result.shapes, depth_capped=result.depth_capped)

    kind, text, shapes, depth_capped = _normalize_text_cached(str(payload), priority, depth)
    return NormalizedContent(kind=kind, text=text, shapes=list(shapes), depth_capped=depth_capped)
