"""
Content Classifier - first stage of the content pipeline.

Inspects a raw payload from an external producer and assigns a ContentKind
so the caller can pick a processing strategy. Pure logic, no IO.

Decision order:
1. Outer characters are a matching {} / [] pair AND the payload parses as
   strict JSON -> structured-data
2. Recognizable HTML tags -> markup
3. Heading, bold/italic, fenced code markers or a blank-line paragraph break
   -> prose-markdown
4. Anything else -> prose-plain

Never raises: malformed input falls through to prose-plain.
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Tuple

logger = logging.getLogger(__name__)


class ContentKind(str, Enum):
    STRUCTURED_DATA = "structured-data"
    MARKUP = "markup"
    PROSE_MARKDOWN = "prose-markdown"
    PROSE_PLAIN = "prose-plain"

    @property
    def is_prose(self) -> bool:
        return self in (ContentKind.PROSE_MARKDOWN, ContentKind.PROSE_PLAIN)


_MARKUP_TAG_RE = re.compile(
    r'<!DOCTYPE\s+html|</?(?:html|head|body|div|span|p|br|hr|table|thead|tbody|tfoot|tr|td|th|'
    r'ul|ol|li|h[1-6]|a|img|strong|em|b|i|u|pre|code|blockquote|section|article|header|'
    r'footer|nav|figure|figcaption|sup|sub|small|details|summary)\b[^<>]*>',
    re.IGNORECASE,
)

_MARKDOWN_PATTERNS = [
    re.compile(r'^\s{0,3}#{1,6}\s+\S', re.MULTILINE),  # heading
    re.compile(r'\*\*[^*\n]+\*\*|__[^_\n]+__'),  # bold
    re.compile(r'(?<![*\w])\*[^*\s][^*\n]*\*(?!\*)|(?<![_\w])_[^_\s][^_\n]*_(?![_\w])'),  # italic
    re.compile(r'^\s*(?:```|~~~)', re.MULTILINE),  # fenced code
    re.compile(r'\n[ \t]*\n'),  # paragraph break
]

_OUTER_PAIRS = {'{': '}', '[': ']'}


def _reject_constant(name: str) -> Any:
    # NaN / Infinity are not JSON
    raise ValueError(f"non-standard JSON constant: {name}")


def parse_structured(text: str) -> Tuple[bool, Any]:
    """
    Strictly parse text as structured data.

    Returns:
        (True, parsed_value) when the trimmed text is wrapped in a matching
        brace/bracket pair and parses as standard JSON, else (False, None).
    """
    if not isinstance(text, str):
        return False, None

    trimmed = text.strip()
    if len(trimmed) < 2 or _OUTER_PAIRS.get(trimmed[0]) != trimmed[-1]:
        return False, None

    try:
        return True, json.loads(trimmed, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False, None


def has_markup(text: str) -> bool:
    return bool(_MARKUP_TAG_RE.search(text))


def has_markdown(text: str) -> bool:
    return any(pattern.search(text) for pattern in _MARKDOWN_PATTERNS)


def classify_content(payload: Any) -> ContentKind:
    """
    Classify a raw payload.

    Args:
        payload: Text, bytes, or an already-decoded structured value

    Returns:
        ContentKind for the payload
    """
    if isinstance(payload, (dict, list)):
        return ContentKind.STRUCTURED_DATA

    if payload is None:
        return ContentKind.PROSE_PLAIN

    if isinstance(payload, bytes):
        payload = payload.decode('utf-8', errors='replace')
    elif not isinstance(payload, str):
        payload = str(payload)

    is_structured, _ = parse_structured(payload)
    if is_structured:
        return ContentKind.STRUCTURED_DATA

    if has_markup(payload):
        return ContentKind.MARKUP

    if has_markdown(payload):
        return ContentKind.PROSE_MARKDOWN

    return ContentKind.PROSE_PLAIN
