"""
Figure Reference Extractor - lifts inline source-evidence notation out of prose.

The retrieval system sometimes inlines the evidence it used straight into
generated text as a list of excerpt objects:

    ... as shown [{"pageContent":"Site plan, Lot 4","metadata":{"page":3}}] ...

Each occurrence becomes one FigureReference per entry and the matched span is
replaced by placeholder tokens ([[figure:figure-1]]) so renderers can swap in
a reference control without re-parsing.

Pure logic, no IO. A malformed occurrence is skipped (text left untouched) and
extraction continues with the rest.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

FIGURE_TOKEN_FORMAT = "[[figure:{figure_id}]]"
FIGURE_TOKEN_RE = re.compile(r'\[\[figure:(figure-\d+)\]\]')

_OCCURRENCE_START_RE = re.compile(r'\[\s*\{\s*"pageContent"\s*:')

# Loose per-entry form, used when the block as a whole is not valid JSON
_ENTRY_RE = re.compile(r'\{\s*"pageContent"\s*:\s*"((?:[^"\\]|\\.)+)"\s*,\s*"metadata"\s*:\s*(\{[^{}]*\})\s*\}')


@dataclass
class FigureReference:
    id: str
    excerpt_title: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "excerpt_title": self.excerpt_title,
            "metadata": self.metadata,
        }


@dataclass
class FigureExtraction:
    figures: List[FigureReference]
    rewritten_text: str


def figure_token(figure_id: str) -> str:
    return FIGURE_TOKEN_FORMAT.format(figure_id=figure_id)


def _find_block_end(text: str, start: int) -> Optional[int]:
    """Index just past the bracket that closes the block opened at start, string-aware."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in '[{':
            depth += 1
        elif char in ']}':
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def _entries_from_json(block: str) -> Optional[List[Tuple[str, Any]]]:
    try:
        parsed = json.loads(block)
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    entries = []
    for item in parsed:
        if isinstance(item, dict):
            entries.append((item.get("pageContent"), item.get("metadata", {})))
        else:
            entries.append((None, None))
    return entries


def _entries_from_pattern(block: str) -> List[Tuple[str, Any]]:
    entries = []
    for match in _ENTRY_RE.finditer(block):
        try:
            title = json.loads(f'"{match.group(1)}"')
        except ValueError:
            title = match.group(1)
        try:
            metadata = json.loads(match.group(2))
        except ValueError as e:
            logger.warning(f"[FIGURES] Failed to parse figure metadata: {e}")
            metadata = None
        entries.append((title, metadata))
    return entries


def extract_figures(text: str, start_index: int = 1) -> FigureExtraction:
    """
    Extract inline figure references and replace them with placeholder tokens.

    Args:
        text: Prose text
        start_index: Number given to the first figure id (figure-{n})

    Returns:
        FigureExtraction with figures in document order and the rewritten text
    """
    if not text or '"pageContent"' not in text:
        return FigureExtraction(figures=[], rewritten_text=text or "")

    figures: List[FigureReference] = []
    pieces: List[str] = []
    cursor = 0
    search_from = 0
    next_index = start_index

    while True:
        match = _OCCURRENCE_START_RE.search(text, search_from)
        if not match:
            break

        start = match.start()
        end = _find_block_end(text, start)
        if end is None:
            logger.warning(f"[FIGURES] Unterminated figure notation at offset {start}, skipping")
            search_from = match.end()
            continue

        block = text[start:end]
        entries = _entries_from_json(block)
        if entries is None:
            entries = _entries_from_pattern(block)

        tokens = []
        for title, metadata in entries:
            if not isinstance(title, str) or not isinstance(metadata, dict):
                logger.warning(f"[FIGURES] Skipping malformed figure entry at offset {start}")
                continue
            figure = FigureReference(id=f"figure-{next_index}", excerpt_title=title, metadata=metadata)
            next_index += 1
            figures.append(figure)
            tokens.append(figure_token(figure.id))

        if tokens:
            pieces.append(text[cursor:start])
            pieces.append("".join(tokens))
            cursor = end
        else:
            logger.warning(f"[FIGURES] No usable entries in figure notation at offset {start}, leaving text as-is")
        search_from = end

    pieces.append(text[cursor:])
    if figures:
        logger.debug(f"[FIGURES] Extracted {len(figures)} figure references")
    return FigureExtraction(figures=figures, rewritten_text="".join(pieces))


def iter_figure_tokens(text: str) -> Iterator[Union[str, Tuple[str, str]]]:
    """
    Split rewritten text around placeholder tokens.

    Yields plain strings and ("figure", figure_id) tuples in order.
    """
    cursor = 0
    for match in FIGURE_TOKEN_RE.finditer(text):
        if match.start() > cursor:
            yield text[cursor:match.start()]
        yield ("figure", match.group(1))
        cursor = match.end()
    if cursor < len(text):
        yield text[cursor:]
