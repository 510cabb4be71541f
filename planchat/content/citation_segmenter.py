"""
Citation Segmenter - splits message text into plain and cited segments.

Inputs are the final assistant text and the retrieved chunk list stored with
the message. Citation markers are recognized by a versioned grammar isolated
in recognize_citation_markers(); the segmentation algorithm only consumes
(start, end, ordinal) matches, so new surface forms go in the grammar alone.

Invariant: "".join(segment.text for segment in segments) == text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from planchat.config import settings

logger = logging.getLogger(__name__)

CITATION_GRAMMAR_VERSION = 1

# Surface forms, tried as one alternation (left-most match wins)
CITATION_MARKER_FORMS = [
    ("chunk_hash", r'Chunk #(\d+)'),
    ("chunk", r'Chunk (\d+)'),
    ("citation", r'Citation (\d+)'),
    ("source", r'Source (\d+)'),
    ("bracket", r'\[(\d+)\]'),
]

_MARKER_RE = re.compile(
    '|'.join(f'(?P<{name}>{pattern})' for name, pattern in CITATION_MARKER_FORMS),
    re.IGNORECASE,
)


@dataclass
class Citation:
    citation_id: int  # 1-based, stable within one message
    source_id: str
    source_title: str
    source_type: str
    chunk_index: int
    excerpt: str = ""
    score: Optional[float] = None
    chunk_id: Optional[Any] = None
    chunk_lines_from: Optional[int] = None
    chunk_lines_to: Optional[int] = None
    address: Optional[str] = None
    suburb: Optional[str] = None
    document: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "citation_id": self.citation_id,
            "source_id": self.source_id,
            "source_title": self.source_title,
            "source_type": self.source_type,
            "chunk_index": self.chunk_index,
            "excerpt": self.excerpt,
        }
        for key in ("score", "chunk_id", "chunk_lines_from", "chunk_lines_to", "address", "suburb", "document"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class MessageSegment:
    text: str
    citation_id: Optional[int] = None
    figure_id: Optional[str] = None  # set on figure placeholder tokens

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text}
        if self.citation_id is not None:
            data["citation_id"] = self.citation_id
        if self.figure_id is not None:
            data["figure_id"] = self.figure_id
        return data


@dataclass
class CitationMarker:
    start: int
    end: int
    ordinal: int  # 1-based as written
    form: str


def recognize_citation_markers(text: str) -> Iterator[CitationMarker]:
    """Yield every citation marker in text, left to right, non-overlapping."""
    for match in _MARKER_RE.finditer(text or ""):
        form = match.lastgroup
        # lastgroup is the outer named group; its ordinal is the next numbered group
        ordinal_group = match.re.groupindex[form] + 1
        yield CitationMarker(
            start=match.start(),
            end=match.end(),
            ordinal=int(match.group(ordinal_group)),
            form=form,
        )


def has_citation_markers(text: str) -> bool:
    return bool(_MARKER_RE.search(text or ""))


def segment_citations(text: str, citations: Sequence[Citation]) -> List[MessageSegment]:
    """
    Split text into alternating plain / cited segments.

    Args:
        text: Final message text
        citations: Citations in chunk order (ordinal N refers to citations[N-1])

    Returns:
        Ordered segments. Out-of-range markers stay in the surrounding plain
        text. Without any resolvable marker, one segment holding the whole text.
    """
    text = text or ""
    if not citations:
        return [MessageSegment(text=text)]

    segments: List[MessageSegment] = []
    cursor = 0
    resolved = 0

    for marker in recognize_citation_markers(text):
        index = marker.ordinal - 1
        if index < 0 or index >= len(citations):
            logger.debug(f"[SEGMENTER] Marker '{text[marker.start:marker.end]}' out of range ({len(citations)} chunks)")
            continue

        if marker.start > cursor:
            segments.append(MessageSegment(text=text[cursor:marker.start]))
        segments.append(MessageSegment(
            text=text[marker.start:marker.end],
            citation_id=citations[index].citation_id,
        ))
        cursor = marker.end
        resolved += 1

    if not resolved:
        return [MessageSegment(text=text)]

    if cursor < len(text):
        segments.append(MessageSegment(text=text[cursor:]))

    logger.debug(f"[SEGMENTER] {resolved} citation markers resolved into {len(segments)} segments")
    return segments


def _chunk_metadata(chunk: Dict[str, Any]) -> Dict[str, Any]:
    document = chunk.get('document')
    metadata = document.get('metadata') if isinstance(document, dict) else None
    return metadata if isinstance(metadata, dict) else {}


def _extract_source_title(chunk: Dict[str, Any], source: Optional[Dict[str, Any]]) -> str:
    source = source or {}
    if source.get('address') and source.get('suburb'):
        return f"{source['address']}, {source['suburb']}"
    if source.get('section'):
        return source['section']
    if source.get('address'):
        return source['address']

    metadata = _chunk_metadata(chunk)
    if metadata.get('title'):
        return metadata['title']
    if metadata.get('address'):
        return metadata['address']
    if chunk.get('address'):
        return chunk['address']

    return f"Source {chunk.get('chunk_id') or 'Unknown'}"


def _extract_source_type(chunk: Dict[str, Any], source: Optional[Dict[str, Any]]) -> str:
    source = source or {}
    if source.get('document_type'):
        return re.sub(r'\s+', '_', str(source['document_type']).lower())

    metadata = _chunk_metadata(chunk)
    if metadata.get('type'):
        return metadata['type']

    return 'text'


def transform_chunks_to_citations(
    chunks: Optional[Sequence[Any]] = None,
    sources: Optional[Sequence[Any]] = None,
    excerpt_length: Optional[int] = None,
) -> List[Citation]:
    """
    Build Citation records from the retrieval chunk list stored with a message.

    Args:
        chunks: retrieval_metadata.chunks_retrieved entries
        sources: retrieval_metadata.sources_cited entries, aligned by index
        excerpt_length: Characters of page content kept in the excerpt

    Returns:
        One Citation per chunk, citation_id = position + 1
    """
    chunks = list(chunks or [])
    sources = list(sources or [])
    excerpt_length = excerpt_length if excerpt_length is not None else settings.citation_excerpt_length

    citations = []
    for index, raw_chunk in enumerate(chunks):
        chunk = raw_chunk if isinstance(raw_chunk, dict) else {}
        source = sources[index] if index < len(sources) and isinstance(sources[index], dict) else None

        document = chunk.get('document') if isinstance(chunk.get('document'), dict) else None
        page_content = (document or {}).get('pageContent')
        excerpt = f"{page_content[:excerpt_length]}..." if isinstance(page_content, str) else ""

        chunk_id = chunk.get('chunk_id')
        citations.append(Citation(
            citation_id=index + 1,
            source_id=str(chunk_id) if chunk_id is not None else f"chunk-{index}",
            source_title=_extract_source_title(chunk, source),
            source_type=_extract_source_type(chunk, source),
            chunk_index=index,
            excerpt=excerpt,
            score=chunk.get('score'),
            chunk_id=chunk_id,
            chunk_lines_from=(source or {}).get('chunk_lines_from'),
            chunk_lines_to=(source or {}).get('chunk_lines_to'),
            address=(source or {}).get('address') or chunk.get('address'),
            suburb=(source or {}).get('suburb') or chunk.get('suburb'),
            document=document,
        ))

    return citations


def citations_from_metadata(metadata: Optional[Dict[str, Any]]) -> List[Citation]:
    """Citations for a chat message's retrieval_metadata (empty when absent)."""
    metadata = metadata or {}
    chunks = metadata.get('chunks_retrieved') or []
    sources = metadata.get('sources_cited') or []
    if not isinstance(chunks, list):
        chunks = []
    if not isinstance(sources, list):
        sources = []
    # Sources alone still describe citable items
    if not chunks and sources:
        chunks = [{} for _ in sources]
    return transform_chunks_to_citations(chunks, sources)
