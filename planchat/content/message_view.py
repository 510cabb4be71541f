"""
Message rendering - inline chat path of the content pipeline.

Decides how a single chat message's content should be presented:
workflow notices, report actions (inline, by reference, or link-only),
text with citation chips and figure references, or plain text.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from planchat.content.citation_segmenter import (
    Citation,
    MessageSegment,
    citations_from_metadata,
    has_citation_markers,
    segment_citations,
)
from planchat.content.classifier import ContentKind, parse_structured
from planchat.content.figure_extractor import FigureReference, extract_figures, figure_token, iter_figure_tokens
from planchat.content.report_view import RenderedReport, render_report_content
from planchat.content.unwrapper import normalize_payload

logger = logging.getLogger(__name__)

WORKFLOW_STARTED_TEXT = "Workflow was started"
REPORT_ACTIONS = ("report", "change_report", "generate_report")
REPORT_CONTENT_FIELDS = ("response_markdown", "markdown", "content", "generated_content", "response")
DEFAULT_REPORT_TITLE = "Planning Report"


class MessageViewKind(str, Enum):
    EMPTY = "empty"
    WORKFLOW_STARTED = "workflow_started"
    NO_ACTION = "no_action"
    REPORT_INLINE = "report_inline"
    REPORT_REFERENCE = "report_reference"
    REPORT_LINK = "report_link"
    CITED_TEXT = "cited_text"
    TEXT = "text"


@dataclass
class MessageView:
    kind: MessageViewKind
    text: str = ""
    content_kind: Optional[ContentKind] = None
    segments: List[MessageSegment] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    figures: List[FigureReference] = field(default_factory=list)
    report_info: Dict[str, Any] = field(default_factory=dict)
    report: Optional[RenderedReport] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "text": self.text,
            "content_kind": self.content_kind.value if self.content_kind else None,
            "segments": [segment.to_dict() for segment in self.segments],
            "citations": [citation.to_dict() for citation in self.citations],
            "figures": [figure.to_dict() for figure in self.figures],
        }
        if self.report_info:
            data["report_info"] = self.report_info
        if self.report is not None:
            data["report"] = self.report.to_dict()
        return data


def _report_info(parsed: Dict[str, Any], metadata: Dict[str, Any]) -> Dict[str, Any]:
    title = parsed.get('topic') or parsed.get('title') or DEFAULT_REPORT_TITLE
    report_id = parsed.get('id') or parsed.get('report_id') or metadata.get('report_id') or metadata.get('id')
    return {
        "action": parsed.get('action'),
        "title": parsed.get('title') or title,
        "topic": title,
        "address": parsed.get('address') or parsed.get('location'),
        "report_id": str(report_id) if report_id else None,
    }


def _render_report_action(parsed: Dict[str, Any], metadata: Dict[str, Any]) -> MessageView:
    info = _report_info(parsed, metadata)

    report_content = ""
    for name in REPORT_CONTENT_FIELDS:
        value = parsed.get(name)
        if isinstance(value, str) and value.strip():
            report_content = value
            break

    if report_content:
        logger.info(f"[MESSAGE_VIEW] Report action '{info['action']}' carries inline content ({len(report_content)} chars)")
        report_metadata = {"report_id": info["report_id"]}
        if isinstance(parsed.get('metadata'), dict):
            report_metadata.update(parsed['metadata'])
        return MessageView(
            kind=MessageViewKind.REPORT_INLINE,
            text=report_content,
            content_kind=ContentKind.STRUCTURED_DATA,
            report_info=info,
            report=render_report_content(report_content, metadata=report_metadata),
        )

    if info["report_id"]:
        logger.info(f"[MESSAGE_VIEW] Report action without content, deferring to report {info['report_id']}")
        return MessageView(kind=MessageViewKind.REPORT_REFERENCE, content_kind=ContentKind.STRUCTURED_DATA, report_info=info)

    logger.warning("[MESSAGE_VIEW] Report action without content or report id, showing link only")
    return MessageView(kind=MessageViewKind.REPORT_LINK, content_kind=ContentKind.STRUCTURED_DATA, report_info=info)


def _split_figure_tokens(segments: List[MessageSegment]) -> List[MessageSegment]:
    """Give each figure placeholder in plain segments its own segment; text is preserved."""
    result = []
    for segment in segments:
        if segment.citation_id is not None:
            result.append(segment)
            continue
        for piece in iter_figure_tokens(segment.text):
            if isinstance(piece, tuple):
                _, figure_id = piece
                result.append(MessageSegment(text=figure_token(figure_id), figure_id=figure_id))
            else:
                result.append(MessageSegment(text=piece))
    return result


def render_message_content(content: Any, metadata: Optional[Dict[str, Any]] = None) -> MessageView:
    """
    Build the presentation view for one chat message.

    Args:
        content: Raw message content (text or decoded JSON)
        metadata: The message's retrieval_metadata (chunks_retrieved, sources_cited, report_id)

    Returns:
        MessageView; never raises for malformed content
    """
    metadata = metadata if isinstance(metadata, dict) else {}

    if content is None or (isinstance(content, str) and not content.strip()):
        return MessageView(kind=MessageViewKind.EMPTY)

    if isinstance(content, str):
        if content.strip() == WORKFLOW_STARTED_TEXT:
            return MessageView(kind=MessageViewKind.WORKFLOW_STARTED, text=content.strip())
        is_structured, parsed = parse_structured(content)
    else:
        is_structured, parsed = isinstance(content, (dict, list)), content

    if is_structured and isinstance(parsed, dict):
        if parsed.get('message') == WORKFLOW_STARTED_TEXT and len(parsed) == 1:
            return MessageView(kind=MessageViewKind.WORKFLOW_STARTED, text=WORKFLOW_STARTED_TEXT)
        if parsed.get('action') == 'none':
            return MessageView(kind=MessageViewKind.NO_ACTION)
        if parsed.get('action') in REPORT_ACTIONS:
            return _render_report_action(parsed, metadata)

    normalized = normalize_payload(content)
    if normalized.is_empty:
        return MessageView(kind=MessageViewKind.EMPTY, content_kind=normalized.kind)

    extraction = extract_figures(normalized.text)
    text = extraction.rewritten_text
    citations = citations_from_metadata(metadata)

    if citations and has_citation_markers(text):
        segments = segment_citations(text, citations)
        if any(segment.citation_id is not None for segment in segments):
            return MessageView(
                kind=MessageViewKind.CITED_TEXT,
                text=text,
                content_kind=normalized.kind,
                segments=_split_figure_tokens(segments),
                citations=citations,
                figures=extraction.figures,
            )

    return MessageView(
        kind=MessageViewKind.TEXT,
        text=text,
        content_kind=normalized.kind,
        segments=_split_figure_tokens([MessageSegment(text=text)]),
        citations=citations,
        figures=extraction.figures,
    )
