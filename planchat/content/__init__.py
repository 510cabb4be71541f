"""
Content Pipeline - Layered System

Turns untrusted producer payloads into structures the presentation layer can render:
- classifier: pick a processing strategy for a raw payload
- unwrapper: recover the human-readable text from wrapper shapes
- figure_extractor: lift inline evidence notation into figure references
- section_tree: heading hierarchy for full-document reports
- citation_segmenter: plain / cited segments for inline chat messages
- report_view / message_view: the two rendering paths built on the above

All modules here are pure: no IO, no shared mutable state.
"""

from planchat.content.classifier import (
    ContentKind,
    classify_content,
    parse_structured
)

from planchat.content.unwrapper import (
    NormalizedContent,
    detect_shape,
    normalize_payload,
    unwrap_payload
)

from planchat.content.figure_extractor import (
    FigureReference,
    extract_figures,
    iter_figure_tokens
)

from planchat.content.section_tree import (
    Section,
    SectionTree,
    build_section_tree,
    filter_sections,
    find_section,
    flatten_sections
)

from planchat.content.citation_segmenter import (
    Citation,
    MessageSegment,
    recognize_citation_markers,
    segment_citations,
    transform_chunks_to_citations
)

from planchat.content.report_view import (
    ContentState,
    RenderedReport,
    render_report_content
)

from planchat.content.message_view import (
    MessageView,
    MessageViewKind,
    render_message_content
)

__all__ = [
    # Classifier
    'ContentKind',
    'classify_content',
    'parse_structured',
    # Unwrapper
    'NormalizedContent',
    'detect_shape',
    'normalize_payload',
    'unwrap_payload',
    # Figures
    'FigureReference',
    'extract_figures',
    'iter_figure_tokens',
    # Sections
    'Section',
    'SectionTree',
    'build_section_tree',
    'filter_sections',
    'find_section',
    'flatten_sections',
    # Citations
    'Citation',
    'MessageSegment',
    'recognize_citation_markers',
    'segment_citations',
    'transform_chunks_to_citations',
    # Views
    'ContentState',
    'RenderedReport',
    'render_report_content',
    'MessageView',
    'MessageViewKind',
    'render_message_content',
]
