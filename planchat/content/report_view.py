"""
Report rendering - full-document path of the content pipeline.

raw payload -> classify/unwrap -> figure extraction -> section tree
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from planchat.content.classifier import ContentKind
from planchat.content.section_tree import SectionTree, build_section_tree, flatten_sections
from planchat.content.unwrapper import normalize_payload

logger = logging.getLogger(__name__)


class ContentState(str, Enum):
    READY = "ready"
    EMPTY = "empty"  # nothing to show; distinct from a fetch failure
    ERROR = "error"


@dataclass
class RenderedReport:
    state: ContentState
    kind: ContentKind
    text: str
    tree: SectionTree
    table_of_contents: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_sections(self) -> bool:
        return bool(self.tree.sections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "content_kind": self.kind.value,
            "has_sections": self.has_sections,
            "table_of_contents": self.table_of_contents,
            "metadata": self.metadata,
            **self.tree.to_dict(),
        }


def render_report_content(raw: Any, metadata: Optional[Dict[str, Any]] = None) -> RenderedReport:
    """
    Turn a raw report payload into a section tree plus figure list.

    Never raises for malformed content. Whitespace-only content after
    unwrapping yields state EMPTY with an empty tree.
    """
    normalized = normalize_payload(raw)
    if normalized.is_empty:
        logger.info("[REPORT_VIEW] Report content is empty after normalization")
        return RenderedReport(
            state=ContentState.EMPTY,
            kind=normalized.kind,
            text=normalized.text,
            tree=SectionTree(sections=[], figures=[]),
            metadata=dict(metadata or {}),
        )

    tree = build_section_tree(normalized.text)
    if not tree.sections:
        logger.warning("[REPORT_VIEW] Report content has no headings; nothing to navigate")

    return RenderedReport(
        state=ContentState.READY,
        kind=normalized.kind,
        text=normalized.text,
        tree=tree,
        table_of_contents=flatten_sections(tree.sections),
        metadata=dict(metadata or {}),
    )
