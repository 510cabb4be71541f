"""
Section Tree Builder - turns normalized prose into a navigable heading hierarchy.

Single left-to-right pass over lines with an explicit stack of open sections:
- A heading line (# .. ####) pops the stack until its top has a strictly
  lower level, attaches as a child of the new top (or as a root), then is pushed
- Other non-blank lines are appended verbatim, newline included, to the body
  of the deepest open section
- Lines before the first heading are front-matter and are discarded
- Lines inside fenced code blocks are never headings

Figure notation is lifted out first (see figure_extractor), so bodies carry
placeholder tokens rather than raw JSON.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from planchat.content.figure_extractor import FigureReference, extract_figures

logger = logging.getLogger(__name__)

MAX_HEADING_LEVEL = 4

_HEADING_RE = re.compile(r'^(#{1,4})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$')
_FENCE_RE = re.compile(r'^(```|~~~)')
_SLUG_STRIP_RE = re.compile(r'[^a-z0-9]+')


@dataclass
class Section:
    id: str
    level: int
    title: str
    body_text: str = ""
    children: List["Section"] = field(default_factory=list)
    source_line: int = 0  # 1-based line of the heading

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "title": self.title,
            "body_text": self.body_text,
            "source_line": self.source_line,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class SectionTree:
    sections: List[Section]
    figures: List[FigureReference]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": [section.to_dict() for section in self.sections],
            "figures": [figure.to_dict() for figure in self.figures],
        }


def slugify(title: str) -> str:
    """Lowercase, runs of non-alphanumerics collapsed to '-', trimmed."""
    slug = _SLUG_STRIP_RE.sub('-', title.lower()).strip('-')
    return slug or "section"


def _unique_sibling_id(base: str, taken: Dict[str, int]) -> str:
    # Repeated sibling headings get -2, -3, ... in document order
    if base not in taken:
        taken[base] = 1
        return base
    count = taken[base]
    while True:
        count += 1
        candidate = f"{base}-{count}"
        if candidate not in taken:
            taken[base] = count
            taken[candidate] = 1
            return candidate


def parse_heading(line: str) -> Optional[tuple]:
    """Return (level, title) when the trimmed line is a level 1-4 heading."""
    match = _HEADING_RE.match(line.strip())
    if not match:
        return None
    return len(match.group(1)), match.group(2).strip()


def build_sections(text: str) -> List[Section]:
    """Build the section forest from prose. O(n) in lines, no backtracking."""
    roots: List[Section] = []
    stack: List[Section] = []
    root_ids: Dict[str, int] = {}
    child_ids: Dict[int, Dict[str, int]] = {}
    in_fence = False
    discarded = 0

    for line_number, line in enumerate((text or "").split('\n'), start=1):
        trimmed = line.strip()

        if _FENCE_RE.match(trimmed):
            in_fence = not in_fence
        elif not in_fence:
            heading = parse_heading(trimmed)
            if heading:
                level, title = heading
                while stack and stack[-1].level >= level:
                    stack.pop()

                if stack:
                    parent = stack[-1]
                    taken = child_ids.setdefault(id(parent), {})
                    siblings = parent.children
                else:
                    taken = root_ids
                    siblings = roots

                section = Section(
                    id=_unique_sibling_id(slugify(title), taken),
                    level=level,
                    title=title,
                    source_line=line_number,
                )
                siblings.append(section)
                stack.append(section)
                continue

        if not stack:
            if trimmed:
                discarded += 1
            continue

        if trimmed or in_fence:
            stack[-1].body_text += line + '\n'

    if discarded:
        logger.debug(f"[SECTIONS] Discarded {discarded} front-matter lines before the first heading")
    return roots


def build_section_tree(text: str) -> SectionTree:
    """
    Parse normalized prose into sections plus the figure references found in it.

    Args:
        text: NormalizedText (already unwrapped)

    Returns:
        SectionTree; section bodies contain figure placeholder tokens
    """
    extraction = extract_figures(text or "")
    sections = build_sections(extraction.rewritten_text)
    logger.info(
        f"[SECTIONS] Built {len(sections)} root sections, "
        f"{sum(1 for _ in iter_sections(sections))} total, {len(extraction.figures)} figures"
    )
    return SectionTree(sections=sections, figures=extraction.figures)


def iter_sections(sections: List[Section]) -> Iterator[Section]:
    """Pre-order traversal (document order)."""
    for section in sections:
        yield section
        yield from iter_sections(section.children)


def flatten_sections(sections: List[Section]) -> List[Dict[str, Any]]:
    """Table-of-contents entries in document order."""
    return [
        {
            "id": section.id,
            "title": section.title,
            "level": section.level,
            "source_line": section.source_line,
        }
        for section in iter_sections(sections)
    ]


def filter_sections(entries: List[Dict[str, Any]], term: str) -> List[Dict[str, Any]]:
    """Case-insensitive title filter over flattened entries."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if needle in entry["title"].lower()]


def find_section(sections: List[Section], section_id: str) -> Optional[Section]:
    for section in iter_sections(sections):
        if section.id == section_id:
            return section
    return None
