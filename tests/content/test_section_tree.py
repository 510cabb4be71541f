from planchat.content.section_tree import (
    build_section_tree,
    filter_sections,
    find_section,
    flatten_sections,
    iter_sections,
    slugify,
)
from planchat.content.unwrapper import normalize_payload


def _assert_levels_increase(sections):
    for section in sections:
        for child in section.children:
            assert child.level > section.level
        _assert_levels_increase(section.children)


def test_response_wrapper_end_to_end():
    text = normalize_payload('{"response": "# Title\\n\\nBody text."}').text
    tree = build_section_tree(text)

    assert len(tree.sections) == 1
    root = tree.sections[0]
    assert root.level == 1
    assert root.title == "Title"
    assert root.body_text == "Body text.\n"
    assert root.children == []


def test_nesting_and_document_order():
    text = "\n".join([
        "# Report",
        "Intro",
        "## Site",
        "Site body",
        "### Access",
        "Access body",
        "## Zoning",
        "Zoning body",
        "# Appendix",
    ])
    tree = build_section_tree(text)

    assert [s.title for s in tree.sections] == ["Report", "Appendix"]
    report = tree.sections[0]
    assert [c.title for c in report.children] == ["Site", "Zoning"]
    assert report.children[0].children[0].title == "Access"
    assert report.body_text == "Intro\n"
    _assert_levels_increase(tree.sections)


def test_skipped_level_attaches_to_nearest_shallower():
    tree = build_section_tree("# A\n### Deep\n## Mid")
    a = tree.sections[0]
    assert [c.title for c in a.children] == ["Deep", "Mid"]
    _assert_levels_increase(tree.sections)


def test_front_matter_discarded():
    tree = build_section_tree("preamble line\n\n# First\nbody")
    assert len(tree.sections) == 1
    assert tree.sections[0].body_text == "body\n"


def test_no_headings_gives_empty_tree():
    assert build_section_tree("just text\nmore text").sections == []


def test_level_five_is_body_text():
    tree = build_section_tree("# Top\n##### too deep")
    assert tree.sections[0].body_text == "##### too deep\n"


def test_fenced_code_headings_ignored():
    text = "# Top\n```\n# not a heading\n\n```\nafter"
    tree = build_section_tree(text)
    assert len(tree.sections) == 1
    assert tree.sections[0].children == []
    assert "# not a heading\n" in tree.sections[0].body_text
    assert tree.sections[0].body_text.endswith("after\n")


def test_sibling_ids_are_unique():
    tree = build_section_tree("# Notes\n# Notes\n# Notes")
    assert [s.id for s in tree.sections] == ["notes", "notes-2", "notes-3"]


def test_same_title_under_different_parents_keeps_base_id():
    tree = build_section_tree("# A\n## Summary\n# B\n## Summary")
    assert tree.sections[0].children[0].id == "summary"
    assert tree.sections[1].children[0].id == "summary"


def test_source_lines():
    tree = build_section_tree("# One\ntext\n## Two")
    assert tree.sections[0].source_line == 1
    assert tree.sections[0].children[0].source_line == 3


def test_figures_extracted_before_sections():
    text = '# Evidence\nSee [{"pageContent":"Plan","metadata":{"page":2}}] here.'
    tree = build_section_tree(text)
    assert [f.id for f in tree.figures] == ["figure-1"]
    assert tree.sections[0].body_text == "See [[figure:figure-1]] here.\n"


def test_slugify():
    assert slugify("Site & Context: 12 Smith St") == "site-context-12-smith-st"
    assert slugify("!!!") == "section"


def test_flatten_and_filter():
    tree = build_section_tree("# Report\n## Heritage overlay\n## Traffic\n# Heritage notes")
    entries = flatten_sections(tree.sections)

    assert [e["title"] for e in entries] == ["Report", "Heritage overlay", "Traffic", "Heritage notes"]
    assert [e["title"] for e in filter_sections(entries, "HERITAGE")] == ["Heritage overlay", "Heritage notes"]
    assert filter_sections(entries, "  ") == entries


def test_find_section():
    tree = build_section_tree("# A\n## B")
    assert find_section(tree.sections, "b").title == "B"
    assert find_section(tree.sections, "missing") is None
    assert len(list(iter_sections(tree.sections))) == 2
