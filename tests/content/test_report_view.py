from planchat.content.classifier import ContentKind
from planchat.content.report_view import ContentState, render_report_content


def test_wrapped_report_renders_sections():
    rendered = render_report_content('{"response": "# Title\\n\\nBody text."}', metadata={"report_id": "r1"})

    assert rendered.state is ContentState.READY
    assert rendered.kind is ContentKind.STRUCTURED_DATA
    assert rendered.has_sections
    assert rendered.table_of_contents == [{"id": "title", "title": "Title", "level": 1, "source_line": 1}]
    assert rendered.metadata == {"report_id": "r1"}


def test_whitespace_only_is_empty_state():
    rendered = render_report_content("   \n  ")
    assert rendered.state is ContentState.EMPTY
    assert rendered.tree.sections == []
    assert rendered.table_of_contents == []


def test_prose_without_headings_is_ready_without_sections():
    rendered = render_report_content("A short note.")
    assert rendered.state is ContentState.READY
    assert not rendered.has_sections
    assert rendered.text == "A short note."


def test_to_dict_includes_tree_and_figures():
    data = render_report_content('# Plan\nSee [{"pageContent":"Lot 4","metadata":{"page":1}}]').to_dict()
    assert data["state"] == "ready"
    assert data["content_kind"] == "prose-markdown"
    assert data["sections"][0]["title"] == "Plan"
    assert data["figures"] == [{"id": "figure-1", "excerpt_title": "Lot 4", "metadata": {"page": 1}}]
