import pytest

from planchat.content.citation_segmenter import (
    CITATION_MARKER_FORMS,
    Citation,
    citations_from_metadata,
    has_citation_markers,
    recognize_citation_markers,
    segment_citations,
    transform_chunks_to_citations,
)


def _citations(count):
    return transform_chunks_to_citations([{"chunk_id": 100 + i} for i in range(count)])


def test_two_chunk_scenario():
    citations = _citations(2)
    segments = segment_citations("See Chunk 1 and Chunk 2 for details.", citations)

    assert [(s.text, s.citation_id) for s in segments] == [
        ("See ", None),
        ("Chunk 1", citations[0].citation_id),
        (" and ", None),
        ("Chunk 2", citations[1].citation_id),
        (" for details.", None),
    ]
    assert citations[0].chunk_index == 0
    assert citations[1].chunk_index == 1


def test_out_of_range_marker_is_plain():
    segments = segment_citations("Chunk 5 is relevant", _citations(2))
    assert len(segments) == 1
    assert segments[0].text == "Chunk 5 is relevant"
    assert segments[0].citation_id is None


def test_no_citations_returns_whole_text():
    segments = segment_citations("Chunk 1 is here", [])
    assert [(s.text, s.citation_id) for s in segments] == [("Chunk 1 is here", None)]


def test_zero_ordinal_is_ignored():
    segments = segment_citations("Chunk 0 and Chunk 1", _citations(1))
    assert [(s.text, s.citation_id) for s in segments] == [("Chunk 0 and ", None), ("Chunk 1", 1)]


@pytest.mark.parametrize("text", [
    "See Chunk 1 and Chunk 2 for details.",
    "Chunk 5 is relevant",
    "[1][2] back to back, Source 3, citation 2, chunk #1.",
    "",
    "No markers at all",
    "Trailing marker [2]",
])
def test_segments_concatenate_to_input(text):
    segments = segment_citations(text, _citations(3))
    assert "".join(s.text for s in segments) == text


@pytest.mark.parametrize("marker,ordinal", [
    ("Chunk 3", 3),
    ("chunk 3", 3),
    ("Chunk #3", 3),
    ("Citation 3", 3),
    ("Source 3", 3),
    ("[3]", 3),
])
def test_marker_forms(marker, ordinal):
    markers = list(recognize_citation_markers(f"as noted in {marker}."))
    assert len(markers) == 1
    assert markers[0].ordinal == ordinal
    assert markers[0].form in dict(CITATION_MARKER_FORMS)


@pytest.mark.parametrize("text", [
    "Chunk\n3",
    "Chunk  3",
    "Chunk#3",
    "Source\t3",
])
def test_marker_forms_need_a_single_space(text):
    assert list(recognize_citation_markers(text)) == []
    assert [s.text for s in segment_citations(text, _citations(3))] == [text]


def test_has_citation_markers():
    assert has_citation_markers("per [2]")
    assert not has_citation_markers("chunk of text")


def test_transform_title_and_type_resolution():
    chunks = [
        {"chunk_id": 7, "score": 0.9, "document": {"pageContent": "x" * 250, "metadata": {"type": "table"}}},
        {"chunk_id": None, "document": {"pageContent": "short", "metadata": {"title": "Doc title"}}},
        {"address": "1 Chunk Rd"},
        {},
    ]
    sources = [
        {"address": "12 Smith St", "suburb": "Fitzroy", "document_type": "Planning Permit", "chunk_lines_from": 3, "chunk_lines_to": 9},
        {"section": "Zoning"},
    ]
    citations = transform_chunks_to_citations(chunks, sources)

    first = citations[0]
    assert first.citation_id == 1
    assert first.source_id == "7"
    assert first.source_title == "12 Smith St, Fitzroy"
    assert first.source_type == "planning_permit"
    assert first.excerpt == "x" * 200 + "..."
    assert first.score == 0.9
    assert (first.chunk_lines_from, first.chunk_lines_to) == (3, 9)

    second = citations[1]
    assert second.source_id == "chunk-1"
    assert second.source_title == "Zoning"
    assert second.source_type == "text"
    assert second.excerpt == "short..."

    assert citations[2].source_title == "1 Chunk Rd"
    assert citations[3].source_title == "Source Unknown"
    assert citations[3].excerpt == ""


def test_transform_tolerates_bad_document():
    citations = transform_chunks_to_citations([{"chunk_id": 1, "document": "not a dict"}])
    assert citations[0].source_title == "Source 1"
    assert citations[0].source_type == "text"


def test_excerpt_length_override():
    citations = transform_chunks_to_citations([{"document": {"pageContent": "abcdef"}}], excerpt_length=3)
    assert citations[0].excerpt == "abc..."


def test_citations_from_metadata():
    metadata = {"chunks_retrieved": [{"chunk_id": 1}], "sources_cited": [{"address": "5 Low St"}]}
    citations = citations_from_metadata(metadata)
    assert len(citations) == 1
    assert citations[0].source_title == "5 Low St"

    assert citations_from_metadata(None) == []
    assert citations_from_metadata({"chunks_retrieved": "bad"}) == []
    assert len(citations_from_metadata({"sources_cited": [{}, {}]})) == 2


def test_citation_to_dict_omits_missing_fields():
    data = Citation(citation_id=1, source_id="a", source_title="t", source_type="text", chunk_index=0).to_dict()
    assert "score" not in data
    assert data["citation_id"] == 1
