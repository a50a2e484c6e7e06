"""
Unit tests for slide fragment extraction and surgery.
"""
import pytest

from datadeck.core.errors import InvalidDocumentError
from datadeck.services.presentation.fragments import (
    CLOSING_FRAGMENT_ID,
    TITLE_FRAGMENT_ID,
    content_fragment_count,
    delete_fragments,
    extract_fragments,
    get_fragment,
    insert_fragments,
    renumber_fragments,
    replace_fragments,
    set_fragment_id,
    validate_document,
)


def ids(document):
    return [fragment.id for fragment in extract_fragments(document)]


def numbered_document(count):
    sections = "\n".join(
        f'<section id="slide-{i}" class="slide"><h2>Slide {i}</h2></section>' for i in range(count)
    )
    return (
        '<html><body>\n'
        '<section id="slide-title" class="slide"><h1>Title</h1></section>\n'
        f'{sections}\n'
        '<section id="slide-thankyou" class="slide"><h1>Thanks</h1></section>\n'
        '</body></html>'
    )


class TestExtractFragments:
    """Tests for extract_fragments."""

    def test_assembled_document_order_and_types(self, sample_document):
        """Opening, content and closing fragments are classified in order."""
        fragments = extract_fragments(sample_document)

        assert [f.id for f in fragments] == [
            TITLE_FRAGMENT_ID, "slide-0", "slide-1", "slide-2", CLOSING_FRAGMENT_ID,
        ]
        assert [f.type for f in fragments] == ["title", "content", "content", "content", "thankyou"]
        assert [f.index for f in fragments] == [0, 1, 2, 3, 4]

    def test_titles_from_first_heading(self, sample_document):
        """Display title is the text of the first h1/h2."""
        fragments = extract_fragments(sample_document)

        assert fragments[0].title == "Quarterly Report"
        assert fragments[1].title == "Alpha"
        assert fragments[3].title == "Gamma"

    def test_fragment_without_heading_has_no_title(self):
        document = '<section id="slide-0" class="slide"><p>No heading</p></section>'

        assert extract_fragments(document)[0].title is None

    def test_duplicate_ids_are_rejected(self):
        """Two fragments sharing an id signal an invalid document."""
        document = (
            '<section id="slide-0"><h2>A</h2></section>'
            '<section id="slide-0"><h2>B</h2></section>'
        )

        with pytest.raises(InvalidDocumentError, match="slide-0"):
            extract_fragments(document)

    def test_missing_id_defaults_to_position(self):
        document = '<section class="slide"><h2>A</h2></section><section id="x"><h2>B</h2></section>'

        assert ids(document) == ["slide-0", "x"]

    def test_single_quoted_id(self):
        document = "<section class='slide' id='slide-3'><h2>A</h2></section>"

        assert ids(document) == ["slide-3"]

    def test_get_fragment_matches_exact_id(self):
        document = numbered_document(12)

        fragment = get_fragment(document, "slide-1")

        assert fragment is not None
        assert fragment.title == "Slide 1"
        assert get_fragment(document, "slide-99") is None

    def test_content_fragment_count(self, sample_document):
        assert content_fragment_count(sample_document) == 3


class TestValidateDocument:
    """Tests for validate_document."""

    def test_valid_document(self, sample_document):
        assert validate_document(sample_document) == []

    def test_no_slides(self):
        assert validate_document("<html><body></body></html>") == ["No slides found in HTML"]

    def test_duplicates(self):
        document = '<section id="a"></section><section id="a"></section>'

        problems = validate_document(document)

        assert len(problems) == 1
        assert "Duplicate slide IDs" in problems[0]


class TestReplaceFragments:
    """Tests for replace_fragments."""

    def test_replacing_every_fragment_with_itself_is_identity(self, sample_document):
        """Extraction followed by reassembly is byte-identical."""
        result = replace_fragments(sample_document, extract_fragments(sample_document))

        assert result == sample_document

    def test_partial_update_leaves_other_fragments_untouched(self, sample_document):
        before = {f.id: f.html for f in extract_fragments(sample_document)}
        new_markup = '<section id="slide-1" class="slide"><h2>Beta v2</h2></section>'

        result = replace_fragments(sample_document, [{"id": "slide-1", "html": new_markup}])

        after = {f.id: f.html for f in extract_fragments(result)}
        assert after["slide-1"] == new_markup
        for fragment_id in (TITLE_FRAGMENT_ID, "slide-0", "slide-2", CLOSING_FRAGMENT_ID):
            assert after[fragment_id] == before[fragment_id]
        assert result.replace(new_markup, before["slide-1"]) == sample_document

    def test_unknown_id_is_a_noop(self, sample_document):
        result = replace_fragments(sample_document, [{"id": "slide-77", "html": "<section>x</section>"}])

        assert result == sample_document

    def test_slide_1_does_not_match_slide_10(self):
        document = numbered_document(12)
        new_markup = '<section id="slide-1" class="slide"><h2>Changed</h2></section>'

        result = replace_fragments(document, [{"id": "slide-1", "html": new_markup}])

        assert get_fragment(result, "slide-1").title == "Changed"
        assert get_fragment(result, "slide-10").title == "Slide 10"
        assert get_fragment(result, "slide-11").title == "Slide 11"

    def test_order_independent(self, sample_document):
        first = {"id": "slide-0", "html": '<section id="slide-0"><h2>A2</h2></section>'}
        third = {"id": "slide-2", "html": '<section id="slide-2"><h2>C2</h2></section>'}

        assert replace_fragments(sample_document, [first, third]) == replace_fragments(sample_document, [third, first])

    def test_same_id_twice_is_rejected(self, sample_document):
        update = {"id": "slide-0", "html": "<section id='slide-0'></section>"}

        with pytest.raises(InvalidDocumentError):
            replace_fragments(sample_document, [update, update])


class TestDeleteAndRenumber:
    """Tests for delete_fragments and renumber_fragments."""

    def test_delete_then_renumber(self, sample_document):
        """Deleting slide-1 and renumbering turns old slide-2 into slide-1."""
        gamma_before = get_fragment(sample_document, "slide-2")

        result = renumber_fragments(delete_fragments(sample_document, ["slide-1"]))

        assert ids(result) == [TITLE_FRAGMENT_ID, "slide-0", "slide-1", CLOSING_FRAGMENT_ID]
        assert get_fragment(result, "slide-1").title == gamma_before.title
        assert "Beta" not in result

    def test_delete_removes_trailing_whitespace(self):
        document = '<section id="a">A</section>\n\n<section id="b">B</section>'

        assert delete_fragments(document, ["a"]) == '<section id="b">B</section>'

    def test_delete_is_order_independent(self, sample_document):
        assert delete_fragments(sample_document, ["slide-0", "slide-2"]) == delete_fragments(
            sample_document, ["slide-2", "slide-0"]
        )

    def test_renumber_skips_reserved_ids(self):
        document = (
            '<section id="slide-title"></section>'
            '<section id="slide-5"></section>'
            '<section id="custom" class="slide"></section>'
            '<section id="slide-thankyou"></section>'
        )

        assert ids(renumber_fragments(document)) == [
            TITLE_FRAGMENT_ID, "slide-0", "slide-1", CLOSING_FRAGMENT_ID,
        ]

    def test_renumber_dense_document_is_unchanged(self, sample_document):
        assert renumber_fragments(sample_document) == sample_document


class TestInsertFragments:
    """Tests for insert_fragments."""

    def test_insert_before_closing_slide(self, sample_document):
        result = renumber_fragments(insert_fragments(
            sample_document,
            ['<section id="slide-9" class="slide"><h2>Delta</h2></section>'],
        ))

        fragments = extract_fragments(result)
        assert [f.id for f in fragments][-2:] == ["slide-3", CLOSING_FRAGMENT_ID]
        assert fragments[-2].title == "Delta"

    def test_insert_without_closing_slide_appends(self):
        document = '<section id="slide-0"><h2>A</h2></section>'

        result = insert_fragments(document, ['<section id="slide-1"><h2>B</h2></section>'])

        assert ids(result) == ["slide-0", "slide-1"]

    def test_insert_nothing_is_identity(self, sample_document):
        assert insert_fragments(sample_document, ["   "]) == sample_document


class TestSetFragmentId:
    """Tests for set_fragment_id."""

    def test_adds_missing_id(self):
        assert set_fragment_id('<section class="slide">x</section>', "slide-4") == (
            '<section id="slide-4" class="slide">x</section>'
        )

    def test_overwrites_existing_id(self):
        assert set_fragment_id('<section id="slide-9" class="slide">x</section>', "slide-2") == (
            '<section id="slide-2" class="slide">x</section>'
        )

    def test_markup_without_section_is_unchanged(self):
        assert set_fragment_id("<div>x</div>", "slide-0") == "<div>x</div>"
