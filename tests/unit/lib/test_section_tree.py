"""Tests for building the section tree from markdown."""

from docchat.lib.section_tree import HeaderRouteTracker, markdown_to_sections
from docchat.models.section import walk_sections


class TestMarkdownToSections:
    """Tests for markdown_to_sections."""

    def test_nested_sections(self) -> None:
        """Test content and routes of a parent and its child."""
        sections = markdown_to_sections("# A\nText.\n## B\nMore.")

        assert len(sections) == 1
        parent = sections[0]
        assert parent.title == "A"
        assert parent.content == "Text."
        assert parent.header_route == "A"
        assert parent.header_route_levels == "1"

        child = parent.subsections[0]
        assert child.content == "More."
        assert child.header_route == "A>B"
        assert child.header_route_levels == "1>1"

    def test_sibling_indices(self) -> None:
        """Test that sibling headings count up from 1."""
        sections = markdown_to_sections("# A\n# B\n## C\n## D")

        assert [s.header_route_levels for s in sections] == ["1", "2"]
        second = sections[1]
        assert [s.header_route_levels for s in second.subsections] == ["2>1", "2>2"]
        assert second.subsections[1].header_route == "B>D"

    def test_levels_after_returning_to_top(self) -> None:
        """Test H1, H2, H2, H1 numbering."""
        sections = markdown_to_sections("# A\n## B\n## C\n# D")

        assert [s.header_route_levels for s in walk_sections(sections)] == [
            "1",
            "1>1",
            "1>2",
            "2",
        ]
        assert [s.header_route_levels for s in sections[0].subsections] == [
            "1>1",
            "1>2",
        ]
        assert sections[1].subsections == []

    def test_document_starting_at_h3(self) -> None:
        """Test that both missing ancestors are filled in."""
        section = markdown_to_sections("### Deep")[0]
        assert section.header_route == "N/A>N/A>Deep"
        assert section.header_route_levels == "1>1>1"

    def test_skipped_level_is_filled(self) -> None:
        """Test that an H3 directly under an H1 gets a placeholder level."""
        sections = markdown_to_sections("# A\n### C\nBody.")

        child = sections[0].subsections[0]
        assert child.level == 3
        assert child.header_route == "A>N/A>C"
        assert child.header_route_levels == "1>1>1"

    def test_document_starting_at_h2(self) -> None:
        """Test routes of a document whose first heading is an H2."""
        section = markdown_to_sections("## B\ntext")[0]
        assert section.header_route == "N/A>B"
        assert section.header_route_levels == "1>1"

    def test_text_before_first_heading_is_dropped(self) -> None:
        """Test that a preamble has no owning section."""
        sections = markdown_to_sections("Preamble.\n\n# A\nBody.")
        assert len(sections) == 1
        assert sections[0].content == "Body."

    def test_tables_are_replaced_by_placeholders(self) -> None:
        """Test that tables are stored apart and referenced in content."""
        markdown = "# A\nIntro.\n\n| X | Y |\n|---|---|\n| 1 | 2 |\n\nAfter."
        section = markdown_to_sections(markdown)[0]

        assert section.tables == {0: "X: 1\nY: 2"}
        assert section.content == "Intro.\n\n<<<TABLE:0>>>\n\nAfter."

    def test_table_indices_restart_per_section(self) -> None:
        """Test that every section numbers its tables from 0."""
        table = "| X |\n|---|\n| 1 |"
        sections = markdown_to_sections(f"# A\n{table}\n\n# B\n{table}\n\n{table}")

        assert list(sections[0].tables) == [0]
        assert list(sections[1].tables) == [0, 1]

    def test_inline_markup_in_title(self) -> None:
        """Test that titles are plain text."""
        assert markdown_to_sections("# **Bold** title")[0].title == "Bold title"

    def test_malformed_sequence_does_not_raise(self) -> None:
        """Test that a deep heading followed by a top heading yields two roots."""
        sections = markdown_to_sections("#### deep\n# top")
        assert [s.title for s in sections] == ["deep", "top"]
        assert sections[0].header_route_levels == "1>1>1>1"
        assert sections[1].header_route_levels == "2"

    def test_empty_document(self) -> None:
        """Test that markdown without headings has no sections."""
        assert markdown_to_sections("") == []

    def test_walk_is_pre_order(self) -> None:
        """Test document-order traversal of the forest."""
        sections = markdown_to_sections("# A\n## B\n### C\n## D\n# E")
        assert [s.title for s in walk_sections(sections)] == ["A", "B", "C", "D", "E"]


class TestHeaderRouteTracker:
    """Tests for HeaderRouteTracker."""

    def test_going_back_up_increments_the_parent_level(self) -> None:
        """Test that returning to a shallower depth continues its numbering."""
        tracker = HeaderRouteTracker()
        tracker.update(1, "A")
        tracker.update(2, "B")
        tracker.update(3, "C")
        assert tracker.update(2, "D") == ("A>D", "1>2")
        assert tracker.update(1, "E") == ("E", "2")
