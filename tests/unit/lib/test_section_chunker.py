"""Tests for chunking section trees and raw text streams."""

import pytest

from docchat.lib.errors import ValidationError
from docchat.lib.section_chunker import chunk_section_nodes, chunk_string
from docchat.lib.section_tree import markdown_to_sections
from docchat.lib.text_splitter import (
    MultipleRegexTextSplitter,
    section_sentence_splitter,
)
from docchat.lib.tokenizer import TokenCounter
from docchat.models.section import SectionNode


@pytest.fixture
def line_splitter() -> MultipleRegexTextSplitter:
    """Split on newlines only."""
    return MultipleRegexTextSplitter(separators=[r"\n+"], no_match_sequences=[])


class TestChunkSectionNodes:
    """Tests for chunk_section_nodes."""

    def test_orders_and_routes(
        self, line_splitter: MultipleRegexTextSplitter, token_counter: TokenCounter
    ) -> None:
        """Test per-section order and document-wide total_order."""
        sections = markdown_to_sections("# A\nOne.\nTwo.\n## B\nThree.")
        chunks = chunk_section_nodes(
            sections, splitter=line_splitter, token_counter=token_counter
        )

        assert [c.page_content for c in chunks] == ["One.", "Two.", "Three."]
        assert [c.metadata.order for c in chunks] == [1, 2, 1]
        assert [c.metadata.total_order for c in chunks] == [1, 2, 3]
        assert [c.metadata.header_route_levels for c in chunks] == ["1", "1", "1>1"]
        assert chunks[2].metadata.header_route == "A>B"
        assert chunks[0].metadata.section_id == sections[0].id
        assert chunks[2].metadata.section_id == sections[0].subsections[0].id
        assert chunks[0].metadata.tokens == token_counter.count("One.")
        assert chunks[0].metadata.char_count == 4
        assert not any(c.metadata.table for c in chunks)

    def test_table_chunks_carry_their_index(
        self, line_splitter: MultipleRegexTextSplitter, token_counter: TokenCounter
    ) -> None:
        """Test that table text is resolved and tagged with its table index."""
        markdown = "# A\nIntro.\n\n| X | Y |\n|---|---|\n| 1 | 2 |\n\nAfter."
        chunks = chunk_section_nodes(
            markdown_to_sections(markdown),
            splitter=line_splitter,
            token_counter=token_counter,
        )

        assert [c.page_content for c in chunks] == [
            "Intro.",
            "X: 1",
            "Y: 2",
            "After.",
        ]
        assert [c.metadata.table for c in chunks] == [False, True, True, False]
        assert [c.metadata.table_index for c in chunks] == [None, 0, 0, None]
        assert [c.metadata.order for c in chunks] == [1, 2, 3, 4]

    def test_missing_table_raises(self, token_counter: TokenCounter) -> None:
        """Test that a placeholder without its table is rejected."""
        section = SectionNode(
            title="A",
            level=1,
            header_route="A",
            header_route_levels="1",
            content="<<<TABLE:3>>>",
        )
        with pytest.raises(ValidationError) as exc_info:
            chunk_section_nodes([section], token_counter=token_counter)
        assert exc_info.value.actual == "3"

    def test_unknown_meta_marker_stays_whole(
        self, line_splitter: MultipleRegexTextSplitter, token_counter: TokenCounter
    ) -> None:
        """Test that unknown markers are emitted as a single chunk."""
        section = SectionNode(
            title="A",
            level=1,
            header_route="A",
            header_route_levels="1",
            content="Before.\n<<<IMAGE:x>>>\nAfter.",
        )
        chunks = chunk_section_nodes(
            [section], splitter=line_splitter, token_counter=token_counter
        )
        assert [c.page_content for c in chunks] == [
            "Before.",
            "<<<IMAGE:x>>>",
            "After.",
        ]

    def test_start_total_order(
        self, line_splitter: MultipleRegexTextSplitter, token_counter: TokenCounter
    ) -> None:
        """Test that numbering can start at an offset."""
        chunks = chunk_section_nodes(
            markdown_to_sections("# A\nOne.\nTwo."),
            splitter=line_splitter,
            token_counter=token_counter,
            start_total_order=10,
        )
        assert [c.metadata.total_order for c in chunks] == [10, 11]

    def test_sections_without_content_emit_nothing(
        self, token_counter: TokenCounter
    ) -> None:
        """Test that empty sections do not break contiguous numbering."""
        chunks = chunk_section_nodes(
            markdown_to_sections("# A\n## B\nText.\n# C\n# D\nMore."),
            token_counter=token_counter,
        )
        assert [c.metadata.total_order for c in chunks] == [1, 2]
        assert [c.metadata.header_route for c in chunks] == ["A>B", "D"]

    def test_default_splitter_bounds_chunk_size(
        self, sample_markdown: str, token_counter: TokenCounter
    ) -> None:
        """Test that the ingestion splitter keeps chunks within 150 chars."""
        long_section = "# Long\n" + " ".join(["sentence"] * 80)
        chunks = chunk_section_nodes(
            markdown_to_sections(sample_markdown + long_section),
            token_counter=token_counter,
        )
        assert all(c.metadata.char_count <= 150 for c in chunks)
        assert [c.metadata.total_order for c in chunks] == list(
            range(1, len(chunks) + 1)
        )

    def test_nested_headings_end_to_end(self, token_counter: TokenCounter) -> None:
        """Test one chunk per section straight from markdown."""
        chunks = chunk_section_nodes(
            markdown_to_sections("# H1\nText.\n## H1.1\nSub text."),
            token_counter=token_counter,
        )

        assert [
            (
                c.page_content,
                c.metadata.order,
                c.metadata.total_order,
                c.metadata.header_route_levels,
            )
            for c in chunks
        ] == [("Text.", 1, 1, "1"), ("Sub text.", 1, 2, "1>1")]


class TestChunkString:
    """Tests for chunk_string."""

    def test_chunks_are_trimmed_and_numbered(self, token_counter: TokenCounter) -> None:
        """Test sentence chunks of a raw text stream."""
        chunks = chunk_string(
            "First. Second.\n\n", section_sentence_splitter(), token_counter
        )
        assert [c.page_content for c in chunks] == ["First.", "Second."]
        assert [c.metadata.total_order for c in chunks] == [1, 2]
        assert chunks[0].metadata.kind == "text"

    def test_empty_text(self, token_counter: TokenCounter) -> None:
        """Test that blank text yields no chunks."""
        assert chunk_string("  ", section_sentence_splitter(), token_counter) == []
