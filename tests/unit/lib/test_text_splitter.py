"""Tests for regex-driven and size-bounded text splitting."""

import re

import pytest
from langchain_text_splitters import RecursiveCharacterTextSplitter

from docchat.lib.errors import ConfigError
from docchat.lib.text_splitter import (
    MultipleRegexTextSplitter,
    TextSplitter,
    layout_text_splitter,
    section_sentence_splitter,
    size_bounded_splitter,
)


class TestMultipleRegexTextSplitter:
    """Tests for MultipleRegexTextSplitter."""

    def test_keeps_separators_and_shields_abbreviations(self) -> None:
        """Test that 'e.g.' is not treated as a sentence end."""
        splitter = MultipleRegexTextSplitter(
            separators=[r"\.\s+"], keep_separators=True
        )
        assert splitter.split_text("One. Two, e.g. three. Four") == [
            "One. ",
            "Two, e.g. three. ",
            "Four",
        ]

    def test_abbreviations_split_without_exceptions(self) -> None:
        """Test that 'e.g.' is a sentence end once no exceptions are given."""
        splitter = MultipleRegexTextSplitter(
            separators=[r"\.\s+"], keep_separators=True, no_match_sequences=[]
        )
        assert splitter.split_text("Two, e.g. three. Four") == [
            "Two, e.g. ",
            "three. ",
            "Four",
        ]

    @pytest.mark.parametrize(
        ("separators", "text"),
        [
            ([r"\s+", r"\.\s"], "a. b.  c"),
            ([r"\.\s", r"\s+"], "First. Second.\n Third"),
            ([r"\n+"], "\n\nleading and trailing\n\n"),
            ([r"\s+"], "  "),
            ([r"\s+"], ""),
            ([re.compile(r"(?=B)")], "ABAB"),
        ],
    )
    def test_kept_separators_rejoin_to_input(
        self, separators: list[str | re.Pattern[str]], text: str
    ) -> None:
        """Test that no text is lost or duplicated when separators are kept."""
        splitter = MultipleRegexTextSplitter(
            separators=separators, keep_separators=True, no_match_sequences=[]
        )
        assert "".join(splitter.split_text(text)) == text

    def test_drops_separators_by_default(self) -> None:
        """Test that separator text is removed when not kept."""
        splitter = MultipleRegexTextSplitter(
            separators=[",", ";"], no_match_sequences=[]
        )
        assert splitter.split_text("a,b;c") == ["a", "b", "c"]

    def test_per_pattern_flags(self) -> None:
        """Test that a precompiled separator keeps its own flags."""
        splitter = MultipleRegexTextSplitter(
            separators=[re.compile(r"and", re.IGNORECASE)], no_match_sequences=[]
        )
        assert splitter.split_text("cats AND dogs and birds") == [
            "cats ",
            " dogs ",
            " birds",
        ]

    def test_zero_length_separator(self) -> None:
        """Test that lookahead separators split without consuming text."""
        splitter = MultipleRegexTextSplitter(
            separators=[re.compile(r"(?=B)")], no_match_sequences=[]
        )
        assert splitter.split_text("AB") == ["A", "B"]

    def test_overlapping_separators_use_the_earliest(self) -> None:
        """Test that a separator inside an already consumed one is skipped."""
        splitter = MultipleRegexTextSplitter(
            separators=[r"\s+", r"\.\s"], no_match_sequences=[]
        )
        assert splitter.split_text("a. b") == ["a", "b"]

    def test_no_separator_match_returns_whole_text(self) -> None:
        """Test that text without separators comes back as one segment."""
        splitter = MultipleRegexTextSplitter(separators=[r"\|"])
        assert splitter.split_text("nothing to split") == ["nothing to split"]

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_input_returned_unchanged(self, text: str) -> None:
        """Test that blank input is returned as a single element."""
        splitter = MultipleRegexTextSplitter(separators=[r"\s+"])
        assert splitter.split_text(text) == [text]

    def test_requires_a_separator(self) -> None:
        """Test that an empty separator list is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            MultipleRegexTextSplitter(separators=[])
        assert exc_info.value.field == "separators"

    def test_rejects_non_regex_entries(self) -> None:
        """Test that non-string, non-pattern entries are rejected."""
        with pytest.raises(ConfigError) as exc_info:
            MultipleRegexTextSplitter(separators=[42])  # type: ignore[list-item]
        assert "int" in str(exc_info.value)

    def test_rejects_invalid_regex(self) -> None:
        """Test that an uncompilable pattern is a config error."""
        with pytest.raises(ConfigError) as exc_info:
            MultipleRegexTextSplitter(separators=["."], no_match_sequences=["("])
        assert exc_info.value.field == "no_match_sequences"

    def test_satisfies_text_splitter_protocol(self) -> None:
        """Test that both splitter kinds satisfy the protocol."""
        assert isinstance(MultipleRegexTextSplitter(separators=["x"]), TextSplitter)
        assert isinstance(size_bounded_splitter(), TextSplitter)


class TestPresetSplitters:
    """Tests for the preset splitters used by reconciliation and ingestion."""

    def test_section_sentence_splitter(self) -> None:
        """Test sentence and newline splitting with shielded 'i.e.'."""
        text = "First sentence. Second one!\nThird, i.e. the last."
        assert section_sentence_splitter().split_text(text) == [
            "First sentence. ",
            "Second one!\n",
            "Third, i.e. the last.",
        ]

    def test_layout_splitter_splits_sentences(self) -> None:
        """Test that sentence terminators cut the layout stream."""
        assert layout_text_splitter().split_text("The fox runs. It jumps high.") == [
            "The fox runs. ",
            "It jumps high.",
        ]

    def test_layout_splitter_splits_enumerations_and_lists(self) -> None:
        """Test that an enumeration heading and each list item are cut apart."""
        text = "Steps:\n1. Open the lid\n2. Close it"
        assert layout_text_splitter().split_text(text) == [
            "Steps:\n",
            "1. Open the lid\n",
            "2. Close it",
        ]


class TestSizeBoundedSplitter:
    """Tests for size_bounded_splitter."""

    def test_returns_recursive_character_splitter(self) -> None:
        """Test that chunks never exceed the configured size."""
        splitter = size_bounded_splitter(chunk_size=50)
        assert isinstance(splitter, RecursiveCharacterTextSplitter)
        chunks = splitter.split_text(" ".join(["word"] * 100))
        assert len(chunks) > 1
        assert all(len(chunk) <= 50 for chunk in chunks)

    def test_rejects_non_positive_size(self) -> None:
        """Test that chunk_size must be positive."""
        with pytest.raises(ConfigError) as exc_info:
            size_bounded_splitter(chunk_size=0)
        assert exc_info.value.field == "chunk_size"

    @pytest.mark.parametrize("overlap", [-1, 50, 60])
    def test_rejects_invalid_overlap(self, overlap: int) -> None:
        """Test that overlap must be non-negative and below the size."""
        with pytest.raises(ConfigError) as exc_info:
            size_bounded_splitter(chunk_size=50, chunk_overlap=overlap)
        assert exc_info.value.field == "chunk_overlap"
