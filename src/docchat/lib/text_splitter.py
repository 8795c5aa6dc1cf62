"""Regex-driven text splitting.

``MultipleRegexTextSplitter`` cuts text at the matches of several separator
patterns at once, while "no-match" exception patterns shield regions (such as
the abbreviation "e.g." or a list marker like "a.") from being split.

Every separator or exception may carry its own regex flags: patterns are
given either as strings (compiled without flags) or as precompiled
``re.Pattern`` objects. Mixed flags across patterns are allowed.

The ingestion path uses a size-bounded splitter from langchain-text-splitters
instead; both satisfy the ``TextSplitter`` protocol.
"""

import re
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from langchain_text_splitters import RecursiveCharacterTextSplitter

from docchat.lib.errors import ConfigError
from docchat.lib.logging_config import get_logger

logger = get_logger(__name__)

PatternLike = str | re.Pattern[str]

# Sentence terminator followed by optional closing brackets/quotes and space
SENTENCE_TERMINATOR = r"[\.?!]{1}[)\]}`’”\"'»›]*\s+"

ABBREVIATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"e\.g\.", re.IGNORECASE),
    re.compile(r"i\.e\.", re.IGNORECASE),
    re.compile(r"f\.e\.", re.IGNORECASE),
)

DEFAULT_NO_MATCH_PATTERNS: tuple[re.Pattern[str], ...] = (
    *ABBREVIATION_PATTERNS,
    # List markers such as "a. item" or "1: item"
    re.compile(r"^\s*\w{1,2}[.:]\s+\w", re.MULTILINE),
)


@runtime_checkable
class TextSplitter(Protocol):
    """Anything that can split text into ordered pieces."""

    def split_text(self, text: str) -> list[str]:
        """Split text into an ordered list of pieces."""
        ...


@dataclass(frozen=True)
class _Interval:
    start: int
    end: int


def _compile(pattern: object, field: str) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, str):
        try:
            return re.compile(pattern)
        except re.error as e:
            raise ConfigError(field, f"invalid regular expression {pattern!r}: {e}")
    raise ConfigError(
        field,
        f"every entry must be a regular expression, got {type(pattern).__name__}",
    )


def _find_intervals(text: str, patterns: list[re.Pattern[str]]) -> list[_Interval]:
    """Find all match intervals of every pattern, sorted by start offset."""
    intervals: list[_Interval] = []
    for pattern in patterns:
        position = 0
        while position <= len(text):
            match = pattern.search(text, position)
            if match is None:
                break
            intervals.append(_Interval(match.start(), match.end()))
            # Zero-length matches must still move the scan forward
            position = match.end() if match.end() > match.start() else match.end() + 1
    intervals.sort(key=lambda interval: (interval.start, interval.end))
    return intervals


class MultipleRegexTextSplitter:
    """Split text at the matches of several regular expressions.

    Attributes:
        separators: Compiled separator patterns.
        no_match_sequences: Compiled exception patterns. A separator match
            whose start falls inside an exception match is ignored.
        keep_separators: Append each separator to the segment preceding it.

    Example:
        >>> splitter = MultipleRegexTextSplitter(
        ...     separators=[r"\\.\\s+"], keep_separators=True
        ... )
        >>> splitter.split_text("One. Two, e.g. three. Four")
        ['One. ', 'Two, e.g. three. ', 'Four']
    """

    def __init__(
        self,
        separators: list[PatternLike],
        no_match_sequences: list[PatternLike] | None = None,
        keep_separators: bool = False,
    ) -> None:
        """Initialize the splitter.

        Args:
            separators: Separator patterns; at least one is required.
            no_match_sequences: Exception patterns. Defaults to common
                abbreviations and list markers. Pass an empty list to
                disable shielding entirely.
            keep_separators: Keep separator text at the end of the segment
                preceding it instead of dropping it.

        Raises:
            ConfigError: If no separator is given or an entry is not a regex.
        """
        if not separators:
            raise ConfigError("separators", "at least one separator required")

        self.separators = [_compile(sep, "separators") for sep in separators]
        if no_match_sequences is None:
            self.no_match_sequences = list(DEFAULT_NO_MATCH_PATTERNS)
        else:
            self.no_match_sequences = [
                _compile(seq, "no_match_sequences") for seq in no_match_sequences
            ]
        self.keep_separators = keep_separators

    def split_text(self, text: str) -> list[str]:
        """Split text at every unshielded separator match.

        Args:
            text: Text to split.

        Returns:
            Non-empty segments in original order. Empty or blank input is
            returned unchanged as a single-element list.
        """
        if not text or not text.strip():
            return [text]

        separator_intervals = _find_intervals(text, self.separators)
        shield_intervals = _find_intervals(text, self.no_match_sequences)
        kept = self._filter_shielded(separator_intervals, shield_intervals)
        return self._split_by_intervals(text, kept)

    @staticmethod
    def _filter_shielded(
        separators: list[_Interval], shields: list[_Interval]
    ) -> list[_Interval]:
        """Drop separators that start inside an exception interval.

        Both lists are sorted by start offset, so a single forward walk over
        the shields is enough.
        """
        if not shields:
            return separators

        kept: list[_Interval] = []
        shield_index = 0
        for sep in separators:
            while (
                shield_index < len(shields) and shields[shield_index].end <= sep.start
            ):
                shield_index += 1
            shielded = False
            # Shields are sorted by start only; look ahead while they may cover
            candidate = shield_index
            while candidate < len(shields) and shields[candidate].start <= sep.start:
                if sep.start < shields[candidate].end:
                    shielded = True
                    break
                candidate += 1
            if not shielded:
                kept.append(sep)
        return kept

    def _split_by_intervals(self, text: str, intervals: list[_Interval]) -> list[str]:
        segments: list[str] = []
        position = 0
        for sep in intervals:
            # Overlaps a region already consumed by an earlier separator
            if sep.start < position:
                continue
            segment = text[position : sep.start]
            if self.keep_separators:
                segment += text[sep.start : sep.end]
            segments.append(segment)
            position = sep.end
        segments.append(text[position:])
        return [segment for segment in segments if segment]


def section_sentence_splitter() -> MultipleRegexTextSplitter:
    """Splitter used to cut section content into sentences for matching."""
    return MultipleRegexTextSplitter(
        separators=[r"[\r\n]+", SENTENCE_TERMINATOR],
        no_match_sequences=list(ABBREVIATION_PATTERNS),
        keep_separators=True,
    )


def layout_text_splitter() -> MultipleRegexTextSplitter:
    """Splitter used to cut the layout-parsed text stream into chunks."""
    return MultipleRegexTextSplitter(
        separators=[
            # Lists
            re.compile(r"^\s*(?=(?:\w{1,2}[.:)]|-)[ ]+\w)", re.MULTILINE),
            # Sentence terminators
            SENTENCE_TERMINATOR,
            # An enumeration starts
            r"\w{3,}:[ ]{0,1}[\n\r]",
            # Obvious titles
            r"[\n\r][A-Z0-9 ]+[\n\r]",
        ],
        no_match_sequences=list(ABBREVIATION_PATTERNS),
        keep_separators=True,
    )


def size_bounded_splitter(
    chunk_size: int = 150, chunk_overlap: int = 0
) -> RecursiveCharacterTextSplitter:
    """Splitter used at ingestion time to produce retrieval-sized chunks.

    Args:
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared between consecutive chunks.

    Raises:
        ConfigError: If the sizes are inconsistent.
    """
    if chunk_size <= 0:
        raise ConfigError("chunk_size", "must be a positive integer")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        raise ConfigError(
            "chunk_overlap", "must be non-negative and smaller than chunk_size"
        )
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        keep_separator=False,
    )
