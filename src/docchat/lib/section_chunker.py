"""Chunk a section tree into ordered, metadata-tagged retrieval units.

Sections are walked depth-first in pre-order. A section's own content is
chunked before its subsections. Table placeholders in the content are
resolved to the stored table text and chunked as atomic units tagged
``table=True``.

Two counters are threaded through the walk:

- ``order``: 1-based position of a chunk inside its section
- ``total_order``: 1-based position of a chunk in the whole document

Only emitted (non-blank) chunks advance the counters, so both are contiguous.
"""

import re
from dataclasses import dataclass

from docchat.lib.errors import ValidationError
from docchat.lib.logging_config import get_logger
from docchat.lib.text_splitter import TextSplitter, size_bounded_splitter
from docchat.lib.tokenizer import TokenCounter
from docchat.models.chunk import (
    SectionChunkDoc,
    SectionChunkMetadata,
    TextChunkDoc,
    TextChunkMetadata,
)
from docchat.models.section import SectionNode

logger = get_logger(__name__)

# Capturing group keeps the delimiters in the re.split output
META_DELIMITER_PATTERN = re.compile(r"(<<<.+?>>>)")
TABLE_PLACEHOLDER_PATTERN = re.compile(r"^<<<TABLE:(\d+)>>>$")


@dataclass
class _Counters:
    """Next ``total_order`` to assign and chunks emitted so far."""

    total_order: int
    chunks: list[SectionChunkDoc]


def _table_index(part: str, section: SectionNode) -> int | None:
    """Return the table index a placeholder part refers to, if any.

    Raises:
        ValidationError: If the placeholder references a missing table.
    """
    match = TABLE_PLACEHOLDER_PATTERN.match(part.strip())
    if match is None:
        return None
    index = int(match.group(1))
    if index not in section.tables:
        raise ValidationError(
            field=f"sections[{section.header_route_levels}].tables",
            message="Table placeholder references a table that does not exist",
            expected=f"one of {sorted(section.tables)}",
            actual=str(index),
        )
    return index


def _chunk_section(
    section: SectionNode,
    splitter: TextSplitter,
    token_counter: TokenCounter,
    counters: _Counters,
) -> None:
    order = 1

    for part in META_DELIMITER_PATTERN.split(section.content):
        table_index = _table_index(part, section)
        if table_index is not None:
            pieces = splitter.split_text(section.tables[table_index].strip())
        elif META_DELIMITER_PATTERN.fullmatch(part):
            # Unknown meta markers stay whole
            pieces = [part]
        else:
            pieces = splitter.split_text(part)

        for piece in pieces:
            content = piece.strip()
            if not content:
                continue
            counters.chunks.append(
                SectionChunkDoc(
                    page_content=content,
                    metadata=SectionChunkMetadata(
                        header_route=section.header_route,
                        header_route_levels=section.header_route_levels,
                        order=order,
                        total_order=counters.total_order,
                        tokens=token_counter.count(content),
                        char_count=len(content),
                        table=table_index is not None,
                        table_index=table_index,
                        section_id=section.id,
                    ),
                )
            )
            order += 1
            counters.total_order += 1

    for subsection in section.subsections:
        _chunk_section(subsection, splitter, token_counter, counters)


def chunk_section_nodes(
    sections: list[SectionNode],
    splitter: TextSplitter | None = None,
    token_counter: TokenCounter | None = None,
    start_total_order: int = 1,
) -> list[SectionChunkDoc]:
    """Chunk a section forest into section chunks.

    Args:
        sections: Section forest from ``markdown_to_sections``.
        splitter: Text splitter; defaults to the size-bounded ingestion
            splitter (150 characters, no overlap).
        token_counter: Token counter for chunk metadata.
        start_total_order: First ``total_order`` value to assign.

    Returns:
        Chunks in traversal order.

    Raises:
        ValidationError: If a table placeholder references a missing table.
    """
    splitter = splitter or size_bounded_splitter()
    token_counter = token_counter or TokenCounter()
    counters = _Counters(total_order=start_total_order, chunks=[])

    for section in sections:
        _chunk_section(section, splitter, token_counter, counters)

    logger.debug(
        f"Chunked {len(sections)} top-level sections "
        f"into {len(counters.chunks)} chunks"
    )
    return counters.chunks


def chunk_string(
    text: str,
    splitter: TextSplitter,
    token_counter: TokenCounter | None = None,
) -> list[TextChunkDoc]:
    """Chunk a raw text stream (e.g. the layout-parsed text).

    Args:
        text: Text to chunk.
        splitter: Text splitter to cut the text with.
        token_counter: Token counter for chunk metadata.

    Returns:
        Trimmed, non-blank chunks with contiguous ``total_order`` from 1.
    """
    token_counter = token_counter or TokenCounter()
    chunks: list[TextChunkDoc] = []
    for piece in splitter.split_text(text):
        content = piece.strip()
        if not content:
            continue
        chunks.append(
            TextChunkDoc(
                page_content=content,
                metadata=TextChunkMetadata(
                    total_order=len(chunks) + 1,
                    tokens=token_counter.count(content),
                    char_count=len(content),
                ),
            )
        )
    return chunks
