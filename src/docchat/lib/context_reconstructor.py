"""Query-time reconstruction of section context from retrieved chunks.

Small chunks give precise similarity matches, but the LLM answers better from
coherent passages. Each retrieved chunk is therefore grown back into a
token-bounded window of its own section, and the windows are ordered as they
appear in the document.
"""

from typing import Any, Protocol

from docchat.lib.errors import EmptyResultError
from docchat.lib.logging_config import get_logger
from docchat.models.chunk import (
    ReconstructedSectionDoc,
    ReconstructedSectionMetadata,
    SectionChunkDoc,
)
from docchat.models.config import RetrievalConfig, TokenLimits

logger = get_logger(__name__)


class ChunkStore(Protocol):
    """The part of the vector store used for retrieval."""

    async def query(
        self,
        collection_name: str,
        text: str,
        k: int = 4,
        where: dict[str, Any] | None = None,
        throw_on_empty: bool = False,
    ) -> list[Any]: ...

    async def get(
        self,
        collection_name: str,
        where: dict[str, Any] | None = None,
        throw_on_empty: bool = False,
    ) -> list[Any]: ...


def _section_chunks(docs: list[Any]) -> list[SectionChunkDoc]:
    chunks = [doc for doc in docs if isinstance(doc, SectionChunkDoc)]
    if len(chunks) < len(docs):
        logger.warning(f"Ignoring {len(docs) - len(chunks)} non-section chunks")
    return chunks


async def get_similar_chunks(
    store: ChunkStore, collection_name: str, prompt: str, max_chunks: int
) -> list[SectionChunkDoc]:
    """Retrieve the section chunks most similar to a prompt.

    Raises:
        EmptyResultError: If the store returns nothing.
        VectorStoreTimeoutError: If the query times out.
    """
    docs = await store.query(
        collection_name, prompt, k=max_chunks, throw_on_empty=True
    )
    chunks = _section_chunks(docs)
    if not chunks:
        raise EmptyResultError(collection_name)
    return chunks


def header_route_levels_filter(route_levels: list[str]) -> dict[str, Any]:
    """Build a ChromaDB ``where`` filter matching any of the route levels."""
    clauses = [{"header_route_levels": {"$eq": levels}} for levels in route_levels]
    if len(clauses) == 1:
        return clauses[0]
    return {"$or": clauses}


def reconstruct_section(
    chunk: SectionChunkDoc,
    section_chunks: list[SectionChunkDoc],
    max_section_tokens: int,
) -> ReconstructedSectionDoc:
    """Grow a window around ``chunk`` within its section.

    Starting from the retrieved chunk, one chunk above and one chunk below are
    tried alternately. A chunk is added only while the window stays within
    ``max_section_tokens``; a direction stops at the first chunk that does not
    fit.

    Args:
        chunk: The retrieved chunk.
        section_chunks: Every chunk of the same section, in any order.
        max_section_tokens: Token budget of the window.

    Returns:
        The window's text joined by newlines, with cumulative token and
        character counts.
    """
    ordered = sorted(section_chunks, key=lambda c: c.metadata.order)
    start = next(
        (
            i
            for i, c in enumerate(ordered)
            if c.metadata.order == chunk.metadata.order
        ),
        None,
    )
    if start is None:
        logger.warning(
            f"Chunk {chunk.metadata.order} missing from section "
            f"{chunk.metadata.header_route_levels}, using it alone"
        )
        ordered, start = [chunk], 0

    window = [ordered[start]]
    tokens = ordered[start].metadata.tokens
    above, below = start - 1, start + 1

    while above >= 0 or below < len(ordered):
        added = False

        if above >= 0:
            candidate = ordered[above]
            if tokens + candidate.metadata.tokens <= max_section_tokens:
                window.insert(0, candidate)
                tokens += candidate.metadata.tokens
                above -= 1
                added = True

        if below < len(ordered):
            candidate = ordered[below]
            if tokens + candidate.metadata.tokens <= max_section_tokens:
                window.append(candidate)
                tokens += candidate.metadata.tokens
                below += 1
                added = True

        if not added:
            break

    text = "\n".join(c.page_content for c in window)
    return ReconstructedSectionDoc(
        page_content=text,
        metadata=ReconstructedSectionMetadata(
            header_route=chunk.metadata.header_route,
            header_route_levels=chunk.metadata.header_route_levels,
            tokens=tokens,
            char_count=len(text),
        ),
    )


def build_sections_from_groups(
    similar_chunks: list[SectionChunkDoc],
    groups: dict[str, list[SectionChunkDoc]],
    left_total_tokens: int,
    max_section_tokens: int,
) -> list[ReconstructedSectionDoc]:
    """Reconstruct one window per distinct section, within the total budget.

    Retrieved chunks are visited in similarity order. A section already
    reconstructed is skipped; once the budget is spent the rest is dropped.
    """
    seen_section_ids: set[str] = set()
    remaining = left_total_tokens
    result: list[ReconstructedSectionDoc] = []

    for chunk in similar_chunks:
        if remaining <= 0:
            logger.debug("Total section token budget exhausted")
            break

        section_chunks = groups.get(chunk.metadata.header_route_levels, [])
        if chunk.metadata.section_id in seen_section_ids or not section_chunks:
            continue

        section = reconstruct_section(chunk, section_chunks, max_section_tokens)
        seen_section_ids.add(chunk.metadata.section_id)
        remaining -= section.metadata.tokens
        result.append(section)

    return result


async def reconstruct_sections(
    similar_chunks: list[SectionChunkDoc],
    store: ChunkStore,
    collection_name: str,
    left_total_tokens: int,
    max_section_tokens: int,
) -> list[ReconstructedSectionDoc]:
    """Fetch the sections of the retrieved chunks and reconstruct windows.

    All section groups are fetched in one filtered ``get`` call.

    Raises:
        EmptyResultError: If the store returns no section chunks.
    """
    if not similar_chunks:
        return []

    route_levels = list(
        dict.fromkeys(c.metadata.header_route_levels for c in similar_chunks)
    )
    docs = await store.get(
        collection_name,
        where=header_route_levels_filter(route_levels),
        throw_on_empty=True,
    )

    groups: dict[str, list[SectionChunkDoc]] = {}
    for doc in _section_chunks(docs):
        groups.setdefault(doc.metadata.header_route_levels, []).append(doc)

    return build_sections_from_groups(
        similar_chunks, groups, left_total_tokens, max_section_tokens
    )


def _route_key(header_route_levels: str) -> list[int]:
    key = []
    for part in header_route_levels.split(">"):
        try:
            key.append(int(part))
        except ValueError:
            key.append(0)
    return key


def sort_reconstructed_sections_by_header_route(
    sections: list[ReconstructedSectionDoc],
) -> list[ReconstructedSectionDoc]:
    """Sort sections into document order.

    Route components compare numerically, so ``"2>10"`` comes after
    ``"2>9"``. A missing component counts as 0, so a parent sorts before
    its subsections.
    """
    width = max(
        (len(s.metadata.header_route_levels.split(">")) for s in sections),
        default=0,
    )

    def key(section: ReconstructedSectionDoc) -> list[int]:
        route = _route_key(section.metadata.header_route_levels)
        return route + [0] * (width - len(route))

    return sorted(sections, key=key)


def format_context(
    sections: list[ReconstructedSectionDoc], section_prefix: str
) -> str:
    """Render sections as prompt context, each headed by its route."""
    return "\n\n".join(
        f"{section_prefix}{s.metadata.header_route}\n{s.page_content}"
        for s in sections
    )


async def retrieve_context(
    store: ChunkStore,
    collection_name: str,
    prompt: str,
    token_limits: TokenLimits | None = None,
    retrieval_config: RetrievalConfig | None = None,
) -> str:
    """Retrieve, reconstruct, and format document context for a prompt.

    Args:
        store: Vector store holding the document's chunks.
        collection_name: Document collection.
        prompt: User question.
        token_limits: Section token budgets.
        retrieval_config: Number of retrieved chunks and route prefix.

    Returns:
        Context text ready for prompt assembly.
    """
    token_limits = token_limits or TokenLimits()
    retrieval_config = retrieval_config or RetrievalConfig()

    logger.debug("Getting similar chunks")
    similar_chunks = await get_similar_chunks(
        store, collection_name, prompt, retrieval_config.max_chunks
    )

    logger.debug(f"Reconstructing sections from {len(similar_chunks)} chunks")
    sections = await reconstruct_sections(
        similar_chunks,
        store,
        collection_name,
        left_total_tokens=token_limits.max_tokens_all_sections,
        max_section_tokens=token_limits.max_tokens_per_section,
    )

    sorted_sections = sort_reconstructed_sections_by_header_route(sections)
    return format_context(sorted_sections, retrieval_config.section_prefix)
