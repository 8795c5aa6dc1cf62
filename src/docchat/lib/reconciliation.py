"""Reconcile LLM-parsed section text against a deterministic layout parse.

The markdown produced by an LLM/vision parser can hallucinate or garble
text. A coordinate-based layout parser yields trustworthy but unstructured
text. This module pairs every section chunk with its most likely layout
chunks and uses them to correct the section chunk, then rebuilds the section
tree with the corrected content.

Pipeline:
1. Matching: proximity window, Levenshtein pre-filter, embedding similarity,
   ranking by score then by distance in document order
2. Decision: per chunk, keep, accept as same text, or correct with an LLM
3. Merge-back: rebuild each section's content from its reconciled chunks

Per-chunk failures never abort the pipeline: every outcome is tagged with a
``ReconciliationStrategy`` reason code.
"""

import asyncio
import math
from collections import Counter
from dataclasses import dataclass
from enum import Enum

from docchat.config.defaults import MATCHER_DEFAULTS
from docchat.lib.errors import ReconciliationError, ValidationError
from docchat.lib.logging_config import get_logger
from docchat.lib.section_chunker import chunk_section_nodes, chunk_string
from docchat.lib.similarity import (
    SimilarityScorer,
    levenshtein_score,
    normalize_whitespace,
)
from docchat.lib.text_corrector import TextCorrector
from docchat.lib.text_splitter import layout_text_splitter, section_sentence_splitter
from docchat.lib.tokenizer import TokenCounter
from docchat.models.chunk import (
    MatchCandidate,
    MatchedChunk,
    SectionChunkDoc,
    TextChunkDoc,
)
from docchat.models.config import ReconciliationConfig
from docchat.models.section import SectionNode, table_placeholder

logger = get_logger(__name__)

EXACT_SCORE = 1.0


class ReconciliationStrategy(str, Enum):
    """How a section chunk was (or was not) reconciled."""

    SAME_TEXT = "same-text"
    LLM = "llm"
    IS_TABLE = "is-table"
    EMPTY_SECTION = "empty-section"
    EMPTY_CANDIDATES = "empty-candidates"
    ERROR = "error"


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one section chunk.

    Attributes:
        could_reconcile: Whether the chunk was confirmed or corrected.
        strategy: Reason code for the outcome.
        section_chunk: The chunk as it came in.
        chosen_candidate: Top layout candidate, if any.
        reconciled_chunk: Chunk to use from now on. Equal to the input chunk
            when nothing could be reconciled.
        error: Failure reason when ``strategy`` is ``ERROR``.
    """

    could_reconcile: bool
    strategy: ReconciliationStrategy
    section_chunk: SectionChunkDoc
    chosen_candidate: MatchCandidate | None
    reconciled_chunk: SectionChunkDoc
    error: str | None = None


def _rank_candidates(
    candidates: list[MatchCandidate], own_total_order: int
) -> list[MatchCandidate]:
    """Sort by descending score, then by distance to the chunk's own position.

    Python's sort is stable, so ties on both keys keep stream order.
    """
    return sorted(
        candidates,
        key=lambda c: (
            -c.score,
            abs(c.candidate.metadata.total_order - own_total_order),
        ),
    )


class SectionChunkMatcher:
    """Find the layout chunks that most likely correspond to a section chunk.

    Layout chunks are normalized once when the matcher is built, so matching
    many section chunks against the same layout stream stays cheap.

    Example:
        >>> matcher = SectionChunkMatcher(layout_chunks, similarity)
        >>> candidates = await matcher.match_section_chunk(chunk)
        >>> candidates[0].candidate.page_content
        'The quick brown fox'
    """

    DEFAULT_MAX_CANDIDATES = int(MATCHER_DEFAULTS["max_candidates"])
    DEFAULT_LEVENSHTEIN_THRESHOLD = float(MATCHER_DEFAULTS["levenshtein_threshold"])
    DEFAULT_SIMILARITY_THRESHOLD = float(MATCHER_DEFAULTS["similarity_threshold"])
    DEFAULT_PROXIMITY_WINDOW = int(MATCHER_DEFAULTS["proximity_window"])

    def __init__(
        self,
        layout_chunks: list[TextChunkDoc],
        similarity: SimilarityScorer,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        levenshtein_threshold: float = DEFAULT_LEVENSHTEIN_THRESHOLD,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        proximity_window: int = DEFAULT_PROXIMITY_WINDOW,
    ) -> None:
        """Initialize the matcher.

        Args:
            layout_chunks: Ordered layout chunk stream.
            similarity: Semantic similarity backend.
            max_candidates: Maximum candidates returned per section chunk.
            levenshtein_threshold: Minimum edit-distance score to keep.
            similarity_threshold: Minimum semantic similarity to keep.
            proximity_window: Width of the ``total_order`` window searched
                around the reference position.

        Raises:
            ValidationError: If there are no layout chunks or
                ``max_candidates`` is below 1.
        """
        if not layout_chunks:
            raise ValidationError(
                field="layout_chunks",
                message="Cannot match against an empty layout chunk stream",
                expected="at least one layout chunk",
                actual="0 chunks",
            )
        if max_candidates < 1:
            raise ValidationError(
                field="max_candidates",
                message="At least one candidate must be requested",
                expected=">= 1",
                actual=str(max_candidates),
            )

        self._layout_chunks = layout_chunks
        self._normalized = [normalize_whitespace(c.page_content) for c in layout_chunks]
        self._similarity = similarity
        self.max_candidates = max_candidates
        self.levenshtein_threshold = levenshtein_threshold
        self.similarity_threshold = similarity_threshold
        self.proximity_window = proximity_window

    @property
    def layout_chunks(self) -> list[TextChunkDoc]:
        """Layout chunk stream being matched against."""
        return self._layout_chunks

    async def match_section_chunk(
        self,
        section_chunk: SectionChunkDoc,
        reference_total_order: int | None = None,
        proximity_window: int | None = None,
        levenshtein_threshold: float | None = None,
        similarity_threshold: float | None = None,
        max_candidates: int | None = None,
    ) -> list[MatchCandidate]:
        """Rank the layout chunks matching a section chunk.

        Args:
            section_chunk: Chunk to match.
            reference_total_order: Centre of the proximity window. Defaults to
                the chunk's own ``total_order``; pass the previous match's
                position to follow drift between both parses.
            proximity_window: Overrides the matcher default.
            levenshtein_threshold: Overrides the matcher default.
            similarity_threshold: Overrides the matcher default.
            max_candidates: Overrides the matcher default.

        Returns:
            Ranked candidates carrying the original layout text. Empty when
            nothing is close enough.

        Raises:
            EmbeddingError: If the similarity backend fails.
        """
        own_total_order = section_chunk.metadata.total_order
        reference = (
            own_total_order if reference_total_order is None else reference_total_order
        )
        window = self.proximity_window if proximity_window is None else proximity_window
        lev_threshold = (
            self.levenshtein_threshold
            if levenshtein_threshold is None
            else levenshtein_threshold
        )
        sim_threshold = (
            self.similarity_threshold
            if similarity_threshold is None
            else similarity_threshold
        )
        limit = self.max_candidates if max_candidates is None else max_candidates

        text = normalize_whitespace(section_chunk.page_content)
        if not text:
            logger.warning(
                f"Section chunk {own_total_order} is empty, nothing to match"
            )
            return []

        half_window = window // 2
        proximate = [
            (chunk, normalized)
            for chunk, normalized in zip(
                self._layout_chunks, self._normalized, strict=True
            )
            if reference - half_window
            <= chunk.metadata.total_order
            <= reference + half_window
        ]
        if not proximate:
            logger.warning(
                f"No layout chunks within ±{half_window} of position {reference} "
                f"for section chunk {own_total_order}"
            )
            return []

        scored = [
            (chunk, normalized, levenshtein_score(text, normalized))
            for chunk, normalized in proximate
        ]

        exact = [
            MatchCandidate(candidate=chunk, score=EXACT_SCORE)
            for chunk, _, score in scored
            if score == EXACT_SCORE
        ]
        if exact:
            return _rank_candidates(exact, own_total_order)[:limit]

        survivors = [
            (chunk, normalized)
            for chunk, normalized, score in scored
            if score >= lev_threshold
        ]
        if not survivors:
            return []

        similarities = await self._similarity.score(
            text, [normalized for _, normalized in survivors]
        )
        candidates = [
            MatchCandidate(candidate=chunk, score=score)
            for (chunk, _), score in zip(survivors, similarities, strict=True)
            if score >= sim_threshold
        ]
        return _rank_candidates(candidates, own_total_order)[:limit]


async def get_matched_chunks(
    section_chunks: list[SectionChunkDoc],
    matcher: SectionChunkMatcher,
    batch_size: int = 50,
    proximity_window: int | None = None,
    levenshtein_threshold: float | None = None,
    similarity_threshold: float | None = None,
) -> list[MatchedChunk]:
    """Match every section chunk, in concurrent fixed-size batches.

    Inside a batch chunks are matched one after the other so the reference
    position can follow the previous match (drift tracking). Batches are
    independent and run concurrently.

    Args:
        section_chunks: Chunks in ``total_order`` order.
        matcher: Matcher over the layout chunk stream.
        batch_size: Chunks per batch.
        proximity_window: Window passed to every match; defaults to half the
            longest of both chunk streams.
        levenshtein_threshold: Passed to every match.
        similarity_threshold: Passed to every match.

    Returns:
        One MatchedChunk per section chunk, in input order.
    """
    if batch_size < 1:
        raise ValidationError(
            field="batch_size",
            message="Batch size must be positive",
            expected=">= 1",
            actual=str(batch_size),
        )
    if proximity_window is None:
        proximity_window = math.floor(
            max(len(section_chunks), len(matcher.layout_chunks)) * 0.5
        )

    async def match_batch(batch: list[SectionChunkDoc]) -> list[MatchedChunk]:
        results: list[MatchedChunk] = []
        reference = batch[0].metadata.total_order - 1
        for chunk in batch:
            if chunk.metadata.table:
                results.append(MatchedChunk(section_chunk=chunk))
                continue

            previous = results[-1] if results else None
            if previous is not None and previous.candidates:
                reference = previous.candidates[0].candidate.metadata.total_order
            else:
                reference += 1

            candidates = await matcher.match_section_chunk(
                chunk,
                reference_total_order=reference,
                proximity_window=proximity_window,
                levenshtein_threshold=levenshtein_threshold,
                similarity_threshold=similarity_threshold,
            )
            results.append(MatchedChunk(section_chunk=chunk, candidates=candidates))
        return results

    batches = [
        section_chunks[i : i + batch_size]
        for i in range(0, len(section_chunks), batch_size)
    ]
    batch_results = await asyncio.gather(*(match_batch(batch) for batch in batches))
    return [matched for results in batch_results for matched in results]


def _passthrough(
    matched: MatchedChunk, strategy: ReconciliationStrategy, error: str | None = None
) -> ReconciliationResult:
    chunk = matched.section_chunk
    return ReconciliationResult(
        could_reconcile=False,
        strategy=strategy,
        section_chunk=chunk,
        chosen_candidate=matched.candidates[0] if matched.candidates else None,
        reconciled_chunk=chunk.model_copy(deep=True),
        error=error,
    )


async def reconcile_section_chunk(
    matched: MatchedChunk, corrector: TextCorrector
) -> ReconciliationResult:
    """Decide how to reconcile one section chunk with its candidates.

    Args:
        matched: Section chunk with ranked candidates.
        corrector: Text-correction capability used when the texts differ.

    Returns:
        The outcome. Never raises: correction failures are reported with the
        ``ERROR`` strategy and the original chunk is kept.
    """
    chunk = matched.section_chunk

    if chunk.metadata.table:
        return _passthrough(matched, ReconciliationStrategy.IS_TABLE)
    if not chunk.page_content.strip():
        return _passthrough(matched, ReconciliationStrategy.EMPTY_SECTION)
    if not matched.candidates:
        return _passthrough(matched, ReconciliationStrategy.EMPTY_CANDIDATES)

    top = matched.candidates[0]
    same_text = normalize_whitespace(chunk.page_content).lower() == (
        normalize_whitespace(top.candidate.page_content).lower()
    )
    if top.score == EXACT_SCORE or same_text:
        reconciled = chunk.model_copy(deep=True)
        reconciled.metadata.reconciled = True
        return ReconciliationResult(
            could_reconcile=True,
            strategy=ReconciliationStrategy.SAME_TEXT,
            section_chunk=chunk,
            chosen_candidate=top,
            reconciled_chunk=reconciled,
        )

    try:
        answer = await corrector.correct(
            chunk.page_content,
            top.candidate.page_content,
            chunk.metadata.header_route,
        )
    except Exception as e:
        logger.warning(
            f"Text correction failed for chunk {chunk.metadata.total_order}: {e}"
        )
        return _passthrough(matched, ReconciliationStrategy.ERROR, error=str(e))

    if not isinstance(answer, str) or not answer.strip():
        return _passthrough(
            matched,
            ReconciliationStrategy.ERROR,
            error="Text correction returned an empty response",
        )

    reconciled = chunk.model_copy(deep=True)
    reconciled.page_content = answer.strip()
    reconciled.metadata.reconciled = True
    return ReconciliationResult(
        could_reconcile=True,
        strategy=ReconciliationStrategy.LLM,
        section_chunk=chunk,
        chosen_candidate=top,
        reconciled_chunk=reconciled,
    )


def _rebuild_content(section: SectionNode, chunks: list[SectionChunkDoc]) -> str:
    """Concatenate chunk texts, restoring table placeholders.

    Text chunks are joined with a newline; placeholders are set apart by a
    blank line. Chunks of one table collapse into a single placeholder. When
    a chunk does not know which table it came from, a run of consecutive
    table chunks is treated as one table and numbered by appearance.
    """
    parts: list[tuple[str, bool]] = []
    previous_table_key: object = None
    appearance = 0

    for chunk in sorted(chunks, key=lambda c: c.metadata.order):
        if not chunk.metadata.table:
            parts.append((chunk.page_content, False))
            previous_table_key = None
            continue

        index = chunk.metadata.table_index
        key: object = ("table", index) if index is not None else "legacy-run"
        if key == previous_table_key:
            continue
        previous_table_key = key

        if index is None:
            index = appearance
        appearance += 1
        if index not in section.tables:
            logger.warning(
                f"Section {section.header_route_levels} has no table {index}"
            )
        parts.append((table_placeholder(index), True))

    content = ""
    previous_is_placeholder = False
    for text, is_placeholder in parts:
        if content:
            content += "\n\n" if is_placeholder or previous_is_placeholder else "\n"
        content += text
        previous_is_placeholder = is_placeholder
    return content


def reconcile_sections(
    sections: list[SectionNode], reconciled_chunks: list[SectionChunkDoc]
) -> list[SectionNode]:
    """Rebuild the section tree with reconciled chunk content.

    Rebuilt content joins text chunks with a single newline and sets every
    table placeholder apart with a blank line, matching the placeholder
    spacing of the section tree builder.

    Args:
        sections: Original section forest. Left untouched.
        reconciled_chunks: Chunks after reconciliation.

    Returns:
        A new forest with the same structure, ids, routes and tables. Sections
        with reconciled chunks get their content rebuilt from them; the
        others keep their original content.
    """
    groups: dict[str, list[SectionChunkDoc]] = {}
    for chunk in reconciled_chunks:
        groups.setdefault(chunk.metadata.header_route_levels, []).append(chunk)

    def rebuild(section: SectionNode) -> SectionNode:
        group = groups.get(section.header_route_levels)
        content = (
            _rebuild_content(section, group) if group else section.content
        )
        return section.model_copy(
            update={
                "content": content,
                "tables": dict(section.tables),
                "subsections": [rebuild(sub) for sub in section.subsections],
            }
        )

    return [rebuild(section) for section in sections]


async def reconcile_matched_chunks(
    matched_chunks: list[MatchedChunk],
    corrector: TextCorrector,
    concurrency: int = 10,
) -> list[ReconciliationResult]:
    """Reconcile every matched chunk with bounded concurrency.

    Results keep the order of ``matched_chunks``.
    """
    semaphore = asyncio.Semaphore(concurrency)

    async def process(matched: MatchedChunk) -> ReconciliationResult:
        async with semaphore:
            result = await reconcile_section_chunk(matched, corrector)
        logger.debug(
            f"Chunk {matched.section_chunk.metadata.total_order}: "
            f"{result.strategy.value}"
        )
        return result

    return list(await asyncio.gather(*(process(m) for m in matched_chunks)))


async def fix_hallucinations_on_sections(
    sections: list[SectionNode],
    layout_text: str,
    similarity: SimilarityScorer,
    corrector: TextCorrector,
    config: ReconciliationConfig | None = None,
    token_counter: TokenCounter | None = None,
) -> list[SectionNode]:
    """Correct a section forest against layout-parsed text.

    Args:
        sections: Section forest built from the LLM-parsed markdown.
        layout_text: Plain text from the deterministic layout parser.
        similarity: Semantic similarity backend for matching.
        corrector: Text-correction capability.
        config: Reconciliation settings.
        token_counter: Token counter for chunk metadata.

    Returns:
        Corrected section forest.

    Raises:
        ReconciliationError: If the sections hold no text to reconcile.
        ValidationError: If the layout text is empty.
        EmbeddingError: If the similarity backend fails.
    """
    config = config or ReconciliationConfig()
    token_counter = token_counter or TokenCounter()

    section_chunks = chunk_section_nodes(
        sections, splitter=section_sentence_splitter(), token_counter=token_counter
    )
    if not section_chunks:
        raise ReconciliationError("Sections hold no text to reconcile")

    if not layout_text.strip():
        raise ValidationError(
            field="layout_text",
            message="Layout parser produced an empty file",
            expected="non-empty text",
            actual="empty string",
        )
    layout_chunks = chunk_string(layout_text, layout_text_splitter(), token_counter)

    logger.info(
        f"Matching {len(section_chunks)} section chunks "
        f"against {len(layout_chunks)} layout chunks"
    )
    matcher = SectionChunkMatcher(
        layout_chunks,
        similarity,
        max_candidates=config.max_candidates,
        levenshtein_threshold=config.levenshtein_threshold,
        similarity_threshold=config.similarity_threshold,
    )
    proximity_window = math.floor(
        max(len(section_chunks), len(layout_chunks)) * config.proximity_ratio
    )
    matched = await get_matched_chunks(
        section_chunks,
        matcher,
        batch_size=config.batch_size,
        proximity_window=proximity_window,
        levenshtein_threshold=config.levenshtein_threshold,
        similarity_threshold=config.similarity_threshold,
    )

    results = await reconcile_matched_chunks(
        matched, corrector, concurrency=config.concurrency
    )
    summary = Counter(result.strategy.value for result in results)
    logger.info(f"Reconciliation summary: {dict(summary)}")

    return reconcile_sections(
        sections, [result.reconciled_chunk for result in results]
    )
