"""Text similarity measures used to pair section chunks with layout chunks.

- Inverted normalized Levenshtein distance, a cheap character-level filter
- Cosine similarity over embeddings, for paraphrase-tolerant scoring
"""

import math
import re
from typing import Protocol

from semantic_kernel.connectors.ai.embedding_generator_base import (
    EmbeddingGeneratorBase,
)

from docchat.lib.errors import EmbeddingError
from docchat.lib.logging_config import get_logger

logger = get_logger(__name__)

SCORE_PRECISION = 4

_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Compute the edit distance between two strings.

    Uses the two-row dynamic programming formulation, O(len(a) * len(b))
    time and O(min(len(a), len(b))) memory.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def levenshtein_score(a: str, b: str) -> float:
    """Inverted normalized edit distance, in [0, 1], rounded to 4 decimals.

    1.0 means the strings are identical; 0.0 means nothing in common.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return round(1 - levenshtein_distance(a, b) / longest, SCORE_PRECISION)


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector.
        vec_b: Second embedding vector.

    Returns:
        Cosine similarity score between -1.0 and 1.0.
    """
    if len(vec_a) != len(vec_b):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b, strict=False))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return dot_product / (norm_a * norm_b)


class SimilarityScorer(Protocol):
    """Scores candidate texts against a reference text."""

    async def score(self, text: str, candidates: list[str]) -> list[float]:
        """Return one similarity score in [0, 1] per candidate."""
        ...


class EmbeddingSimilarity:
    """Semantic similarity through an embedding service.

    The reference text and all candidates are embedded in one batch call,
    then compared with cosine similarity.

    Example:
        >>> from semantic_kernel.connectors.ai.open_ai import OpenAITextEmbedding
        >>> scorer = EmbeddingSimilarity(OpenAITextEmbedding(
        ...     ai_model_id="text-embedding-3-small"))
        >>> await scorer.score("The quick fox", ["The quick fox jumps"])
        [0.9412]
    """

    def __init__(self, embedding_service: EmbeddingGeneratorBase) -> None:
        """Initialize with a Semantic Kernel embedding generator."""
        self._embedding_service = embedding_service

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in one call.

        Raises:
            EmbeddingError: If the embedding service fails.
        """
        if not texts:
            return []
        try:
            embeddings = await self._embedding_service.generate_embeddings(texts)
        except Exception as e:
            raise EmbeddingError(
                f"Failed to generate embeddings for {len(texts)} texts", e
            ) from e
        return [list(embedding) for embedding in embeddings]

    async def score(self, text: str, candidates: list[str]) -> list[float]:
        """Score candidates against text, clamped to [0, 1] and rounded."""
        if not candidates:
            return []
        vectors = await self.embed([text, *candidates])
        reference, candidate_vectors = vectors[0], vectors[1:]
        return [
            round(
                min(1.0, max(0.0, cosine_similarity(reference, vector))),
                SCORE_PRECISION,
            )
            for vector in candidate_vectors
        ]
