"""Exact token counting with tiktoken.

Chunk metadata and prompt budgets rely on exact token counts for the
prompting model, so counts are never approximated from character length.
"""

from functools import lru_cache
from typing import Literal

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=4)
def _get_encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


class TokenCounter:
    """Count tokens using a tiktoken encoding.

    Example:
        >>> counter = TokenCounter()
        >>> counter.count("hello world")
        2
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        """Initialize the counter.

        Args:
            encoding_name: tiktoken encoding to use (default: cl100k_base).
        """
        self._encoding_name = encoding_name
        self._encoder = _get_encoding(encoding_name)

    @property
    def encoding_name(self) -> str:
        """Name of the underlying tiktoken encoding."""
        return self._encoding_name

    def count(self, text: str) -> int:
        """Count tokens in text.

        Args:
            text: Text to count tokens for.

        Returns:
            Token count, 0 for empty text.
        """
        if not text:
            return 0
        return len(self._encoder.encode(text, disallowed_special=()))

    def is_within_limit(self, text: str, limit: int) -> int | Literal[False]:
        """Check whether text fits in a token limit.

        Args:
            text: Text to measure.
            limit: Maximum number of tokens allowed.

        Returns:
            The token count when it is within the limit, otherwise False.
        """
        tokens = self.count(text)
        if tokens > limit:
            return False
        return tokens
