"""LLM-backed correction of hallucinated section text.

A section chunk produced by the LLM/vision parse is corrected against a
layout-parsed reference fragment. The model is instructed to fix only what is
wrong and never to introduce text that is not already in the section chunk.

Key Features:
- ``TextCorrector`` protocol so the LLM can be swapped or mocked
- Semantic Kernel chat completion service, injected
- Exponential backoff retry logic for resilience
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from docchat.lib.logging_config import get_logger

if TYPE_CHECKING:
    from semantic_kernel.connectors.ai.chat_completion_client_base import (
        ChatCompletionClientBase,
    )
    from semantic_kernel.connectors.ai.prompt_execution_settings import (
        PromptExecutionSettings,
    )

logger = get_logger(__name__)

CORRECTION_SYSTEM_PROMPT = (
    "You're an AI agent tasked with fixing hallucinations of text fragments "
    "from candidate fragments."
)

CORRECTION_PROMPT_TEMPLATE = """Given the following section fragments from a document:

Fragment A: {section_chunk}

Fragment B: {candidate}

**Task:**

- Correct any errors, typos, or hallucinations in **Fragment A** by referencing \
**Fragment B**.
- **Do not** add any new sentences, phrases, or information from **Fragment B** \
that are not already present in **Fragment A**.
- **Do not** include any labels, headings, or additional text in your answer.
- Preserve the structure, layout, and content of **Fragment A** as closely as \
possible.
- Make only the minimal necessary changes to correct errors in **Fragment A**.
- Provide **only** the corrected version of **Fragment A** without adding extra \
information or newlines.

For additional context, the fragments belong to the following nested section \
titles: {section_title}

**Your answer should be only the corrected version of Fragment A, with minimal \
corrections made.**"""


class TextCorrector(Protocol):
    """External text-correction capability."""

    async def correct(
        self, original: str, reference: str, section_title_context: str
    ) -> str:
        """Return ``original`` corrected against ``reference``."""
        ...


@dataclass
class RetryConfig:
    """Configuration for exponential backoff retry logic.

    Attributes:
        max_retries: Maximum number of attempts (default: 3).
        base_delay: Initial delay in seconds before first retry (default: 1.0).
        exponential_base: Multiplier for exponential backoff (default: 2.0).
        max_delay: Maximum delay cap in seconds (default: 10.0).
    """

    max_retries: int = 3
    base_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: float = 10.0


class LLMTextCorrector:
    """Correct section fragments with a chat completion model.

    Example:
        >>> from semantic_kernel.connectors.ai.open_ai import OpenAIChatCompletion
        >>> corrector = LLMTextCorrector(
        ...     chat_service=OpenAIChatCompletion(ai_model_id="gpt-4o-mini")
        ... )
        >>> await corrector.correct("Teh quick fox", "The quick fox", "Intro")
        'The quick fox'
    """

    def __init__(
        self,
        chat_service: "ChatCompletionClientBase",
        execution_settings: "PromptExecutionSettings | None" = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """Initialize the corrector.

        Args:
            chat_service: Semantic Kernel chat completion service instance.
            execution_settings: Optional prompt execution settings. Defaults to
                OpenAI settings with temperature 0.
            retry_config: Configuration for retry logic.
        """
        self._chat_service = chat_service
        self._execution_settings = execution_settings
        self._retry_config = retry_config or RetryConfig()

    @staticmethod
    def format_prompt(original: str, reference: str, section_title: str) -> str:
        """Fill the correction prompt template."""
        return CORRECTION_PROMPT_TEMPLATE.format(
            section_chunk=original,
            candidate=reference,
            section_title=section_title,
        )

    async def _call_llm(self, prompt: str) -> str:
        """Send the system and user messages and return the stripped answer."""
        # Import here to allow mocking
        from semantic_kernel.connectors.ai.open_ai import (
            OpenAIChatPromptExecutionSettings,
        )
        from semantic_kernel.contents import ChatHistory

        chat_history = ChatHistory()
        chat_history.add_system_message(CORRECTION_SYSTEM_PROMPT)
        chat_history.add_user_message(prompt)

        settings = self._execution_settings or OpenAIChatPromptExecutionSettings(
            temperature=0.0
        )
        result = await self._chat_service.get_chat_message_contents(
            chat_history=chat_history,
            settings=settings,
        )

        if result and len(result) > 0:
            content = result[0].content
            return str(content).strip() if content else ""
        return ""

    def _get_retry_delay(self, attempt: int) -> float:
        delay = self._retry_config.base_delay * (
            self._retry_config.exponential_base**attempt
        )
        return min(delay, self._retry_config.max_delay)

    async def correct(
        self, original: str, reference: str, section_title_context: str
    ) -> str:
        """Correct ``original`` using ``reference``.

        Args:
            original: Section chunk text to correct.
            reference: Layout-parsed candidate text.
            section_title_context: Header route of the section.

        Returns:
            The corrected text, possibly empty if the model answered nothing.

        Raises:
            Exception: The last error once every retry attempt failed.
        """
        prompt = self.format_prompt(original, reference, section_title_context)

        for attempt in range(self._retry_config.max_retries):
            try:
                return await self._call_llm(prompt)
            except Exception as e:
                if attempt == self._retry_config.max_retries - 1:
                    logger.warning(
                        f"Text correction failed after "
                        f"{self._retry_config.max_retries} attempts: {e}"
                    )
                    raise

                delay = self._get_retry_delay(attempt)
                logger.debug(
                    f"Retry attempt {attempt + 1}/{self._retry_config.max_retries} "
                    f"after {delay:.2f}s delay"
                )
                await asyncio.sleep(delay)

        return ""
