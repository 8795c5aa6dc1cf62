"""Tests for prompt assembly and conversation trimming."""

from typing import Literal

import pytest
from pydantic import ValidationError as PydanticValidationError

from docchat.lib.errors import TokenBudgetError
from docchat.lib.prompt import (
    CHAT_TEMPLATES,
    NOT_FOUND_ANSWER,
    ChatMessage,
    build_user_prompt,
    default_system_prompt,
    format_history,
    trim_conversation_to_token_limit,
)
from docchat.models.config import TokenLimits


class WordCounter:
    """Counts whitespace-separated words as tokens."""

    def count(self, text: str) -> int:
        return len(text.split())

    def is_within_limit(self, text: str, limit: int) -> int | Literal[False]:
        tokens = self.count(text)
        return False if tokens > limit else tokens


def _fixed_tokens(prompt: str, context: str, system_prompt: str = "") -> int:
    fixed = "\n".join(
        [
            system_prompt,
            CHAT_TEMPLATES["document_fragments"].format(context=context),
            CHAT_TEMPLATES["user_question"].format(prompt=prompt),
            CHAT_TEMPLATES["answer_prefix"],
        ]
    )
    return WordCounter().count(fixed)


def _history(count: int) -> list[ChatMessage]:
    return [
        ChatMessage(author="user" if i % 2 == 0 else "assistant", content="a b c d")
        for i in range(count)
    ]


class TestBuildUserPrompt:
    """Tests for build_user_prompt."""

    def test_without_history_or_description(self) -> None:
        """Test the fragments, question and answer blocks."""
        prompt = build_user_prompt([], "CTX", "What?")
        assert prompt == "\n".join(
            [
                CHAT_TEMPLATES["document_fragments"].format(context="CTX"),
                "",
                "USER QUESTION (PROMPT): What?",
                "",
                "ANSWER:",
            ]
        )

    def test_with_history_and_description(self) -> None:
        """Test that history and description lead the prompt."""
        history = [
            ChatMessage(author="user", content="hi"),
            ChatMessage(author="assistant", content="hello"),
        ]
        prompt = build_user_prompt(history, "CTX", "What?", description="A manual")

        assert prompt.startswith(
            "CONVERSATION HISTORY (CONTEXT):\nUSER: hi\n\nASSISTANT: hello\n\n"
            "DOCUMENT DESCRIPTION (CONTEXT):\nA manual\n\n"
            "DOCUMENT SECTION FRAGMENTS (CONTEXT):"
        )
        assert prompt.endswith("USER QUESTION (PROMPT): What?\n\nANSWER:")

    def test_format_history(self) -> None:
        """Test author labels are upper-cased."""
        assert format_history([ChatMessage(author="user", content="x")]) == "USER: x"


class TestSystemPrompt:
    """Tests for default_system_prompt."""

    def test_language_and_not_found_answer(self) -> None:
        """Test that the language and fallback answer are filled in."""
        prompt = default_system_prompt("Spanish")
        assert "**always** communicate in Spanish" in prompt
        assert NOT_FOUND_ANSWER in prompt
        assert "{language}" not in prompt


class TestTrimConversation:
    """Tests for trim_conversation_to_token_limit."""

    def test_empty_history(self) -> None:
        """Test that an empty history is returned as is."""
        assert trim_conversation_to_token_limit([], "q", "ctx") == []

    def test_history_that_fits_is_kept(self) -> None:
        """Test that nothing is dropped under the limit."""
        history = _history(4)
        result = trim_conversation_to_token_limit(
            history,
            "q",
            "ctx",
            token_limits=TokenLimits(max_tokens_final_prompt=1000),
            token_counter=WordCounter(),  # type: ignore[arg-type]
        )
        assert result == history

    def test_oldest_exchange_is_dropped(self) -> None:
        """Test that messages are dropped two at a time, oldest first."""
        history = _history(4)
        # Header is 3 words, each message 5 words
        limit = _fixed_tokens("q", "ctx") + 13

        result = trim_conversation_to_token_limit(
            history,
            "q",
            "ctx",
            token_limits=TokenLimits(max_tokens_final_prompt=limit),
            token_counter=WordCounter(),  # type: ignore[arg-type]
        )

        assert result == history[2:]

    def test_no_room_for_any_message(self) -> None:
        """Test that every message is dropped when none fits."""
        limit = _fixed_tokens("q", "ctx") + 5
        result = trim_conversation_to_token_limit(
            _history(4),
            "q",
            "ctx",
            token_limits=TokenLimits(max_tokens_final_prompt=limit),
            token_counter=WordCounter(),  # type: ignore[arg-type]
        )
        assert result == []

    def test_fixed_prompt_over_budget(self) -> None:
        """Test that an oversized fixed prompt is a budget error."""
        limit = _fixed_tokens("q", "ctx", system_prompt="be nice") - 1

        with pytest.raises(TokenBudgetError) as exc_info:
            trim_conversation_to_token_limit(
                _history(2),
                "q",
                "ctx",
                system_prompt="be nice",
                token_limits=TokenLimits(max_tokens_final_prompt=limit),
                token_counter=WordCounter(),  # type: ignore[arg-type]
            )
        assert exc_info.value.limit == limit
        assert exc_info.value.actual == limit + 1

    def test_fixed_prompt_over_budget_without_history(self) -> None:
        """Test that the budget is enforced even with nothing to drop."""
        limit = _fixed_tokens("q", "ctx") - 1

        with pytest.raises(TokenBudgetError):
            trim_conversation_to_token_limit(
                [],
                "q",
                "ctx",
                token_limits=TokenLimits(max_tokens_final_prompt=limit),
                token_counter=WordCounter(),  # type: ignore[arg-type]
            )


class TestChatMessage:
    """Tests for the ChatMessage model."""

    def test_author_is_required(self) -> None:
        """Test that an empty author is rejected."""
        with pytest.raises(PydanticValidationError):
            ChatMessage(author="", content="x")
