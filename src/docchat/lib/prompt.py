"""Prompt assembly for document-grounded chat.

The user prompt is built from fixed templates: optional conversation history,
optional document description, the reconstructed document context, the user
question, and an answer prefix. Conversation history is trimmed, oldest
messages first, so the whole prompt stays within the final token budget.
"""

from pydantic import BaseModel, ConfigDict, Field

from docchat.lib.errors import TokenBudgetError
from docchat.lib.logging_config import get_logger
from docchat.lib.tokenizer import TokenCounter
from docchat.models.config import TokenLimits

logger = get_logger(__name__)

CHAT_TEMPLATES: dict[str, str] = {
    "conversation_history": "CONVERSATION HISTORY (CONTEXT):\n{history}",
    "document_description": "DOCUMENT DESCRIPTION (CONTEXT):\n{description}",
    "document_fragments": (
        "DOCUMENT SECTION FRAGMENTS (CONTEXT):\n"
        "The fragments represent sections (classified with headers in the "
        "original document).\n"
        "The fragments include at the top the header route of the section they "
        'belong to in the format "SECTION HEADER ROUTE: header>subheader>...".\n'
        "The fragments are ordered as they appear in the original document.\n"
        "\n"
        "{context}"
    ),
    "user_question": "USER QUESTION (PROMPT): {prompt}",
    "answer_prefix": "ANSWER:",
}

NOT_FOUND_ANSWER = "I couldn't find the answer in the provided document."

DEFAULT_SYSTEM_PROMPT_TEMPLATE = """You are a highly effective AI assistant \
specialized in explaining documents with precise logical and factual reasoning. \
Your responses must be based on the provided context, avoiding any unrelated \
external information. Ensure that your answers are accurate, clear, and cite \
references from the given context. If the answer is not available within the \
context, respond in the user's language with '{not_found}' (e.g. English: \
'{not_found}', e.g. Spanish: 'No encontré la respuesta en el documento \
proporcionado.').

All documents are written in {language}. You must **always** communicate in \
{language}.

**Language Enforcement:**
- **Detection:** Automatically detect the language of the user's input.
- **Compliance:**
  - If the user communicates in {language}, proceed normally.
  - If the user uses a different language, respond **immediately** in the \
user's language with a clear and polite instruction to continue the \
conversation in {language}.

**Purpose:**
This strict language requirement ensures that all interactions remain \
consistent and that the assistance provided is both accurate and meaningful. \
Adhering to the document's language is crucial for maintaining clarity and \
effectiveness in communication."""


class ChatMessage(BaseModel):
    """A conversation history message."""

    model_config = ConfigDict(extra="forbid")

    author: str = Field(..., min_length=1, description="e.g. 'user', 'assistant'")
    content: str


def default_system_prompt(language: str) -> str:
    """Document-grounded system prompt enforcing the document's language.

    Args:
        language: Language name of the document, e.g. ``"English"``.
    """
    return DEFAULT_SYSTEM_PROMPT_TEMPLATE.format(
        language=language, not_found=NOT_FOUND_ANSWER
    )


def format_history(history: list[ChatMessage]) -> str:
    """Render messages as ``AUTHOR: content`` blocks."""
    return "\n\n".join(f"{m.author.upper()}: {m.content}" for m in history)


def build_user_prompt(
    history: list[ChatMessage],
    context: str,
    prompt: str,
    description: str | None = None,
) -> str:
    """Assemble the user prompt sent after the system prompt.

    History and description blocks are only included when present. Blocks
    are separated by blank lines.
    """
    parts: list[str] = []
    if history:
        parts += [
            CHAT_TEMPLATES["conversation_history"].format(
                history=format_history(history)
            ),
            "",
        ]
    if description:
        parts += [
            CHAT_TEMPLATES["document_description"].format(description=description),
            "",
        ]
    parts += [
        CHAT_TEMPLATES["document_fragments"].format(context=context),
        "",
        CHAT_TEMPLATES["user_question"].format(prompt=prompt),
        "",
        CHAT_TEMPLATES["answer_prefix"],
    ]
    return "\n".join(parts)


def trim_conversation_to_token_limit(
    history: list[ChatMessage],
    prompt: str,
    context: str,
    system_prompt: str = "",
    token_limits: TokenLimits | None = None,
    token_counter: TokenCounter | None = None,
) -> list[ChatMessage]:
    """Drop the oldest history messages until the prompt fits its budget.

    The fixed part of the prompt (system prompt, context, question, answer
    prefix) is counted first; history gets whatever is left of
    ``max_tokens_final_prompt``. Messages are dropped two at a time, one
    user/assistant exchange.

    Args:
        history: Conversation messages, oldest first.
        prompt: User question.
        context: Reconstructed document context.
        system_prompt: System prompt sent with the request.
        token_limits: Token budgets.
        token_counter: Token counter.

    Returns:
        The newest messages that fit, oldest first.

    Raises:
        TokenBudgetError: If the fixed part alone exceeds the budget, even
            when there is no history to drop.
    """
    token_limits = token_limits or TokenLimits()
    token_counter = token_counter or TokenCounter()
    limit = token_limits.max_tokens_final_prompt

    fixed_prompt = "\n".join(
        [
            system_prompt,
            CHAT_TEMPLATES["document_fragments"].format(context=context),
            CHAT_TEMPLATES["user_question"].format(prompt=prompt),
            CHAT_TEMPLATES["answer_prefix"],
        ]
    )
    fixed_tokens = token_counter.is_within_limit(fixed_prompt, limit)
    if fixed_tokens is False:
        raise TokenBudgetError(limit, token_counter.count(fixed_prompt))

    if not history:
        return []

    available = limit - fixed_tokens
    trimmed = list(history)
    while trimmed:
        history_text = CHAT_TEMPLATES["conversation_history"].format(
            history=format_history(trimmed)
        )
        if token_counter.is_within_limit(history_text, available) is not False:
            break
        trimmed = trimmed[2:]

    if len(trimmed) < len(history):
        logger.debug(
            f"Trimmed conversation history from {len(history)} "
            f"to {len(trimmed)} messages"
        )
    return trimmed
