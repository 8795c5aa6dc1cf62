"""Semantic Kernel service factories for embeddings and chat completion.

The services are lightweight wrappers around the OpenAI, Azure OpenAI and
Ollama APIs; no kernel is needed to use them.
"""

from typing import Any

from docchat.config.defaults import OLLAMA_DEFAULTS
from docchat.lib.errors import ConfigError
from docchat.lib.logging_config import get_logger
from docchat.lib.text_corrector import LLMTextCorrector, RetryConfig
from docchat.models.config import EmbeddingConfig, LLMConfig

logger = get_logger(__name__)

_OLLAMA_MISSING = (
    "Ollama provider requires 'ollama' package. Install with: pip install ollama"
)


def create_embedding_service(config: EmbeddingConfig) -> Any:
    """Create an SK TextEmbedding service.

    Args:
        config: Embedding settings.

    Returns:
        An initialized TextEmbedding service instance.

    Raises:
        ConfigError: If the provider is unsupported or its package is missing.
    """
    from semantic_kernel.connectors.ai.open_ai import (
        AzureTextEmbedding,
        OpenAITextEmbedding,
    )

    logger.debug(
        f"Creating embedding service: model={config.model}, "
        f"provider={config.provider}"
    )

    if config.provider == "openai":
        return OpenAITextEmbedding(ai_model_id=config.model, api_key=config.api_key)

    if config.provider == "azure_openai":
        return AzureTextEmbedding(
            deployment_name=config.model,
            endpoint=config.endpoint,
            api_key=config.api_key,
        )

    if config.provider == "ollama":
        try:
            from semantic_kernel.connectors.ai.ollama import OllamaTextEmbedding
        except ImportError as exc:
            raise ConfigError("embedding.provider", _OLLAMA_MISSING) from exc

        return OllamaTextEmbedding(
            ai_model_id=config.model,
            host=config.endpoint or OLLAMA_DEFAULTS["endpoint"],
        )

    raise ConfigError(
        "embedding.provider", f"Unsupported embedding provider: {config.provider}"
    )


def create_chat_service(config: LLMConfig) -> Any:
    """Create an SK chat completion service.

    Raises:
        ConfigError: If the provider is unsupported or its package is missing.
    """
    from semantic_kernel.connectors.ai.open_ai import (
        AzureChatCompletion,
        OpenAIChatCompletion,
    )

    logger.debug(
        f"Creating chat service: model={config.model}, provider={config.provider}"
    )

    if config.provider == "azure_openai":
        return AzureChatCompletion(
            deployment_name=config.model,
            endpoint=config.endpoint,
            api_key=config.api_key,
        )
    if config.provider == "openai":
        return OpenAIChatCompletion(ai_model_id=config.model, api_key=config.api_key)
    if config.provider == "ollama":
        try:
            from semantic_kernel.connectors.ai.ollama import OllamaChatCompletion
        except ImportError as exc:
            raise ConfigError("llm.provider", _OLLAMA_MISSING) from exc

        return OllamaChatCompletion(
            ai_model_id=config.model,
            host=config.endpoint or OLLAMA_DEFAULTS["endpoint"],
        )

    raise ConfigError("llm.provider", f"Unsupported LLM provider: {config.provider}")


def create_execution_settings(config: LLMConfig) -> Any:
    """Prompt execution settings carrying temperature and max tokens."""
    if config.provider == "ollama":
        from semantic_kernel.connectors.ai.ollama import (
            OllamaChatPromptExecutionSettings,
        )

        return OllamaChatPromptExecutionSettings(
            options={
                "temperature": config.temperature,
                "num_predict": config.max_tokens,
            }
        )

    from semantic_kernel.connectors.ai.open_ai import (
        OpenAIChatPromptExecutionSettings,
    )

    return OpenAIChatPromptExecutionSettings(
        temperature=config.temperature, max_tokens=config.max_tokens
    )


def create_text_corrector(
    config: LLMConfig, retry_config: RetryConfig | None = None
) -> LLMTextCorrector:
    """Build the LLM text corrector for the configured chat service."""
    return LLMTextCorrector(
        create_chat_service(config),
        execution_settings=create_execution_settings(config),
        retry_config=retry_config,
    )
