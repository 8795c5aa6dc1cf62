"""Configuration models for DocChat.

All models forbid unknown keys so that typos in ``docchat.yaml`` surface as
configuration errors instead of being silently ignored.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from docchat.config.defaults import (
    CHUNKING_DEFAULTS,
    LLM_DEFAULTS,
    RECONCILIATION_DEFAULTS,
    RETRIEVAL_DEFAULTS,
    TOKEN_LIMITS,
    VECTORSTORE_DEFAULTS,
)

ProviderName = Literal["openai", "azure_openai", "ollama"]


class VectorStoreConfig(BaseModel):
    """ChromaDB connection settings.

    With ``connection_string`` set, a remote server is used; otherwise
    ``persist_directory`` selects a local persistent store, and with neither
    an in-memory store is created.
    """

    model_config = ConfigDict(extra="forbid")

    connection_string: str | None = Field(
        VECTORSTORE_DEFAULTS["connection_string"],
        description="ChromaDB server URL, e.g. http://localhost:8000",
    )
    persist_directory: str | None = Field(
        VECTORSTORE_DEFAULTS["persist_directory"],
        description="Directory for a persistent local ChromaDB",
    )
    query_timeout: float = Field(
        VECTORSTORE_DEFAULTS["query_timeout"],  # type: ignore[arg-type]
        gt=0,
        description="Timeout in seconds for every vector store call",
    )
    tenant: str = Field(VECTORSTORE_DEFAULTS["tenant"])  # type: ignore[arg-type]
    database: str = Field(VECTORSTORE_DEFAULTS["database"])  # type: ignore[arg-type]
    headers: dict[str, str] | None = Field(
        None, description="HTTP headers for authentication (remote only)"
    )


class EmbeddingConfig(BaseModel):
    """Embedding service settings."""

    model_config = ConfigDict(extra="forbid")

    provider: ProviderName = "openai"
    model: str = "text-embedding-3-small"
    api_key: str | None = None
    endpoint: str | None = None


class LLMConfig(BaseModel):
    """Chat completion service settings."""

    model_config = ConfigDict(extra="forbid")

    provider: ProviderName = LLM_DEFAULTS["provider"]  # type: ignore[assignment]
    model: str = str(LLM_DEFAULTS["model"])
    temperature: float = Field(LLM_DEFAULTS["temperature"], ge=0.0, le=2.0)
    max_tokens: int = Field(LLM_DEFAULTS["max_tokens"], gt=0)
    api_key: str | None = None
    endpoint: str | None = None

    @model_validator(mode="after")
    def validate_azure_endpoint(self) -> "LLMConfig":
        """Azure OpenAI always needs an endpoint."""
        if self.provider == "azure_openai" and not self.endpoint:
            raise ValueError("endpoint is required for azure_openai provider")
        return self


class ChunkingConfig(BaseModel):
    """Ingestion chunking settings."""

    model_config = ConfigDict(extra="forbid")

    chunk_size: int = Field(CHUNKING_DEFAULTS["chunk_size"], gt=0)
    chunk_overlap: int = Field(CHUNKING_DEFAULTS["chunk_overlap"], ge=0)

    @model_validator(mode="after")
    def validate_overlap(self) -> "ChunkingConfig":
        """Overlap must stay below the chunk size."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class ReconciliationConfig(BaseModel):
    """Hallucination reconciliation settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = bool(RECONCILIATION_DEFAULTS["enabled"])
    batch_size: int = Field(RECONCILIATION_DEFAULTS["batch_size"], gt=0)
    proximity_ratio: float = Field(
        RECONCILIATION_DEFAULTS["proximity_ratio"],
        gt=0.0,
        description="Proximity window as a fraction of the longest chunk stream",
    )
    levenshtein_threshold: float = Field(
        RECONCILIATION_DEFAULTS["levenshtein_threshold"], ge=0.0, le=1.0
    )
    similarity_threshold: float = Field(
        RECONCILIATION_DEFAULTS["similarity_threshold"], ge=0.0, le=1.0
    )
    max_candidates: int = Field(RECONCILIATION_DEFAULTS["max_candidates"], ge=1)
    columns_number: int = Field(RECONCILIATION_DEFAULTS["columns_number"], ge=1, le=2)
    concurrency: int = Field(
        RECONCILIATION_DEFAULTS["concurrency"],
        ge=1,
        description="Maximum simultaneous text-correction calls",
    )


class TokenLimits(BaseModel):
    """Token budgets for prompt assembly."""

    model_config = ConfigDict(extra="forbid")

    max_tokens_answer: int = Field(TOKEN_LIMITS["max_tokens_answer"], gt=0)
    max_tokens_final_prompt: int = Field(TOKEN_LIMITS["max_tokens_final_prompt"], gt=0)
    max_tokens_per_section: int = Field(TOKEN_LIMITS["max_tokens_per_section"], gt=0)
    max_tokens_all_sections: int = Field(
        TOKEN_LIMITS["max_tokens_all_sections"], gt=0
    )


class RetrievalConfig(BaseModel):
    """Query-time retrieval settings."""

    model_config = ConfigDict(extra="forbid")

    max_chunks: int = Field(RETRIEVAL_DEFAULTS["max_chunks"], gt=0)
    section_prefix: str = str(RETRIEVAL_DEFAULTS["section_prefix"])

    @field_validator("max_chunks")
    @classmethod
    def validate_max_chunks(cls, v: int) -> int:
        """Validate max_chunks stays in a sane range."""
        if v > 100:
            raise ValueError("max_chunks should not exceed 100")
        return v


class DocChatConfig(BaseModel):
    """Top-level DocChat configuration (``docchat.yaml``)."""

    model_config = ConfigDict(extra="forbid")

    vectorstore: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    reconciliation: ReconciliationConfig = Field(
        default_factory=ReconciliationConfig
    )
    token_limits: TokenLimits = Field(default_factory=TokenLimits)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
