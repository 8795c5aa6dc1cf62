"""Default configuration values for DocChat."""

# Vector store defaults
VECTORSTORE_DEFAULTS: dict[str, float | str | None] = {
    "connection_string": None,
    "persist_directory": None,
    "query_timeout": 10.0,  # seconds
    "tenant": "default_tenant",
    "database": "default_database",
}

# LLM defaults (chat completion used for answers and text correction)
LLM_DEFAULTS: dict[str, float | int | str] = {
    "provider": "openai",
    "model": "gpt-4o-mini",
    "temperature": 0.0,
    "max_tokens": 2048,
}

# Ollama provider defaults
OLLAMA_DEFAULTS: dict[str, str] = {
    "endpoint": "http://localhost:11434",
}

# Ingestion chunking defaults
CHUNKING_DEFAULTS: dict[str, int] = {
    "chunk_size": 150,  # characters
    "chunk_overlap": 0,
}

# Hallucination reconciliation defaults
RECONCILIATION_DEFAULTS: dict[str, int | float | bool] = {
    "enabled": True,
    "batch_size": 50,
    "proximity_ratio": 0.5,
    "levenshtein_threshold": 0.3,
    "similarity_threshold": 0.75,
    "max_candidates": 10,
    "columns_number": 1,
    "concurrency": 10,
}

# Matcher defaults when called outside the reconciliation pipeline
MATCHER_DEFAULTS: dict[str, int | float] = {
    "max_candidates": 10,
    "levenshtein_threshold": 0.6,
    "similarity_threshold": 0.75,
    "proximity_window": 200,
}

# Token budgets for prompting
TOKEN_LIMITS: dict[str, int] = {
    # ~1500 words, long enough for any answer
    "max_tokens_answer": 2048,
    "max_tokens_final_prompt": 16_000,
    "max_tokens_per_section": 600,
    "max_tokens_all_sections": 6000,
}

# Query-time retrieval defaults
RETRIEVAL_DEFAULTS: dict[str, int | str] = {
    "max_chunks": 20,
    "section_prefix": "SECTION HEADER ROUTE: ",
}

