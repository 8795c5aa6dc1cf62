"""Tests for custom exception hierarchy in docchat.lib.errors."""

from docchat.lib.errors import (
    CollectionNotFoundError,
    ConfigError,
    DocChatError,
    EmbeddingError,
    EmptyResultError,
    ReconciliationError,
    TokenBudgetError,
    ValidationError,
    VectorStoreConnectionError,
    VectorStoreError,
    VectorStoreTimeoutError,
)


class TestDocChatError:
    """Tests for base DocChatError exception."""

    def test_docchat_error_creates_with_message(self) -> None:
        """Test that DocChatError can be created with a message."""
        error = DocChatError("Test error message")
        assert str(error) == "Test error message"

    def test_docchat_error_is_exception(self) -> None:
        """Test that DocChatError is an Exception subclass."""
        assert isinstance(DocChatError("Test"), Exception)


class TestConfigError:
    """Tests for ConfigError exception."""

    def test_config_error_formats_message_with_field(self) -> None:
        """Test that ConfigError formats messages with field information."""
        error = ConfigError("chunk_size", "must be a positive integer")
        assert str(error) == (
            "Configuration error in 'chunk_size': must be a positive integer"
        )
        assert error.field == "chunk_size"
        assert error.message == "must be a positive integer"

    def test_config_error_is_docchat_error(self) -> None:
        """Test that ConfigError is a DocChatError subclass."""
        assert isinstance(ConfigError("field", "message"), DocChatError)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_validation_error_includes_expected_and_actual(self) -> None:
        """Test that ValidationError lists expected and actual values."""
        error = ValidationError(
            field="batch_size",
            message="Batch size must be positive",
            expected=">= 1",
            actual="0",
        )
        text = str(error)
        assert "Validation error in 'batch_size'" in text
        assert "Expected: >= 1" in text
        assert "Got: 0" in text


class TestVectorStoreErrors:
    """Tests for vector store exceptions."""

    def test_vector_store_error_names_collection(self) -> None:
        """Test that the collection name is part of the message."""
        error = VectorStoreError("doc-1", "ChromaDB call failed")
        assert error.collection_name == "doc-1"
        assert "(collection: doc-1)" in str(error)

    def test_vector_store_error_includes_original_error(self) -> None:
        """Test that the underlying error is appended."""
        error = VectorStoreError("doc-1", "failed", RuntimeError("boom"))
        assert error.original_error is not None
        assert "Original error: boom" in str(error)

    def test_timeout_error(self) -> None:
        """Test the timeout message carries the timeout value."""
        error = VectorStoreTimeoutError("doc-1", 2.5)
        assert error.timeout == 2.5
        assert "after 2.5s" in str(error)
        assert isinstance(error, VectorStoreError)

    def test_collection_not_found(self) -> None:
        """Test the not-found message."""
        error = CollectionNotFoundError("doc-1")
        assert "Document not found in vector store" in str(error)
        assert isinstance(error, VectorStoreError)

    def test_connection_error_names_endpoint(self) -> None:
        """Test that the endpoint is part of the connection error."""
        error = VectorStoreConnectionError("doc-1", "http://localhost:8000")
        assert error.endpoint == "http://localhost:8000"
        assert "http://localhost:8000" in str(error)
        assert "restart" in str(error)

    def test_empty_result(self) -> None:
        """Test the empty-result message hints at the timeout."""
        error = EmptyResultError("doc-1")
        assert "no valid chunks" in str(error)


class TestOtherErrors:
    """Tests for embedding, token budget and reconciliation errors."""

    def test_embedding_error_with_cause(self) -> None:
        """Test EmbeddingError keeps the original error."""
        cause = ValueError("rate limited")
        error = EmbeddingError("Failed to embed", cause)
        assert error.original_error is cause
        assert "rate limited" in str(error)

    def test_embedding_error_without_cause(self) -> None:
        """Test EmbeddingError message without a cause."""
        assert str(EmbeddingError("Failed to embed")) == "Failed to embed"

    def test_token_budget_error(self) -> None:
        """Test TokenBudgetError reports both counts."""
        error = TokenBudgetError(limit=100, actual=150)
        assert error.limit == 100
        assert error.actual == 150
        assert "150 > 100" in str(error)

    def test_reconciliation_error_is_docchat_error(self) -> None:
        """Test ReconciliationError is a DocChatError subclass."""
        assert isinstance(ReconciliationError("nothing to do"), DocChatError)
