"""Exception hierarchy for DocChat.

Library code raises these; the CLI maps ``ConfigError`` to exit code 2 and
every other ``DocChatError`` to exit code 1.
"""


class DocChatError(Exception):
    """Root of every error raised by DocChat itself."""

    pass


class ConfigError(DocChatError):
    """Invalid or unusable configuration.

    Raised while loading ``docchat.yaml`` and when a component is built with
    settings it cannot work with (e.g. a text splitter without separators,
    an unsupported column count).

    Attributes:
        field: Dotted configuration path, environment variable or argument
            name the problem was found in
        message: What is wrong with it
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class ValidationError(DocChatError):
    """Input data that breaks a structural assumption.

    Used for chunk streams and section trees that are out of order or
    inconsistent, reporting what was expected next to what was found.

    Attributes:
        field: Name of the offending value
        message: What went wrong
        expected: Description of the acceptable value
        actual: The value that was found
    """

    def __init__(self, field: str, message: str, expected: str, actual: str) -> None:
        self.field = field
        self.message = message
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Validation error in '{field}': {message}\n"
            f"  Expected: {expected}\n"
            f"  Got: {actual}"
        )


class VectorStoreError(DocChatError):
    """Base exception for vector store failures.

    Every vector store error carries the collection it was operating on so
    callers can retry or alert on a specific document.

    Attributes:
        collection_name: Collection the failing operation targeted
        message: Human-readable error message
        original_error: Underlying exception, if any
    """

    def __init__(
        self,
        collection_name: str,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize VectorStoreError.

        Args:
            collection_name: Collection the failing operation targeted
            message: Descriptive error message
            original_error: The underlying exception that caused the failure
        """
        self.collection_name = collection_name
        self.message = message
        self.original_error = original_error
        full_message = f"{message} (collection: {collection_name})"
        if original_error:
            full_message += f"\nOriginal error: {original_error}"
        super().__init__(full_message)


class VectorStoreTimeoutError(VectorStoreError):
    """Error raised when a vector store call does not finish in time."""

    def __init__(self, collection_name: str, timeout: float) -> None:
        """Create a timeout error for a collection.

        Args:
            collection_name: Collection the query targeted
            timeout: Timeout in seconds that was exceeded
        """
        self.timeout = timeout
        super().__init__(
            collection_name,
            f"Timeout while querying ChromaDB after {timeout:g}s",
        )


class CollectionNotFoundError(VectorStoreError):
    """Error raised when a collection is missing or holds no documents."""

    def __init__(self, collection_name: str) -> None:
        """Create a not-found error for a collection."""
        super().__init__(collection_name, "Document not found in vector store")


class VectorStoreConnectionError(VectorStoreError):
    """Error raised when the vector store server is unreachable.

    Attributes:
        endpoint: Connection string or path of the unreachable store
    """

    def __init__(
        self,
        collection_name: str,
        endpoint: str,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize VectorStoreConnectionError.

        Args:
            collection_name: Collection the failing operation targeted
            endpoint: Connection string of the vector store
            original_error: The underlying exception that caused the failure
        """
        self.endpoint = endpoint
        super().__init__(
            collection_name,
            f"Could not connect to ChromaDB at {endpoint}. "
            "Please restart the instance and try again.",
            original_error,
        )


class EmptyResultError(VectorStoreError):
    """Error raised when the vector store returns no documents unexpectedly."""

    def __init__(self, collection_name: str) -> None:
        """Create an empty-result error for a collection."""
        super().__init__(
            collection_name,
            "ChromaDB returned no valid chunks. Ensure the query timeout is "
            "not too short and the DB is reachable",
        )


class EmbeddingError(DocChatError):
    """Exception raised when the embedding service fails.

    Attributes:
        message: Human-readable error message
        original_error: Underlying exception, if any
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize EmbeddingError with message and optional cause."""
        self.message = message
        self.original_error = original_error
        full_message = message
        if original_error:
            full_message += f"\nOriginal error: {original_error}"
        super().__init__(full_message)


class TokenBudgetError(DocChatError):
    """Exception raised when a fixed prompt already exceeds its token budget.

    This is a configuration error: no conversation history can be added and
    retrying the request will not help.

    Attributes:
        limit: Configured token limit
        actual: Token count of the fixed prompt
    """

    def __init__(self, limit: int, actual: int) -> None:
        """Initialize TokenBudgetError with the limit and the actual count."""
        self.limit = limit
        self.actual = actual
        super().__init__(
            f"Fixed prompt already exceeds token limit ({actual} > {limit}). "
            "No conversation messages can fit."
        )


class ReconciliationError(DocChatError):
    """Exception raised when the reconciliation pipeline cannot run.

    Per-chunk failures never raise this; they are recorded on the chunk
    result instead.
    """

    pass
