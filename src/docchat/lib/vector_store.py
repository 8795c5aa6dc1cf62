"""ChromaDB vector store for document chunks.

Chunks are stored one collection per document. Every collection uses cosine
distance and is named with a fresh uuid4 unless the caller picks a name.

Client Selection Logic:
    1. ``connection_string`` set: HttpClient for a remote server
    2. ``persist_directory`` set: PersistentClient for local storage
    3. Otherwise: EphemeralClient (in-memory, data lost on exit)

Clients are memoized per distinct connection settings by an explicit
``ChromaClientCache``. Build one per process and pass it to every
``ChromaVectorStore``.

All ChromaDB calls are blocking; they run in a worker thread under
``asyncio.wait_for`` so a stalled server surfaces as
``VectorStoreTimeoutError`` instead of hanging the event loop.
"""

import asyncio
import threading
from collections.abc import Callable
from typing import Any, TypedDict, TypeVar
from urllib.parse import urlparse
from uuid import uuid4

import chromadb
import httpx
from chromadb.errors import NotFoundError
from pydantic import ValidationError as PydanticValidationError
from semantic_kernel.connectors.ai.embedding_generator_base import (
    EmbeddingGeneratorBase,
)

from docchat.lib.errors import (
    CollectionNotFoundError,
    ConfigError,
    EmptyResultError,
    ValidationError,
    VectorStoreConnectionError,
    VectorStoreError,
    VectorStoreTimeoutError,
)
from docchat.lib.logging_config import get_logger
from docchat.lib.similarity import EmbeddingSimilarity
from docchat.models.chunk import (
    SectionChunkDoc,
    SectionChunkMetadata,
    TextChunkDoc,
    parse_chunk_metadata,
)
from docchat.models.config import VectorStoreConfig

logger = get_logger(__name__)

T = TypeVar("T")

ChunkDoc = SectionChunkDoc | TextChunkDoc

COLLECTION_METADATA: dict[str, str] = {"hnsw:space": "cosine"}

_CONNECTION_REFUSED_MARKERS = (
    "ECONNREFUSED",
    "Connection refused",
    "Could not connect",
)


class ChromaConnectionParams(TypedDict):
    """Parameters for ChromaDB connection.

    Attributes:
        host: Server hostname (e.g., 'localhost')
        port: Server port (e.g., 8000)
        ssl: Whether to use HTTPS
    """

    host: str
    port: int
    ssl: bool


def parse_chromadb_connection_string(connection_string: str) -> ChromaConnectionParams:
    """Parse a ChromaDB connection string into connection parameters.

    Supports URL format: http[s]://[host][:port][/path]

    - Scheme (http/https) determines SSL setting
    - Host defaults to 'localhost' if not specified
    - Port defaults to 8000 for HTTP, 443 for HTTPS

    Args:
        connection_string: URL-style connection string for ChromaDB server

    Returns:
        ChromaConnectionParams with host, port, and ssl values

    Raises:
        ConfigError: If connection string is empty or uses unsupported scheme

    Examples:
        >>> parse_chromadb_connection_string("http://localhost:8000")
        {'host': 'localhost', 'port': 8000, 'ssl': False}

        >>> parse_chromadb_connection_string("https://chroma.example.com")
        {'host': 'chroma.example.com', 'port': 443, 'ssl': True}
    """
    if not connection_string:
        raise ConfigError(
            "vectorstore.connection_string", "Connection string cannot be empty"
        )

    parsed = urlparse(connection_string)

    if parsed.scheme not in ("http", "https"):
        raise ConfigError(
            "vectorstore.connection_string",
            f"Invalid scheme '{parsed.scheme}'. ChromaDB connection string must use "
            "http:// or https:// scheme",
        )

    ssl = parsed.scheme == "https"
    return {
        "host": parsed.hostname or "localhost",
        "port": parsed.port or (443 if ssl else 8000),
        "ssl": ssl,
    }


def create_chromadb_client(config: VectorStoreConfig) -> Any:
    """Create the ChromaDB client matching the connection settings.

    Args:
        config: Vector store settings.

    Returns:
        ChromaDB ClientAPI instance (HttpClient, PersistentClient, or
        EphemeralClient)

    Raises:
        ConfigError: If the connection string is invalid
    """
    if config.connection_string:
        params = parse_chromadb_connection_string(config.connection_string)
        return chromadb.HttpClient(
            host=params["host"],
            port=params["port"],
            ssl=params["ssl"],
            headers=config.headers,
            tenant=config.tenant,
            database=config.database,
        )
    if config.persist_directory:
        return chromadb.PersistentClient(
            path=config.persist_directory,
            tenant=config.tenant,
            database=config.database,
        )
    return chromadb.EphemeralClient(tenant=config.tenant, database=config.database)


class ChromaClientCache:
    """Memoizes ChromaDB clients per distinct connection settings.

    Safe to share between the worker threads that run store calls; at most
    one client is created per key.

    Example:
        >>> cache = ChromaClientCache()
        >>> client = cache.get_client(VectorStoreConfig())
        >>> cache.get_client(VectorStoreConfig()) is client
        True
    """

    def __init__(
        self, factory: Callable[[VectorStoreConfig], Any] = create_chromadb_client
    ) -> None:
        self._factory = factory
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_client(self, config: VectorStoreConfig) -> Any:
        """Return the cached client for ``config``, creating it on first use."""
        key = config.model_dump_json(exclude={"query_timeout"})
        with self._lock:
            if key not in self._clients:
                logger.debug(f"Creating ChromaDB client for {_endpoint(config)}")
                self._clients[key] = self._factory(config)
            return self._clients[key]

    def clear(self) -> None:
        """Drop every cached client."""
        with self._lock:
            self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)


def _endpoint(config: VectorStoreConfig) -> str:
    return config.connection_string or config.persist_directory or "in-memory"


def _is_connection_refused(error: BaseException) -> bool:
    """Check an error and its causes for a refused connection."""
    current: BaseException | None = error
    while current is not None:
        if isinstance(current, ConnectionError | httpx.ConnectError):
            return True
        if any(marker in str(current) for marker in _CONNECTION_REFUSED_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def _to_chunk_doc(collection_name: str, text: str, raw: dict[str, Any]) -> ChunkDoc:
    """Validate stored metadata into the matching chunk document."""
    try:
        metadata = parse_chunk_metadata(raw)
    except PydanticValidationError as e:
        raise VectorStoreError(
            collection_name, "Stored chunk has invalid metadata", e
        ) from e
    if isinstance(metadata, SectionChunkMetadata):
        return SectionChunkDoc(page_content=text, metadata=metadata)
    return TextChunkDoc(page_content=text, metadata=metadata)


class ChromaVectorStore:
    """Async chunk store backed by ChromaDB.

    Example:
        >>> store = ChromaVectorStore(embedding_service, ChromaClientCache())
        >>> name = await store.add_documents(chunks)
        >>> hits = await store.query(name, "How do I reset the device?", k=20)
    """

    def __init__(
        self,
        embedding_service: EmbeddingGeneratorBase,
        client_cache: ChromaClientCache,
        config: VectorStoreConfig | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            embedding_service: Semantic Kernel embedding generator used for
                documents and queries.
            client_cache: Shared client cache.
            config: Connection settings. Defaults to an in-memory store.
        """
        self._embedder = EmbeddingSimilarity(embedding_service)
        self._client_cache = client_cache
        self._config = config or VectorStoreConfig()

    @property
    def endpoint(self) -> str:
        """Connection string, directory, or ``in-memory``."""
        return _endpoint(self._config)

    async def _run(
        self, collection_name: str, func: Callable[..., T], *args: Any
    ) -> T:
        """Run a blocking ChromaDB call off the loop, under the timeout."""
        timeout = self._config.query_timeout
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)
        except TimeoutError as e:
            raise VectorStoreTimeoutError(collection_name, timeout) from e
        except VectorStoreError:
            raise
        except Exception as e:
            if _is_connection_refused(e):
                raise VectorStoreConnectionError(
                    collection_name, self.endpoint, e
                ) from e
            raise VectorStoreError(collection_name, "ChromaDB call failed", e) from e

    def _get_collection(self, collection_name: str) -> Any:
        client = self._client_cache.get_client(self._config)
        try:
            return client.get_collection(name=collection_name)
        except NotFoundError as e:
            raise CollectionNotFoundError(collection_name) from e

    def _get_populated_collection(self, collection_name: str) -> Any:
        collection = self._get_collection(collection_name)
        if collection.count() == 0:
            raise CollectionNotFoundError(collection_name)
        return collection

    async def add_documents(
        self,
        chunks: list[SectionChunkDoc] | list[TextChunkDoc],
        collection_name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Embed and store chunks in a new or existing collection.

        Args:
            chunks: Chunks to store.
            collection_name: Target collection. Defaults to a new uuid4 name.
            metadata: Extra collection metadata (e.g. file hash, locale).

        Returns:
            Name of the collection holding the chunks.

        Raises:
            ValidationError: If there are no chunks.
            EmbeddingError: If embedding fails.
            VectorStoreError: If the chunks could not be stored.
        """
        if not chunks:
            raise ValidationError(
                field="chunks",
                message="Cannot store an empty chunk list",
                expected="at least one chunk",
                actual="0 chunks",
            )

        name = collection_name or str(uuid4())
        texts = [chunk.page_content for chunk in chunks]
        embeddings = await self._embedder.embed(texts)
        collection_metadata = {**COLLECTION_METADATA, **(metadata or {})}

        def write() -> None:
            client = self._client_cache.get_client(self._config)
            collection = client.get_or_create_collection(
                name=name, metadata=collection_metadata
            )
            collection.add(
                ids=[str(uuid4()) for _ in chunks],
                documents=texts,
                embeddings=embeddings,
                metadatas=[chunk.metadata.to_metadata() for chunk in chunks],
            )

        await self._run(name, write)

        if not await self.collection_exists(name):
            raise VectorStoreError(
                name, "Document could not be embedded in vector store"
            )

        logger.info(f"Stored {len(chunks)} chunks in collection {name}")
        return name

    async def get(
        self,
        collection_name: str,
        where: dict[str, Any] | None = None,
        throw_on_empty: bool = False,
    ) -> list[ChunkDoc]:
        """Fetch chunks by metadata filter.

        Args:
            collection_name: Collection to read.
            where: ChromaDB metadata filter, e.g.
                ``{"header_route_levels": {"$eq": "1>2"}}``.
            throw_on_empty: Raise when nothing matches.

        Raises:
            CollectionNotFoundError: If the collection is missing or empty.
            EmptyResultError: If nothing matches and ``throw_on_empty`` is set.
        """

        def fetch() -> dict[str, Any]:
            collection = self._get_populated_collection(collection_name)
            return collection.get(where=where, include=["documents", "metadatas"])

        result = await self._run(collection_name, fetch)
        documents = result.get("documents") or []
        metadatas = result.get("metadatas") or []

        if throw_on_empty and not documents:
            raise EmptyResultError(collection_name)

        return [
            _to_chunk_doc(collection_name, text, dict(raw or {}))
            for text, raw in zip(documents, metadatas, strict=False)
            if text is not None
        ]

    async def query(
        self,
        collection_name: str,
        text: str,
        k: int = 4,
        where: dict[str, Any] | None = None,
        throw_on_empty: bool = False,
    ) -> list[ChunkDoc]:
        """Return the ``k`` chunks most similar to ``text``, best first.

        Raises:
            CollectionNotFoundError: If the collection is missing or empty.
            EmptyResultError: If nothing is returned and ``throw_on_empty`` is
                set. ChromaDB sometimes returns empty instead of failing.
            EmbeddingError: If the query cannot be embedded.
        """
        query_embedding = (await self._embedder.embed([text]))[0]

        def search() -> dict[str, Any]:
            collection = self._get_populated_collection(collection_name)
            return collection.query(
                query_embeddings=[query_embedding],
                n_results=k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )

        result = await self._run(collection_name, search)
        documents = (result.get("documents") or [[]])[0] or []
        metadatas = (result.get("metadatas") or [[]])[0] or []

        if throw_on_empty and not documents:
            raise EmptyResultError(collection_name)

        return [
            _to_chunk_doc(collection_name, doc, dict(raw or {}))
            for doc, raw in zip(documents, metadatas, strict=False)
            if doc is not None
        ]

    async def collection_exists(self, collection_name: str) -> bool:
        """Whether the collection exists and holds at least one chunk."""

        def check() -> bool:
            try:
                return bool(self._get_collection(collection_name).count() > 0)
            except CollectionNotFoundError:
                return False

        return await self._run(collection_name, check)

    async def delete_collection(self, collection_name: str) -> None:
        """Delete a collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """

        def delete() -> None:
            client = self._client_cache.get_client(self._config)
            try:
                client.delete_collection(name=collection_name)
            except NotFoundError as e:
                raise CollectionNotFoundError(collection_name) from e

        await self._run(collection_name, delete)
        logger.info(f"Deleted collection {collection_name}")
