"""Chunk models shared by chunking, reconciliation, and retrieval.

Chunk metadata is a tagged union (``kind`` is ``"text"`` or ``"section"``).
Metadata read back from the vector store is validated once, in
``parse_chunk_metadata``; everything downstream works with typed models.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TextChunkMetadata(BaseModel):
    """Metadata of a plain text chunk (e.g. from the layout parse)."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["text"] = "text"
    total_order: int = Field(..., ge=1, description="1-based position in stream")
    tokens: int = Field(..., ge=0, description="Exact token count")
    char_count: int = Field(..., ge=0, description="Character count")

    def to_metadata(self) -> dict[str, str | int | bool]:
        """Flatten to scalar values for storage in the vector store."""
        return {
            key: value
            for key, value in self.model_dump().items()
            if value is not None
        }


class SectionChunkMetadata(TextChunkMetadata):
    """Metadata of a chunk cut from a section of the section tree."""

    kind: Literal["section"] = "section"  # type: ignore[assignment]
    header_route: str = Field(..., description="Titles from root, '>'-joined")
    header_route_levels: str = Field(
        ..., description="1-based sibling indices from root, '>'-joined"
    )
    order: int = Field(..., ge=1, description="1-based position in its section")
    table: bool = False
    section_id: str = Field(..., description="Id of the owning SectionNode")
    table_index: int | None = Field(
        default=None, description="Index of the source table in its section"
    )
    reconciled: bool = False


ChunkMetadata = Annotated[
    TextChunkMetadata | SectionChunkMetadata, Field(discriminator="kind")
]

_metadata_adapter: TypeAdapter[TextChunkMetadata | SectionChunkMetadata] = (
    TypeAdapter(ChunkMetadata)
)


def parse_chunk_metadata(
    raw: dict[str, Any],
) -> TextChunkMetadata | SectionChunkMetadata:
    """Validate raw metadata into the matching chunk metadata model.

    Metadata written before the ``kind`` tag existed is classified by the
    presence of ``header_route_levels``.

    Args:
        raw: Metadata mapping, e.g. as returned by the vector store.

    Returns:
        TextChunkMetadata or SectionChunkMetadata.

    Raises:
        pydantic.ValidationError: If the metadata does not fit either shape.
    """
    data = dict(raw)
    if "kind" not in data:
        data["kind"] = "section" if "header_route_levels" in data else "text"
    return _metadata_adapter.validate_python(data)


class TextChunkDoc(BaseModel):
    """The atomic retrieval/matching unit."""

    page_content: str
    metadata: TextChunkMetadata


class SectionChunkDoc(BaseModel):
    """A chunk tagged with its owning section's identity and position."""

    page_content: str
    metadata: SectionChunkMetadata


class ReconstructedSectionMetadata(BaseModel):
    """Metadata of a reconstructed, token-bounded section span."""

    header_route: str
    header_route_levels: str
    tokens: int = Field(..., ge=0)
    char_count: int = Field(..., ge=0)


class ReconstructedSectionDoc(BaseModel):
    """Concatenated chunk content representing one retrieval hit."""

    page_content: str
    metadata: ReconstructedSectionMetadata


class MatchCandidate(BaseModel):
    """A layout chunk paired with its match score against a section chunk."""

    candidate: TextChunkDoc
    score: float = Field(..., ge=0.0, le=1.0)


class MatchedChunk(BaseModel):
    """A section chunk with its ranked layout candidates."""

    section_chunk: SectionChunkDoc
    candidates: list[MatchCandidate] = Field(default_factory=list)
