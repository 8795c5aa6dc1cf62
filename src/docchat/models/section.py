"""Section tree model."""

from collections.abc import Iterator
from uuid import uuid4

from pydantic import BaseModel, Field

TABLE_PLACEHOLDER_TEMPLATE = "<<<TABLE:{index}>>>"


def table_placeholder(index: int) -> str:
    """Inline placeholder marking the position of a table in section content."""
    return TABLE_PLACEHOLDER_TEMPLATE.format(index=index)


class SectionNode(BaseModel):
    """A node in the document's logical heading hierarchy.

    ``content`` holds only the text directly under this heading. Tables are
    kept apart in ``tables`` and referenced from ``content`` by inline
    placeholders (see ``table_placeholder``).
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str
    level: int = Field(..., ge=1, le=6)
    header_route: str = ""
    header_route_levels: str = ""
    content: str = ""
    tables: dict[int, str] = Field(default_factory=dict)
    subsections: list["SectionNode"] = Field(default_factory=list)

    def walk(self) -> Iterator["SectionNode"]:
        """Yield this node and all descendants in pre-order."""
        yield self
        for subsection in self.subsections:
            yield from subsection.walk()


def walk_sections(sections: list[SectionNode]) -> Iterator[SectionNode]:
    """Yield every node of a section forest in pre-order."""
    for section in sections:
        yield from section.walk()
