"""Build a hierarchical section tree from markdown.

Headings open sections; everything between two headings becomes the plain
text ``content`` of the section opened by the first one. Tables are stored
apart in ``SectionNode.tables`` and referenced from the content by inline
placeholders so their position survives chunking.

Every node gets two routes:

- ``header_route``: titles from the root, e.g. ``"Manual>Setup>Wiring"``
- ``header_route_levels``: 1-based sibling indices, e.g. ``"2>1>3"``

Routes are derived from heading order alone, so malformed heading sequences
(an H3 directly under an H1, a document that starts at H2) still produce
deterministic routes: missing levels are filled with ``1`` and their titles
with ``N/A``.

Example:
    >>> sections = markdown_to_sections("# A\\nText.\\n## B\\nMore.")
    >>> sections[0].header_route_levels, sections[0].subsections[0].header_route
    ('1', 'A>B')
"""

from dataclasses import dataclass, field

from docchat.lib.logging_config import get_logger
from docchat.lib.markdown_lexer import (
    MarkdownLexer,
    MarkdownToken,
    TokenType,
    render_inline,
    render_plain,
    render_table,
)
from docchat.models.section import SectionNode, table_placeholder

logger = get_logger(__name__)

ROUTE_SEPARATOR = ">"
MISSING_TITLE = "N/A"


@dataclass
class HeaderRouteTracker:
    """Track the last header route seen at each depth.

    ``levels[i]`` and ``routes[i]`` hold the full route of the most recent
    heading at depth ``i + 1``.
    """

    levels: list[str] = field(default_factory=list)
    routes: list[str] = field(default_factory=list)

    def update(self, depth: int, title: str) -> tuple[str, str]:
        """Register a heading and compute its routes.

        Args:
            depth: Heading depth (1-based).
            title: Heading title.

        Returns:
            Tuple of (header_route, header_route_levels).
        """
        del self.levels[depth:]
        del self.routes[depth:]

        if not self.levels:
            self.levels = []
            self.routes = []
            for i in range(depth):
                self._append("1", title if i == depth - 1 else MISSING_TITLE)
        elif len(self.levels) == depth:
            parts = self.levels[-1].split(ROUTE_SEPARATOR)
            parts[-1] = str(int(parts[-1]) + 1)
            self.levels[-1] = ROUTE_SEPARATOR.join(parts)

            titles = self.routes[-1].split(ROUTE_SEPARATOR)
            titles[-1] = title
            self.routes[-1] = ROUTE_SEPARATOR.join(titles)
        else:
            # Depth jumped past existing entries: fill the gap with ones
            missing = depth - len(self.levels)
            for i in range(missing):
                self._append("1", title if i == missing - 1 else MISSING_TITLE)

        return self.routes[-1], self.levels[-1]

    def _append(self, level: str, title: str) -> None:
        if self.levels:
            self.levels.append(f"{self.levels[-1]}{ROUTE_SEPARATOR}{level}")
            self.routes.append(f"{self.routes[-1]}{ROUTE_SEPARATOR}{title}")
        else:
            self.levels.append(level)
            self.routes.append(title)


class SectionTreeBuilder:
    """Fold a markdown token stream into a forest of ``SectionNode``.

    The builder owns all intermediate state (open-section stack, text buffer,
    pending tables, route tracker). Use a fresh builder per document.
    """

    def __init__(self) -> None:
        """Initialize an empty builder."""
        self._forest: list[SectionNode] = []
        self._stack: list[SectionNode] = []
        self._text = ""
        self._tables: dict[int, str] = {}
        self._last_table_index = -1
        self._routes = HeaderRouteTracker()

    def feed(self, token: MarkdownToken) -> None:
        """Consume one markdown token."""
        if token.type == TokenType.HEADING:
            self._open_section(token)
        elif token.type == TokenType.TABLE:
            self._last_table_index += 1
            self._tables[self._last_table_index] = render_table(token)
            self._text += f"{table_placeholder(self._last_table_index)}\n\n"
        else:
            self._text += render_plain(token)

    def build(self) -> list[SectionNode]:
        """Flush the last open section and return the forest."""
        self._flush()
        return self._forest

    def _open_section(self, token: MarkdownToken) -> None:
        self._flush()

        node = SectionNode(title=render_inline(token.text).strip(), level=token.depth)

        while self._stack and self._stack[-1].level >= node.level:
            self._stack.pop()

        if self._stack:
            self._stack[-1].subsections.append(node)
        else:
            self._forest.append(node)
        self._stack.append(node)

    def _flush(self) -> None:
        """Assign buffered text and tables to the section on top of the stack."""
        if not self._stack:
            if self._text.strip():
                logger.debug("Dropping text found before the first heading")
            self._reset_buffers()
            return

        last = self._stack[-1]
        if self._text:
            last.content = self._text.strip()
        if self._tables:
            last.tables = self._tables
        self._reset_buffers()

        if not last.header_route_levels:
            route, levels = self._routes.update(last.level, last.title)
            last.header_route = route
            last.header_route_levels = levels

    def _reset_buffers(self) -> None:
        self._text = ""
        self._tables = {}
        self._last_table_index = -1


def tokens_to_sections(tokens: list[MarkdownToken]) -> list[SectionNode]:
    """Build a section forest from already-lexed markdown tokens."""
    builder = SectionTreeBuilder()
    for token in tokens:
        builder.feed(token)
    return builder.build()


def markdown_to_sections(markdown: str) -> list[SectionNode]:
    """Parse markdown into a section forest.

    Text before the first heading has no owning section and is dropped.
    Malformed heading sequences never raise.

    Args:
        markdown: Markdown source (CommonMark/GFM pipe tables).

    Returns:
        Ordered list of top-level sections.
    """
    sections = tokens_to_sections(MarkdownLexer().lex(markdown))
    logger.debug(f"Parsed markdown into {len(sections)} top-level sections")
    return sections
