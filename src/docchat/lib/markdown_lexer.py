"""Block-level markdown tokenizer with plain-text rendering.

Splits CommonMark/GFM-style markdown into block tokens (ATX headings, pipe
tables, fenced code, lists, block quotes, thematic breaks, paragraphs, and
blank space) in document order. Each token can render itself as plain text:
inline markup is stripped and HTML entities are decoded.

Only the block structure the section tree needs is recognized; anything else
degrades to a paragraph.
"""

import html
import re
from dataclasses import dataclass, field
from enum import Enum


class TokenType(str, Enum):
    """Kinds of markdown block tokens."""

    HEADING = "heading"
    TABLE = "table"
    CODE = "code"
    LIST = "list"
    BLOCKQUOTE = "blockquote"
    HR = "hr"
    PARAGRAPH = "paragraph"
    SPACE = "space"


@dataclass
class MarkdownToken:
    """A block-level markdown token.

    Attributes:
        type: Token kind.
        raw: Source text of the block.
        text: Heading text, code body, or paragraph/list/quote source text.
        depth: Heading depth (1-6); 0 for other tokens.
        header: Table header cells.
        rows: Table body rows.
    """

    type: TokenType
    raw: str
    text: str = ""
    depth: int = 0
    header: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)


HEADING_PATTERN = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
HR_PATTERN = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
LIST_ITEM_PATTERN = re.compile(r"^ {0,3}(?:[-*+]|\d{1,9}[.)])[ \t]+")
BLOCKQUOTE_PATTERN = re.compile(r"^ {0,3}>[ ]?")
TABLE_DELIMITER_PATTERN = re.compile(
    r"^ {0,3}\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$"
)

# Inline markup, stripped when rendering plain text
IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
LINK_PATTERN = re.compile(r"\[([^\]]+)\]\([^)]*\)")
REF_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
AUTOLINK_PATTERN = re.compile(r"<((?:https?|mailto):[^>\s]+)>")
INLINE_CODE_PATTERN = re.compile(r"(`+)(.+?)\1", re.DOTALL)
STRONG_PATTERN = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1", re.DOTALL)
EMPHASIS_PATTERN = re.compile(
    r"(?<![\w*])(\*|_)(?=\S)(.+?)(?<=\S)\1(?![\w*])", re.DOTALL
)
STRIKE_PATTERN = re.compile(r"~~(?=\S)(.+?)(?<=\S)~~", re.DOTALL)
HTML_TAG_PATTERN = re.compile(r"</?[A-Za-z][A-Za-z0-9-]*(?:\s[^<>]*)?/?>")
ESCAPE_PATTERN = re.compile(r"\\([!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~])")


def render_inline(text: str) -> str:
    """Render inline markdown as plain, entity-decoded text."""
    code_spans: list[str] = []

    def _stash_code(match: re.Match[str]) -> str:
        code_spans.append(match.group(2).strip())
        return f"\x00{len(code_spans) - 1}\x00"

    result = INLINE_CODE_PATTERN.sub(_stash_code, text)
    result = IMAGE_PATTERN.sub(r"\1", result)
    result = LINK_PATTERN.sub(r"\1", result)
    result = REF_LINK_PATTERN.sub(r"\1", result)
    result = AUTOLINK_PATTERN.sub(r"\1", result)
    result = HTML_TAG_PATTERN.sub("", result)
    result = STRONG_PATTERN.sub(r"\2", result)
    result = EMPHASIS_PATTERN.sub(r"\2", result)
    result = STRIKE_PATTERN.sub(r"\1", result)
    result = ESCAPE_PATTERN.sub(r"\1", result)
    result = re.sub(r"\x00(\d+)\x00", lambda m: code_spans[int(m.group(1))], result)
    return html.unescape(result)


def _split_table_row(line: str) -> list[str]:
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    cells = re.split(r"(?<!\\)\|", row)
    return [cell.strip().replace("\\|", "|") for cell in cells]


def _is_blank(line: str) -> bool:
    return not line.strip()


def _is_table_start(lines: list[str], index: int) -> bool:
    """Check for a header row followed by a matching delimiter row."""
    if index + 1 >= len(lines) or "|" not in lines[index]:
        return False
    delimiter = lines[index + 1]
    if "-" not in delimiter or not TABLE_DELIMITER_PATTERN.match(delimiter):
        return False
    return len(_split_table_row(lines[index])) == len(_split_table_row(delimiter))


class MarkdownLexer:
    """Tokenize markdown into block tokens.

    Example:
        >>> tokens = MarkdownLexer().lex("# Title\\nSome text.")
        >>> [t.type.value for t in tokens]
        ['heading', 'paragraph']
    """

    def lex(self, markdown: str) -> list[MarkdownToken]:
        """Split markdown into block tokens in document order.

        Args:
            markdown: Markdown source.

        Returns:
            List of tokens. Never raises on malformed input.
        """
        lines = markdown.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        tokens: list[MarkdownToken] = []
        i = 0
        while i < len(lines):
            line = lines[i]

            if _is_blank(line):
                start = i
                while i < len(lines) and _is_blank(lines[i]):
                    i += 1
                tokens.append(
                    MarkdownToken(TokenType.SPACE, raw="\n".join(lines[start:i]))
                )
                continue

            fence = FENCE_PATTERN.match(line)
            if fence:
                i = self._lex_fence(lines, i, fence, tokens)
                continue

            heading = HEADING_PATTERN.match(line)
            if heading:
                tokens.append(
                    MarkdownToken(
                        TokenType.HEADING,
                        raw=line,
                        text=(heading.group(2) or "").strip(),
                        depth=len(heading.group(1)),
                    )
                )
                i += 1
                continue

            if HR_PATTERN.match(line):
                tokens.append(MarkdownToken(TokenType.HR, raw=line))
                i += 1
                continue

            if _is_table_start(lines, i):
                i = self._lex_table(lines, i, tokens)
                continue

            if BLOCKQUOTE_PATTERN.match(line):
                i = self._lex_blockquote(lines, i, tokens)
                continue

            if LIST_ITEM_PATTERN.match(line):
                i = self._lex_list(lines, i, tokens)
                continue

            i = self._lex_paragraph(lines, i, tokens)

        return tokens

    def _lex_fence(
        self,
        lines: list[str],
        start: int,
        fence: re.Match[str],
        tokens: list[MarkdownToken],
    ) -> int:
        marker = fence.group(1)
        closing = re.compile(rf"^ {{0,3}}{re.escape(marker[0])}{{{len(marker)},}}\s*$")
        i = start + 1
        body: list[str] = []
        while i < len(lines) and not closing.match(lines[i]):
            body.append(lines[i])
            i += 1
        end = min(i + 1, len(lines))
        tokens.append(
            MarkdownToken(
                TokenType.CODE,
                raw="\n".join(lines[start:end]),
                text="\n".join(body),
            )
        )
        return end

    def _lex_table(
        self, lines: list[str], start: int, tokens: list[MarkdownToken]
    ) -> int:
        header = _split_table_row(lines[start])
        i = start + 2
        rows: list[list[str]] = []
        while i < len(lines) and not _is_blank(lines[i]) and "|" in lines[i]:
            if HEADING_PATTERN.match(lines[i]) or FENCE_PATTERN.match(lines[i]):
                break
            cells = _split_table_row(lines[i])
            # GFM pads short rows and truncates long ones to the header width
            cells = (cells + [""] * len(header))[: len(header)]
            rows.append(cells)
            i += 1
        tokens.append(
            MarkdownToken(
                TokenType.TABLE,
                raw="\n".join(lines[start:i]),
                header=header,
                rows=rows,
            )
        )
        return i

    def _lex_blockquote(
        self, lines: list[str], start: int, tokens: list[MarkdownToken]
    ) -> int:
        i = start
        body: list[str] = []
        while i < len(lines) and not _is_blank(lines[i]):
            body.append(BLOCKQUOTE_PATTERN.sub("", lines[i], count=1))
            i += 1
        tokens.append(
            MarkdownToken(
                TokenType.BLOCKQUOTE,
                raw="\n".join(lines[start:i]),
                text="\n".join(body),
            )
        )
        return i

    def _lex_list(
        self, lines: list[str], start: int, tokens: list[MarkdownToken]
    ) -> int:
        i = start
        items: list[str] = []
        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                # A blank line ends the list unless another item follows
                if i + 1 < len(lines) and LIST_ITEM_PATTERN.match(lines[i + 1]):
                    i += 1
                    continue
                break
            if LIST_ITEM_PATTERN.match(line):
                items.append(LIST_ITEM_PATTERN.sub("", line, count=1).strip())
            elif (
                HEADING_PATTERN.match(line)
                or FENCE_PATTERN.match(line)
                or HR_PATTERN.match(line)
            ):
                break
            elif items:
                # Continuation line of the current item
                items[-1] = f"{items[-1]} {line.strip()}"
            i += 1
        tokens.append(
            MarkdownToken(
                TokenType.LIST,
                raw="\n".join(lines[start:i]).rstrip("\n"),
                text="\n".join(items),
            )
        )
        return i

    def _lex_paragraph(
        self, lines: list[str], start: int, tokens: list[MarkdownToken]
    ) -> int:
        i = start
        body: list[str] = []
        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                break
            if i > start and (
                HEADING_PATTERN.match(line)
                or FENCE_PATTERN.match(line)
                or HR_PATTERN.match(line)
                or BLOCKQUOTE_PATTERN.match(line)
                or LIST_ITEM_PATTERN.match(line)
                or _is_table_start(lines, i)
            ):
                break
            body.append(line.strip())
            i += 1
        tokens.append(
            MarkdownToken(
                TokenType.PARAGRAPH,
                raw="\n".join(lines[start:i]),
                text="\n".join(body),
            )
        )
        return i


def render_table(token: MarkdownToken) -> str:
    """Flatten a table token to plain text.

    Each body row becomes a block of ``Header: cell`` lines; rows are
    separated by a blank line.

    Example:
        | A | B |         A: 1
        |---|---|   ->    B: 2
        | 1 | 2 |
    """
    headers = [render_inline(cell) for cell in token.header]
    blocks = []
    for row in token.rows:
        lines = [
            f"{header}: {render_inline(cell)}"
            for header, cell in zip(headers, row, strict=False)
        ]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks).strip()


def render_plain(token: MarkdownToken) -> str:
    """Render a non-heading block token as plain text.

    Block content is followed by a blank line so consecutive blocks stay
    separated once concatenated.
    """
    if token.type in (TokenType.SPACE, TokenType.HR):
        return ""
    if token.type == TokenType.CODE:
        return f"{html.unescape(token.text)}\n\n"
    if token.type == TokenType.TABLE:
        return f"{render_table(token)}\n\n"
    return f"{render_inline(token.text)}\n\n"
