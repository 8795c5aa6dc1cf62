"""Tests for the block-level markdown lexer and plain-text rendering."""

from docchat.lib.markdown_lexer import (
    MarkdownLexer,
    MarkdownToken,
    TokenType,
    render_inline,
    render_plain,
    render_table,
)


def _types(markdown: str) -> list[TokenType]:
    return [token.type for token in MarkdownLexer().lex(markdown)]


class TestMarkdownLexer:
    """Tests for MarkdownLexer.lex."""

    def test_heading_and_paragraph(self) -> None:
        """Test a heading followed by a paragraph."""
        tokens = MarkdownLexer().lex("# Title\nSome text.")
        assert [t.type for t in tokens] == [TokenType.HEADING, TokenType.PARAGRAPH]
        assert tokens[0].depth == 1
        assert tokens[0].text == "Title"
        assert tokens[1].text == "Some text."

    def test_closing_hashes_are_stripped(self) -> None:
        """Test that an ATX heading's closing sequence is not part of the text."""
        token = MarkdownLexer().lex("## Closed ##")[0]
        assert token.type == TokenType.HEADING
        assert token.depth == 2
        assert token.text == "Closed"

    def test_hash_without_space_is_not_a_heading(self) -> None:
        """Test that '#word' is read as a paragraph."""
        assert _types("#NoSpace") == [TokenType.PARAGRAPH]

    def test_pipe_table(self) -> None:
        """Test table header and rows, short rows padded."""
        token = MarkdownLexer().lex("| A | B |\n|---|---|\n| 1 | 2 |\n| 3 |")[0]
        assert token.type == TokenType.TABLE
        assert token.header == ["A", "B"]
        assert token.rows == [["1", "2"], ["3", ""]]

    def test_fenced_code(self) -> None:
        """Test that fenced code keeps its body verbatim."""
        token = MarkdownLexer().lex("```python\nx = 1\n```")[0]
        assert token.type == TokenType.CODE
        assert token.text == "x = 1"

    def test_list_with_continuation(self) -> None:
        """Test that continuation lines join their list item."""
        token = MarkdownLexer().lex("- one\n- two\n  continued")[0]
        assert token.type == TokenType.LIST
        assert token.text == "one\ntwo continued"

    def test_blockquote(self) -> None:
        """Test that quote markers are removed."""
        token = MarkdownLexer().lex("> quoted\n> more")[0]
        assert token.type == TokenType.BLOCKQUOTE
        assert token.text == "quoted\nmore"

    def test_thematic_break_and_space(self) -> None:
        """Test blank lines and horizontal rules."""
        assert _types("***\n\nText") == [
            TokenType.HR,
            TokenType.SPACE,
            TokenType.PARAGRAPH,
        ]

    def test_heading_interrupts_paragraph(self) -> None:
        """Test that a heading line ends the running paragraph."""
        assert _types("Line one\n## Next") == [TokenType.PARAGRAPH, TokenType.HEADING]


class TestRendering:
    """Tests for inline and block rendering."""

    def test_render_inline_strips_markup(self) -> None:
        """Test that emphasis, links, code and entities are flattened."""
        text = "**Bold** and *em* with [link](http://x) and `code` &amp; ~~gone~~"
        assert render_inline(text) == "Bold and em with link and code & gone"

    def test_render_inline_keeps_code_content(self) -> None:
        """Test that markup inside code spans is left alone."""
        assert render_inline("`**not bold**`") == "**not bold**"

    def test_render_table(self) -> None:
        """Test that every row becomes a block of header/cell lines."""
        token = MarkdownLexer().lex("| A | B |\n|---|---|\n| 1 | 2 |\n| 3 | 4 |")[0]
        assert render_table(token) == "A: 1\nB: 2\n\nA: 3\nB: 4"

    def test_render_plain_space_is_empty(self) -> None:
        """Test that blank tokens render to nothing."""
        assert render_plain(MarkdownToken(TokenType.SPACE, raw="\n\n")) == ""

    def test_render_plain_paragraph_adds_blank_line(self) -> None:
        """Test that block content is followed by a blank line."""
        token = MarkdownToken(TokenType.PARAGRAPH, raw="*Hi*", text="*Hi*")
        assert render_plain(token) == "Hi\n\n"
