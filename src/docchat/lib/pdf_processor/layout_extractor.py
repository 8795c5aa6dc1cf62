"""Column-aware PDF text extraction using pdfminer layout analysis.

Text lines are assigned to a column by their left edge, then read
top-to-bottom. The result has no structural markup; it only serves as the
trustworthy reference text for reconciliation.
"""

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path

from pdfminer.high_level import extract_pages
from pdfminer.layout import LTPage, LTTextContainer, LTTextLine

from docchat.lib.errors import ConfigError
from docchat.lib.logging_config import get_logger

logger = get_logger(__name__)

SUPPORTED_COLUMNS = (1, 2)

_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v]+")
# Words split by a hyphen at a line or column break
_BROKEN_WORD = re.compile(r"(\w)\s-\s(\w)")
# Spaces before closing punctuation
_SPACE_BEFORE_PUNCTUATION = re.compile(r"([\w,:;!?\])’”\"'»›])\s+([.,:;!?\])’”\"'»›])")


@dataclass(frozen=True)
class LayoutLine:
    """A text line with its position on the page."""

    x0: float
    top: float
    text: str


def clean_line(text: str) -> str:
    """Normalize spacing and re-join hyphen-broken words in one line."""
    text = _HORIZONTAL_SPACE.sub(" ", text).strip()
    text = _BROKEN_WORD.sub(r"\1\2", text)
    return _SPACE_BEFORE_PUNCTUATION.sub(r"\1\2", text)


def _page_lines(page: LTPage) -> list[LayoutLine]:
    lines: list[LayoutLine] = []
    for element in page:
        if isinstance(element, LTTextContainer):
            for text_line in element:
                if isinstance(text_line, LTTextLine):
                    text = clean_line(text_line.get_text())
                    if text:
                        lines.append(LayoutLine(text_line.x0, text_line.y1, text))
    return lines


def order_page_lines(
    lines: list[LayoutLine], page_width: float, columns_number: int = 1
) -> str:
    """Join a page's lines in reading order.

    Lines starting left of ``page_width / columns_number`` belong to the left
    column, the rest to the right column. Each column is read top-to-bottom,
    left column first.
    """
    boundary = page_width / columns_number
    left = [line for line in lines if line.x0 <= boundary]
    right = [line for line in lines if line.x0 > boundary]

    def read(column: list[LayoutLine]) -> str:
        ordered = sorted(column, key=lambda line: (-line.top, line.x0))
        return "\n".join(line.text for line in ordered)

    return "\n".join(part for part in (read(left), read(right)) if part)


def extract_layout_text(pdf_path: str | Path, columns_number: int = 1) -> str:
    """Extract column-ordered plain text from a PDF.

    Args:
        pdf_path: Path to the PDF file.
        columns_number: Number of text columns per page (1 or 2).

    Returns:
        Text of all pages, one line per text line.

    Raises:
        ConfigError: If ``columns_number`` is not supported.
        FileNotFoundError: If the file does not exist.
    """
    if columns_number not in SUPPORTED_COLUMNS:
        raise ConfigError(
            "reconciliation.columns_number",
            f"Expected one of {SUPPORTED_COLUMNS}, got {columns_number}",
        )

    path = Path(pdf_path)
    if not path.is_file():
        raise FileNotFoundError(f"PDF file not found: {path}")

    pages: list[str] = []
    for page in extract_pages(str(path)):
        text = order_page_lines(_page_lines(page), page.width, columns_number)
        if text:
            pages.append(text)

    logger.debug(f"Extracted layout text from {len(pages)} pages of {path.name}")
    return "\n".join(pages)


async def extract_layout_text_async(
    pdf_path: str | Path, columns_number: int = 1
) -> str:
    """Run ``extract_layout_text`` in a worker thread."""
    return await asyncio.to_thread(extract_layout_text, pdf_path, columns_number)
