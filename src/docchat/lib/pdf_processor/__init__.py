"""PDF processing utilities for DocChat.

- **Layout Extraction**: coordinate-based, column-aware text extraction using
  pdfminer. Its output is the deterministic reference text that LLM-parsed
  markdown is reconciled against.

Example:
    from docchat.lib.pdf_processor import extract_layout_text

    # Two-column scientific paper
    text = extract_layout_text(Path("paper.pdf"), columns_number=2)

Functions:
    extract_layout_text: Extract column-ordered plain text from a PDF
    extract_layout_text_async: Same, run in a worker thread
"""

from docchat.lib.pdf_processor.layout_extractor import (
    extract_layout_text,
    extract_layout_text_async,
)

__all__ = [
    "extract_layout_text",
    "extract_layout_text_async",
]
