"""Pytest configuration and shared fixtures for DocChat tests."""

import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from docchat.lib.tokenizer import TokenCounter
from docchat.models.chunk import (
    SectionChunkDoc,
    SectionChunkMetadata,
    TextChunkDoc,
    TextChunkMetadata,
)

SAMPLE_MARKDOWN = """# Manual

Welcome to the manual.

## Setup

Unpack the device. Plug it in.

| Part | Count |
|------|-------|
| Cable | 2 |

## Usage

Press the button.

# Appendix

Extra notes.
"""


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str]]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.
    """
    original_env = os.environ.copy()
    for name in list(os.environ):
        if name.startswith("DOCCHAT_"):
            del os.environ[name]
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def sample_markdown() -> str:
    """Small manual with nested sections and one table."""
    return SAMPLE_MARKDOWN


@pytest.fixture(scope="session")
def token_counter() -> TokenCounter:
    """Shared cl100k_base token counter."""
    return TokenCounter()


def make_section_chunk(
    text: str,
    total_order: int,
    order: int = 1,
    header_route: str = "Intro",
    header_route_levels: str = "1",
    section_id: str = "s1",
    table: bool = False,
    table_index: int | None = None,
    tokens: int | None = None,
) -> SectionChunkDoc:
    """Build a section chunk with sensible metadata defaults."""
    return SectionChunkDoc(
        page_content=text,
        metadata=SectionChunkMetadata(
            header_route=header_route,
            header_route_levels=header_route_levels,
            order=order,
            total_order=total_order,
            tokens=len(text.split()) if tokens is None else tokens,
            char_count=len(text),
            table=table,
            table_index=table_index,
            section_id=section_id,
        ),
    )


def make_text_chunk(text: str, total_order: int) -> TextChunkDoc:
    """Build a layout chunk."""
    return TextChunkDoc(
        page_content=text,
        metadata=TextChunkMetadata(
            total_order=total_order,
            tokens=len(text.split()),
            char_count=len(text),
        ),
    )


@pytest.fixture
def section_chunk_factory():
    """Factory for section chunks."""
    return make_section_chunk


@pytest.fixture
def text_chunk_factory():
    """Factory for layout chunks."""
    return make_text_chunk


def pytest_configure(config) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests",
    )
