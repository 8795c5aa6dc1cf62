"""CLI commands for inspecting the section tree and its chunks.

Implements 'docchat sections' and 'docchat chunk'. Both read a markdown file
and print JSON to stdout.
"""

import json
import sys
from pathlib import Path

import click

from docchat.lib.errors import ConfigError, DocChatError
from docchat.lib.logging_config import get_logger, setup_logging
from docchat.lib.section_chunker import chunk_section_nodes
from docchat.lib.section_tree import markdown_to_sections
from docchat.lib.text_splitter import size_bounded_splitter
from docchat.models.config import ChunkingConfig

logger = get_logger(__name__)


@click.command()
@click.argument("markdown_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def sections(markdown_file: str, verbose: bool, quiet: bool) -> None:
    """Print the section tree of a markdown document as JSON.

    MARKDOWN_FILE is the path to the parsed markdown document.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    try:
        markdown = Path(markdown_file).read_text(encoding="utf-8")
        forest = markdown_to_sections(markdown)
        logger.info(f"Built {len(forest)} top-level sections from {markdown_file}")
        click.echo(
            json.dumps(
                [section.model_dump() for section in forest],
                indent=2,
                ensure_ascii=False,
            )
        )
    except DocChatError as e:
        logger.error(f"Section parsing failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)


@click.command()
@click.argument("markdown_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--chunk-size",
    type=int,
    default=None,
    help="Maximum characters per chunk (default: 150)",
)
@click.option(
    "--chunk-overlap",
    type=int,
    default=None,
    help="Characters shared by consecutive chunks (default: 0)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def chunk(
    markdown_file: str,
    chunk_size: int | None,
    chunk_overlap: int | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Print the retrieval chunks of a markdown document as JSON.

    MARKDOWN_FILE is the path to the parsed markdown document.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    defaults = ChunkingConfig()
    size = chunk_size if chunk_size is not None else defaults.chunk_size
    overlap = chunk_overlap if chunk_overlap is not None else defaults.chunk_overlap

    try:
        markdown = Path(markdown_file).read_text(encoding="utf-8")
        chunks = chunk_section_nodes(
            markdown_to_sections(markdown),
            splitter=size_bounded_splitter(size, overlap),
        )
        logger.info(f"Produced {len(chunks)} chunks from {markdown_file}")
        click.echo(
            json.dumps(
                [c.model_dump() for c in chunks], indent=2, ensure_ascii=False
            )
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(2)
    except DocChatError as e:
        logger.error(f"Chunking failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)
