"""CLI command printing the column-aware layout text of a PDF."""

import sys

import click

from docchat.lib.errors import ConfigError
from docchat.lib.logging_config import get_logger, setup_logging
from docchat.lib.pdf_processor import extract_layout_text

logger = get_logger(__name__)


@click.command()
@click.argument("pdf_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--columns",
    type=click.IntRange(min=1, max=2),
    default=1,
    help="Number of text columns per page (1 or 2)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def layout(pdf_file: str, columns: int, verbose: bool, quiet: bool) -> None:
    """Print the plain layout text of a PDF, in reading order.

    PDF_FILE is the path to the PDF document.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    try:
        click.echo(extract_layout_text(pdf_file, columns_number=columns))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(2)
    except Exception as e:
        logger.error(f"Layout extraction failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
