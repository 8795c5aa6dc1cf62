"""CLI command correcting parsed markdown against its source PDF.

Implements 'docchat reconcile': builds the section tree from the markdown,
extracts the layout text from the PDF, and runs the hallucination
reconciliation pipeline with the configured embedding and chat services.
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from docchat.config.loader import ConfigLoader
from docchat.lib.errors import ConfigError, DocChatError
from docchat.lib.llm_services import create_embedding_service, create_text_corrector
from docchat.lib.logging_config import get_logger, setup_logging
from docchat.lib.pdf_processor import extract_layout_text_async
from docchat.lib.reconciliation import fix_hallucinations_on_sections
from docchat.lib.section_tree import markdown_to_sections
from docchat.lib.similarity import EmbeddingSimilarity
from docchat.models.config import DocChatConfig
from docchat.models.section import SectionNode

logger = get_logger(__name__)


async def _run_reconciliation(
    markdown: str, pdf_file: str, columns: int, config: DocChatConfig
) -> list[SectionNode]:
    sections = markdown_to_sections(markdown)
    layout_text = await extract_layout_text_async(pdf_file, columns_number=columns)

    similarity = EmbeddingSimilarity(create_embedding_service(config.embedding))
    corrector = create_text_corrector(config.llm)

    return await fix_hallucinations_on_sections(
        sections,
        layout_text,
        similarity,
        corrector,
        config=config.reconciliation,
    )


@click.command()
@click.argument("markdown_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("pdf_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--columns",
    type=click.IntRange(min=1, max=2),
    default=None,
    help="Number of text columns per page (default: from config)",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to docchat.yaml (default: ./docchat.yml or ./docchat.yaml)",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the corrected sections to this JSON file instead of stdout",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def reconcile(
    markdown_file: str,
    pdf_file: str,
    columns: int | None,
    config_file: str | None,
    output: str | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Correct LLM-parsed markdown against the PDF's layout text.

    MARKDOWN_FILE is the markdown produced by the LLM parser and PDF_FILE
    the original document. The corrected section tree is printed as JSON.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    try:
        config = ConfigLoader().load(config_file)
        if not config.reconciliation.enabled:
            raise ConfigError(
                "reconciliation.enabled", "Reconciliation is disabled in config"
            )
        columns_number = columns or config.reconciliation.columns_number
        markdown = Path(markdown_file).read_text(encoding="utf-8")

        logger.info(
            f"Reconciling {markdown_file} against {pdf_file} "
            f"({columns_number} column(s))"
        )
        corrected = asyncio.run(
            _run_reconciliation(markdown, pdf_file, columns_number, config)
        )

        result = json.dumps(
            [section.model_dump() for section in corrected],
            indent=2,
            ensure_ascii=False,
        )
        if output:
            Path(output).write_text(result, encoding="utf-8")
            logger.info(f"Corrected sections saved to {output}")
        else:
            click.echo(result)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(2)
    except DocChatError as e:
        logger.error(f"Reconciliation failed: {e}", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)
