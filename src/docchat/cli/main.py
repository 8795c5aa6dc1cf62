"""DocChat command line entry point."""

import click

from docchat import __version__
from docchat.cli.commands.layout import layout
from docchat.cli.commands.reconcile import reconcile
from docchat.cli.commands.sections import chunk, sections


@click.group(name="docchat")
@click.version_option(__version__, prog_name="docchat")
def main() -> None:
    """Structure, chunk, and reconcile parsed documents.

    \b
    EXAMPLES:

        Show the section tree of a parsed document:
            docchat sections manual.md

        Show retrieval chunks:
            docchat chunk manual.md --chunk-size 300

        Extract the layout text of a two-column PDF:
            docchat layout paper.pdf --columns 2

        Correct parsed markdown against its PDF:
            docchat reconcile manual.md manual.pdf --config docchat.yaml
    """


main.add_command(sections)
main.add_command(chunk)
main.add_command(layout)
main.add_command(reconcile)


if __name__ == "__main__":
    main()
