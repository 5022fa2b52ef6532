"""
Registry Sync CLI

Entry point for the registry sync command-line interface.

Usage:
    python -m src.cli.main sync --only UO --diff
    python -m src.cli.main --help
"""

import logging

import typer

from src.cli.commands.sync import status_command, sync_command
from src.common.logging import configure_sanitized_logging

app = typer.Typer(
    name="registry-sync",
    help="Registry Sync - batch import of EDRPOU business registry dumps",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    configure_sanitized_logging(level=logging.DEBUG if verbose else logging.INFO)


# Register commands
app.command(name="sync", help="Download and import registry dumps")(sync_command)
app.command(name="status", help="Show registry freshness and recent imports")(status_command)


@app.command()
def version() -> None:
    """Show version information."""
    from src import __version__
    typer.echo(f"registry-sync version {__version__}")


if __name__ == "__main__":
    app()
