"""
Seatledger CLI entry point.

Usage:
    seatledger [OPTIONS] COMMAND [ARGS]...
    seatledger ledger COMMAND [ARGS]...
"""

import logging
from pathlib import Path

import click
import typer
from rich.console import Console
from rich.table import Table

from seatledger import __version__
from seatledger.cli.ledger import LedgerSession, ledger_app
from seatledger.core.config import LedgerConfig, config_path

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="seatledger")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose):
    """Seatledger - ticket issuance ledger."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.option("--project-path", "-p", default=".", help="Project directory")
@click.option("--treasury", default="treasury", help="Account credited with ticket payments")
@click.option(
    "--backend",
    type=click.Choice(["json", "sqlite"]),
    default="json",
    help="Ledger storage backend",
)
def init(project_path, treasury, backend):
    """Initialize a ledger in a project directory."""
    project = Path(project_path).resolve()
    path = config_path(project)

    if path.exists():
        console.print(f"[yellow]Ledger already initialized at {path}[/yellow]")
        return

    config = LedgerConfig(treasury=treasury)
    config.storage.backend = backend
    if backend == "sqlite":
        config.storage.path = ".seatledger/ledger.db"
    config.save(path)

    console.print(f"[bold green]Initialized seatledger in {project}[/bold green]")
    console.print(f"  Treasury: {treasury}")
    console.print(f"  Storage:  {backend} ({config.storage.path})")


@cli.command()
@click.option("--project-path", "-p", default=".", help="Project directory")
def status(project_path):
    """Show ledger status for the current project."""
    session = LedgerSession(Path(project_path).resolve())
    stats = session.ledger.stats()

    table = Table(title="Seatledger Status", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Version", __version__)
    for key, value in stats.items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)


cli.add_command(typer.main.get_command(ledger_app), name="ledger")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
