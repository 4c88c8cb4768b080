"""
Command-line interface for exporting and importing projects.
"""
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from infrapad.transfer.errors import TransferError
from infrapad.transfer.service import TransferService

transfer_app = typer.Typer(help="Export projects to, and import them from, 7z archives.")
console = Console()


def _configure_logging(log_level: str) -> None:
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise typer.BadParameter(f"Invalid log level: {log_level}")
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


@transfer_app.command("export")
def export_cmd(
    archive_path: Path = typer.Argument(..., help="Archive file to create (.7z)"),
    project_names: List[str] = typer.Argument(..., help="Names of the projects to export"),
    password: Optional[str] = typer.Option(
        None, "--password", "-p",
        help="Archive password (defaults to the one stored in the keyring or settings)"
    ),
    log_level: str = typer.Option("WARNING", help="Logging level"),
):
    """
    Export projects to an encrypted 7z archive.
    """
    _configure_logging(log_level)
    try:
        report = TransferService().export_projects(project_names, archive_path, password)
    except TransferError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    table = Table(title=f"Exported to {report.archive_path}")
    table.add_column("Project", style="green")
    for name in report.exported_projects:
        table.add_row(name)
    console.print(table)

    if report.unresolved_dependencies:
        console.print(
            "[yellow]Links point to projects not in the archive; they will be dropped on import "
            "unless those projects exist there:[/yellow] "
            + ", ".join(report.unresolved_dependencies)
        )


@transfer_app.command("import")
def import_cmd(
    archive_path: Path = typer.Argument(..., help="Archive file to import (.7z)"),
    password: Optional[str] = typer.Option(
        None, "--password", "-p",
        help="Archive password (defaults to the one stored in the keyring or settings)"
    ),
    log_level: str = typer.Option("WARNING", help="Logging level"),
):
    """
    Import every project of a 7z archive. Nothing is imported if one project fails.
    """
    _configure_logging(log_level)
    if not archive_path.exists():
        typer.echo(f"Error: Archive file {archive_path} does not exist", err=True)
        raise typer.Exit(1)

    try:
        report = TransferService().import_archive(archive_path, password)
    except TransferError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    table = Table(title=f"Imported from {archive_path.name}")
    table.add_column("Project", style="green")
    for name in report.imported_projects:
        table.add_row(name)
    console.print(table)

    if report.omissions:
        omitted = Table(title="Omitted references")
        omitted.add_column("Reference", style="yellow")
        for message in report.omissions:
            omitted.add_row(message)
        console.print(omitted)
