"""
Database maintenance commands.
"""
import typer
from rich.console import Console
from rich.table import Table

from infrapad.core.config import settings
from infrapad.database.engine import get_engine
from infrapad.database.models import Base
from infrapad.database.repository import Store
from infrapad.database.session import db_session

db_app = typer.Typer(help="Inventory database commands.")
console = Console()


@db_app.command("init")
def init_cmd():
    """
    Create the inventory tables if they do not exist.
    """
    Base.metadata.create_all(get_engine())
    typer.echo(f"Database ready at {settings.database_url}")


@db_session
def _project_rows(session):
    return [
        (project.name, ", ".join(env.value for env in project.enabled_environments()))
        for project in Store(session).list_projects()
    ]


@db_app.command("projects")
def projects_cmd():
    """
    List the stored projects and their environments.
    """
    rows = _project_rows()
    if not rows:
        typer.echo("No projects found.")
        return

    table = Table(title="Projects")
    table.add_column("Name", style="green")
    table.add_column("Environments", style="cyan")
    for name, environments in rows:
        table.add_row(name, environments)
    console.print(table)
