"""
Top-level CLI that aggregates the transfer and db sub-apps.
"""

import logging
import typer
from infrapad.cli.db_cli import db_app
from infrapad.cli.transfer_cli import transfer_app


logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s %(name)s - %(message)s"
)

main_app = typer.Typer(help="infrapad CLI")

main_app.add_typer(transfer_app, name="transfer")
main_app.add_typer(db_app, name="db")


def main():
    main_app()

if __name__ == "__main__":
    main()
