# File: infrapad/database/engine.py

from pathlib import Path

from sqlalchemy import create_engine, event
from infrapad.core.config import DATABASE_URL, settings


def _ensure_sqlite_folder(url: str) -> None:
    if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)


def build_engine(url: str = DATABASE_URL):
    """Create an engine; sqlite connections get foreign key enforcement."""
    _ensure_sqlite_folder(url)
    new_engine = create_engine(url, echo=settings.sql_echo, future=True)
    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return new_engine


engine = build_engine()

# Function to get the SQLAlchemy engine instance
def get_engine():
    """Return the SQLAlchemy engine instance."""
    return engine
