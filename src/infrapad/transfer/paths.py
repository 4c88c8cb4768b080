"""
Portable addresses of servers and databases.

A server link or a website's database may point into another project, so the
document cannot use store ids: the address is (project, environment,
description). Only when the target has no description is its id written, and
that id is then only meaningful if the archive is imported back into the
store it came from.
"""

import logging
from typing import Optional

from infrapad.database.models import Server, ServerDatabase
from infrapad.database.repository import Store
from infrapad.schemas.transfer import ServerDatabasePath, ServerPath

logger = logging.getLogger(__name__)


def server_path(server: Server, project_name: str) -> ServerPath:
    if server.desc:
        return ServerPath(project_name=project_name, environment=server.environment,
                          server_desc=server.desc)
    return ServerPath(project_name=project_name, environment=server.environment,
                      server_id=server.id)


def database_path(database: ServerDatabase, server: Server,
                  project_name: str) -> ServerDatabasePath:
    path = server_path(server, project_name)
    if database.desc:
        return ServerDatabasePath(**path.model_dump(), database_desc=database.desc)
    return ServerDatabasePath(**path.model_dump(), database_id=database.id)


def resolve_server_id(store: Store, path: ServerPath) -> Optional[int]:
    """
    Id of the server ``path`` designates in ``store``, or None.

    An id is accepted as soon as any server row carries it, whichever project
    that row belongs to.
    """
    if path.server_id is not None and store.server_id_exists(path.server_id):
        return path.server_id
    if path.server_desc:
        return store.find_server_id(path.project_name, path.environment, path.server_desc)
    return None


def resolve_database_id(store: Store, path: ServerDatabasePath) -> Optional[int]:
    """Id of the database ``path`` designates in ``store``, or None."""
    server_id = resolve_server_id(store, path)
    if server_id is None:
        logger.debug("No server for database path %s", path)
        return None
    if path.database_desc:
        return store.find_database_id(server_id, path.database_desc)
    if path.database_id is not None and store.database_id_exists(path.database_id):
        return path.database_id
    return None


def describe(path: ServerPath) -> str:
    """Human readable form of an address, for logs and import reports."""
    server = path.server_desc or f"#{path.server_id}"
    text = f"{path.project_name}/{path.environment.value}/{server}"
    if isinstance(path, ServerDatabasePath):
        text += "/" + (path.database_desc or f"#{path.database_id}")
    return text
