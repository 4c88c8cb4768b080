"""
Row-level access to the inventory store.

The transfer engine never builds queries itself: it reads rows through the
ordered "list by parent scope" methods below and writes through ``insert``,
which flushes and hands back the row with its store-assigned id. Committing
is left to whoever owns the session.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from infrapad.database.models import (
    ENV_FLAG_COLUMNS, EnvironmentType, Project, ProjectNote, ProjectPointOfInterest,
    Server, ServerDatabase, ServerExtraUserAccount, ServerLink, ServerNote,
    ServerPointOfInterest, ServerWebsite,
)

logger = logging.getLogger(__name__)


def _in_group(column, group_name: Optional[str]):
    """SQL filter for a group scope; ``None`` is the ungrouped scope."""
    if group_name is None:
        return column.is_(None)
    return column == group_name


class Store:
    """Typed reads and writes over one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Project]:
        return list(self.session.scalars(select(Project).order_by(Project.name)))

    def projects_by_names(self, names) -> List[Project]:
        stmt = select(Project).where(Project.name.in_(list(names))).order_by(Project.name)
        return list(self.session.scalars(stmt))

    def project_exists(self, name: str) -> bool:
        stmt = select(func.count(Project.id)).where(Project.name == name)
        return self.session.scalar(stmt) >= 1

    def project_group_names(self, project_id: int) -> List[str]:
        """Distinct group names used by anything owned directly by the project."""
        names = set()
        for model in (Server, ServerLink, ProjectNote, ProjectPointOfInterest):
            stmt = (
                select(model.group_name)
                .where(model.project_id == project_id, model.group_name.is_not(None))
                .distinct()
            )
            names.update(self.session.scalars(stmt))
        return sorted(names)

    def server_group_names(self, server_id: int) -> List[str]:
        names = set()
        for model in (ServerWebsite, ServerDatabase, ServerNote,
                      ServerPointOfInterest, ServerExtraUserAccount):
            stmt = (
                select(model.group_name)
                .where(model.server_id == server_id, model.group_name.is_not(None))
                .distinct()
            )
            names.update(self.session.scalars(stmt))
        return sorted(names)

    # ------------------------------------------------------------------
    # Project-level items, listed by (project, environment, group)
    # ------------------------------------------------------------------

    def servers(self, project_id: int, env: EnvironmentType,
                group_name: Optional[str]) -> List[Server]:
        stmt = (
            select(Server)
            .where(
                Server.project_id == project_id,
                Server.environment == env,
                _in_group(Server.group_name, group_name),
            )
            .order_by(Server.desc, Server.id)
        )
        return list(self.session.scalars(stmt))

    def server_links(self, project_id: int, env: EnvironmentType,
                     group_name: Optional[str]) -> List[ServerLink]:
        stmt = (
            select(ServerLink)
            .where(
                ServerLink.project_id == project_id,
                ServerLink.environment == env,
                _in_group(ServerLink.group_name, group_name),
            )
            .order_by(ServerLink.desc, ServerLink.id)
        )
        return list(self.session.scalars(stmt))

    def project_notes(self, project_id: int, env: EnvironmentType,
                      group_name: Optional[str]) -> List[ProjectNote]:
        env_flag = getattr(ProjectNote, ENV_FLAG_COLUMNS[env])
        stmt = (
            select(ProjectNote)
            .where(
                ProjectNote.project_id == project_id,
                _in_group(ProjectNote.group_name, group_name),
                env_flag.is_(True),
            )
            .order_by(ProjectNote.title, ProjectNote.id)
        )
        return list(self.session.scalars(stmt))

    def project_pois(self, project_id: int,
                     group_name: Optional[str]) -> List[ProjectPointOfInterest]:
        stmt = (
            select(ProjectPointOfInterest)
            .where(
                ProjectPointOfInterest.project_id == project_id,
                _in_group(ProjectPointOfInterest.group_name, group_name),
            )
            .order_by(ProjectPointOfInterest.desc, ProjectPointOfInterest.path)
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Server sub-items, listed by (server, group)
    # ------------------------------------------------------------------

    def _server_items(self, model, server_id: int, group_name: Optional[str], *order_by):
        stmt = (
            select(model)
            .where(model.server_id == server_id, _in_group(model.group_name, group_name))
            .order_by(*order_by, model.id)
        )
        return list(self.session.scalars(stmt))

    def server_pois(self, server_id, group_name) -> List[ServerPointOfInterest]:
        return self._server_items(ServerPointOfInterest, server_id, group_name,
                                  ServerPointOfInterest.desc)

    def server_websites(self, server_id, group_name) -> List[ServerWebsite]:
        return self._server_items(ServerWebsite, server_id, group_name, ServerWebsite.desc)

    def server_databases(self, server_id, group_name) -> List[ServerDatabase]:
        return self._server_items(ServerDatabase, server_id, group_name, ServerDatabase.desc)

    def server_notes(self, server_id, group_name) -> List[ServerNote]:
        return self._server_items(ServerNote, server_id, group_name, ServerNote.title)

    def server_extra_users(self, server_id, group_name) -> List[ServerExtraUserAccount]:
        return self._server_items(ServerExtraUserAccount, server_id, group_name,
                                  ServerExtraUserAccount.username)

    # ------------------------------------------------------------------
    # Lookups used to resolve cross-entity references
    # ------------------------------------------------------------------

    def get_server(self, server_id: int) -> Optional[Server]:
        return self.session.get(Server, server_id)

    def get_database(self, database_id: int) -> Optional[ServerDatabase]:
        return self.session.get(ServerDatabase, database_id)

    def server_id_exists(self, server_id: int) -> bool:
        stmt = select(func.count(Server.id)).where(Server.id == server_id)
        return self.session.scalar(stmt) == 1

    def database_id_exists(self, database_id: int) -> bool:
        stmt = select(func.count(ServerDatabase.id)).where(ServerDatabase.id == database_id)
        return self.session.scalar(stmt) == 1

    def find_server_id(self, project_name: str, env: EnvironmentType,
                       desc: str) -> Optional[int]:
        stmt = (
            select(Server.id)
            .join(Project, Server.project_id == Project.id)
            .where(Project.name == project_name, Server.environment == env, Server.desc == desc)
            .order_by(Server.id)
            .limit(1)
        )
        return self.session.scalar(stmt)

    def find_database_id(self, server_id: int, desc: str) -> Optional[int]:
        stmt = (
            select(ServerDatabase.id)
            .where(ServerDatabase.server_id == server_id, ServerDatabase.desc == desc)
            .order_by(ServerDatabase.id)
            .limit(1)
        )
        return self.session.scalar(stmt)

    def find_project_note(self, project_id: int, title: str,
                          group_name: Optional[str]) -> Optional[ProjectNote]:
        stmt = (
            select(ProjectNote)
            .where(
                ProjectNote.project_id == project_id,
                ProjectNote.title == title,
                _in_group(ProjectNote.group_name, group_name),
            )
            .order_by(ProjectNote.id)
            .limit(1)
        )
        return self.session.scalar(stmt)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, row):
        """Add a row and flush so its id is assigned; returns the row."""
        self.session.add(row)
        self.session.flush()
        logger.debug("Inserted %s id=%s", type(row).__name__, row.id)
        return row

    def set_project_note_env(self, note: ProjectNote, env: EnvironmentType) -> ProjectNote:
        setattr(note, ENV_FLAG_COLUMNS[env], True)
        self.session.flush()
        return note
