"""
Writes parsed project documents into a store.

Each project is imported in two passes. The first pass creates everything
that can be the target of a reference (servers, databases...) along with the
items that only need already-present targets. Websites may point to a
database of any server of the batch, so they are kept aside as
``PendingWebsite`` and created in the second pass, once all of the project's
databases exist.

The pipeline never commits: the caller owns the transaction, and any
exception raised here must roll back the whole import.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from infrapad.database.models import (
    ENV_FLAG_COLUMNS, EnvironmentType, Project, ProjectNote, ProjectPointOfInterest,
    Server, ServerDatabase, ServerExtraUserAccount, ServerLink, ServerNote,
    ServerPointOfInterest, ServerWebsite,
)
from infrapad.database.repository import Store
from infrapad.schemas.transfer import (
    ProjectGroupSchema, ProjectNoteSchema, ProjectPoiSchema, ProjectSchema,
    ServerGroupSchema, ServerLinkSchema, ServerWebsiteSchema, ServerWithItemsSchema,
)
from infrapad.transfer.attachments import attachment_file_name
from infrapad.transfer.dependency_sort import sort_projects
from infrapad.transfer.errors import ArchiveError, ProjectExistsError
from infrapad.transfer.paths import describe, resolve_database_id, resolve_server_id

logger = logging.getLogger(__name__)


class PendingWebsite(BaseModel):
    """A website waiting for the second pass."""
    server_id: int
    group_name: Optional[str] = None
    website: ServerWebsiteSchema


class ImportReport(BaseModel):
    """What an import did, and what it had to leave out."""
    imported_projects: List[str] = Field(default_factory=list)
    # references that could not be resolved in the destination store
    omissions: List[str] = Field(default_factory=list)

    def omit(self, message: str) -> None:
        logger.info("Omitted: %s", message)
        self.omissions.append(message)


class ImportPipeline:
    """Imports a batch of projects through a ``Store``."""

    def __init__(self, store: Store):
        self.store = store
        self.report = ImportReport()

    def run(self, projects: Iterable[Tuple[ProjectSchema, Path]]) -> ImportReport:
        """
        Import ``(project, attachments folder)`` pairs, projects that others
        link to first.

        Raises:
            ProjectExistsError: a project with the same name is already stored.
        """
        for project, import_folder in sort_projects(projects):
            self.import_project(project, import_folder)
        return self.report

    def import_project(self, project: ProjectSchema, import_folder: Path) -> Project:
        if self.store.project_exists(project.project_name):
            raise ProjectExistsError(project.project_name)
        logger.info("Importing project '%s'", project.project_name)

        present = {env for env, _ in project.environments()}
        icon = None
        if project.project_icon:
            icon = _read_attachment(import_folder, project.project_icon)
        row = self.store.insert(Project(
            name=project.project_name,
            icon=icon,
            **{column: env in present for env, column in ENV_FLAG_COLUMNS.items()},
        ))

        pending: List[PendingWebsite] = []
        for env, contents in project.environments():
            for group_name, items in contents.groups():
                pending.extend(self._import_group(row, env, group_name, items, import_folder))

        for website in pending:
            self._import_website(website)

        self.report.imported_projects.append(project.project_name)
        return row

    # ------------------------------------------------------------------
    # First pass
    # ------------------------------------------------------------------

    def _import_group(self, project: Project, env: EnvironmentType, group_name: Optional[str],
                      items: ProjectGroupSchema, import_folder: Path) -> List[PendingWebsite]:
        for poi in items.project_pois:
            self._import_project_poi(project, group_name, poi)
        for note in items.project_notes:
            self._import_project_note(project, env, group_name, note)
        for link in items.server_links:
            self._import_server_link(project, env, group_name, link)

        pending = []
        for server in items.servers:
            pending.extend(self._import_server(project, env, group_name, server, import_folder))
        return pending

    def _import_project_poi(self, project: Project, group_name: Optional[str],
                            poi: ProjectPoiSchema) -> None:
        # project POIs are not per environment: the first occurrence is enough
        if poi.is_shared_marker:
            return
        self.store.insert(ProjectPointOfInterest(
            desc=poi.desc,
            path=poi.path,
            text=poi.text,
            interest_type=poi.interest_type,
            group_name=group_name,
            project_id=project.id,
        ))

    def _import_project_note(self, project: Project, env: EnvironmentType,
                             group_name: Optional[str], note: ProjectNoteSchema) -> None:
        if note.is_shared_marker:
            title = note.shared_with_other_environments
            existing = self.store.find_project_note(project.id, title, group_name)
            if existing is None:
                self.report.omit(
                    f"{project.name}: shared note '{title}' not found for {env.value}"
                )
                return
            self.store.set_project_note_env(existing, env)
            return
        flags = {column: env == flag_env for flag_env, column in ENV_FLAG_COLUMNS.items()}
        self.store.insert(ProjectNote(
            title=note.title,
            contents=note.contents,
            group_name=group_name,
            project_id=project.id,
            **flags,
        ))

    def _import_server_link(self, project: Project, env: EnvironmentType,
                            group_name: Optional[str], link: ServerLinkSchema) -> None:
        server_id = resolve_server_id(self.store, link.server)
        if server_id is None:
            self.report.omit(
                f"{project.name}: server link '{link.desc}' to {describe(link.server)}"
            )
            return
        self.store.insert(ServerLink(
            desc=link.desc,
            linked_server_id=server_id,
            environment=env,
            group_name=group_name,
            project_id=project.id,
        ))

    def _import_server(self, project: Project, env: EnvironmentType, group_name: Optional[str],
                       server: ServerWithItemsSchema, import_folder: Path) -> List[PendingWebsite]:
        data = server.server
        auth_key = None
        if data.data_folder and data.auth_key_filename:
            auth_key = _read_attachment(
                import_folder, f"{data.data_folder}/{attachment_file_name(data.auth_key_filename)}"
            )
        row = self.store.insert(Server(
            desc=data.desc,
            ip=data.ip,
            text=data.text,
            is_retired=data.is_retired,
            username=data.username,
            password=data.password,
            auth_key=auth_key,
            auth_key_filename=data.auth_key_filename,
            server_type=data.server_type,
            access_type=data.access_type,
            ssh_tunnel_port=data.ssh_tunnel_port,
            environment=env,
            group_name=group_name,
            project_id=project.id,
        ))

        pending = []
        for items_group, items in server.groups():
            self._import_server_items(row, items_group, items, import_folder)
            pending.extend(
                PendingWebsite(server_id=row.id, group_name=items_group, website=website)
                for website in items.server_websites
            )
        return pending

    def _import_server_items(self, server: Server, group_name: Optional[str],
                             items: ServerGroupSchema, import_folder: Path) -> None:
        store = self.store
        for db in items.server_databases:
            store.insert(ServerDatabase(
                desc=db.desc, name=db.name, text=db.text, username=db.username,
                password=db.password, group_name=group_name, server_id=server.id,
            ))
        for poi in items.server_pois:
            store.insert(ServerPointOfInterest(
                desc=poi.desc, path=poi.path, text=poi.text, interest_type=poi.interest_type,
                run_on=poi.run_on, group_name=group_name, server_id=server.id,
            ))
        for note in items.server_notes:
            store.insert(ServerNote(
                title=note.title, contents=note.contents,
                group_name=group_name, server_id=server.id,
            ))
        for user in items.server_extra_users:
            auth_key = None
            if user.data_folder and user.auth_key_filename:
                auth_key = _read_attachment(
                    import_folder,
                    f"{user.data_folder}/{attachment_file_name(user.auth_key_filename)}",
                )
            store.insert(ServerExtraUserAccount(
                desc=user.desc, username=user.username, password=user.password,
                auth_key=auth_key, auth_key_filename=user.auth_key_filename,
                group_name=group_name, server_id=server.id,
            ))

    # ------------------------------------------------------------------
    # Second pass
    # ------------------------------------------------------------------

    def _import_website(self, pending: PendingWebsite) -> None:
        website = pending.website
        database_id = None
        if website.server_database is not None:
            database_id = resolve_database_id(self.store, website.server_database)
            if database_id is None:
                self.report.omit(
                    f"website '{website.desc}': database {describe(website.server_database)}"
                )
        self.store.insert(ServerWebsite(
            desc=website.desc,
            url=website.url,
            text=website.text,
            username=website.username,
            password=website.password,
            server_database_id=database_id,
            group_name=pending.group_name,
            server_id=pending.server_id,
        ))


def _read_attachment(import_folder: Path, relative_path: str) -> bytes:
    root = import_folder.resolve()
    path = (root / relative_path).resolve()
    # attachment paths come from the document and must stay inside the archive
    if not path.is_relative_to(root):
        raise ArchiveError("Attachment path outside the archive", relative_path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise ArchiveError("Missing attachment in archive", relative_path) from e
