"""
Builds the portable documents for a set of projects.

The planner only reads the store. Everything an export needs to write ends up
in the returned ``ExportPlan``: one ``ProjectExport`` per project with the
document, its archive folder and the binary attachments that go next to it.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field

from infrapad.core.settings import PROJECT_ICON_FILENAME
from infrapad.database.models import (
    EnvironmentType, Project, ProjectNote, ProjectPointOfInterest, Server,
    ServerDatabase, ServerExtraUserAccount, ServerLink, ServerWebsite, ENV_FLAG_COLUMNS,
)
from infrapad.database.repository import Store
from infrapad.schemas.transfer import (
    ENVIRONMENT_FIELDS, ProjectEnvSchema, ProjectGroupSchema, ProjectNoteSchema,
    ProjectPoiSchema, ProjectSchema, ServerDatabaseSchema, ServerExtraUserSchema,
    ServerGroupSchema, ServerLinkSchema, ServerNoteSchema, ServerPoiSchema,
    ServerSchema, ServerWebsiteSchema, ServerWithItemsSchema,
)
from infrapad.transfer.attachments import add_attachment, allocate_path, sanitize_base_name
from infrapad.transfer.paths import database_path, server_path

logger = logging.getLogger(__name__)


class ProjectExport(BaseModel):
    """One project's share of an archive."""
    folder: str
    document: ProjectSchema
    # path relative to ``folder`` -> file contents
    attachments: Dict[str, bytes] = Field(default_factory=dict)


class ExportPlan(BaseModel):
    projects: List[ProjectExport] = Field(default_factory=list)
    # projects referenced by links or websites but not part of the export
    unresolved_dependencies: Set[str] = Field(default_factory=set)

    @property
    def project_names(self) -> List[str]:
        return [p.document.project_name for p in self.projects]


class ExportPlanner:
    """Reads projects through a ``Store`` and turns them into documents."""

    def __init__(self, store: Store):
        self.store = store

    def plan(self, project_names: Iterable[str]) -> ExportPlan:
        requested = set(project_names)
        projects = self.store.projects_by_names(requested)
        missing = requested - {p.name for p in projects}
        if missing:
            logger.warning("Projects not found, skipping: %s", ", ".join(sorted(missing)))

        plan = ExportPlan()
        taken_folders: List[str] = []
        for project in projects:
            folder = allocate_path(sanitize_base_name(project.name, project.id), taken_folders)
            taken_folders.append(folder)
            plan.projects.append(self.export_project(project, folder))
            logger.info("Planned export of project '%s' into %s/", project.name, folder)

        exported = set(plan.project_names)
        deps = set()
        for project_export in plan.projects:
            deps.update(project_export.document.dependency_project_names())
        plan.unresolved_dependencies = deps - exported
        if plan.unresolved_dependencies:
            logger.warning(
                "Exported projects reference projects that are not exported: %s",
                ", ".join(sorted(plan.unresolved_dependencies)),
            )
        return plan

    def export_project(self, project: Project, folder: str) -> ProjectExport:
        attachments: Dict[str, bytes] = {}
        group_names = self.store.project_group_names(project.id)

        icon_path = None
        if project.icon:
            icon_folder = allocate_path("icon", attachments.keys())
            icon_path = f"{icon_folder}/{PROJECT_ICON_FILENAME}"
            attachments[icon_path] = project.icon

        environments = {}
        enabled = project.enabled_environments()
        for index, env in enumerate(enabled):
            environments[ENVIRONMENT_FIELDS[env]] = self._export_env(
                project, env, enabled[:index], group_names, attachments
            )

        document = ProjectSchema(project_name=project.name, project_icon=icon_path, **environments)
        return ProjectExport(folder=folder, document=document, attachments=attachments)

    # ------------------------------------------------------------------
    # Environments and groups
    # ------------------------------------------------------------------

    def _export_env(self, project: Project, env: EnvironmentType,
                    earlier_envs: List[EnvironmentType], group_names: List[str],
                    attachments: Dict[str, bytes]) -> ProjectEnvSchema:
        items = self._export_group(project, env, earlier_envs, None, attachments)
        items_in_groups = {
            name: self._export_group(project, env, earlier_envs, name, attachments)
            for name in group_names
        }
        return ProjectEnvSchema(items=items, items_in_groups=items_in_groups)

    def _export_group(self, project: Project, env: EnvironmentType,
                      earlier_envs: List[EnvironmentType], group_name: Optional[str],
                      attachments: Dict[str, bytes]) -> ProjectGroupSchema:
        store = self.store
        is_first_env = not earlier_envs
        return ProjectGroupSchema(
            servers=[
                self._export_server(server, attachments)
                for server in store.servers(project.id, env, group_name)
            ],
            server_links=[
                self._export_link(link)
                for link in store.server_links(project.id, env, group_name)
            ],
            project_pois=[
                _project_poi(poi, is_first_env)
                for poi in store.project_pois(project.id, group_name)
            ],
            project_notes=[
                _project_note(note, earlier_envs)
                for note in store.project_notes(project.id, env, group_name)
            ],
        )

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    def _export_server(self, server: Server,
                       attachments: Dict[str, bytes]) -> ServerWithItemsSchema:
        data_folder = None
        if server.auth_key:
            data_folder = add_attachment(attachments, server.desc, server.id,
                                         server.auth_key_filename or "", server.auth_key)
        schema = ServerSchema(
            id=None if server.desc else server.id,
            desc=server.desc,
            ip=server.ip,
            text=server.text,
            is_retired=server.is_retired,
            username=server.username,
            password=server.password,
            data_folder=data_folder,
            auth_key_filename=server.auth_key_filename if data_folder else None,
            server_type=server.server_type,
            access_type=server.access_type,
            ssh_tunnel_port=server.ssh_tunnel_port,
        )
        items = self._export_server_items(server, None, attachments)
        items_in_groups = {
            name: self._export_server_items(server, name, attachments)
            for name in self.store.server_group_names(server.id)
        }
        return ServerWithItemsSchema(server=schema, items=items, items_in_groups=items_in_groups)

    def _export_server_items(self, server: Server, group_name: Optional[str],
                             attachments: Dict[str, bytes]) -> ServerGroupSchema:
        store = self.store
        return ServerGroupSchema(
            server_pois=[
                ServerPoiSchema(desc=poi.desc, path=poi.path, text=poi.text,
                                interest_type=poi.interest_type, run_on=poi.run_on)
                for poi in store.server_pois(server.id, group_name)
            ],
            server_websites=[
                self._export_website(www)
                for www in store.server_websites(server.id, group_name)
            ],
            server_databases=[
                _server_database(db) for db in store.server_databases(server.id, group_name)
            ],
            server_notes=[
                ServerNoteSchema(title=note.title, contents=note.contents)
                for note in store.server_notes(server.id, group_name)
            ],
            server_extra_users=[
                _extra_user(user, attachments)
                for user in store.server_extra_users(server.id, group_name)
            ],
        )

    def _export_website(self, website: ServerWebsite) -> ServerWebsiteSchema:
        db_path = None
        if website.server_database_id is not None:
            database = self.store.get_database(website.server_database_id)
            db_server = database.server
            db_path = database_path(database, db_server, db_server.project.name)
        return ServerWebsiteSchema(
            desc=website.desc,
            url=website.url,
            text=website.text,
            username=website.username,
            password=website.password,
            server_database=db_path,
        )

    def _export_link(self, link: ServerLink) -> ServerLinkSchema:
        target = link.linked_server
        return ServerLinkSchema(desc=link.desc, server=server_path(target, target.project.name))


def _server_database(database: ServerDatabase) -> ServerDatabaseSchema:
    return ServerDatabaseSchema(
        id=None if database.desc else database.id,
        desc=database.desc,
        name=database.name,
        text=database.text,
        username=database.username,
        password=database.password,
    )


def _extra_user(user: ServerExtraUserAccount,
                attachments: Dict[str, bytes]) -> ServerExtraUserSchema:
    data_folder = None
    if user.auth_key:
        data_folder = add_attachment(attachments, user.desc or user.username, user.id,
                                     user.auth_key_filename or "", user.auth_key)
    return ServerExtraUserSchema(
        desc=user.desc,
        username=user.username,
        password=user.password,
        data_folder=data_folder,
        auth_key_filename=user.auth_key_filename if data_folder else None,
    )


def _project_poi(poi: ProjectPointOfInterest, is_first_env: bool) -> ProjectPoiSchema:
    if not is_first_env:
        return ProjectPoiSchema(shared_with_other_environments=poi.desc or poi.text)
    return ProjectPoiSchema(desc=poi.desc, path=poi.path, text=poi.text,
                            interest_type=poi.interest_type)


def _project_note(note: ProjectNote, earlier_envs: List[EnvironmentType]) -> ProjectNoteSchema:
    # the full note goes with the first environment it is active in
    if any(getattr(note, ENV_FLAG_COLUMNS[env]) for env in earlier_envs):
        return ProjectNoteSchema(shared_with_other_environments=note.title)
    return ProjectNoteSchema(title=note.title, contents=note.contents)
