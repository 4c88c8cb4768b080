"""
Pydantic schemas for the portable project document.

These models are the serializable projections of store rows that travel
inside an export archive. They never carry store ids, except where a
referenced entity has no description and its id is the only way to address
it (see ``ServerPath``).

``to_document()`` renders a model as the plain dict written to the archive:
empty strings, ``None``, ``False`` and empty collections are left out, unless
the field is listed in ``_always``. Reading goes through ``model_validate``.
"""

from enum import Enum
from typing import ClassVar, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from infrapad.core.settings import (
    DEVELOPMENT_KEY, PROD_KEY, SHARED_MARKER_KEY, STAGING_KEY, UAT_KEY,
)
from infrapad.database.models import (
    EnvironmentType, InterestType, RunOn, ServerAccessType, ServerType,
)


def _is_empty(value) -> bool:
    return value is None or value is False or value == "" or value == [] or value == {}


def _to_plain(value):
    if isinstance(value, DocumentModel):
        return value.to_document()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    return value


class DocumentModel(BaseModel):
    """Base schema for everything written to a project document."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    _always: ClassVar[Tuple[str, ...]] = ()

    def to_document(self) -> dict:
        data = {}
        for name, value in self:
            if name not in self._always and _is_empty(value):
                continue
            data[name] = _to_plain(value)
        return data


# ---------------------------------------------------------------------------
# Cross-entity addresses
# ---------------------------------------------------------------------------

class ServerPath(DocumentModel):
    """Address of a server: by description when it has one, else by id."""
    _always: ClassVar[Tuple[str, ...]] = ("project_name", "environment")

    project_name: str
    environment: EnvironmentType
    server_id: Optional[int] = None
    server_desc: Optional[str] = None


class ServerDatabasePath(ServerPath):
    """Address of a database, nested under its server's address."""
    database_id: Optional[int] = None
    database_desc: Optional[str] = None


# ---------------------------------------------------------------------------
# Server sub-items
# ---------------------------------------------------------------------------

class ServerPoiSchema(DocumentModel):
    _always: ClassVar[Tuple[str, ...]] = ("interest_type", "run_on")

    desc: str = ""
    path: str = ""
    text: str = ""
    interest_type: InterestType = InterestType.POI_APPLICATION
    run_on: RunOn = RunOn.RUN_ON_SERVER


class ServerWebsiteSchema(DocumentModel):
    desc: str = ""
    url: str = ""
    text: str = ""
    username: str = ""
    password: str = ""
    server_database: Optional[ServerDatabasePath] = None


class ServerDatabaseSchema(DocumentModel):
    # id is only written when desc is empty, so websites can still point here
    id: Optional[int] = None
    desc: str = ""
    name: str = ""
    text: str = ""
    username: str = ""
    password: str = ""


class ServerNoteSchema(DocumentModel):
    title: str = ""
    contents: str = ""


class ServerExtraUserSchema(DocumentModel):
    desc: str = ""
    username: str = ""
    password: str = ""
    # folder of the auth key inside the project folder of the archive
    data_folder: Optional[str] = None
    auth_key_filename: Optional[str] = None


class ServerGroupSchema(DocumentModel):
    """Server sub-items belonging to one group of a server."""
    server_pois: List[ServerPoiSchema] = Field(default_factory=list)
    server_websites: List[ServerWebsiteSchema] = Field(default_factory=list)
    server_databases: List[ServerDatabaseSchema] = Field(default_factory=list)
    server_notes: List[ServerNoteSchema] = Field(default_factory=list)
    server_extra_users: List[ServerExtraUserSchema] = Field(default_factory=list)

    def dependency_project_names(self) -> Set[str]:
        return {
            www.server_database.project_name
            for www in self.server_websites
            if www.server_database is not None
        }


class ServerSchema(DocumentModel):
    _always: ClassVar[Tuple[str, ...]] = ("server_type", "access_type")

    id: Optional[int] = None
    desc: str = ""
    ip: str = ""
    text: str = ""
    is_retired: bool = False
    username: str = ""
    password: str = ""
    data_folder: Optional[str] = None
    auth_key_filename: Optional[str] = None
    server_type: ServerType = ServerType.SRV_APPLICATION
    access_type: ServerAccessType = ServerAccessType.SRV_ACCESS_SSH
    ssh_tunnel_port: Optional[int] = None


class ServerWithItemsSchema(DocumentModel):
    _always: ClassVar[Tuple[str, ...]] = ("server", "items")

    server: ServerSchema
    items: ServerGroupSchema = Field(default_factory=ServerGroupSchema)
    items_in_groups: Dict[str, ServerGroupSchema] = Field(default_factory=dict)

    def groups(self):
        """(group name, items) pairs, the ungrouped scope first."""
        yield None, self.items
        yield from self.items_in_groups.items()

    def dependency_project_names(self) -> Set[str]:
        deps = set()
        for _, items in self.groups():
            deps.update(items.dependency_project_names())
        return deps


# ---------------------------------------------------------------------------
# Project-level items
# ---------------------------------------------------------------------------

class ServerLinkSchema(DocumentModel):
    _always: ClassVar[Tuple[str, ...]] = ("server",)

    desc: str = ""
    server: ServerPath


class ProjectPoiSchema(DocumentModel):
    """
    A project POI belongs to the project, not to one environment. It is
    written in full for the first enabled environment; the following ones
    only carry the marker, holding desc (or text when desc is empty).
    """
    desc: str = ""
    path: str = ""
    text: str = ""
    interest_type: InterestType = InterestType.POI_APPLICATION
    shared_with_other_environments: Optional[str] = None

    @property
    def is_shared_marker(self) -> bool:
        return self.shared_with_other_environments is not None

    def to_document(self) -> dict:
        if self.is_shared_marker:
            return {SHARED_MARKER_KEY: self.shared_with_other_environments}
        data = {k: v for k, v in (("desc", self.desc), ("path", self.path), ("text", self.text)) if v}
        data["interest_type"] = self.interest_type.value
        return data


class ProjectNoteSchema(DocumentModel):
    """
    A project note may be active in several environments. Only its first
    occurrence carries the contents; later ones are a marker with the title.
    """
    title: str = ""
    contents: str = ""
    shared_with_other_environments: Optional[str] = None

    @property
    def is_shared_marker(self) -> bool:
        return self.shared_with_other_environments is not None

    def to_document(self) -> dict:
        if self.is_shared_marker:
            return {SHARED_MARKER_KEY: self.shared_with_other_environments}
        return {k: v for k, v in (("title", self.title), ("contents", self.contents)) if v}


class ProjectGroupSchema(DocumentModel):
    """Everything of one project in one (environment, group) scope."""
    servers: List[ServerWithItemsSchema] = Field(default_factory=list)
    server_links: List[ServerLinkSchema] = Field(default_factory=list)
    project_pois: List[ProjectPoiSchema] = Field(default_factory=list)
    project_notes: List[ProjectNoteSchema] = Field(default_factory=list)

    def dependency_project_names(self) -> Set[str]:
        deps = {link.server.project_name for link in self.server_links}
        for server in self.servers:
            deps.update(server.dependency_project_names())
        return deps


class ProjectEnvSchema(DocumentModel):
    _always: ClassVar[Tuple[str, ...]] = ("items",)

    items: ProjectGroupSchema = Field(default_factory=ProjectGroupSchema)
    items_in_groups: Dict[str, ProjectGroupSchema] = Field(default_factory=dict)

    def groups(self):
        """(group name, items) pairs, the ungrouped scope first."""
        yield None, self.items
        yield from self.items_in_groups.items()

    def dependency_project_names(self) -> Set[str]:
        deps = set()
        for _, items in self.groups():
            deps.update(items.dependency_project_names())
        return deps


ENVIRONMENT_FIELDS = {
    EnvironmentType.ENV_DEVELOPMENT: DEVELOPMENT_KEY,
    EnvironmentType.ENV_STAGE: STAGING_KEY,
    EnvironmentType.ENV_UAT: UAT_KEY,
    EnvironmentType.ENV_PROD: PROD_KEY,
}


class ProjectSchema(DocumentModel):
    """Root of one exported project document."""
    _always: ClassVar[Tuple[str, ...]] = ("project_name",)

    project_name: str
    # path, relative to the project folder, of the icon file
    project_icon: Optional[str] = None
    development_environment: Optional[ProjectEnvSchema] = None
    staging_environment: Optional[ProjectEnvSchema] = None
    uat_environment: Optional[ProjectEnvSchema] = None
    prod_environment: Optional[ProjectEnvSchema] = None

    def environment(self, env: EnvironmentType) -> Optional[ProjectEnvSchema]:
        return getattr(self, ENVIRONMENT_FIELDS[env])

    def environments(self):
        """(environment, contents) for each environment present, in order."""
        for env in EnvironmentType:
            contents = self.environment(env)
            if contents is not None:
                yield env, contents

    def dependency_project_names(self) -> Set[str]:
        """Names of the projects this one links into (may include itself)."""
        deps = set()
        for _, contents in self.environments():
            deps.update(contents.dependency_project_names())
        return deps
