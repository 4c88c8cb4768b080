# src/infrapad/database/models.py

import enum

from sqlalchemy import Column, String, ForeignKey, Text, Integer, Boolean, LargeBinary, Enum
from sqlalchemy.orm import relationship, declarative_base

# Create the base class for SQLAlchemy models
Base = declarative_base()


class EnvironmentType(str, enum.Enum):
    """Deployment environment. Declaration order is the export/import order."""
    ENV_DEVELOPMENT = "EnvDevelopment"
    ENV_STAGE = "EnvStage"
    ENV_UAT = "EnvUat"
    ENV_PROD = "EnvProd"


class ServerType(str, enum.Enum):
    SRV_APPLICATION = "SrvApplication"
    SRV_DATABASE = "SrvDatabase"
    SRV_HTTP_OR_PROXY = "SrvHttpOrProxy"
    SRV_MONITORING = "SrvMonitoring"
    SRV_REPORTING = "SrvReporting"


class ServerAccessType(str, enum.Enum):
    SRV_ACCESS_SSH = "SrvAccessSsh"
    SRV_ACCESS_RDP = "SrvAccessRdp"
    SRV_ACCESS_WWW = "SrvAccessWww"
    SRV_ACCESS_SSH_TUNNEL = "SrvAccessSshTunnel"


class InterestType(str, enum.Enum):
    POI_APPLICATION = "PoiApplication"
    POI_LOG_FILE = "PoiLogFile"
    POI_CONFIG_FILE = "PoiConfigFile"
    POI_COMMAND_TO_RUN = "PoiCommandToRun"
    POI_COMMAND_TERMINAL = "PoiCommandTerminal"
    POI_BACKUP_ARCHIVE = "PoiBackupArchive"


class RunOn(str, enum.Enum):
    RUN_ON_SERVER = "RunOnServer"
    RUN_ON_CLIENT = "RunOnClient"


def _enum_column(enum_cls, **kwargs):
    # store the enum *values* (EnvDevelopment...), not the python member names
    return Column(
        Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False),
        **kwargs,
    )


class Project(Base):
    """Top-level container; each environment is enabled independently."""
    __tablename__ = "project"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    icon = Column(LargeBinary, nullable=True)
    has_dev = Column(Boolean, nullable=False, default=False)
    has_stage = Column(Boolean, nullable=False, default=False)
    has_uat = Column(Boolean, nullable=False, default=False)
    has_prod = Column(Boolean, nullable=False, default=False)

    servers = relationship("Server", back_populates="project", cascade="all, delete-orphan")
    server_links = relationship("ServerLink", back_populates="project", cascade="all, delete-orphan")
    notes = relationship("ProjectNote", back_populates="project", cascade="all, delete-orphan")
    points_of_interest = relationship(
        "ProjectPointOfInterest", back_populates="project", cascade="all, delete-orphan"
    )

    def has_env(self, env: EnvironmentType) -> bool:
        return bool(getattr(self, ENV_FLAG_COLUMNS[env]))

    def enabled_environments(self):
        return [env for env in EnvironmentType if self.has_env(env)]


class Server(Base):
    __tablename__ = "server"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    ip = Column(String, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    is_retired = Column(Boolean, nullable=False, default=False)
    username = Column(String, nullable=False, default="")
    password = Column(String, nullable=False, default="")
    auth_key = Column(LargeBinary, nullable=True)
    auth_key_filename = Column(String, nullable=True)
    server_type = _enum_column(ServerType, nullable=False, default=ServerType.SRV_APPLICATION)
    access_type = _enum_column(ServerAccessType, nullable=False, default=ServerAccessType.SRV_ACCESS_SSH)
    ssh_tunnel_port = Column(Integer, nullable=True)
    ssh_tunnel_through_server_id = Column(Integer, ForeignKey("server.id"), nullable=True)
    environment = _enum_column(EnvironmentType, nullable=False)
    group_name = Column(String, nullable=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="servers")
    websites = relationship(
        "ServerWebsite", back_populates="server", cascade="all, delete-orphan",
        foreign_keys="[ServerWebsite.server_id]",
    )
    databases = relationship("ServerDatabase", back_populates="server", cascade="all, delete-orphan")
    notes = relationship("ServerNote", back_populates="server", cascade="all, delete-orphan")
    points_of_interest = relationship(
        "ServerPointOfInterest", back_populates="server", cascade="all, delete-orphan"
    )
    extra_users = relationship(
        "ServerExtraUserAccount", back_populates="server", cascade="all, delete-orphan"
    )


class ServerWebsite(Base):
    __tablename__ = "server_website"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    url = Column(String, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    username = Column(String, nullable=False, default="")
    password = Column(String, nullable=False, default="")
    server_database_id = Column(Integer, ForeignKey("server_database.id"), nullable=True)
    group_name = Column(String, nullable=True)
    server_id = Column(Integer, ForeignKey("server.id"), nullable=False)

    server = relationship("Server", back_populates="websites", foreign_keys=[server_id])
    server_database = relationship("ServerDatabase", foreign_keys=[server_database_id])


class ServerDatabase(Base):
    __tablename__ = "server_database"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    name = Column(String, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    username = Column(String, nullable=False, default="")
    password = Column(String, nullable=False, default="")
    group_name = Column(String, nullable=True)
    server_id = Column(Integer, ForeignKey("server.id"), nullable=False)

    server = relationship("Server", back_populates="databases")


class ServerNote(Base):
    __tablename__ = "server_note"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False, default="")
    contents = Column(Text, nullable=False, default="")
    group_name = Column(String, nullable=True)
    server_id = Column(Integer, ForeignKey("server.id"), nullable=False)

    server = relationship("Server", back_populates="notes")


class ServerPointOfInterest(Base):
    __tablename__ = "server_point_of_interest"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    path = Column(String, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    interest_type = _enum_column(InterestType, nullable=False, default=InterestType.POI_APPLICATION)
    run_on = _enum_column(RunOn, nullable=False, default=RunOn.RUN_ON_SERVER)
    group_name = Column(String, nullable=True)
    server_id = Column(Integer, ForeignKey("server.id"), nullable=False)

    server = relationship("Server", back_populates="points_of_interest")


class ServerExtraUserAccount(Base):
    __tablename__ = "server_extra_user_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    username = Column(String, nullable=False, default="")
    password = Column(String, nullable=False, default="")
    auth_key = Column(LargeBinary, nullable=True)
    auth_key_filename = Column(String, nullable=True)
    group_name = Column(String, nullable=True)
    server_id = Column(Integer, ForeignKey("server.id"), nullable=False)

    server = relationship("Server", back_populates="extra_users")


class ServerLink(Base):
    """Project-level pointer to a server, possibly in another project."""
    __tablename__ = "server_link"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    linked_server_id = Column(Integer, ForeignKey("server.id"), nullable=False)
    environment = _enum_column(EnvironmentType, nullable=False)
    group_name = Column(String, nullable=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False)

    project = relationship("Project", back_populates="server_links")
    linked_server = relationship("Server", foreign_keys=[linked_server_id])


class ProjectNote(Base):
    """A project note; one row may be active in several environments."""
    __tablename__ = "project_note"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False, default="")
    contents = Column(Text, nullable=False, default="")
    has_dev = Column(Boolean, nullable=False, default=False)
    has_stage = Column(Boolean, nullable=False, default=False)
    has_uat = Column(Boolean, nullable=False, default=False)
    has_prod = Column(Boolean, nullable=False, default=False)
    group_name = Column(String, nullable=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False)

    project = relationship("Project", back_populates="notes")


class ProjectPointOfInterest(Base):
    __tablename__ = "project_point_of_interest"

    id = Column(Integer, primary_key=True, autoincrement=True)
    desc = Column(String, nullable=False, default="")
    path = Column(String, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    interest_type = _enum_column(InterestType, nullable=False, default=InterestType.POI_APPLICATION)
    group_name = Column(String, nullable=True)
    project_id = Column(Integer, ForeignKey("project.id"), nullable=False)

    project = relationship("Project", back_populates="points_of_interest")


# Column holding the per-environment flag of a project or project note
ENV_FLAG_COLUMNS = {
    EnvironmentType.ENV_DEVELOPMENT: "has_dev",
    EnvironmentType.ENV_STAGE: "has_stage",
    EnvironmentType.ENV_UAT: "has_uat",
    EnvironmentType.ENV_PROD: "has_prod",
}
