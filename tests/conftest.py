"""
Shared fixtures: every test gets its own SQLite database file.
"""

import os

# keep the module-level engine away from the user's real database
os.environ.setdefault("INFRAPAD_DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy.orm import sessionmaker

from infrapad.database.engine import build_engine
from infrapad.database.models import (
    Base, EnvironmentType, Project, Server, ServerDatabase, ServerLink, ServerWebsite,
)
from infrapad.database.repository import Store


def make_session_factory(db_path):
    engine = build_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session_factory(tmp_path):
    return make_session_factory(tmp_path / "source.db")


@pytest.fixture
def target_session_factory(tmp_path):
    return make_session_factory(tmp_path / "target.db")


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(session):
    return Store(session)


def add_project(store, name, envs=(EnvironmentType.ENV_PROD,), **kwargs):
    flags = {
        "has_dev": EnvironmentType.ENV_DEVELOPMENT in envs,
        "has_stage": EnvironmentType.ENV_STAGE in envs,
        "has_uat": EnvironmentType.ENV_UAT in envs,
        "has_prod": EnvironmentType.ENV_PROD in envs,
    }
    return store.insert(Project(name=name, **flags, **kwargs))


def add_server(store, project, desc, env=EnvironmentType.ENV_PROD, **kwargs):
    return store.insert(Server(desc=desc, environment=env, project_id=project.id, **kwargs))


def add_link(store, project, target, desc="link", env=EnvironmentType.ENV_PROD, **kwargs):
    return store.insert(ServerLink(
        desc=desc, linked_server_id=target.id, environment=env, project_id=project.id, **kwargs
    ))


def add_database(store, server, desc, **kwargs):
    return store.insert(ServerDatabase(desc=desc, server_id=server.id, **kwargs))


def add_website(store, server, desc, database=None, **kwargs):
    return store.insert(ServerWebsite(
        desc=desc, server_id=server.id,
        server_database_id=database.id if database is not None else None, **kwargs
    ))
