"""
Tests for importing project documents into a store.

Projects are exported from one SQLite database, staged on disk with the
archive layout and imported into another database, without the 7z step.
"""

import pytest
from sqlalchemy import func, select

from conftest import add_database, add_link, add_project, add_server, add_website

from infrapad.database.models import (
    EnvironmentType, Project, ProjectNote, ProjectPointOfInterest, Server, ServerDatabase,
    ServerExtraUserAccount, ServerLink, ServerNote, ServerPointOfInterest, ServerWebsite,
)
from infrapad.database.repository import Store
from infrapad.database.session import transaction
from infrapad.schemas.transfer import (
    ProjectEnvSchema, ProjectGroupSchema, ProjectSchema, ServerSchema, ServerWithItemsSchema,
)
from infrapad.transfer.archive import read_project_documents, stage_export
from infrapad.transfer.errors import ArchiveError, ProjectExistsError
from infrapad.transfer.export_planner import ExportPlanner
from infrapad.transfer.import_pipeline import ImportPipeline

DEV = EnvironmentType.ENV_DEVELOPMENT
STAGE = EnvironmentType.ENV_STAGE
PROD = EnvironmentType.ENV_PROD


def transfer(source_store, names, staging, target_session_factory):
    plan = ExportPlanner(source_store).plan(names)
    staging.mkdir()
    stage_export(plan, staging)
    with transaction(target_session_factory) as session:
        return ImportPipeline(Store(session)).run(read_project_documents(staging))


def count(session, model):
    return session.scalar(select(func.count(model.id)))


def build_full_project(store):
    project = add_project(store, "shop", envs=(DEV, PROD), icon=b"<svg/>")
    web = add_server(store, project, "web", ip="10.0.0.1", username="root", password="pw",
                     text="main\nserver", auth_key=b"KEY", auth_key_filename="id_rsa")
    db_host = add_server(store, project, "db", group_name="Data")
    database = add_database(store, db_host, "orders", name="orders_db", username="app")
    add_website(store, web, "storefront", database, url="https://shop.example")
    add_website(store, web, "admin", group_name="Admin", url="https://admin.example")
    store.insert(ServerPointOfInterest(desc="logs", path="/var/log/shop", server_id=web.id))
    store.insert(ServerNote(title="deploy", contents="1. pull\n2. restart\n", server_id=web.id))
    store.insert(ServerExtraUserAccount(desc="deployer", username="deploy", password="x",
                                        auth_key=b"KEY2", auth_key_filename="deploy.pem",
                                        server_id=web.id))
    # links resolve against servers imported before them: dev comes first
    dev_web = add_server(store, project, "dev web", env=DEV)
    add_link(store, project, dev_web, desc="dev link")
    store.insert(ProjectNote(title="Contacts", contents="ops@example", has_dev=True,
                             has_prod=True, project_id=project.id))
    store.insert(ProjectPointOfInterest(desc="repo", path="git@example:shop.git",
                                        project_id=project.id))
    store.session.commit()
    return project


def test_round_trip_reproduces_documents(store, tmp_path, target_session_factory):
    build_full_project(store)
    report = transfer(store, ["shop"], tmp_path / "staging", target_session_factory)
    assert report.imported_projects == ["shop"]
    assert report.omissions == []

    source_export = ExportPlanner(store).plan(["shop"]).projects[0]
    with transaction(target_session_factory) as session:
        reimported = ExportPlanner(Store(session)).plan(["shop"]).projects[0]

    assert reimported.document == source_export.document
    assert reimported.attachments == source_export.attachments


def test_round_trip_rows(store, tmp_path, target_session_factory):
    build_full_project(store)
    transfer(store, ["shop"], tmp_path / "staging", target_session_factory)

    with transaction(target_session_factory) as session:
        project = session.scalar(select(Project).where(Project.name == "shop"))
        assert project.icon == b"<svg/>"
        assert (project.has_dev, project.has_stage, project.has_uat, project.has_prod) == \
            (True, False, False, True)
        assert count(session, Server) == 3
        assert count(session, ServerPointOfInterest) == 1
        assert count(session, ProjectPointOfInterest) == 1

        web = session.scalar(select(Server).where(Server.desc == "web"))
        assert web.auth_key == b"KEY"
        assert web.text == "main\nserver"
        assert web.extra_users[0].auth_key == b"KEY2"
        assert web.notes[0].contents == "1. pull\n2. restart\n"

        storefront = session.scalar(select(ServerWebsite).where(ServerWebsite.desc == "storefront"))
        assert storefront.server_database.name == "orders_db"
        admin = session.scalar(select(ServerWebsite).where(ServerWebsite.desc == "admin"))
        assert admin.group_name == "Admin"

        link = session.scalar(select(ServerLink))
        assert link.linked_server.desc == "dev web"
        assert link.linked_server.project_id == project.id


def test_shared_note_flags_are_preserved_on_one_row(store, tmp_path, target_session_factory):
    project = add_project(store, "alpha", envs=(DEV, STAGE, PROD))
    store.insert(ProjectNote(title="Shared", contents="c", has_stage=True, has_prod=True,
                             project_id=project.id, group_name="G"))
    store.session.commit()

    transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    with transaction(target_session_factory) as session:
        notes = list(session.scalars(select(ProjectNote)))
        assert len(notes) == 1
        note = notes[0]
        assert (note.has_dev, note.has_stage, note.has_uat, note.has_prod) == \
            (False, True, False, True)
        assert note.group_name == "G"


def test_dangling_link_is_omitted(store, tmp_path, target_session_factory):
    alpha = add_project(store, "alpha")
    beta = add_project(store, "beta")
    add_link(store, alpha, add_server(store, beta, "elsewhere"), desc="outside")
    add_server(store, alpha, "own")
    store.session.commit()

    report = transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    assert report.imported_projects == ["alpha"]
    assert len(report.omissions) == 1
    assert "outside" in report.omissions[0]
    with transaction(target_session_factory) as session:
        assert count(session, ServerLink) == 0
        assert count(session, Server) == 1


def test_links_between_imported_projects_are_resolved(store, tmp_path, target_session_factory):
    # "a_front" sorts first on disk but links into "b_back"
    front = add_project(store, "a_front")
    back = add_project(store, "b_back")
    back_server = add_server(store, back, "api")
    add_link(store, front, back_server, desc="backend")
    database = add_database(store, back_server, "main")
    add_website(store, add_server(store, front, "www"), "site", database)
    store.session.commit()

    report = transfer(store, ["a_front", "b_back"], tmp_path / "staging", target_session_factory)

    assert report.imported_projects == ["b_back", "a_front"]
    assert report.omissions == []
    with transaction(target_session_factory) as session:
        link = session.scalar(select(ServerLink))
        assert link.linked_server.project.name == "b_back"
        site = session.scalar(select(ServerWebsite))
        assert site.server_database.desc == "main"


def test_link_to_existing_project_in_destination(store, tmp_path, target_session_factory):
    alpha = add_project(store, "alpha")
    beta = add_project(store, "beta")
    add_link(store, alpha, add_server(store, beta, "shared-db"))
    store.session.commit()

    with transaction(target_session_factory) as session:
        target = Store(session)
        add_server(target, add_project(target, "beta"), "shared-db")

    report = transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    assert report.omissions == []
    with transaction(target_session_factory) as session:
        link = session.scalar(select(ServerLink))
        assert link.linked_server.project.name == "beta"


def test_existing_project_aborts_the_whole_import(store, tmp_path, target_session_factory):
    add_project(store, "alpha")
    add_server(store, add_project(store, "beta"), "srv")
    store.session.commit()

    with transaction(target_session_factory) as session:
        add_project(Store(session), "beta")

    with pytest.raises(ProjectExistsError) as exc_info:
        transfer(store, ["alpha", "beta"], tmp_path / "staging", target_session_factory)
    assert exc_info.value.project_name == "beta"

    with transaction(target_session_factory) as session:
        names = list(session.scalars(select(Project.name)))
        assert names == ["beta"]
        assert count(session, Server) == 0


def test_missing_database_keeps_website_without_link(store, tmp_path, target_session_factory):
    alpha = add_project(store, "alpha")
    other = add_project(store, "other")
    database = add_database(store, add_server(store, other, "db"), "main")
    add_website(store, add_server(store, alpha, "web"), "site", database)
    store.session.commit()

    report = transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    assert len(report.omissions) == 1
    with transaction(target_session_factory) as session:
        site = session.scalar(select(ServerWebsite))
        assert site.desc == "site"
        assert site.server_database_id is None
        assert count(session, ServerDatabase) == 0


def test_link_by_id_accepts_any_row_with_that_id(store, tmp_path, target_session_factory):
    alpha = add_project(store, "alpha")
    anonymous = add_server(store, add_project(store, "beta"), "")
    add_link(store, alpha, anonymous, desc="by id")
    store.session.commit()

    with transaction(target_session_factory) as session:
        target = Store(session)
        unrelated = add_server(target, add_project(target, "zeta"), "unrelated")
        assert unrelated.id == anonymous.id

    report = transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    assert report.omissions == []
    with transaction(target_session_factory) as session:
        link = session.scalar(select(ServerLink))
        assert link.linked_server.desc == "unrelated"


def test_link_to_server_of_same_scope_is_omitted(store, tmp_path, target_session_factory):
    # links are created before the servers of their own environment and group
    project = add_project(store, "alpha")
    add_link(store, project, add_server(store, project, "web"), desc="same scope")
    store.session.commit()

    report = transfer(store, ["alpha"], tmp_path / "staging", target_session_factory)

    assert len(report.omissions) == 1
    assert "same scope" in report.omissions[0]
    with transaction(target_session_factory) as session:
        assert count(session, ServerLink) == 0
        assert count(session, Server) == 1


@pytest.mark.parametrize("data_folder", ["../outside", "/absolute"])
def test_attachment_outside_archive_is_rejected(tmp_path, target_session_factory, data_folder):
    import_folder = tmp_path / "extracted" / "alpha"
    import_folder.mkdir(parents=True)
    outside = tmp_path / "extracted" / "outside"
    outside.mkdir()
    (outside / "id_rsa").write_bytes(b"HOST PRIVATE KEY")
    if data_folder.startswith("/"):
        data_folder = str(outside)

    project = ProjectSchema(
        project_name="alpha",
        prod_environment=ProjectEnvSchema(items=ProjectGroupSchema(servers=[
            ServerWithItemsSchema(server=ServerSchema(
                desc="web", data_folder=data_folder, auth_key_filename="id_rsa",
            )),
        ])),
    )

    with pytest.raises(ArchiveError):
        with transaction(target_session_factory) as session:
            ImportPipeline(Store(session)).run([(project, import_folder)])

    with transaction(target_session_factory) as session:
        assert count(session, Project) == 0
        assert count(session, Server) == 0


def test_icon_outside_archive_is_rejected(tmp_path, target_session_factory):
    import_folder = tmp_path / "alpha"
    import_folder.mkdir()
    (tmp_path / "secret.svg").write_bytes(b"<svg/>")
    project = ProjectSchema(project_name="alpha", project_icon="../secret.svg")

    with pytest.raises(ArchiveError):
        with transaction(target_session_factory) as session:
            ImportPipeline(Store(session)).run([(project, import_folder)])
