"""
Tests for the transfer service entry points, with the archive step replaced
by a plain staging folder.
"""

import contextlib
from unittest.mock import patch

import pytest
from sqlalchemy import select

from conftest import add_link, add_project, add_server

from infrapad.core.config import Settings
from infrapad.database.models import Project
from infrapad.transfer.archive import read_project_documents, stage_export
from infrapad.transfer.errors import NoProjectsToExportError, ProjectExistsError
from infrapad.transfer.service import TransferService


@pytest.fixture
def staging(tmp_path):
    folder = tmp_path / "staging"
    folder.mkdir()
    return folder


@pytest.fixture
def fake_archive(staging):
    """Write and read "archives" as plain folders."""
    calls = {}

    def fake_write(plan, archive_path, password=None):
        calls["password"] = password
        stage_export(plan, staging)
        return archive_path

    @contextlib.contextmanager
    def fake_extract(archive_path, password=None):
        yield read_project_documents(staging)

    with patch("infrapad.transfer.service.write_archive", side_effect=fake_write), \
            patch("infrapad.transfer.service.extracted_projects", side_effect=fake_extract):
        yield calls


def test_export_then_import(store, session_factory, target_session_factory, fake_archive):
    alpha = add_project(store, "alpha")
    beta = add_project(store, "beta")
    add_link(store, alpha, add_server(store, beta, "outside"))
    store.session.commit()

    report = TransferService(session_factory).export_projects(["alpha"], "out.7z", "pw")

    assert report.exported_projects == ["alpha"]
    assert report.unresolved_dependencies == ["beta"]
    assert fake_archive["password"] == "pw"

    imported = TransferService(target_session_factory).import_archive("out.7z", "pw")
    assert imported.imported_projects == ["alpha"]
    assert len(imported.omissions) == 1


def test_configured_password_is_used_by_default(store, session_factory, fake_archive):
    add_project(store, "alpha")
    store.session.commit()

    with patch.object(Settings, "get_archive_password", return_value="stored"):
        TransferService(session_factory).export_projects(["alpha"], "out.7z")

    assert fake_archive["password"] == "stored"


def test_failed_import_leaves_destination_unchanged(store, session_factory,
                                                   target_session_factory, fake_archive):
    add_project(store, "alpha")
    add_project(store, "beta")
    store.session.commit()
    TransferService(session_factory).export_projects(["alpha", "beta"], "out.7z", "")

    session = target_session_factory()
    session.add(Project(name="beta", has_dev=False, has_stage=False, has_uat=False,
                        has_prod=True))
    session.commit()
    session.close()

    with pytest.raises(ProjectExistsError):
        TransferService(target_session_factory).import_archive("out.7z", "")

    session = target_session_factory()
    try:
        assert list(session.scalars(select(Project.name))) == ["beta"]
    finally:
        session.close()


def test_export_without_matches_leaves_archive_alone(store, session_factory, tmp_path):
    add_project(store, "alpha")
    store.session.commit()
    archive_path = tmp_path / "backup.7z"
    archive_path.write_bytes(b"previous backup")

    with patch("infrapad.transfer.archive.subprocess.run") as run:
        with pytest.raises(NoProjectsToExportError) as exc_info:
            TransferService(session_factory).export_projects(["typo"], archive_path, "pw")

    assert exc_info.value.project_names == ["typo"]
    run.assert_not_called()
    assert archive_path.read_bytes() == b"previous backup"
