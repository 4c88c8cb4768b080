"""
Transfer Service for infrapad

Entry points for exporting projects to an encrypted archive and importing
such an archive into the inventory database.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from infrapad.core.config import settings
from infrapad.database.repository import Store
from infrapad.database.session import SessionLocal, get_session, transaction
from infrapad.transfer.archive import extracted_projects, write_archive
from infrapad.transfer.errors import NoProjectsToExportError
from infrapad.transfer.export_planner import ExportPlanner
from infrapad.transfer.import_pipeline import ImportPipeline, ImportReport

logger = logging.getLogger(__name__)


class ExportReport(BaseModel):
    archive_path: str
    exported_projects: List[str] = Field(default_factory=list)
    # referenced by the exported projects, but not part of the archive
    unresolved_dependencies: List[str] = Field(default_factory=list)


class TransferService:
    """
    Service to move projects between inventory databases through 7z archives.
    """

    def __init__(self, session_factory=SessionLocal):
        """
        Initialize the transfer service.

        Args:
            session_factory: callable returning a new SQLAlchemy session
        """
        self.session_factory = session_factory

    def _password(self, password: Optional[str]) -> str:
        if password is not None:
            return password
        return settings.get_archive_password()

    def export_projects(self, project_names: Iterable[str], archive_path,
                        password: Optional[str] = None) -> ExportReport:
        """
        Export the named projects to ``archive_path``, replacing it if present.

        Args:
            project_names: projects to export; unknown names are skipped
            archive_path: destination .7z file
            password: archive password; the configured one when None

        Returns:
            ExportReport listing exported projects and unresolved dependencies

        Raises:
            NoProjectsToExportError: none of the names matched; ``archive_path``
                is left untouched.
        """
        project_names = list(project_names)
        with get_session(self.session_factory) as session:
            plan = ExportPlanner(Store(session)).plan(project_names)
            if not plan.projects:
                raise NoProjectsToExportError(project_names)
            written = write_archive(plan, archive_path, self._password(password))

        return ExportReport(
            archive_path=str(written),
            exported_projects=plan.project_names,
            unresolved_dependencies=sorted(plan.unresolved_dependencies),
        )

    def import_archive(self, archive_path, password: Optional[str] = None) -> ImportReport:
        """
        Import every project of ``archive_path`` in one transaction. Nothing is
        written if any project fails.
        """
        logger.info(f"Importing archive {Path(archive_path)}")
        with extracted_projects(archive_path, self._password(password)) as projects:
            with transaction(self.session_factory) as session:
                report = ImportPipeline(Store(session)).run(projects)
        logger.info(
            f"Imported {len(report.imported_projects)} project(s), "
            f"{len(report.omissions)} omitted reference(s)"
        )
        return report
