"""
Reading and writing 7z archives of project documents.

Encryption and compression are left to the ``7z`` (or ``7za``) executable,
run as a subprocess. Files are staged in a private temporary folder that is
removed whatever the outcome.

Archive layout::

    <project folder>/contents.yaml
    <project folder>/<attachment folder>/<file name>
    ...
"""

import contextlib
import logging
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from infrapad.core.config import settings
from infrapad.core.settings import ARCHIVE_EXTENSION, TEMP_FOLDER_PREFIX
from infrapad.schemas.transfer import ProjectSchema
from infrapad.transfer.errors import ArchiveError, ArchiveToolMissingError
from infrapad.transfer.export_planner import ExportPlan
from infrapad.transfer.yaml_format import dump_project, load_project

logger = logging.getLogger(__name__)

NO_DETAILS = "No details"


class TempFolder:
    """
    A fresh temporary folder, deleted with its contents on exit.

    Use as:
        with TempFolder() as folder:
            ...
    """

    def __init__(self, root: Optional[str] = None):
        self.root = root or settings.temp_root
        self.path: Optional[Path] = None

    def __enter__(self) -> Path:
        millis = int(time.time() * 1000)
        Path(self.root).mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=f"{TEMP_FOLDER_PREFIX}-{millis}-", dir=self.root))
        logger.debug("Created temp folder %s", self.path)
        return self.path

    def __exit__(self, exc_type, exc_value, traceback):
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug("Removed temp folder %s", self.path)
            self.path = None
        return False


def archiver_command(candidates: Optional[Sequence[str]] = None) -> str:
    """Path of the first archiver executable found on PATH."""
    names = list(candidates or settings.archiver_commands)
    for name in names:
        found = shutil.which(name)
        if found:
            return found
    raise ArchiveToolMissingError(f"Need the {' or '.join(names)} command to be installed")


def error_details(stderr: Optional[str]) -> str:
    """The archiver's own explanation: its first ``ERROR: `` line."""
    for line in (stderr or "").splitlines():
        if line.startswith("ERROR: "):
            return line[len("ERROR: "):]
    return NO_DETAILS


def _password_args(password: Optional[str]) -> List[str]:
    return [f"-p{password}"] if password else []


def _run_archiver(args: List[str], cwd: Path, failure_message: str,
                  executable: Optional[str] = None) -> None:
    command = [executable or archiver_command()] + args
    # never log the password argument
    logger.debug("Running %s %s in %s", command[0], args[0], cwd)
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            stdin=subprocess.DEVNULL,
        )
    except OSError as e:
        raise ArchiveError(failure_message, str(e)) from e
    if result.returncode != 0:
        raise ArchiveError(failure_message, error_details(result.stderr), result.returncode)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def stage_export(plan: ExportPlan, staging: Path) -> List[str]:
    """Write every project folder of ``plan`` under ``staging``; returns the folder names."""
    folders = []
    for project in plan.projects:
        project_dir = staging / project.folder
        project_dir.mkdir(parents=True)
        (project_dir / settings.document_name).write_text(
            dump_project(project.document), encoding="utf-8"
        )
        for relative_path, contents in project.attachments.items():
            target = project_dir / relative_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(contents)
        folders.append(project.folder)
    return folders


def write_archive(plan: ExportPlan, archive_path, password: Optional[str] = None) -> Path:
    """Create (or replace) ``archive_path`` holding the planned projects."""
    archive_path = Path(archive_path).expanduser().resolve()
    if not archive_path.suffix:
        # 7z appends the extension itself when there is none
        archive_path = archive_path.with_name(archive_path.name + ARCHIVE_EXTENSION)
    if not plan.projects:
        raise ArchiveError("Nothing to export", str(archive_path))
    # an existing archive is only removed once the archiver is known to be there
    executable = archiver_command()
    try:
        with TempFolder() as staging:
            folders = stage_export(plan, staging)
            # the archiver adds to existing archives; start from scratch
            if archive_path.exists():
                archive_path.unlink()
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            _run_archiver(
                ["a"] + _password_args(password) + [str(archive_path)] + folders,
                staging,
                "7zip execution failed",
                executable,
            )
    except OSError as e:
        raise ArchiveError("Could not stage the export", str(e)) from e
    logger.info("Wrote %d project(s) to %s", len(plan.projects), archive_path)
    return archive_path


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def read_project_documents(folder: Path) -> List[Tuple[ProjectSchema, Path]]:
    """
    Parse the project documents of an extracted archive.

    Returns ``(project, attachments folder)`` pairs. A project folder holding
    a ``contents.yaml`` has its attachments beside it; a document at the top
    level resolves attachments against the top level.
    """
    projects = []
    for entry in sorted(folder.iterdir()):
        if entry.is_file():
            document, base = entry, folder
        elif entry.is_dir() and (entry / settings.document_name).is_file():
            document, base = entry / settings.document_name, entry
        else:
            continue
        source = str(document.relative_to(folder))
        projects.append((load_project(document.read_text(encoding="utf-8"), source), base))
        logger.debug("Read project document %s", source)
    return projects


@contextlib.contextmanager
def extracted_projects(archive_path, password: Optional[str] = None
                       ) -> Iterator[List[Tuple[ProjectSchema, Path]]]:
    """
    Extract ``archive_path`` and yield its parsed projects. Attachment folders
    stay readable until the block exits.
    """
    archive_path = Path(archive_path).expanduser().resolve()
    if not archive_path.is_file():
        raise ArchiveError("Archive not found", str(archive_path))
    with TempFolder() as folder:
        _run_archiver(
            ["x"] + _password_args(password) + ["-y", str(archive_path)],
            folder,
            "7z extraction failed",
        )
        yield read_project_documents(folder)
