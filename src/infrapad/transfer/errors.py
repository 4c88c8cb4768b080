"""
Errors raised by the export/import engine.

Unresolvable links are deliberately absent from this module: a server link or
website database that cannot be found on import is an omission, reported in
the import result, not a failure.
"""

from typing import Optional


class TransferError(Exception):
    """Base class for everything that aborts an export or an import."""


class ArchiveError(TransferError):
    """Staging files or running the archiver failed."""

    def __init__(self, message: str, details: Optional[str] = None,
                 exit_code: Optional[int] = None):
        self.details = details
        self.exit_code = exit_code
        full = message
        if details:
            full = f"{full}: {details}"
        if exit_code is not None:
            full = f"{full} - code {exit_code}"
        super().__init__(full)


class ArchiveToolMissingError(ArchiveError):
    """Neither of the accepted archiver executables is on PATH."""


class DocumentFormatError(TransferError):
    """A project document in the archive could not be parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"Invalid project document {source}: {reason}")


class ProjectExistsError(TransferError):
    """The destination store already has a project with the imported name."""

    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"A project named '{project_name}' already exists")


class NoProjectsToExportError(TransferError):
    """None of the requested project names exist in the store."""

    def __init__(self, project_names):
        self.project_names = list(project_names)
        super().__init__(
            "No matching projects found: " + ", ".join(self.project_names)
        )
