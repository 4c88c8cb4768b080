"""
Collision-free relative paths for binary side-files (auth keys, icons).

An export keeps one ``attachments`` dict per project folder, mapping a path
relative to that folder to the file contents. Nothing here holds state: the
dict is passed in and filled by the caller.
"""

import re
from pathlib import PurePosixPath
from typing import Dict, Iterable, Iterator, Optional

_UNSAFE_RUN = re.compile(r"[^0-9A-Za-z_]+")


def sanitize_base_name(desc: str, fallback_id: Optional[int] = None) -> str:
    """
    Folder-safe name derived from a description.

    >>> sanitize_base_name("web server (prod)")
    'web_server_prod_'
    >>> sanitize_base_name("", 12)
    '12'
    """
    if not desc:
        return str(fallback_id if fallback_id is not None else "")
    return _UNSAFE_RUN.sub("_", desc)


def _candidates(base: str) -> Iterator[str]:
    yield base
    index = 2
    while True:
        yield f"{base}-{index}"
        index += 1


def allocate_path(base: str, taken: Iterable[str]) -> str:
    """First of ``base``, ``base-2``, ``base-3``... not already a root folder of ``taken``."""
    taken_paths = [PurePosixPath(p) for p in taken]
    for candidate in _candidates(base):
        if not any(path.is_relative_to(candidate) for path in taken_paths):
            return candidate


def attachment_file_name(filename: str) -> str:
    """The last component of a stored file name; the name used inside the archive."""
    return PurePosixPath(filename.replace("\\", "/")).name or "attachment"


def add_attachment(attachments: Dict[str, bytes], desc: str, fallback_id: Optional[int],
                   filename: str, contents: bytes) -> str:
    """
    Allocate a folder for one entity's file and record the file in
    ``attachments``. Returns the allocated folder.
    """
    folder = allocate_path(sanitize_base_name(desc, fallback_id), attachments.keys())
    attachments[f"{folder}/{attachment_file_name(filename)}"] = contents
    return folder
