"""
Import ordering for a batch of projects.

A project whose server links point into another project of the same batch
must be imported after it, otherwise the links cannot be resolved.
"""

import logging
from typing import Iterable, List, Sequence, Set, Tuple, TypeVar

from infrapad.schemas.transfer import ProjectSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")


def sort_by_dependencies(items: Sequence[Tuple[Set[str], str, T]]) -> List[T]:
    """
    Order ``(dependencies, name, item)`` triples so that each item comes
    after the items it depends on, when that is possible.

    Each pass moves every item whose dependencies are all already placed,
    keeping the input order among them. When a pass places nothing the rest
    (cycles, or dependencies outside the batch) is appended in input order.
    """
    placed_names: Set[str] = set()
    result: List[T] = []
    remaining = list(items)
    while remaining:
        satisfied = [entry for entry in remaining if entry[0] <= placed_names]
        if not satisfied:
            break
        remaining = [entry for entry in remaining if not entry[0] <= placed_names]
        for _, name, item in satisfied:
            placed_names.add(name)
            result.append(item)
    if remaining:
        logger.info("Unsatisfiable import order for: %s", ", ".join(name for _, name, _ in remaining))
        result.extend(item for _, _, item in remaining)
    return result


def sort_projects(projects: Iterable[Tuple[ProjectSchema, T]]) -> List[Tuple[ProjectSchema, T]]:
    """
    Sort ``(project, extra)`` pairs read from an archive. Dependencies are
    restricted to the project names present in the batch.
    """
    projects = list(projects)
    batch_names = {project.project_name for project, _ in projects}
    triples = []
    for entry in projects:
        project = entry[0]
        deps = (project.dependency_project_names() & batch_names) - {project.project_name}
        triples.append((deps, project.project_name, entry))
    return sort_by_dependencies(triples)
