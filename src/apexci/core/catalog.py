"""Catalog of the Apex classes that belong to the current project.

The org usually holds more classes than the project (managed packages,
other teams' code), so the remote class list is intersected with the local
`classes/*.cls` files before it is split into production and test classes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)

TEST_MARKER = re.compile(r"(@isTest|testMethod)", re.IGNORECASE)


class ClassRole(str, Enum):
    """Role of a class in the project."""

    PRODUCTION = "production"
    TEST = "test"


@dataclass(frozen=True)
class ApexClass:
    """An ApexClass row as returned by the org."""

    id: str
    name: str
    body: str


@dataclass
class ClassRecord:
    """
    A project class known to the org.

    Attributes:
        id: Remote class id.
        name: Qualified file path, `src/classes/<Name>.cls`.
        source: Class body.
        role: Production or test.
        coverage: Per-line hit counts (production classes only). None means
            no data for the line.
    """

    id: str
    name: str
    source: str
    role: ClassRole
    coverage: list[int | None] = field(default_factory=list)

    @property
    def class_name(self) -> str:
        """Class name without directory or extension."""
        return PurePosixPath(self.name).stem


@dataclass
class ClassCatalog:
    """Production and test classes keyed by remote id."""

    classes: dict[str, ClassRecord] = field(default_factory=dict)
    test_classes: dict[str, ClassRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.classes) + len(self.test_classes)

    def get(self, class_id: str) -> ClassRecord | None:
        """Look up a class of either role."""
        return self.classes.get(class_id) or self.test_classes.get(class_id)

    def class_name(self, class_id: str) -> str:
        """Return the class name for an id, falling back to the id itself."""
        record = self.get(class_id)
        return record.class_name if record else class_id


class ClassCatalogAdapter(Protocol):
    """Interface for querying Apex classes."""

    def list_apex_classes(self) -> list[ApexClass]:
        """Return every ApexClass in the org with its body."""
        ...


def class_path(name: str) -> str:
    """Return the qualified project path for a class name."""
    return f"src/classes/{name}.cls"


def is_test_class(body: str | None) -> bool:
    """Return True if the body carries a test marker (`@isTest` or `testMethod`)."""
    return bool(body and TEST_MARKER.search(body))


def local_class_names(classes_dir: Path) -> set[str]:
    """Return the names of the `*.cls` files in a directory."""
    classes_dir = Path(classes_dir)
    if not classes_dir.is_dir():
        return set()
    return {p.stem for p in classes_dir.glob("*.cls") if p.is_file()}


def partition_classes(
    rows: Iterable[ApexClass], project_class_names: Iterable[str]
) -> ClassCatalog:
    """
    Keep the rows whose name is in the project and split them by role.

    Every retained row ends up in exactly one of the two maps.
    """
    names = set(project_class_names)
    catalog = ClassCatalog()

    for row in rows:
        if row.name not in names:
            continue
        if is_test_class(row.body):
            catalog.test_classes[row.id] = ClassRecord(
                id=row.id,
                name=class_path(row.name),
                source=row.body,
                role=ClassRole.TEST,
            )
        else:
            catalog.classes[row.id] = ClassRecord(
                id=row.id,
                name=class_path(row.name),
                source=row.body,
                role=ClassRole.PRODUCTION,
            )

    return catalog


def build_catalog(adapter: ClassCatalogAdapter, classes_dir: Path) -> ClassCatalog:
    """
    Build the catalog of project classes known to the org.

    Args:
        adapter: Adapter used to query ApexClass rows.
        classes_dir: Local directory with the project's `*.cls` files.

    Returns:
        A ClassCatalog with disjoint production and test maps.
    """
    project = local_class_names(classes_dir)
    if not project:
        logger.warning("No .cls files found in %s", classes_dir)

    catalog = partition_classes(adapter.list_apex_classes(), project)
    logger.debug(
        "Catalog: %d production, %d test class(es)",
        len(catalog.classes),
        len(catalog.test_classes),
    )
    return catalog
