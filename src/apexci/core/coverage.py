"""Per-line coverage aggregation.

ApexCodeCoverage holds one row per (test method, class) pair, so the same
class usually shows up several times. Rows are folded into the class's
coverage list, which Coveralls reads as: None for lines without data, 0 for
executable lines that were never hit, and a positive hit count otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from apexci.core.catalog import ClassCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoverageRecord:
    """Covered and uncovered (1-based) lines of one class or trigger."""

    class_id: str
    covered_lines: tuple[int, ...] = ()
    uncovered_lines: tuple[int, ...] = ()


@dataclass(frozen=True)
class CoverageStats:
    """Line coverage summary of one class."""

    relevant: int
    covered: int

    @property
    def percent(self) -> float:
        return 100.0 * self.covered / self.relevant if self.relevant else 0.0


class CoverageAdapter(Protocol):
    """Interface for reading code coverage."""

    def get_code_coverage(self) -> list[CoverageRecord]:
        """Return every ApexCodeCoverage row of the org."""
        ...


def fetch_coverage(adapter: CoverageAdapter) -> list[CoverageRecord]:
    """Return the org's coverage rows."""
    records = adapter.get_code_coverage()
    logger.debug("Fetched %d coverage record(s)", len(records))
    return records


def merge_coverage(coverage: list[int | None], record: CoverageRecord) -> None:
    """
    Fold one coverage record into a class's coverage list, in place.

    - The list grows with None entries until it reaches the highest line
    - A covered line is set to 1 if it had no data, otherwise incremented
    - An uncovered line is set to 0 only if it had no data
    """
    lines = set(record.covered_lines) | set(record.uncovered_lines)
    if not lines:
        return
    max_line = max(lines)

    if len(coverage) < max_line:
        coverage.extend([None] * (max_line - len(coverage)))

    for lnum in record.covered_lines:
        current = coverage[lnum - 1]
        coverage[lnum - 1] = 1 if current is None else current + 1

    for lnum in record.uncovered_lines:
        if coverage[lnum - 1] is None:
            coverage[lnum - 1] = 0


def apply_coverage(catalog: ClassCatalog, records: Iterable[CoverageRecord]) -> int:
    """
    Merge coverage records into the catalog's production classes.

    Records for ids outside the production map (test classes, triggers,
    classes not in the project) are ignored.

    Returns:
        The number of records that were applied.
    """
    applied = 0
    for record in records:
        target = catalog.classes.get(record.class_id)
        if target is None:
            continue
        merge_coverage(target.coverage, record)
        applied += 1
    return applied


def coverage_stats(coverage: Sequence[int | None]) -> CoverageStats:
    """Count relevant (non-None) and covered (> 0) lines."""
    relevant = sum(1 for hits in coverage if hits is not None)
    covered = sum(1 for hits in coverage if hits)
    return CoverageStats(relevant=relevant, covered=covered)
