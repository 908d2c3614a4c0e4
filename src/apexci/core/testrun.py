"""Asynchronous Apex test execution and result aggregation.

A single Tooling API request starts every test class of the project. The
run is then tracked through its ApexTestQueueItem rows (one per class) and,
once nothing is queued or processing, the per-method ApexTestResult rows are
grouped by class into a TestRunSummary.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from apexci.core.catalog import ClassCatalog
from apexci.core.runs import poll_until

logger = logging.getLogger(__name__)


class QueueStatus(str, Enum):
    """
    Lifecycle of an ApexTestQueueItem.

    Values:
        QUEUED: Waiting to run (includes Holding and Preparing).
        PROCESSING: Currently executing.
        COMPLETED: Finished; individual methods may still have failed.
        FAILED: The class could not be run (includes Aborted).
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_remote(cls, value: str | None) -> QueueStatus:
        """Map a Salesforce status string; unknown values count as processing."""
        return _REMOTE_QUEUE_STATUS.get((value or "").lower(), cls.PROCESSING)

    @property
    def pending(self) -> bool:
        return self in (QueueStatus.QUEUED, QueueStatus.PROCESSING)


_REMOTE_QUEUE_STATUS = {
    "holding": QueueStatus.QUEUED,
    "queued": QueueStatus.QUEUED,
    "preparing": QueueStatus.QUEUED,
    "processing": QueueStatus.PROCESSING,
    "completed": QueueStatus.COMPLETED,
    "failed": QueueStatus.FAILED,
    "aborted": QueueStatus.FAILED,
}


class TestOutcome(str, Enum):
    """Outcome of a single test method."""

    __test__ = False

    PASS = "Pass"
    FAIL = "Fail"
    COMPILE_FAIL = "CompileFail"
    SKIP = "Skip"

    @classmethod
    def from_remote(cls, value: str | None) -> TestOutcome:
        """Map a Salesforce outcome string; unknown values count as failures."""
        for outcome in cls:
            if outcome.value.lower() == (value or "").lower():
                return outcome
        return cls.FAIL

    def normalized(self) -> TestOutcome:
        """Fold compile failures into plain failures."""
        return TestOutcome.FAIL if self is TestOutcome.COMPILE_FAIL else self


@dataclass(frozen=True)
class TestQueueItem:
    """Progress of one test class within a run."""

    __test__ = False

    id: str
    status: QueueStatus
    class_id: str
    extended_status: str = ""


@dataclass(frozen=True)
class TestResultRecord:
    """Outcome of one test method."""

    __test__ = False

    class_id: str
    method_name: str
    outcome: TestOutcome
    message: str | None = None
    stack_trace: str | None = None


@dataclass(frozen=True)
class ClassResults:
    """Results of one test class, methods sorted by name."""

    class_name: str
    extended_status: str
    results: tuple[TestResultRecord, ...]


@dataclass(frozen=True)
class TestRunSummary:
    """Aggregated outcome of a test run."""

    __test__ = False

    run_id: str
    classes: tuple[ClassResults, ...] = ()
    counts: dict[TestOutcome, int] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return self.counts.get(TestOutcome.FAIL, 0)

    @property
    def passed(self) -> int:
        return self.counts.get(TestOutcome.PASS, 0)

    @property
    def skipped(self) -> int:
        return self.counts.get(TestOutcome.SKIP, 0)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def success(self) -> bool:
        return self.failed == 0


class TestRunAdapter(Protocol):
    """Interface for starting test runs and reading their progress."""

    def run_tests_asynchronous(self, class_ids: list[str]) -> str:
        """Start a test run for the given classes and return its id."""
        ...

    def get_queue_items(self, run_id: str) -> list[TestQueueItem]:
        """Return the queue items of a run."""
        ...

    def get_test_results(self, run_id: str) -> list[TestResultRecord]:
        """Return the per-method results of a run."""
        ...


def run_all_tests(adapter: TestRunAdapter, catalog: ClassCatalog) -> str | None:
    """
    Start one asynchronous run covering every test class in the catalog.

    Returns:
        The run id, or None when the catalog has no test classes (nothing is
        submitted in that case).
    """
    class_ids = list(catalog.test_classes)
    if not class_ids:
        logger.debug("No test classes in catalog, skipping submission")
        return None
    run_id = adapter.run_tests_asynchronous(class_ids)
    logger.debug("Started test run %s for %d class(es)", run_id, len(class_ids))
    return run_id


def any_pending(items: list[TestQueueItem]) -> bool:
    """Return True if any queue item is still queued or processing."""
    return any(item.status.pending for item in items)


def wait_for_test_run(
    adapter: TestRunAdapter,
    run_id: str,
    *,
    poll_interval: float = 5,
    timeout: float | None = None,
    on_poll: Callable[[list[TestQueueItem]], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> list[TestQueueItem]:
    """
    Block until no queue item of the run is queued or processing.

    Args:
        adapter: Test run adapter.
        run_id: Id returned by run_all_tests.
        poll_interval: Seconds between queue checks.
        timeout: Seconds before PollTimeoutError, or None to wait forever.
        on_poll: Called with the queue items on every in-progress check.

    Returns:
        The queue items of the final check.
    """
    return poll_until(
        lambda: adapter.get_queue_items(run_id),
        lambda items: not any_pending(items),
        poll_interval=poll_interval,
        timeout=timeout,
        on_poll=on_poll,
        sleep=sleep,
        clock=clock,
        what=f"test run {run_id}",
    )


def summarize_results(
    run_id: str,
    results: list[TestResultRecord],
    catalog: ClassCatalog,
    queue_items: list[TestQueueItem],
) -> TestRunSummary:
    """
    Group method results by class and count outcomes.

    Compile failures are counted as failures. Classes are ordered by name and
    each class's methods by method name.
    """
    extended = {item.class_id: item.extended_status for item in queue_items}
    grouped: dict[str, list[TestResultRecord]] = {}
    counts: Counter[TestOutcome] = Counter()

    for row in results:
        outcome = row.outcome.normalized()
        if outcome is not row.outcome:
            row = TestResultRecord(
                class_id=row.class_id,
                method_name=row.method_name,
                outcome=outcome,
                message=row.message,
                stack_trace=row.stack_trace,
            )
        counts[outcome] += 1
        grouped.setdefault(row.class_id, []).append(row)

    classes = [
        ClassResults(
            class_name=catalog.class_name(class_id),
            extended_status=extended.get(class_id, "") or "",
            results=tuple(sorted(rows, key=lambda r: r.method_name)),
        )
        for class_id, rows in grouped.items()
    ]
    classes.sort(key=lambda c: c.class_name)

    return TestRunSummary(run_id=run_id, classes=tuple(classes), counts=dict(counts))


def collect_results(
    adapter: TestRunAdapter,
    run_id: str,
    catalog: ClassCatalog,
    queue_items: list[TestQueueItem],
) -> TestRunSummary:
    """Fetch the method results of a finished run and summarize them."""
    return summarize_results(
        run_id, adapter.get_test_results(run_id), catalog, queue_items
    )
