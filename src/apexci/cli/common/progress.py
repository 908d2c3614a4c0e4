"""Progress formatting utilities for the CLI."""

from __future__ import annotations

from collections import Counter
from typing import Any

from rich.status import Status

from apexci.cli.common.output import console, out
from apexci.core.deploy import DeployStatus
from apexci.core.errors import ApexCIError, TestFailureError
from apexci.core.pipeline import PipelineContext, Stage
from apexci.core.testrun import QueueStatus, TestQueueItem


def _queue_label(items: list[TestQueueItem]) -> str:
    """
    Summarize queue items as `done/total classes` plus pending counts.

    Example: `2/5 classes done (queued=1, processing=2)`.
    """
    counts = Counter(item.status for item in items)
    done = counts[QueueStatus.COMPLETED] + counts[QueueStatus.FAILED]
    pending = ", ".join(
        f"{status.value}={counts[status]}"
        for status in (QueueStatus.QUEUED, QueueStatus.PROCESSING)
        if counts[status]
    )
    label = f"{done}/{len(items)} classes done"
    return f"{label} ({pending})" if pending else label


def _deploy_label(status: DeployStatus) -> str:
    """Summarize an in-progress deploy status."""
    label = status.status
    if status.components_total:
        label += f" {status.components_deployed}/{status.components_total} components"
    if status.state_detail:
        label += f" - {status.state_detail}"
    return label


def poll_label(state: Any) -> str | None:
    """Return a status-line suffix for a polled state, if it is known."""
    if isinstance(state, DeployStatus):
        return _deploy_label(state)
    if isinstance(state, list) and all(isinstance(i, TestQueueItem) for i in state):
        return _queue_label(state)
    return None


class StageProgress:
    """
    Pipeline listener rendering one spinner per stage.

    The spinner text is refreshed on every poll; when a stage ends the
    spinner is replaced by a permanent line and any stage output
    (deploy report, test results, coverage) is printed.
    """

    def __init__(self) -> None:
        self._status: Status | None = None
        self._title = ""

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def stage_started(self, stage: Stage, ctx: PipelineContext) -> None:
        self._title = stage.title
        if stage.name == "login":
            self._title = f"Logging in as {ctx.settings.username}"
        self._status = console.status(f"{self._title}...", spinner="dots")
        self._status.start()

    def poll(self, state: Any) -> None:
        label = poll_label(state)
        if self._status is not None and label:
            self._status.update(f"{self._title}... [meta]{label}[/]")

    def stage_finished(self, stage: Stage, ctx: PipelineContext) -> None:
        self._stop()
        if stage.name == "login":
            out.success("Logged in")
        elif stage.name == "deploy" and ctx.deploy_result is not None:
            out.success("Package deployed")
            out.deploy_report(ctx.deploy_result)
        elif stage.name == "catalog":
            out.success(f"Got information about {len(ctx.catalog)} classes")
        elif stage.name == "run_tests":
            if ctx.run_id is None:
                out.warn("No test classes found, no tests were run")
            else:
                out.success(f"Test run {ctx.run_id} started")
        elif stage.name == "tests" and ctx.summary is not None:
            out.test_summary(ctx.summary)
        elif stage.name == "coverage":
            out.success(f"Merged {ctx.coverage_records} coverage record(s)")
            out.coverage_table(ctx.catalog.classes.values())
        elif stage.name == "upload":
            if ctx.dry_run:
                out.warn("Dry-run enabled: coverage was not posted")
            else:
                out.success("Coverage posted")
                if ctx.response is not None and ctx.response.url:
                    out.kv({"Coveralls": ctx.response.url})
        else:
            out.success(stage.title)

    def stage_failed(
        self, stage: Stage, ctx: PipelineContext, error: ApexCIError
    ) -> None:
        self._stop()
        if stage.name == "deploy" and ctx.deploy_result is not None:
            out.deploy_report(ctx.deploy_result)
        if isinstance(error, TestFailureError) and ctx.summary is not None:
            out.test_summary(ctx.summary)
