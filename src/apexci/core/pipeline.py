"""Sequential CI pipeline.

The run is an ordered list of stages sharing one PipelineContext. Each stage
reads what earlier stages stored on the context and adds its own output.
The first failing stage stops the run; remote failures are re-raised as the
stage's own error type so callers can tell which step broke.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

from apexci.core.catalog import ClassCatalog, ClassCatalogAdapter, build_catalog
from apexci.core.coverage import CoverageAdapter, apply_coverage, fetch_coverage
from apexci.core.coveralls import (
    CoverallsResponse,
    CoverallsUploader,
    build_payload,
    post_to_coveralls,
    write_payload,
)
from apexci.core.deploy import (
    DeployAdapter,
    DeployOptions,
    DeployResult,
    deploy_from_directory,
)
from apexci.core.errors import (
    ApexCIError,
    AuthError,
    CatalogError,
    CoverageError,
    DeployError,
    PollingError,
    RemoteError,
    TestFailureError,
    TestSubmissionError,
    UploadError,
)
from apexci.core.settings import Settings
from apexci.core.testrun import (
    TestQueueItem,
    TestRunAdapter,
    TestRunSummary,
    collect_results,
    run_all_tests,
    wait_for_test_run,
)

logger = logging.getLogger(__name__)


class PipelineAdapter(
    DeployAdapter, ClassCatalogAdapter, TestRunAdapter, CoverageAdapter, Protocol
):
    """Everything the pipeline needs from the remote org."""


class PipelineListener(Protocol):
    """Receives stage lifecycle and polling events."""

    def stage_started(self, stage: Stage, ctx: PipelineContext) -> None: ...

    def stage_finished(self, stage: Stage, ctx: PipelineContext) -> None: ...

    def stage_failed(
        self, stage: Stage, ctx: PipelineContext, error: ApexCIError
    ) -> None: ...

    def poll(self, state: Any) -> None: ...


class NullListener:
    """Listener that ignores every event."""

    def stage_started(self, stage: Stage, ctx: PipelineContext) -> None:
        return None

    def stage_finished(self, stage: Stage, ctx: PipelineContext) -> None:
        return None

    def stage_failed(
        self, stage: Stage, ctx: PipelineContext, error: ApexCIError
    ) -> None:
        return None

    def poll(self, state: Any) -> None:
        return None


@dataclass
class PipelineContext:
    """State owned by one pipeline run."""

    settings: Settings
    connect: Callable[[Settings], PipelineAdapter]
    uploader: CoverallsUploader | None = None
    deploy_options: DeployOptions = field(default_factory=DeployOptions)
    dry_run: bool = False
    output: Path | None = None
    listener: PipelineListener = field(default_factory=NullListener)

    adapter: PipelineAdapter | None = None
    deploy_result: DeployResult | None = None
    catalog: ClassCatalog = field(default_factory=ClassCatalog)
    run_id: str | None = None
    queue_items: list[TestQueueItem] = field(default_factory=list)
    summary: TestRunSummary | None = None
    coverage_records: int = 0
    payload: dict[str, Any] | None = None
    response: CoverallsResponse | None = None

    def require_adapter(self) -> PipelineAdapter:
        if self.adapter is None:
            raise ApexCIError("Not logged in")
        return self.adapter


@dataclass(frozen=True)
class Stage:
    """
    One step of the pipeline.

    Attributes:
        name: Short identifier (e.g. "deploy").
        title: Human-readable description shown while the stage runs.
        run: Callable doing the work against the context.
        error: Exception type used to wrap RemoteError or OSError raised by `run`.
    """

    name: str
    title: str
    run: Callable[[PipelineContext], None]
    error: type[ApexCIError] = ApexCIError


def _login(ctx: PipelineContext) -> None:
    ctx.adapter = ctx.connect(ctx.settings)


def _deploy(ctx: PipelineContext) -> None:
    result = deploy_from_directory(
        ctx.require_adapter(),
        ctx.settings.source_dir,
        ctx.deploy_options,
        poll_interval=ctx.settings.poll_interval,
        timeout=ctx.settings.timeout,
        on_poll=ctx.listener.poll,
    )
    ctx.deploy_result = result
    if not result.success:
        raise DeployError(result.status)


def _catalog(ctx: PipelineContext) -> None:
    ctx.catalog = build_catalog(ctx.require_adapter(), ctx.settings.classes_dir)


def _run_tests(ctx: PipelineContext) -> None:
    ctx.run_id = run_all_tests(ctx.require_adapter(), ctx.catalog)


def _wait_for_tests(ctx: PipelineContext) -> None:
    if ctx.run_id is None:
        return
    adapter = ctx.require_adapter()
    ctx.queue_items = wait_for_test_run(
        adapter,
        ctx.run_id,
        poll_interval=ctx.settings.poll_interval,
        timeout=ctx.settings.timeout,
        on_poll=ctx.listener.poll,
    )
    ctx.summary = collect_results(adapter, ctx.run_id, ctx.catalog, ctx.queue_items)
    if ctx.summary.failed:
        raise TestFailureError(f"There were {ctx.summary.failed} failing tests")


def _coverage(ctx: PipelineContext) -> None:
    ctx.coverage_records = apply_coverage(
        ctx.catalog, fetch_coverage(ctx.require_adapter())
    )


def _upload(ctx: PipelineContext) -> None:
    settings = ctx.settings
    ctx.payload = build_payload(
        ctx.catalog,
        repo_token=settings.repo_token,
        job_id=settings.job_id,
        service_name=settings.service_name,
    )
    if ctx.output is not None:
        write_payload(ctx.payload, ctx.output)
    if ctx.dry_run:
        logger.debug("Dry run: skipping Coveralls upload")
        return
    if ctx.uploader is None:
        raise UploadError("No Coveralls uploader configured")
    ctx.response = post_to_coveralls(ctx.payload, uploader=ctx.uploader)


LOGIN = Stage("login", "Logging in", _login, AuthError)
DEPLOY = Stage("deploy", "Deploying package", _deploy, DeployError)
CATALOG = Stage("catalog", "Fetching class information", _catalog, CatalogError)
RUN_TESTS = Stage("run_tests", "Starting tests", _run_tests, TestSubmissionError)
WAIT_FOR_TESTS = Stage("tests", "Waiting for tests", _wait_for_tests, PollingError)
COVERAGE = Stage(
    "coverage", "Fetching code coverage information", _coverage, CoverageError
)
UPLOAD = Stage("upload", "Posting data to Coveralls", _upload, UploadError)


def default_stages(*, skip_deploy: bool = False) -> list[Stage]:
    """Return the ordered stages of a CI run."""
    stages = [LOGIN, DEPLOY, CATALOG, RUN_TESTS, WAIT_FOR_TESTS, COVERAGE, UPLOAD]
    if skip_deploy:
        stages.remove(DEPLOY)
    return stages


def run_stages(stages: list[Stage], ctx: PipelineContext) -> PipelineContext:
    """
    Run stages in order, stopping at the first failure.

    RemoteError and local I/O errors (OSError) raised by a stage are
    re-raised as that stage's error type, chained to the original. Other
    ApexCIError subclasses propagate unchanged. The listener sees every
    start, finish and failure.
    """
    listener = ctx.listener
    for stage in stages:
        logger.debug("Stage %s started", stage.name)
        listener.stage_started(stage, ctx)
        try:
            stage.run(ctx)
        except (RemoteError, OSError) as exc:
            error = stage.error(str(exc))
            listener.stage_failed(stage, ctx, error)
            raise error from exc
        except ApexCIError as exc:
            listener.stage_failed(stage, ctx, exc)
            raise
        listener.stage_finished(stage, ctx)
        logger.debug("Stage %s finished", stage.name)
    return ctx


def run_pipeline(
    settings: Settings,
    *,
    connect: Callable[[Settings], PipelineAdapter],
    uploader: CoverallsUploader | None = None,
    deploy_options: DeployOptions | None = None,
    skip_deploy: bool = False,
    dry_run: bool = False,
    output: Path | None = None,
    listener: PipelineListener | None = None,
) -> PipelineContext:
    """
    Run the full CI pipeline.

    Args:
        settings: Run configuration.
        connect: Logs in and returns the remote adapter.
        uploader: Coveralls uploader (unused on dry runs).
        deploy_options: Metadata deploy options.
        skip_deploy: Test what is already in the org.
        dry_run: Build the Coveralls payload without uploading it.
        output: Optional path the payload is written to.
        listener: Receives progress events.

    Returns:
        The final context of the run.

    Raises:
        ApexCIError: The error of the first failing stage.
    """
    ctx = PipelineContext(
        settings=settings,
        connect=connect,
        uploader=uploader,
        deploy_options=deploy_options or DeployOptions(),
        dry_run=dry_run,
        output=output,
        listener=listener or NullListener(),
    )
    return run_stages(default_stages(skip_deploy=skip_deploy), ctx)
