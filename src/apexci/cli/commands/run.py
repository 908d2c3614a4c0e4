"""Command running the full CI pipeline."""

from pathlib import Path

import typer

from apexci.cli.common.context import AppContext, connect, require_settings
from apexci.cli.common.exits import exit_from_exc
from apexci.cli.common.options import (
    AllowMissingFilesOpt,
    DryRunOpt,
    IgnoreWarningsOpt,
    JobIdOpt,
    OutputOpt,
    PollIntervalOpt,
    PollTimeoutOpt,
    RepoTokenOpt,
    RollbackOpt,
    ServiceNameOpt,
    SkipDeployOpt,
)
from apexci.cli.common.output import out
from apexci.cli.common.progress import StageProgress
from apexci.core.adapters.coveralls import RequestsCoverallsUploader
from apexci.core.deploy import DeployOptions
from apexci.core.errors import ApexCIError
from apexci.core.pipeline import run_pipeline


def run(
    ctx: typer.Context,
    job_id: str = JobIdOpt,
    repo_token: str = RepoTokenOpt,
    service_name: str = ServiceNameOpt,
    poll_interval: float = PollIntervalOpt,
    poll_timeout: float = PollTimeoutOpt,
    skip_deploy: bool = SkipDeployOpt,
    dry_run: bool = DryRunOpt,
    output: Path | None = OutputOpt,
    rollback: bool = RollbackOpt,
    ignore_warnings: bool = IgnoreWarningsOpt,
    allow_missing_files: bool = AllowMissingFilesOpt,
):
    """
    Deploy, run all tests and post coverage to Coveralls.
    """
    appctx: AppContext = ctx.obj
    settings = appctx.with_settings(
        job_id=job_id,
        repo_token=repo_token,
        service_name=service_name,
        poll_interval=poll_interval,
        poll_timeout=poll_timeout,
    )
    require_settings(settings, upload=not dry_run)

    deploy_options = DeployOptions(
        rollback_on_error=rollback,
        ignore_warnings=ignore_warnings,
        allow_missing_files=allow_missing_files,
    )

    if not skip_deploy:
        out.info(f"Deploying package at {settings.source_dir.resolve()}")

    try:
        run_pipeline(
            settings,
            connect=connect,
            uploader=None if dry_run else RequestsCoverallsUploader(),
            deploy_options=deploy_options,
            skip_deploy=skip_deploy,
            dry_run=dry_run,
            output=output,
            listener=StageProgress(),
        )
    except ApexCIError as exc:
        exit_from_exc(exc)

    if output is not None:
        out.kv({"Payload written to": output})
