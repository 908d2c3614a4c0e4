"""Common CLI options for the CLI."""

from pathlib import Path

import typer

from apexci.core.settings import (
    DEFAULT_LOGIN_URL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_SERVICE_NAME,
)

LoginUrlOpt = typer.Option(
    DEFAULT_LOGIN_URL,
    "--login-url",
    envvar="SFDC_LOGINURL",
    help=(
        "Salesforce login URL (test.salesforce.com or a "
        "*.sandbox.my.salesforce.com host for sandboxes)"
    ),
)

UsernameOpt = typer.Option(
    "",
    "--username",
    "-u",
    envvar="SFDC_USERNAME",
    help="Salesforce username",
    show_default=False,
)

PasswordOpt = typer.Option(
    "",
    "--password",
    envvar="SFDC_PASSWORD",
    help="Salesforce password",
    show_default=False,
)

TokenOpt = typer.Option(
    "",
    "--token",
    envvar="SFDC_TOKEN",
    help="Salesforce security token",
    show_default=False,
)

ApiVersionOpt = typer.Option(
    None,
    "--api-version",
    envvar="SFDC_API_VERSION",
    help="Salesforce API version (e.g. 59.0)",
)

SourceDirOpt = typer.Option(
    Path("src"),
    "--source-dir",
    "-s",
    envvar="APEXCI_SOURCE_DIR",
    help="Metadata package directory (holds package.xml and classes/)",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Log debug information",
)

JobIdOpt = typer.Option(
    "",
    "--job-id",
    envvar="TRAVIS_JOB_ID",
    help="CI job id reported to Coveralls",
    show_default=False,
)

RepoTokenOpt = typer.Option(
    "",
    "--repo-token",
    envvar="COVERALLS_REPO_TOKEN",
    help="Coveralls repository token",
    show_default=False,
)

ServiceNameOpt = typer.Option(
    DEFAULT_SERVICE_NAME,
    "--service-name",
    envvar="COVERALLS_SERVICE_NAME",
    help="CI service name reported to Coveralls",
)

PollIntervalOpt = typer.Option(
    DEFAULT_POLL_INTERVAL,
    "--poll-interval",
    envvar="APEXCI_POLL_INTERVAL",
    min=0,
    help="Seconds between deploy/test status checks",
)

PollTimeoutOpt = typer.Option(
    DEFAULT_POLL_TIMEOUT,
    "--poll-timeout",
    envvar="APEXCI_POLL_TIMEOUT",
    min=0,
    help="Seconds to wait for deploys and test runs (0 waits forever)",
)

SkipDeployOpt = typer.Option(
    False,
    "--skip-deploy",
    help="Test what is already deployed instead of deploying the package first",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Build the Coveralls payload, but don't upload it",
)

OutputOpt = typer.Option(
    None,
    "--output",
    "-o",
    help="Also write the Coveralls payload to this file",
)

RollbackOpt = typer.Option(
    True,
    "--rollback/--no-rollback",
    help="Roll back the whole deploy when a component fails",
)

IgnoreWarningsOpt = typer.Option(
    False,
    "--ignore-warnings",
    help="Let a deploy with warnings succeed",
)

AllowMissingFilesOpt = typer.Option(
    False,
    "--allow-missing-files",
    help="Allow files listed in package.xml to be missing",
)
