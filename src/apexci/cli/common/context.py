"""Application context management for the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from rich.logging import RichHandler

from apexci.cli.common.exits import EXIT_USAGE, die
from apexci.cli.common.output import err_console
from apexci.core.adapters.salesforce import SalesforceAdapter
from apexci.core.auth import get_client, is_sandbox
from apexci.core.errors import AuthError
from apexci.core.settings import Settings


@dataclass
class AppContext:
    """Login settings shared by every command of one invocation."""

    settings: Settings
    verbose: bool = False

    def with_settings(self, **changes) -> Settings:
        """Return the shared settings with command-level overrides applied."""
        return replace(self.settings, **changes)


def configure_logging(verbose: bool) -> None:
    """Route library logging through Rich; debug level when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
        force=True,
    )
    # simple-salesforce/urllib3 are noisy at debug level
    logging.getLogger("urllib3").setLevel(logging.INFO)


def build_app_context(
    *,
    login_url: str,
    username: str,
    password: str,
    token: str,
    api_version: str | None,
    source_dir: Path,
    verbose: bool = False,
) -> AppContext:
    """Build the shared context from the global options."""
    configure_logging(verbose)
    settings = Settings(
        login_url=login_url,
        username=username,
        password=password,
        security_token=token,
        api_version=api_version,
        source_dir=source_dir,
    )
    return AppContext(settings=settings, verbose=verbose)


def require_settings(settings: Settings, *, upload: bool = True) -> None:
    """Exit with a usage error when required settings are empty."""
    missing = settings.missing(upload=upload)
    if missing:
        names = ", ".join(missing)
        die(f"Missing required settings: {names}", code=EXIT_USAGE)


def connect(settings: Settings) -> SalesforceAdapter:
    """Log in and return a Salesforce adapter (raises AuthError)."""
    client = get_client(settings)
    return SalesforceAdapter(client, sandbox=is_sandbox(settings.login_url))


def connect_or_exit(settings: Settings) -> SalesforceAdapter:
    """Log in and return a Salesforce adapter, exiting on auth failure."""
    try:
        return connect(settings)
    except AuthError as exc:
        die(str(exc), code=1)
