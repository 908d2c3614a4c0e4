"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer

from apexci.cli.common.output import out

EXIT_FAILURE = 1
EXIT_USAGE = 2


def die(msg: str, code: int = EXIT_FAILURE) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = 0) -> NoReturn:
    """Exit with a warning message and optional exit code."""
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(
    exc: Exception, *, message: str | None = None, code: int = EXIT_FAILURE
) -> NoReturn:
    """Print an error message (the exception's by default) and exit."""
    out.error(message or str(exc))
    raise typer.Exit(code) from exc
