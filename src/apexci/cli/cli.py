"""CLI application for Salesforce CI runs."""

from pathlib import Path

import typer

from apexci.cli.commands.classes import classes
from apexci.cli.commands.run import run
from apexci.cli.common.context import build_app_context
from apexci.cli.common.options import (
    ApiVersionOpt,
    LoginUrlOpt,
    PasswordOpt,
    SourceDirOpt,
    TokenOpt,
    UsernameOpt,
    VerboseOpt,
)

app = typer.Typer(
    help="apexci - deploy, test and report Apex coverage to Coveralls",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    login_url: str = LoginUrlOpt,
    username: str = UsernameOpt,
    password: str = PasswordOpt,
    token: str = TokenOpt,
    api_version: str | None = ApiVersionOpt,
    source_dir: Path = SourceDirOpt,
    verbose: bool = VerboseOpt,
):
    """Resolve login settings shared by all commands."""
    ctx.obj = build_app_context(
        login_url=login_url,
        username=username,
        password=password,
        token=token,
        api_version=api_version,
        source_dir=source_dir,
        verbose=verbose,
    )


app.command("run")(run)
app.command("classes")(classes)


if __name__ == "__main__":
    app()
