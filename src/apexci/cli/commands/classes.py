"""Command listing the project classes known to the org."""

import typer

from apexci.cli.common.context import AppContext, connect_or_exit, require_settings
from apexci.cli.common.exits import exit_from_exc, warn_exit
from apexci.cli.common.output import out
from apexci.core.catalog import build_catalog
from apexci.core.errors import ApexCIError


def classes(ctx: typer.Context):
    """
    List the local classes found in the org, split into production and test.
    """
    appctx: AppContext = ctx.obj
    settings = appctx.settings
    require_settings(settings, upload=False)

    with out.status(f"Logging in as {settings.username}..."):
        adapter = connect_or_exit(settings)

    try:
        with out.status("Fetching class information..."):
            catalog = build_catalog(adapter, settings.classes_dir)
    except ApexCIError as exc:
        exit_from_exc(exc)

    if not len(catalog):
        warn_exit(f"No classes from {settings.classes_dir} found in the org", code=0)

    out.classes_table(catalog, title="Project classes")
    out.kv(
        {
            "Production": len(catalog.classes),
            "Test": len(catalog.test_classes),
        }
    )
