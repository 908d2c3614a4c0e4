"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from apexci.core.catalog import ClassCatalog, ClassRecord
from apexci.core.coverage import coverage_stats
from apexci.core.deploy import DeployResult
from apexci.core.testrun import TestOutcome, TestRunSummary

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)
err_console = Console(theme=_THEME, stderr=True)

OUTCOME_ICONS = {
    TestOutcome.PASS: "[green]✓[/]",
    TestOutcome.FAIL: "[red]✗[/]",
    TestOutcome.COMPILE_FAIL: "[red]✗[/]",
    TestOutcome.SKIP: "[bright_black]⤼[/]",
}


def indent_lines(text: str, prefix: str) -> str:
    """Prefix every line of a (possibly multi-line) text."""
    return "\n".join(f"{prefix}{line}" for line in text.split("\n"))


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message to stderr."""
        err_console.print(f"[err]✗[/] {escape(msg)}")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def deploy_report(self, result: DeployResult) -> None:
        """Print the outcome of a metadata deploy and its component errors."""
        style = "ok" if result.success else "err"
        self.kv(
            {
                "Deploy id": result.id,
                "Status": f"[{style}]{escape(result.status)}[/{style}]",
                "Components": (
                    f"{result.components_deployed}/{result.components_total} deployed, "
                    f"{result.components_failed} failed"
                ),
            }
        )
        if not result.errors:
            return

        t = Table(title="Component failures", show_lines=False)
        t.add_column("Component", style="meta")
        t.add_column("File")
        t.add_column("Problem", style="err")
        for e in result.errors:
            t.add_row(e.component, e.file or "", e.problem or "")
        console.print(t)

    def classes_table(self, catalog: ClassCatalog, title: str = "Classes") -> None:
        """Render the production and test classes of a catalog."""
        t = Table(title=title, show_lines=False)
        t.add_column("Class Id", style="ok", no_wrap=True)
        t.add_column("Name")
        t.add_column("Role", style="meta")

        records: list[ClassRecord] = [
            *catalog.classes.values(),
            *catalog.test_classes.values(),
        ]
        for r in sorted(records, key=lambda r: (r.role.value, r.class_name)):
            t.add_row(r.id, r.name, r.role.value)

        console.print(t)

    def test_summary(self, summary: TestRunSummary) -> None:
        """
        Print per-class test results.

        Each class shows its queue status, then one line per method with an
        outcome icon, followed by the failure message and stack trace.
        """
        for cls in summary.classes:
            console.print(
                f"\n  [bold]{escape(cls.class_name)}[/] "
                f"[meta]{escape(cls.extended_status)}[/]"
            )
            for row in cls.results:
                icon = OUTCOME_ICONS.get(row.outcome, "?")
                console.print(f"    {icon} [meta]{escape(row.method_name)}[/]")
                if row.message:
                    console.print(indent_lines(escape(row.message), "      "))
                if row.stack_trace:
                    console.print(indent_lines(escape(row.stack_trace), "      "))
        console.print()

        # failures are reported by the pipeline error itself
        if not summary.failed:
            self.success(f"All {summary.passed} tests passed!")

    def coverage_table(
        self, records: Iterable[ClassRecord], title: str = "Coverage"
    ) -> None:
        """Render covered/relevant lines per production class."""
        t = Table(title=title, show_lines=False)
        t.add_column("Class", style="ok")
        t.add_column("Lines", justify="right")
        t.add_column("Coverage", justify="right")

        total_relevant = 0
        total_covered = 0
        for r in sorted(records, key=lambda r: r.class_name):
            stats = coverage_stats(r.coverage)
            total_relevant += stats.relevant
            total_covered += stats.covered
            t.add_row(
                r.class_name,
                f"{stats.covered}/{stats.relevant}",
                f"{stats.percent:.1f}%" if stats.relevant else "[meta]n/a[/]",
            )

        if total_relevant:
            t.add_row(
                "[bold]Total[/]",
                f"{total_covered}/{total_relevant}",
                f"{100.0 * total_covered / total_relevant:.1f}%",
            )
        console.print(t)


out = Out()
