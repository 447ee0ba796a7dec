"""Console reporter using Rich library for formatted CLI output.

Provides colorful, formatted output during a run including:
- A header naming the server under test
- One line per case in the form "[NN/TT] Name: .... [OK]"
- Final summary table of every case
"""

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from s3conform.models import CaseResult, ResultStatus, RunResult
from s3conform.reporters.base import Reporter

# Column at which the [OK]/[FAIL] marker starts
MESSAGE_WIDTH = 45

STATUS_MARKUP = {
    ResultStatus.PASS: "[green]OK[/green]",
    ResultStatus.FAIL: "[red]FAIL[/red]",
    ResultStatus.ERROR: "[yellow]ERROR[/yellow]",
    ResultStatus.SKIP: "[dim]SKIP[/dim]",
}


def case_label(position: int, total: int, case_name: str) -> str:
    """Label used for a case line, e.g. "[01/11] PutObject:"."""
    return f"[{position:02d}/{total}] {case_name}:"


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, suppress per-case output (only show summary)
        console: Console to write to (defaults to stdout)
    """

    def __init__(self, quiet: bool = False, console: Console = None):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet

    def on_run_start(self, endpoint_url: str, total_cases: int) -> None:
        self.console.print()
        self.console.print(
            Rule(f"[bold cyan]Testing: {endpoint_url}[/bold cyan]", style="cyan", characters="-")
        )

    def on_case_start(self, position: int, total: int, case_name: str) -> None:
        """Called when a test case starts.

        Currently a no-op for console reporter.
        """
        pass

    def on_case_complete(self, position: int, total: int, result: CaseResult) -> None:
        """Print the padded case line with its status marker."""
        if self.quiet:
            return

        label = case_label(position, total, result.case_name)
        padding = " " * max(MESSAGE_WIDTH - len(label), 1)
        marker = STATUS_MARKUP.get(result.status, result.status.value)
        self.console.print(f"{label}{padding}\\[{marker}]", highlight=False)

        if result.error_message and result.status != ResultStatus.PASS:
            self.console.print(f"     [dim]{escape(result.error_message)}[/dim]", highlight=False)

    def on_run_complete(self, result: RunResult) -> None:
        """Called when the run is complete.

        Displays a summary table of every case.
        """
        if not result.cases:
            self.console.print("[yellow]No results to display.[/yellow]")
            if result.error_message:
                self.console.print(f"   [dim red]{escape(result.error_message)}[/dim red]")
            return

        self.console.print()
        self.console.print(
            Rule("[bold]Conformance Summary[/bold]", style="magenta", characters="-")
        )

        # Create summary table with ASCII-safe box drawing
        table = Table(
            title="",
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
            box=box.ASCII,
        )

        table.add_column("Case", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center", no_wrap=True)
        table.add_column("Probes", justify="right", no_wrap=True)
        table.add_column("Time", justify="right", no_wrap=True)

        for case_result in result.cases.values():
            duration = f"{case_result.duration_seconds:.1f}s" if case_result.duration_seconds else "-"
            table.add_row(
                case_result.case_name,
                STATUS_MARKUP.get(case_result.status, case_result.status.value),
                str(case_result.probes),
                duration,
            )

        self.console.print(table)

        if result.status == ResultStatus.PASS:
            status = "[bold green]PASSED[/bold green]"
        elif result.status == ResultStatus.FAIL:
            status = "[bold red]FAILED[/bold red]"
        else:
            status = "[bold yellow]ERROR[/bold yellow]"

        self.console.print(f"{result.endpoint_url}: {status} in {result.duration_seconds:.1f}s")
        if result.error_message:
            self.console.print(f"   [dim red]{escape(result.error_message)}[/dim red]", highlight=False)
        self.console.print()
