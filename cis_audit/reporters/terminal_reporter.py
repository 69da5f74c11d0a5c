"""Terminal Reporter Module - Rich results table and summary line."""

import io
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..core.check import Outcome, Section
from .base_reporter import BaseReporter, ReportData


class TerminalReporter(BaseReporter):
    """Render results as a rich table followed by the summary line.

    Section banners are bold; results are coloured green (Pass), red
    (Fail) or yellow (Error), and skipped rows are dimmed.
    """

    def __init__(self, output_dir: Optional[str] = None, console: Optional[Console] = None):
        super().__init__(output_dir)
        self.console = console or Console()

    @property
    def format(self) -> str:
        return "text"

    @property
    def extension(self) -> str:
        return "txt"

    def build_table(self, report_data: ReportData) -> Table:
        """Build the results table: one row per section banner and per result."""
        table = Table(
            title=f" {report_data.benchmark} Results ",
            title_style="bold",
            show_lines=False,
            expand=False,
        )
        table.add_column("ID", no_wrap=True)
        table.add_column("Description")
        table.add_column("Scoring", no_wrap=True)
        table.add_column("Level", justify="right")
        table.add_column("Result", no_wrap=True)
        table.add_column("Duration", justify="right", no_wrap=True)

        for row in report_data.rows():
            if isinstance(row, Section):
                top_level = "." not in row.id
                if top_level and table.row_count:
                    table.add_section()
                table.add_row(row.id, row.title, "", "", "", "", style="bold")
                continue

            if row.skipped:
                result = Text(row.label)
                style = "dim"
            else:
                result = Text(row.label, style=row.outcome.color)
                style = None
            table.add_row(
                row.id,
                row.description,
                row.scoring_class.value,
                str(row.level),
                result,
                row.duration_text,
                style=style,
            )
        return table

    def render(self, report_data: ReportData, console: Optional[Console] = None) -> None:
        """Print the table and summary line to a console."""
        console = console or self.console
        console.print()
        console.print(self.build_table(report_data))
        console.print()

        summary = report_data.summary
        status_color = "green" if summary.is_compliant else "red"
        console.print(summary.summary_line)
        console.print(
            f"Compliance score: [{status_color}]{summary.compliance_score:.1f}[/{status_color}] "
            f"(grade {summary.grade}, threshold {summary.threshold:.1f}) - "
            f"[{status_color}]{summary.status}[/{status_color}]"
        )
        if summary.errored:
            console.print(
                f"[{Outcome.ERROR.color}]{summary.errored} checks could not read host data; "
                f"run with --verbose for details[/{Outcome.ERROR.color}]"
            )
        console.print()

    def generate(self, report_data: ReportData) -> bytes:
        """Render the terminal view as plain text.

        Args:
            report_data: Data to include in the report

        Returns:
            Uncoloured table and summary as UTF-8 bytes
        """
        buffer = io.StringIO()
        console = Console(file=buffer, no_color=True, width=160, color_system=None)
        self.render(report_data, console)
        return buffer.getvalue().encode("utf-8")
