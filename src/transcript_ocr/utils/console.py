"""
Console output helpers for the command line interface.

Status messages and result tables are rendered with rich; all text coming
from recognition results is escaped before printing.
"""

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..processors.column_layout import COLUMN_LAYOUT, NUMERIC_FIELDS
from ..records import CourseRecord, RecordSummary, format_number
from .logging_utils import console as default_console


class ConsoleSymbols:
    """Status symbols used in console output."""
    SUCCESS = "✓"
    ERROR = "✗"
    WARNING = "!"
    INFO = "i"


def print_success(message: str, out: Optional[Console] = None) -> None:
    """Print success message with appropriate symbol."""
    (out or default_console).print(f"[green]{ConsoleSymbols.SUCCESS}[/green] {escape(message)}")


def print_error(message: str, out: Optional[Console] = None) -> None:
    """Print error message with appropriate symbol."""
    (out or default_console).print(f"[red]{ConsoleSymbols.ERROR}[/red] {escape(message)}")


def print_warning(message: str, out: Optional[Console] = None) -> None:
    """Print warning message with appropriate symbol."""
    (out or default_console).print(f"[yellow]{ConsoleSymbols.WARNING}[/yellow] {escape(message)}")


def print_info(message: str, out: Optional[Console] = None) -> None:
    (out or default_console).print(f"[cyan]{ConsoleSymbols.INFO}[/cyan] {escape(message)}")


def build_records_table(records: Sequence[CourseRecord], title: Optional[str] = None) -> Table:
    """Lay out course records as a rich table, one row per record."""
    table = Table(title=title, show_lines=False)
    table.add_column("Term")
    for column in COLUMN_LAYOUT:
        justify = "right" if column.key in NUMERIC_FIELDS else "left"
        table.add_column(column.label, justify=justify)

    for record in records:
        cells = [escape(record.term)]
        for column in COLUMN_LAYOUT:
            value = getattr(record, column.key)
            if column.key in NUMERIC_FIELDS:
                cells.append(format_number(value, 1))
            else:
                cells.append(escape(value) if value else "-")
        table.add_row(*cells)
    return table


def build_summary_table(summary: RecordSummary) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Total credits", format_number(summary.total_credits, 1))
    table.add_row("Weighted average", format_number(summary.weighted_score))
    table.add_row("Arithmetic average", format_number(summary.average_score))
    table.add_row("GPA", format_number(summary.gpa))
    return table


def print_records(records: Sequence[CourseRecord], summary: RecordSummary,
                  out: Optional[Console] = None) -> None:
    """Print the record table followed by the summary figures."""
    out = out or default_console
    out.print(build_records_table(records, title=f"Course records ({len(records)})"))
    out.print(build_summary_table(summary))
