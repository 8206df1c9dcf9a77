"""
Report Rendering

Turns SummaryReport / CategoryReport values into the plain-text blocks
shown to the user, and writes them under the reports directory.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional

from src.config import StorageSettings, get_settings
from src.models.account import CategoryReport, SummaryReport
from src.services.storage.interface import RecordIOError


RULE = "-" * 38
CURRENCY = "BDT"


def _amount(value: Decimal) -> str:
    return f"{format(value, 'f')} {CURRENCY}"


def _file_part(text: str) -> str:
    """Keep free text inside a single path component."""
    return text.replace("/", "_").replace("\\", "_")


def render_summary(report: SummaryReport) -> str:
    lines = [
        f"Summary Report from {report.start} to {report.end}",
        RULE,
        f"Total Income: {_amount(report.income_total)}",
        f"Total Expenses: {_amount(report.expense_total)}",
        f"Net Savings: {_amount(report.net_savings)}",
        RULE,
    ]
    return "\n".join(lines) + "\n"


def render_category(report: CategoryReport) -> str:
    lines = [
        f"Category Report: {report.category}",
        RULE,
        f"Total Expenses in Category: {_amount(report.category_total)}",
        RULE,
    ]
    return "\n".join(lines) + "\n"


def summary_file_name(report: SummaryReport) -> str:
    start, end = report.start, report.end
    return (
        f"{report.username}_summary_report_"
        f"{start.day}_{start.month}_{start.year}_"
        f"{end.day}_{end.month}_{end.year}.txt"
    )


def category_file_name(report: CategoryReport) -> str:
    return f"{report.username}_{_file_part(report.category)}_report.txt"


class ReportWriter:
    """Writes rendered reports to ``<reports_dir>``."""

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage

    @property
    def reports_dir(self) -> Path:
        return self._settings.reports_dir

    def _write(self, name: str, text: str) -> Path:
        path = self.reports_dir / name
        try:
            if self._settings.create_dirs:
                self.reports_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise RecordIOError(f"Error creating report file {path}: {e}") from e
        return path

    def write_summary(self, report: SummaryReport) -> Path:
        return self._write(summary_file_name(report), render_summary(report))

    def write_category(self, report: CategoryReport) -> Path:
        return self._write(category_file_name(report), render_category(report))
