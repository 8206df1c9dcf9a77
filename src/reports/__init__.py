"""Report rendering package."""

from src.reports.renderer import (
    ReportWriter,
    category_file_name,
    render_category,
    render_summary,
    summary_file_name,
)

__all__ = [
    "ReportWriter",
    "category_file_name",
    "render_category",
    "render_summary",
    "summary_file_name",
]
