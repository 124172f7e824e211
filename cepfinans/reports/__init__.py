"""Reports package."""

from cepfinans.reports.summary import (
    compute_summary,
    daily_report,
    filter_notes,
    monthly_breakdown,
)

__all__ = ["compute_summary", "daily_report", "filter_notes", "monthly_breakdown"]
