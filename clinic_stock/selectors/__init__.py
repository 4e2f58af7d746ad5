"""Selectors for the clinic stock kernel (read side)."""

from clinic_stock.selectors.report_selector import ReportSelector

__all__ = [
    "ReportSelector",
]
