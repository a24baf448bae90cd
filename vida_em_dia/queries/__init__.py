"""Read-only household reports."""

from vida_em_dia.queries.reports import (
    HouseholdReports,
    compute_financial_status,
    compute_household_status,
    format_brl,
)

__all__ = [
    "HouseholdReports",
    "compute_financial_status",
    "compute_household_status",
    "format_brl",
]
