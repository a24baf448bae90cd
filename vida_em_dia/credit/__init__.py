"""Credit card limit projection."""

from vida_em_dia.credit.projection import (
    PT_BR_MONTHS,
    CreditRadarService,
    LimitUsage,
    ProjectionPoint,
    build_series,
    months_between,
    occupied_amount,
)

__all__ = [
    "PT_BR_MONTHS",
    "CreditRadarService",
    "LimitUsage",
    "ProjectionPoint",
    "build_series",
    "months_between",
    "occupied_amount",
]
