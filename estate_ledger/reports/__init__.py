"""
Reports Package

Pure derivation of the monthly views from an EntitySet.
"""

from estate_ledger.reports.aggregation import (
    ReportEngine,
    build_reports,
    is_active_property,
)
from estate_ledger.reports.allocation import (
    Allocation,
    allocate_property_costs,
    round_half_up,
)
from estate_ledger.reports.area import extract_area
from estate_ledger.reports.collation import ja_sort_key, ja_sort_keys

__all__ = [
    "Allocation",
    "ReportEngine",
    "allocate_property_costs",
    "build_reports",
    "extract_area",
    "is_active_property",
    "ja_sort_key",
    "ja_sort_keys",
    "round_half_up",
]
