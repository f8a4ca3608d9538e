"""
Pipeline module initialization.
"""

from .validator import (
    validate_selection, build_selection_request, is_valid_pincode, PlatformSelection, SelectionError
)
from .orchestrator import ComparisonOrchestrator, clean_items
from .ranker import rank, rank_records

__all__ = [
    # Selection validation
    "validate_selection",
    "build_selection_request",
    "is_valid_pincode",
    "PlatformSelection",
    "SelectionError",
    # Orchestration
    "ComparisonOrchestrator",
    "clean_items",
    # Ranking
    "rank",
    "rank_records",
]
