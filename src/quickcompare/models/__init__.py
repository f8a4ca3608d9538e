"""
Models package - all data validation schemas for the price comparison pipeline.
"""

# Grocery list models
from .grocery_list import GroceryItem

# Platform models
from .platform import Platform, SelectionRequest

# Product models
from .product import ExtractedProduct, CanonicalProductRecord, RankedProduct, ComparisonGroup

# Pipeline models
from .api import (
    ErrorKind, ValidationResult, ToggleResult, ExtractionRequest,
    PairOutcome, PlatformOutcome, RunSummary, CompareRequest, ItemPayload
)

__all__ = [
    # Grocery list
    "GroceryItem",
    # Platform
    "Platform",
    "SelectionRequest",
    # Product
    "ExtractedProduct",
    "CanonicalProductRecord",
    "RankedProduct",
    "ComparisonGroup",
    # Pipeline
    "ErrorKind",
    "ValidationResult",
    "ToggleResult",
    "ExtractionRequest",
    "PairOutcome",
    "PlatformOutcome",
    "RunSummary",
    "CompareRequest",
    "ItemPayload",
]
