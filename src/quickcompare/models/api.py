"""
Pipeline request/response models and the error taxonomy.
"""

from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class ErrorKind(str, Enum):
    """Every failure the pipeline reports to its callers."""
    INVALID_PINCODE = "InvalidPincode"
    NO_PLATFORM_SELECTED = "NoPlatformSelected"
    TOO_MANY_PLATFORMS = "TooManyPlatforms"
    UNKNOWN_PLATFORM = "UnknownPlatform"
    NO_ITEMS = "NoItems"
    UNSUPPORTED_PLATFORM = "UnsupportedPlatform"
    EXTRACTION_FAILED = "ExtractionFailed"
    STORE_WRITE_FAILED = "StoreWriteFailed"


class ValidationResult(BaseModel):
    """Outcome of validating a pincode and platform selection."""
    ok: bool
    reason: Optional[ErrorKind] = None
    message: str = ""


class ToggleResult(BaseModel):
    """Outcome of toggling one platform in a selection."""
    selected: List[str]
    changed: bool
    reason: Optional[ErrorKind] = None


class ExtractionRequest(BaseModel):
    """Request sent to the extraction capability for one (platform, item) pair."""
    platform_id: str
    grocery_item: str
    target: str
    instruction: str
    extraction_schema: Dict[str, Any]
    location_hint: str
    headers: Dict[str, str] = Field(default_factory=dict)


class PairOutcome(BaseModel):
    """Result of one (platform, item) extraction attempt."""
    platform_id: str
    grocery_item: str
    ok: bool
    records_saved: int = 0
    error: Optional[ErrorKind] = None
    cause: Optional[str] = None


class PlatformOutcome(BaseModel):
    """Per-platform roll-up of pair outcomes, in item order."""
    platform_id: str
    platform_name: str
    ok: bool = True
    records_saved: int = 0
    error: Optional[ErrorKind] = None
    cause: Optional[str] = None
    attempts: List[PairOutcome] = Field(default_factory=list)

    def add(self, outcome: PairOutcome):
        self.attempts.append(outcome)
        self.records_saved += outcome.records_saved
        if not outcome.ok:
            self.ok = False
            self.error = outcome.error
            self.cause = outcome.cause


class RunSummary(BaseModel):
    """What one orchestrator run did, for the presentation layer."""
    owner: str
    pincode: str
    items: List[str] = Field(default_factory=list)
    started: bool = False
    error: Optional[ErrorKind] = None
    cause: Optional[str] = None
    per_platform: Dict[str, PlatformOutcome] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def total_records(self) -> int:
        return sum(p.records_saved for p in self.per_platform.values())

    @property
    def failed_platforms(self) -> List[str]:
        return [pid for pid, p in self.per_platform.items() if not p.ok]


class CompareRequest(BaseModel):
    """Body of POST /api/compare."""
    pincode: str
    platform_ids: List[str]


class ItemPayload(BaseModel):
    """Body for creating or renaming a grocery item."""
    name: str
