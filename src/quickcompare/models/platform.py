"""
Platform catalogue and selection models.
"""

import re
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime

from quickcompare.core.settings import MAX_SELECTED_PLATFORMS, PINCODE_PATTERN


class Platform(BaseModel):
    """A quick-commerce retailer that can be queried for prices."""
    id: str
    name: str
    logo_ref: Optional[str] = None

    class Config:
        frozen = True


class SelectionRequest(BaseModel):
    """Pincode and platforms chosen for one comparison run. Never mutated."""
    owner: str
    pincode: str
    platform_ids: List[str]
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @validator("pincode")
    def check_pincode(cls, v):
        if not re.fullmatch(PINCODE_PATTERN, v):
            raise ValueError("Pincode must be 6 digits and must not start with 0")
        return v

    @validator("platform_ids")
    def check_platform_ids(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Platform ids must be unique")
        if not 1 <= len(v) <= MAX_SELECTED_PLATFORMS:
            raise ValueError(f"Select between 1 and {MAX_SELECTED_PLATFORMS} platforms")
        return v

    class Config:
        frozen = True
