"""
Grocery list related models.
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime


class GroceryItem(BaseModel):
    """One entry on a user's grocery list."""
    id: Optional[int] = None
    owner: str
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @validator("name")
    def check_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Item name must not be empty")
        return v

    class Config:
        arbitrary_types_allowed = True
