"""
Product record models for the price comparison pipeline.
"""

from decimal import Decimal
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime


class ExtractedProduct(BaseModel):
    """One normalized product entry as returned by the extraction adapter."""
    product_name: str
    price: Decimal
    unit_size: Optional[str] = None
    special_offer: Optional[str] = None
    is_available: bool = True

    @validator("price")
    def check_non_negative(cls, v):
        if not v.is_finite() or v < 0:
            raise ValueError("Price must be a non-negative number")
        return v

    def to_record(self, owner: str, platform_id: str, grocery_item: str) -> "CanonicalProductRecord":
        return CanonicalProductRecord(
            owner=owner,
            platform_id=platform_id,
            grocery_item=grocery_item,
            product_name=self.product_name,
            price=self.price,
            unit_size=self.unit_size,
            special_offer=self.special_offer,
            is_available=self.is_available,
        )

    class Config:
        frozen = True


class CanonicalProductRecord(BaseModel):
    """Persisted product price for one (owner, platform, grocery item)."""
    id: Optional[int] = None
    owner: str
    platform_id: str
    grocery_item: str
    product_name: str
    price: Decimal
    unit_size: Optional[str] = None
    special_offer: Optional[str] = None
    is_available: bool = True
    scraped_at: datetime = Field(default_factory=datetime.utcnow)

    @validator("price")
    def check_non_negative(cls, v):
        if not v.is_finite() or v < 0:
            raise ValueError("Price must be a non-negative number")
        return v

    class Config:
        frozen = True


class RankedProduct(BaseModel):
    """A record placed inside a comparison group."""
    record: CanonicalProductRecord
    rank: int
    is_best_price: bool = False
    is_out_of_stock: bool = False


class ComparisonGroup(BaseModel):
    """Cheapest records for one grocery item, ascending by price."""
    grocery_item: str
    ranked: List[RankedProduct] = Field(default_factory=list)

    @property
    def best(self) -> Optional[RankedProduct]:
        return self.ranked[0] if self.ranked else None

    @property
    def is_empty(self) -> bool:
        return not self.ranked
