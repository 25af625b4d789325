"""Pydantic models for the product listing endpoint payloads."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Product(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str
    price: float
    discountPrice: Optional[float] = None
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    createdAt: Optional[datetime] = None
    isFeatured: bool = False
    isVisible: bool = True
    isExternalSource: bool = Field(
        default=False, validation_alias=AliasChoices("isExternalSource", "isAliExpress")
    )

    @field_validator("createdAt")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps from the listing API are UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_discount(self) -> bool:
        return self.discountPrice is not None and self.discountPrice > 0

    @property
    def effective_price(self) -> float:
        """Price the shopper actually pays: the discount price when one is set."""
        return self.discountPrice if self.has_discount else self.price


class Pagination(BaseModel):
    page: int = 1
    limit: int = 12
    total: int = 0
    totalPages: int = 0


class ListingRequest(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=12, ge=1)
    category: Optional[str] = None
    search: Optional[str] = None
    brand: Optional[str] = None
    isExternalSource: bool = False
    isOnSale: bool = False

    def to_query_params(self) -> Dict[str, str]:
        """Serialize to the query string the listing endpoint expects.

        Empty facets are omitted and boolean flags are only sent when set,
        as the literal string ``"true"``.
        """
        params = {"page": str(self.page), "limit": str(self.limit)}
        for key in ("category", "search", "brand"):
            value = getattr(self, key)
            if value:
                params[key] = value
        if self.isExternalSource:
            params["isExternalSource"] = "true"
        if self.isOnSale:
            params["isOnSale"] = "true"
        return params


class ListingResponse(BaseModel):
    products: List[Product] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class BrandsResponse(BaseModel):
    brands: List[str] = Field(default_factory=list)


class CategoriesResponse(BaseModel):
    categories: List[str] = Field(default_factory=list)
