"""State containers owned by the listing controller.

All containers are frozen dataclasses: components compute a new value and swap
it in, so observers never see a half-applied transition.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Tuple

from .models import Product

CATEGORIES: Tuple[str, ...] = (
    "Electronics & Gadgets",
    "Fashion & Apparel",
    "Beauty & Personal Care",
    "Home & Kitchen",
    "Fitness & Outdoors",
    "Baby & Kids",
    "Pets",
    "Automotive & Tools",
    "Lifestyle & Hobbies",
)
# Category slot value that stands for the "external source only" view.
EXTERNAL_SOURCE_CATEGORY = "External Source"

DEFAULT_PRICE_MIN = 0.0
DEFAULT_PRICE_MAX = 10000.0


class Status(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SortKey(str, Enum):
    NEWEST = "newest"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    NAME = "name"


class FacetChange(str, Enum):
    SERVER_SIDE = "server-side"
    CLIENT_SIDE = "client-side"
    SORT_ONLY = "sort-only"


class Direction(str, Enum):
    NEXT = "next"
    PREV = "prev"


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


@dataclass(frozen=True)
class Query:
    text: str = ""
    debounce_handle: Optional[TimerHandle] = None
    request_generation: int = 0


@dataclass(frozen=True)
class SuggestionState:
    status: Status = Status.IDLE
    items: Tuple[Product, ...] = ()
    active_index: int = -1
    error_message: Optional[str] = None

    @property
    def active_item(self) -> Optional[Product]:
        if 0 <= self.active_index < len(self.items):
            return self.items[self.active_index]
        return None


@dataclass(frozen=True)
class FilterState:
    category: Optional[str] = None
    brand: Optional[str] = None
    search_text: str = ""
    source_only: bool = False
    on_sale_only: bool = False
    price_min: float = DEFAULT_PRICE_MIN
    price_max: float = DEFAULT_PRICE_MAX
    in_stock_only: bool = False
    discounted_only: bool = False
    featured_only: bool = False
    sort_key: SortKey = SortKey.NEWEST

    @property
    def category_slot(self) -> Optional[str]:
        """The single category slot as shown to the shopper."""
        if self.source_only:
            return EXTERNAL_SOURCE_CATEGORY
        return self.category


@dataclass(frozen=True)
class PageState:
    current_page: int = 1
    page_size: int = 12
    total_pages: int = 1
    last_fetch_generation: int = 0


@dataclass(frozen=True)
class ListingView:
    """What the result area renders: the filtered page plus fetch status."""

    status: Status = Status.IDLE
    products: Tuple[Product, ...] = ()
    current_page: int = 1
    total_pages: int = 1
    error_message: Optional[str] = None
    brands: Tuple[str, ...] = field(default_factory=tuple)
