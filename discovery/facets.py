"""Facet state, the server/client facet split and the client-side predicate.

Server-side facets (category, brand, search text, source, on-sale) go out with
the listing request. Client-side facets (price range, stock, discount,
featured) and the sort key only touch the page that was already fetched.

Because client-side facets filter the current page rather than the whole
result set, a filtered page may show fewer products than the pagination
footer suggests, and can even be empty while ``total_pages > 1``.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Product
from .state import (
    CATEGORIES,
    DEFAULT_PRICE_MAX,
    DEFAULT_PRICE_MIN,
    EXTERNAL_SOURCE_CATEGORY,
    FacetChange,
    FilterState,
    SortKey,
)

logger = logging.getLogger(__name__)

SERVER_SIDE_FACETS = frozenset({"category", "brand", "search_text", "source_only", "on_sale_only"})
CLIENT_SIDE_FACETS = frozenset(
    {"price_min", "price_max", "in_stock_only", "discounted_only", "featured_only"}
)
SORT_FACETS = frozenset({"sort_key"})


def classify_facet(name: str) -> FacetChange:
    if name in SERVER_SIDE_FACETS:
        return FacetChange.SERVER_SIDE
    if name in CLIENT_SIDE_FACETS:
        return FacetChange.CLIENT_SIDE
    if name in SORT_FACETS:
        return FacetChange.SORT_ONLY
    raise ValueError(f"Unknown facet: {name!r}")


def normalize_category(value: Optional[str], categories: Sequence[str] = CATEGORIES) -> Tuple[Optional[str], bool]:
    """Map a category slot value to ``(category, source_only)``.

    Unknown values collapse to "no category" instead of raising.
    """
    if value is None:
        return None, False
    value = value.strip()
    if value == EXTERNAL_SOURCE_CATEGORY:
        return None, True
    if value in categories:
        return value, False
    return None, False


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_price(value: Any, default: float) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return default
    if price != price:  # NaN
        return default
    return max(price, 0.0)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def apply_facet(
    state: FilterState,
    name: str,
    value: Any,
    categories: Sequence[str] = CATEGORIES,
) -> Tuple[FilterState, FacetChange]:
    """Return ``state`` with one facet updated, plus the class of the change."""
    change = classify_facet(name)
    if name == "category":
        category, source_only = normalize_category(_as_text(value), categories)
        return replace(state, category=category, source_only=source_only), change
    if name == "source_only":
        source_only = _as_bool(value)
        # One category slot: switching to the source view drops the category.
        category = None if source_only else state.category
        return replace(state, category=category, source_only=source_only), change
    if name == "brand":
        return replace(state, brand=_as_text(value)), change
    if name == "search_text":
        return replace(state, search_text="" if value is None else str(value)), change
    if name == "price_min":
        return replace(state, price_min=_as_price(value, DEFAULT_PRICE_MIN)), change
    if name == "price_max":
        return replace(state, price_max=_as_price(value, DEFAULT_PRICE_MAX)), change
    if name == "sort_key":
        return replace(state, sort_key=SortKey(value)), change
    return replace(state, **{name: _as_bool(value)}), change


def server_params(state: FilterState) -> Dict[str, str]:
    """Listing request parameters derived from the server-side facets."""
    params: Dict[str, str] = {}
    if state.source_only:
        params["isExternalSource"] = "true"
    elif state.category:
        params["category"] = state.category
    search = state.search_text.strip()
    if search:
        params["search"] = search
    if state.brand:
        params["brand"] = state.brand
    if state.on_sale_only:
        params["isOnSale"] = "true"
    return params


def effective_price_range(state: FilterState) -> Tuple[Optional[float], Optional[float]]:
    """Active price bounds, ``None`` for a bound left at its default.

    An inverted range (max below min) is swapped back into order.
    """
    low = state.price_min if state.price_min != DEFAULT_PRICE_MIN else None
    high = state.price_max if state.price_max != DEFAULT_PRICE_MAX else None
    if low is not None and high is not None and high < low:
        return high, low
    return low, high


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first_key(product: Product) -> Tuple[bool, datetime]:
    # Undated products sort after every dated one.
    return product.createdAt is not None, product.createdAt or _EPOCH


def _sort_spec(sort_key: SortKey) -> Tuple[Callable[[Product], Any], bool]:
    if sort_key == SortKey.PRICE_LOW:
        return (lambda product: product.effective_price), False
    if sort_key == SortKey.PRICE_HIGH:
        return (lambda product: product.effective_price), True
    if sort_key == SortKey.NAME:
        return (lambda product: product.name), False
    return _newest_first_key, True


def apply_client_side_predicate(state: FilterState, products: Iterable[Product]) -> List[Product]:
    low, high = effective_price_range(state)

    def keep(product: Product) -> bool:
        price = product.effective_price
        if low is not None and price < low:
            return False
        if high is not None and price > high:
            return False
        if state.in_stock_only and product.stock <= 0:
            return False
        if state.discounted_only and not product.has_discount:
            return False
        if state.featured_only and not product.isFeatured:
            return False
        return True

    kept = [product for product in products if keep(product)]
    key, descending = _sort_spec(state.sort_key)
    return sorted(kept, key=key, reverse=descending)


class FacetFilterController:
    """Holds the active facets for one listing session."""

    def __init__(self, categories: Sequence[str] = CATEGORIES, state: FilterState | None = None) -> None:
        self.categories = tuple(categories)
        self.state = state or FilterState()

    def set_facet(self, name: str, value: Any) -> FacetChange:
        self.state, change = apply_facet(self.state, name, value, self.categories)
        logger.debug("facet %s=%r (%s)", name, value, change.value)
        return change

    def reset_all(self) -> FacetChange:
        self.state = FilterState()
        logger.info("filters reset to defaults")
        return FacetChange.SERVER_SIDE

    def compute_server_params(self) -> Dict[str, str]:
        return server_params(self.state)

    def apply_client_side_predicate(self, products: Iterable[Product]) -> List[Product]:
        return apply_client_side_predicate(self.state, products)
