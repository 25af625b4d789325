"""Two-way sync between facets and the navigation location.

The location is read once at mount (:func:`hydrate`) and written only on
explicit navigation actions, never per keystroke.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence
from urllib.parse import parse_qs, urlencode, urlsplit

from .facets import normalize_category
from .state import CATEGORIES, FilterState

logger = logging.getLogger(__name__)

LOCATION_KEYS = ("category", "search", "brand", "page", "onSale")


@dataclass(frozen=True)
class Hydration:
    filters: FilterState
    page: int


def _query_string(location: str) -> str:
    if "?" in location or location.startswith("/"):
        return urlsplit(location).query
    return location


def _parse_page(raw: str) -> int:
    try:
        page = int(raw)
    except ValueError:
        return 1
    return page if page >= 1 else 1


def hydrate(location: str, categories: Sequence[str] = CATEGORIES) -> Hydration:
    """Seed facets and page from a location string; bad values become defaults."""
    values = {key: items[0] for key, items in parse_qs(_query_string(location or "")).items() if items}
    category, source_only = normalize_category(values.get("category"), categories)
    brand = values.get("brand", "").strip() or None
    filters = FilterState(
        category=category,
        source_only=source_only,
        brand=brand,
        search_text=values.get("search", "").strip(),
        on_sale_only=values.get("onSale", "").strip().lower() == "true",
    )
    page = _parse_page(values.get("page", "1"))
    ignored = sorted(set(values) - set(LOCATION_KEYS))
    if ignored:
        logger.debug("ignoring unknown location keys %s", ignored)
    return Hydration(filters=filters, page=page)


def to_query_string(filters: FilterState, page: int = 1) -> str:
    params = []
    if filters.category_slot:
        params.append(("category", filters.category_slot))
    if filters.search_text.strip():
        params.append(("search", filters.search_text.strip()))
    if filters.brand:
        params.append(("brand", filters.brand))
    if page > 1:
        params.append(("page", str(page)))
    if filters.on_sale_only:
        params.append(("onSale", "true"))
    return urlencode(params)


class QuerySyncAdapter:
    def __init__(
        self,
        navigate: Callable[[str], None] | None = None,
        *,
        path: str = "/shop",
        categories: Sequence[str] = CATEGORIES,
    ) -> None:
        self._navigate = navigate
        self.path = path
        self.categories = tuple(categories)
        self.location = path

    def hydrate(self, location: str) -> Hydration:
        self.location = location
        hydration = hydrate(location, self.categories)
        logger.info(
            "hydrated from %r category=%r brand=%r page=%s",
            location,
            hydration.filters.category_slot,
            hydration.filters.brand,
            hydration.page,
        )
        return hydration

    def push(self, filters: FilterState, page: int = 1) -> str:
        query = to_query_string(filters, page)
        location = f"{self.path}?{query}" if query else self.path
        if location == self.location:
            return location
        self.location = location
        if self._navigate is not None:
            self._navigate(location)
        return location
