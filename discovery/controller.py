"""Listing controller: one owner for facets, pages, suggestions and location.

State changes for the result area go through :func:`transition`, a pure
``(filters, page, action) -> (filters, page, fetch?)`` step, so the facet
class split and the page-reset rule live in exactly one place.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .backends import BackendError, ProductSearchBackend
from .facets import FacetFilterController, apply_facet, server_params
from .models import Product
from .pagination import PaginationCoordinator, plan_facet_change, plan_goto
from .query_sync import QuerySyncAdapter
from .state import CATEGORIES, FacetChange, FilterState, ListingView, PageState, Status
from .suggestions import Scheduler, SuggestionEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetFacet:
    name: str
    value: Any


@dataclass(frozen=True)
class ResetFilters:
    pass


@dataclass(frozen=True)
class GoToPage:
    page: int


@dataclass(frozen=True)
class NextPage:
    pass


@dataclass(frozen=True)
class PrevPage:
    pass


Action = Union[SetFacet, ResetFilters, GoToPage, NextPage, PrevPage]


@dataclass(frozen=True)
class Fetch:
    page: int
    params: Dict[str, str] = field(default_factory=dict)


def transition(
    filters: FilterState,
    page: PageState,
    action: Action,
    categories: Sequence[str] = CATEGORIES,
) -> Tuple[FilterState, PageState, Optional[Fetch]]:
    if isinstance(action, SetFacet):
        filters, change = apply_facet(filters, action.name, action.value, categories)
        page, needs_fetch = plan_facet_change(page, change)
    elif isinstance(action, ResetFilters):
        filters = FilterState()
        page, needs_fetch = plan_facet_change(page, FacetChange.SERVER_SIDE)
    elif isinstance(action, (GoToPage, NextPage, PrevPage)):
        if isinstance(action, GoToPage):
            target = action.page
        elif isinstance(action, NextPage):
            target = page.current_page + 1
        else:
            target = page.current_page - 1
        planned = plan_goto(page, target)
        if planned is None:
            return filters, page, None
        page, needs_fetch = planned, True
    else:
        raise TypeError(f"Unsupported action: {action!r}")

    if not needs_fetch:
        return filters, page, None
    return filters, page, Fetch(page=page.current_page, params=server_params(filters))


class ListingController:
    def __init__(
        self,
        backend: ProductSearchBackend,
        *,
        navigate: Callable[[str], None] | None = None,
        categories: Sequence[str] = CATEGORIES,
        page_size: int | None = None,
        suggestion_limit: int | None = None,
        debounce_ms: int | None = None,
        scheduler: Scheduler | None = None,
        on_error: Callable[[str], None] | None = None,
        on_select: Callable[[Product], None] | None = None,
    ) -> None:
        self._backend = backend
        self.categories = tuple(categories)
        self.facets = FacetFilterController(self.categories)
        self.pagination = PaginationCoordinator(backend, self.facets, page_size=page_size, on_error=on_error)
        self.suggestions = SuggestionEngine(
            backend,
            limit=suggestion_limit,
            debounce_ms=debounce_ms,
            scheduler=scheduler,
            on_select=on_select,
        )
        self.query_sync = QuerySyncAdapter(navigate, categories=self.categories)
        self.brands: Tuple[str, ...] = ()
        self._brands_loaded = False

    def mount(self, location: str = "") -> None:
        """Seed state from the location once and fetch the first page."""
        hydration = self.query_sync.hydrate(location)
        self.facets.state = hydration.filters
        self.pagination.seed(hydration.page)
        self.pagination.refresh()

    def unmount(self) -> None:
        self.suggestions.clear()

    def dispatch(self, action: Action) -> Optional[Fetch]:
        filters, page, effect = transition(self.facets.state, self.pagination.state, action, self.categories)
        self.facets.state = filters
        self.pagination.state = page
        if effect is not None:
            self.pagination.refresh()
        return effect

    def set_facet(self, name: str, value: Any) -> Optional[Fetch]:
        return self.dispatch(SetFacet(name, value))

    def reset_all(self) -> Optional[Fetch]:
        return self.dispatch(ResetFilters())

    def go_to(self, page: int) -> Optional[Fetch]:
        return self.dispatch(GoToPage(page))

    def next_page(self) -> Optional[Fetch]:
        return self.dispatch(NextPage())

    def prev_page(self) -> Optional[Fetch]:
        return self.dispatch(PrevPage())

    def _push_location(self) -> None:
        self.query_sync.push(self.facets.state, self.pagination.state.current_page)

    def follow_category(self, category: Optional[str]) -> Optional[Fetch]:
        effect = self.set_facet("category", category)
        self._push_location()
        return effect

    def follow_brand(self, brand: Optional[str]) -> Optional[Fetch]:
        effect = self.set_facet("brand", brand)
        self._push_location()
        return effect

    def submit_search(self, text: Optional[str] = None) -> Optional[Fetch]:
        """Commit the search box: the only search change that writes the location."""
        effect = None
        if text is not None and text != self.facets.state.search_text:
            effect = self.set_facet("search_text", text)
        elif self.pagination.state.current_page != 1:
            effect = self.go_to(1)
        self._push_location()
        return effect

    async def load_brands(self) -> Tuple[str, ...]:
        if self._brands_loaded:
            return self.brands
        try:
            brands = await self._backend.fetch_brands()
        except BackendError as exc:
            logger.warning("brand list unavailable: %s", exc)
            return self.brands
        self.brands = tuple(brands)
        self._brands_loaded = True
        logger.info("loaded %s brands", len(self.brands))
        return self.brands

    @property
    def visible_products(self) -> List[Product]:
        return self.pagination.visible_products

    def view(self) -> ListingView:
        status = self.pagination.status
        products: Tuple[Product, ...] = ()
        if status != Status.ERROR:
            products = tuple(self.visible_products)
        return ListingView(
            status=status,
            products=products,
            current_page=self.pagination.state.current_page,
            total_pages=self.pagination.state.total_pages,
            error_message=self.pagination.error_message,
            brands=self.brands,
        )

    async def drain(self) -> None:
        await asyncio.gather(self.pagination.drain(), self.suggestions.drain())
