"""Page tracking and last-request-wins listing fetches."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Set, Tuple

from .backends import BackendError, ProductSearchBackend
from .config import settings
from .facets import FacetFilterController
from .models import ListingRequest, Product
from .state import FacetChange, PageState, Status

logger = logging.getLogger(__name__)


def plan_goto(state: PageState, page: int) -> Optional[PageState]:
    """New page state for a jump to ``page``, or ``None`` when out of range."""
    if page < 1 or page > state.total_pages:
        return None
    return replace(state, current_page=page)


def plan_facet_change(state: PageState, change: FacetChange) -> Tuple[PageState, bool]:
    """Page state after a facet change and whether it needs a refetch."""
    if change == FacetChange.SERVER_SIDE:
        return replace(state, current_page=1), True
    return state, False


class PaginationCoordinator:
    """Owns the current page and the product cache for one listing session.

    Every fetch takes the next generation number; a response is applied only
    while its generation is still the latest one, so a slow response can never
    overwrite the result of a request issued after it. Superseded requests are
    not aborted, their results are dropped on arrival.
    """

    def __init__(
        self,
        backend: ProductSearchBackend,
        facets: FacetFilterController,
        *,
        page_size: int | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._backend = backend
        self._facets = facets
        self._on_error = on_error
        self.state = PageState(page_size=page_size or settings.page_size)
        self.products: Tuple[Product, ...] = ()
        self.status = Status.IDLE
        self.error_message: Optional[str] = None
        self._last_good = (self.state.current_page, self.state.total_pages)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def visible_products(self) -> List[Product]:
        return self._facets.apply_client_side_predicate(self.products)

    def seed(self, page: int) -> None:
        """Set the starting page before the first fetch (no range check yet)."""
        self.state = replace(self.state, current_page=max(1, page))

    def go_to(self, page: int) -> bool:
        planned = plan_goto(self.state, page)
        if planned is None:
            logger.debug("ignoring page %s outside 1..%s", page, self.state.total_pages)
            return False
        self.state = planned
        self._issue_fetch()
        return True

    def next(self) -> bool:
        return self.go_to(self.state.current_page + 1)

    def prev(self) -> bool:
        return self.go_to(self.state.current_page - 1)

    def on_facet_changed(self, change: FacetChange) -> bool:
        self.state, needs_fetch = plan_facet_change(self.state, change)
        if needs_fetch:
            self._issue_fetch()
        return needs_fetch

    def refresh(self) -> None:
        """Fetch the current page again with the current facets."""
        self._issue_fetch()

    def build_request(self) -> ListingRequest:
        return ListingRequest(
            page=self.state.current_page,
            limit=self.state.page_size,
            **self._facets.compute_server_params(),
        )

    def _issue_fetch(self) -> None:
        generation = self.state.last_fetch_generation + 1
        self.state = replace(self.state, last_fetch_generation=generation)
        self.status = Status.LOADING
        request = self.build_request()
        logger.info("listing fetch generation=%s params=%s", generation, request.to_query_params())
        task = asyncio.get_running_loop().create_task(self._run_fetch(generation, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_fetch(self, generation: int, request: ListingRequest) -> None:
        try:
            response = await self._backend.fetch_listing(request)
        except BackendError as exc:
            if generation != self.state.last_fetch_generation:
                logger.debug("dropping stale listing failure generation=%s", generation)
                return
            current_page, total_pages = self._last_good
            self.state = replace(self.state, current_page=current_page, total_pages=total_pages)
            self.status = Status.ERROR
            self.error_message = str(exc) or "No products found, please try again"
            logger.warning("listing fetch generation=%s failed: %s", generation, self.error_message)
            if self._on_error is not None:
                self._on_error(self.error_message)
            return

        if generation != self.state.last_fetch_generation:
            logger.debug(
                "dropping stale listing generation=%s latest=%s",
                generation,
                self.state.last_fetch_generation,
            )
            return
        total_pages = max(1, response.pagination.totalPages)
        if self.state.current_page > total_pages:
            logger.info("page %s is past the last page %s, loading it instead", self.state.current_page, total_pages)
            self.state = replace(self.state, current_page=total_pages, total_pages=total_pages)
            self._last_good = (total_pages, total_pages)
            self._issue_fetch()
            return
        self.state = replace(self.state, total_pages=total_pages)
        self._last_good = (self.state.current_page, total_pages)
        self.products = tuple(response.products)
        self.status = Status.SUCCESS
        self.error_message = None
        logger.info(
            "listing applied generation=%s page=%s/%s products=%s",
            generation,
            self.state.current_page,
            total_pages,
            len(self.products),
        )

    async def drain(self) -> None:
        """Wait until every in-flight fetch has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
