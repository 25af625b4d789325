"""Type-ahead suggestions: debounced, race-free, keyboard navigable."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional, Set, Tuple

from .backends import BackendError, ProductSearchBackend
from .config import settings
from .models import ListingRequest, Product
from .state import Direction, Query, Status, SuggestionState, TimerHandle

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class DebounceEffect(str, Enum):
    CLEAR = "clear"
    SCHEDULE = "schedule"


def debounce(query: Query, text: str) -> Tuple[Query, DebounceEffect, Optional[TimerHandle]]:
    """One debounce step.

    Returns the next query value, what to do with it, and the pending timer
    that must be cancelled (if any). Blank text clears instead of scheduling
    and also bumps the generation so an in-flight lookup cannot repopulate
    the dropdown.
    """
    stale = query.debounce_handle
    if not text.strip():
        cleared = Query(text=text, request_generation=query.request_generation + 1)
        return cleared, DebounceEffect.CLEAR, stale
    return replace(query, text=text, debounce_handle=None), DebounceEffect.SCHEDULE, stale


class SuggestionEngine:
    def __init__(
        self,
        backend: ProductSearchBackend,
        *,
        limit: int | None = None,
        debounce_ms: int | None = None,
        scheduler: Scheduler | None = None,
        on_select: Callable[[Product], None] | None = None,
    ) -> None:
        self._backend = backend
        self._limit = limit or settings.suggestion_limit
        delay_ms = debounce_ms if debounce_ms is not None else settings.suggestion_debounce_ms
        self._delay = delay_ms / 1000
        self._scheduler = scheduler or loop_scheduler
        self._on_select = on_select
        self._tasks: Set[asyncio.Task] = set()
        self.query = Query()
        self.state = SuggestionState()

    def set_query(self, text: str) -> None:
        self.query, effect, stale = debounce(self.query, text)
        if stale is not None:
            stale.cancel()
        if effect == DebounceEffect.CLEAR:
            self.state = SuggestionState()
            return
        handle = self._scheduler(self._delay, self._fire)
        self.query = replace(self.query, debounce_handle=handle)
        logger.debug("suggestion lookup scheduled text=%r in %.0fms", text, self._delay * 1000)

    def _fire(self) -> None:
        generation = self.query.request_generation + 1
        text = self.query.text.strip()
        self.query = replace(self.query, debounce_handle=None, request_generation=generation)
        self.state = replace(self.state, status=Status.LOADING, error_message=None)
        task = asyncio.get_running_loop().create_task(self._lookup(generation, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _lookup(self, generation: int, text: str) -> None:
        request = ListingRequest(page=1, limit=self._limit, search=text)
        try:
            response = await self._backend.fetch_listing(request)
        except BackendError as exc:
            if generation != self.query.request_generation:
                logger.debug("dropping stale suggestion failure generation=%s", generation)
                return
            logger.warning("suggestion lookup for %r failed: %s", text, exc)
            self.state = SuggestionState(status=Status.ERROR, error_message=str(exc))
            return

        if generation != self.query.request_generation:
            logger.debug(
                "dropping stale suggestions generation=%s latest=%s",
                generation,
                self.query.request_generation,
            )
            return
        items = tuple(response.products[: self._limit])
        self.state = SuggestionState(status=Status.SUCCESS, items=items)
        logger.debug("suggestions for %r: %s items", text, len(items))

    def navigate(self, direction: Direction) -> None:
        count = len(self.state.items)
        if not count:
            return
        index = self.state.active_index
        if direction == Direction.NEXT:
            index = (index + 1) % count
        else:
            index = count - 1 if index <= 0 else index - 1
        self.state = replace(self.state, active_index=index)

    def select(self, index: int) -> Optional[Product]:
        if not 0 <= index < len(self.state.items):
            return None
        product = self.state.items[index]
        self.clear()
        if self._on_select is not None:
            self._on_select(product)
        return product

    def select_active(self) -> Optional[Product]:
        return self.select(self.state.active_index)

    def clear(self) -> None:
        if self.query.debounce_handle is not None:
            self.query.debounce_handle.cancel()
        self.query = Query(request_generation=self.query.request_generation + 1)
        self.state = SuggestionState()

    async def drain(self) -> None:
        """Wait until every in-flight lookup has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
