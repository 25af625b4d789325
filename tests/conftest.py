"""Shared fakes: a backend whose responses the test resolves by hand, and a
scheduler whose timers fire only when told to."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

import pytest

from discovery.backends import BackendError
from discovery.models import ListingRequest, ListingResponse, Pagination, Product

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeBackend:
    def __init__(self) -> None:
        self.calls: List[ListingRequest] = []
        self.pending: List[asyncio.Future] = []
        self.brands: List[str] = ["Acme", "Globex"]
        self.brand_error: Optional[str] = None
        self.brand_calls = 0

    async def fetch_listing(self, request: ListingRequest) -> ListingResponse:
        self.calls.append(request)
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    async def fetch_brands(self) -> List[str]:
        self.brand_calls += 1
        if self.brand_error:
            raise BackendError(self.brand_error)
        return list(self.brands)

    def respond(self, index: int, products: List[Product], total_pages: int = 1) -> None:
        request = self.calls[index]
        self.pending[index].set_result(
            ListingResponse(
                products=products,
                pagination=Pagination(
                    page=request.page,
                    limit=request.limit,
                    total=len(products),
                    totalPages=total_pages,
                ),
            )
        )

    def fail(self, index: int, message: str = "Failed to fetch products") -> None:
        self.pending[index].set_exception(BackendError(message))


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled and not timer.fired]

    def fire(self) -> None:
        for timer in self.pending:
            timer.fired = True
            timer.callback()


async def settle() -> None:
    """Let freshly created tasks run up to their first await."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def make_product() -> Callable[..., Product]:
    def factory(pid: int, price: float = 10.0, **overrides) -> Product:
        data = {
            "id": str(pid),
            "name": f"Product {pid}",
            "price": price,
            "stock": 5,
            "category": "Electronics",
            "brand": "Acme",
            "createdAt": BASE_TIME + timedelta(days=pid),
        }
        data.update(overrides)
        return Product(**data)

    return factory


@pytest.fixture
def settle_tasks() -> Callable[[], Awaitable[None]]:
    return settle
