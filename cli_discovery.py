"""Terminal client that drives the listing controller against a live API.

Plain text is typed into the suggestion box; slash commands drive the facets:

    /category <name>   /brand <name>   /search <text>   /sort <key>
    /price <min> <max> /stock  /discount  /featured  /onsale  /external
    /page <n>  /next  /prev  /reset  /brands  /show
    /up  /down  /enter  /pick <n>   (move through and pick a suggestion)
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Iterable, Optional

from discovery.backends import CachedProductSearchBackend, HttpProductSearchBackend
from discovery.config import settings
from discovery.controller import ListingController
from discovery.state import Direction, Status

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"

TOGGLES = {
    "/stock": "in_stock_only",
    "/discount": "discounted_only",
    "/featured": "featured_only",
    "/onsale": "on_sale_only",
    "/external": "source_only",
}


def pretty_print_listing(controller: ListingController) -> None:
    view = controller.view()
    if view.status == Status.ERROR:
        print(f"{RED}{view.error_message}{RESET}")
        return
    filters = controller.facets.state
    print(
        f"Page {view.current_page} of {view.total_pages} | showing {len(view.products)} | "
        f"category={filters.category_slot} brand={filters.brand} search={filters.search_text!r} "
        f"sort={filters.sort_key.value}"
    )
    for idx, product in enumerate(view.products, start=1):
        price = f"{product.effective_price:.2f}"
        if product.has_discount:
            price = f"{GREEN}{price}{RESET} (was {product.price:.2f})"
        print(f"  {idx:02d}. {product.name} | {product.brand} | {price} | stock={product.stock}")


def pretty_print_suggestions(controller: ListingController) -> None:
    state = controller.suggestions.state
    if state.status == Status.ERROR:
        print(f"  {RED}{state.error_message}{RESET}")
        return
    if not state.items:
        print("  (no suggestions)")
        return
    active = state.active_item
    for idx, product in enumerate(state.items):
        line = f"  {idx}. {product.name}"
        print(f"{GREEN}{line}{RESET}" if product is active else line)


async def handle_command(controller: ListingController, line: str) -> bool:
    command, _, arg = line.partition(" ")
    arg = arg.strip()
    if command in {"/exit", "/quit"}:
        return False
    if command in TOGGLES:
        name = TOGGLES[command]
        controller.set_facet(name, not getattr(controller.facets.state, name))
    elif command == "/category":
        controller.follow_category(arg or None)
    elif command == "/brand":
        controller.follow_brand(arg or None)
    elif command == "/search":
        controller.submit_search(arg)
    elif command == "/sort":
        try:
            controller.set_facet("sort_key", arg)
        except ValueError:
            print("sort keys: newest, price-low, price-high, name")
    elif command == "/price":
        low, _, high = arg.partition(" ")
        controller.set_facet("price_min", low or 0)
        controller.set_facet("price_max", high or 10000)
    elif command == "/page" and arg.isdigit():
        controller.go_to(int(arg))
    elif command == "/next":
        controller.next_page()
    elif command == "/prev":
        controller.prev_page()
    elif command == "/reset":
        controller.reset_all()
    elif command == "/brands":
        print(", ".join(await controller.load_brands()) or "(no brands)")
        return True
    elif command in {"/up", "/down"}:
        controller.suggestions.navigate(Direction.PREV if command == "/up" else Direction.NEXT)
        pretty_print_suggestions(controller)
        return True
    elif command in {"/enter", "/pick"}:
        if command == "/enter":
            product = controller.suggestions.select_active()
        else:
            product = controller.suggestions.select(int(arg)) if arg.isdigit() else None
        if product is not None:
            print(f"Selected {product.name} ({product.id})")
        return True
    elif command != "/show":
        print(__doc__)
        return True
    await controller.drain()
    pretty_print_listing(controller)
    return True


async def interactive_shell(controller: ListingController, location: str) -> None:
    controller.mount(location)
    await controller.drain()
    pretty_print_listing(controller)
    print("Type to get suggestions, /help for commands, /exit to quit.")
    while True:
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not line:
            controller.suggestions.clear()
            continue
        if line.startswith("/"):
            if not await handle_command(controller, line):
                return
            continue
        controller.suggestions.set_query(line)
        await asyncio.sleep(settings.suggestion_debounce_ms / 1000 + 0.05)
        await controller.drain()
        pretty_print_suggestions(controller)


async def run(location: str, api_url: Optional[str], use_cache: bool) -> None:
    http_backend = HttpProductSearchBackend(api_url)
    backend = CachedProductSearchBackend(http_backend) if use_cache else http_backend
    controller = ListingController(backend, navigate=lambda loc: print(f"-> {loc}"))
    try:
        await interactive_shell(controller, location)
    finally:
        controller.unmount()
        await http_backend.aclose()


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for product discovery")
    parser.add_argument("location", nargs="?", default="", help="Initial location, e.g. 'category=Pets&page=2'")
    parser.add_argument("--api-url", help=f"Listing API base URL (default {settings.api_url})")
    parser.add_argument("--cache", action="store_true", help="Cache listing responses (Redis or in-memory)")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.getLevelName(settings.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    asyncio.run(run(args.location, args.api_url, args.cache))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
