import asyncio
from collections import OrderedDict
from typing import Awaitable, Callable

from shipdesk.config import settings
from shipdesk.schemas.order import Order
from shipdesk.utils.logger import log


class SeenOrderCache:
    """Order ids seen so far, evicting the least recently seen beyond maxsize."""

    def __init__(self, maxsize: int = 1000):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._ids: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, order_id: str) -> bool:
        return order_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, order_id: str) -> bool:
        """Mark an id as seen now. Returns True if it was not in the cache."""
        if order_id in self._ids:
            self._ids.move_to_end(order_id)
            return False

        self._ids[order_id] = None
        while len(self._ids) > self.maxsize:
            self._ids.popitem(last=False)
        return True


class OrderWatcher:
    """
    Polls the newest orders and reports the ones not seen before.

    The first poll only learns what already exists, so a restart does not
    announce the whole backlog as new.
    """

    def __init__(
        self,
        engine,
        on_new_order: Callable[[Order], Awaitable[None]] | None = None,
        interval: float | None = None,
        page_size: int | None = None,
        seen: SeenOrderCache | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.engine = engine
        self.on_new_order = on_new_order
        self.interval = interval if interval is not None else settings.ORDER_WATCH_INTERVAL
        self.page_size = page_size or settings.ORDER_WATCH_PAGE_SIZE
        self.seen = seen if seen is not None else SeenOrderCache(max(settings.SEEN_ORDERS_MAX, self.page_size))
        # A cache smaller than one page would forget ids it just read and report them again
        if self.seen.maxsize < self.page_size:
            raise ValueError(f"Seen-order cache ({self.seen.maxsize}) must hold at least one page ({self.page_size})")
        self.sleep = sleep
        self.primed = False

    async def poll_once(self) -> list[Order]:
        page = await self.engine.list_orders(limit=self.page_size)

        # The platform lists newest first; report in arrival order
        new_orders = [order for order in reversed(page.orders) if self.seen.add(order.id)]

        if not self.primed:
            self.primed = True
            log.info(f"Order watcher primed with {len(self.seen)} existing orders")
            return []

        for order in new_orders:
            log.info(f"New order {order.number} ({order.id})")
            if self.on_new_order:
                await self.on_new_order(order)

        return new_orders

    async def run(self):
        log.info(f"Watching for new orders every {self.interval}s")
        while True:
            try:
                await self.poll_once()
            except Exception:
                log.exception("Order watcher poll failed")

            await self.sleep(self.interval)
