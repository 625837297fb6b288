import os

# Keep test runs from writing log files
os.environ.setdefault("LOG_DIR", "")

from collections import defaultdict
from datetime import datetime, timedelta, timezone

import pytest

from shipdesk.errors import PlatformError
from shipdesk.fulfillment.engine import FulfillmentEngine
from shipdesk.schemas.order import LineItem, Order, ShipmentItem, ShipmentRecord, TrackingInfo
from shipdesk.utils.retry import RetryPolicy


BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakePlatform:
    """In-memory commerce platform that behaves like the real order/fulfillment API."""

    def __init__(self):
        self.orders = {}
        self.shipments = defaultdict(list)
        self.calls = []
        self.failures = defaultdict(list)
        self._next_id = 1

    def add_order(self, order_id: str, number: str, items: list[tuple[str, str, int] | tuple[str, int]]):
        items = [item if len(item) == 3 else (item[0], f"Product {item[0]}", item[1]) for item in items]
        self.orders[order_id] = {
            "_id": order_id,
            "number": number,
            "_createdDate": (BASE_TIME + timedelta(minutes=len(self.orders))).isoformat(),
            "lineItems": [
                {"_id": item_id, "productName": {"original": name}, "quantity": quantity}
                for item_id, name, quantity in items
            ],
        }
        return self.orders[order_id]

    def fail(self, method: str, *errors: Exception):
        """Queue errors that the next calls to `method` raise, one per call."""
        self.failures[method].extend(errors)

    def _record_call(self, method: str, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        if self.failures[method]:
            raise self.failures[method].pop(0)

    def calls_to(self, method: str):
        return [call for call in self.calls if call[0] == method]

    async def get_order(self, order_id: str):
        self._record_call("get_order", order_id)
        return self.orders.get(order_id)

    async def list_shipments(self, order_id: str):
        self._record_call("list_shipments", order_id)
        return {"orderWithFulfillments": {"orderId": order_id, "fulfillments": list(self.shipments[order_id])}}

    async def create_shipment(self, order_id: str, fulfillment: dict, notify: bool = False):
        self._record_call("create_shipment", order_id, fulfillment, notify=notify)
        record_id = f"ship-{self._next_id}"
        self._next_id += 1
        self.shipments[order_id].append({
            "_id": record_id,
            "_createdDate": (BASE_TIME + timedelta(hours=self._next_id)).isoformat(),
            "lineItems": [dict(item) for item in fulfillment["lineItems"]],
            "trackingInfo": dict(fulfillment.get("trackingInfo") or {}),
            "status": fulfillment["status"],
        })
        return {"fulfillmentId": record_id}

    async def update_shipment(self, order_id: str, shipment_record_id: str, tracking_info: dict, notify: bool = False):
        self._record_call("update_shipment", order_id, shipment_record_id, tracking_info, notify=notify)
        for record in self.shipments[order_id]:
            if record["_id"] == shipment_record_id:
                record["trackingInfo"] = dict(tracking_info)
                return {"fulfillment": record}
        raise PlatformError("404 Not Found: fulfillment not found", status_code=404)

    async def search_orders(self, limit: int = 50, cursor: str | None = None):
        self._record_call("search_orders", limit=limit, cursor=cursor)
        newest_first = sorted(self.orders.values(), key=lambda o: o["_createdDate"], reverse=True)
        return {
            "orders": newest_first[:limit],
            "metadata": {"hasNext": len(newest_first) > limit, "cursors": {"next": "next-page" if len(newest_first) > limit else ""}},
        }


class FakeHistory:
    def __init__(self):
        self.entries = []

    async def insert_fulfillment_log(self, entry):
        self.entries.append(entry)
        return entry

    async def get_fulfillment_logs(self, order_id: str):
        return [entry for entry in self.entries if entry.order_id == order_id]


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def no_wait_policy():
    return RetryPolicy(max_attempts=3, base_delay=0, max_jitter=0)


@pytest.fixture
def engine(platform, history, no_wait_policy):
    return FulfillmentEngine(platform=platform, retry_policy=no_wait_policy, history=history)


def make_order(*items: tuple[str, int], order_id: str = "order-1", number: str = "10001") -> Order:
    return Order(
        id=order_id,
        number=number,
        line_items=[LineItem(id=item_id, name=f"Product {item_id}", quantity=quantity) for item_id, quantity in items],
    )


def make_record(
    record_id: str,
    *items: tuple[str, int],
    tracking_number: str | None = "TRACK",
    carrier: str = "Ups",
    url: str | None = None,
    hours: int = 0,
) -> ShipmentRecord:
    tracking = None
    if tracking_number is not None:
        tracking = TrackingInfo(tracking_number=tracking_number, shipping_provider=carrier, tracking_link=url)

    return ShipmentRecord(
        id=record_id,
        created_at=BASE_TIME + timedelta(hours=hours),
        items=[ShipmentItem(line_item_id=item_id, quantity=quantity) for item_id, quantity in items],
        tracking_info=tracking,
    )
