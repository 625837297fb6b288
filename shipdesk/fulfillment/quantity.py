from typing import Iterable

from shipdesk.schemas.fulfillment import FulfillmentStatus, ItemFulfillment
from shipdesk.schemas.order import LineItem, ShipmentRecord


def shipped_quantity(line_item_id: str | None, records: Iterable[ShipmentRecord]) -> int:
    """Total quantity of a line item covered by the given shipment records."""
    if not line_item_id:
        return 0
    return sum(record.quantity_for(line_item_id) for record in records)


def item_status(ordered: int, fulfilled: int) -> FulfillmentStatus:
    if fulfilled >= ordered:
        return FulfillmentStatus.FULFILLED
    if fulfilled > 0:
        return FulfillmentStatus.PARTIALLY_FULFILLED
    return FulfillmentStatus.NOT_FULFILLED


def reconcile_quantity(ordered: int, shipped: int) -> ItemFulfillment:
    ordered = max(0, ordered)
    fulfilled = min(ordered, max(0, shipped))
    return ItemFulfillment(
        ordered_quantity=ordered,
        fulfilled_quantity=fulfilled,
        remaining_quantity=ordered - fulfilled,
        status=item_status(ordered, fulfilled)
    )


def reconcile_line_item(item: LineItem, records: Iterable[ShipmentRecord]) -> ItemFulfillment:
    return reconcile_quantity(item.quantity, shipped_quantity(item.id, records))


def order_status(statuses: Iterable[FulfillmentStatus]) -> FulfillmentStatus:
    """
    Overall status from per-item states: FULFILLED only when every item is,
    NOT_FULFILLED when no item has shipped (including an order with no
    items), PARTIALLY_FULFILLED otherwise.
    """
    statuses = list(statuses)
    if statuses and all(status == FulfillmentStatus.FULFILLED for status in statuses):
        return FulfillmentStatus.FULFILLED
    if all(status == FulfillmentStatus.NOT_FULFILLED for status in statuses):
        return FulfillmentStatus.NOT_FULFILLED
    return FulfillmentStatus.PARTIALLY_FULFILLED
