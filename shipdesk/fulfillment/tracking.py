"""
Tracking aggregation: fold every shipment record of an order back onto its
line items.

One line item can be split over several partial shipments and one tracking
number can cover several items, so every (record, item) pair becomes its own
tracking entry. Entries are never merged, not even when two records carry
the same tracking number for the same item: a re-shipment or a correction is
still a separate shipment.
"""
from shipdesk.fulfillment.quantity import order_status, reconcile_line_item
from shipdesk.schemas.fulfillment import FulfillmentView, ItemFulfillmentView, TrackingEntry
from shipdesk.schemas.order import LineItem, Order, ShipmentRecord


def _shipped_order(record: ShipmentRecord) -> float:
    # Records without a timestamp keep their listing position, after the dated ones
    if record.created_at is None:
        return float("inf")
    return record.created_at.timestamp()


def tracking_entries(item: LineItem, records: list[ShipmentRecord]) -> list[TrackingEntry]:
    if not item.id:
        return []

    entries = []
    for record in sorted(records, key=_shipped_order):
        # Shipments without tracking still count as fulfilled, they just have nothing to show
        if record.tracking_info is None or not record.tracking_info.tracking_number:
            continue

        quantity = record.quantity_for(item.id)
        if quantity <= 0:
            continue

        entries.append(TrackingEntry(
            tracking_number=record.tracking_info.tracking_number,
            carrier=record.tracking_info.shipping_provider,
            quantity=quantity,
            tracking_url=record.tracking_info.tracking_link or None,
            shipment_record_id=record.id,
            shipped_at=record.created_at
        ))
    return entries


def item_view(item: LineItem, records: list[ShipmentRecord]) -> ItemFulfillmentView:
    quantities = reconcile_line_item(item, records)
    entries = tracking_entries(item, records)

    return ItemFulfillmentView(
        line_item_id=item.id,
        name=item.name,
        ordered_quantity=quantities.ordered_quantity,
        fulfilled_quantity=quantities.fulfilled_quantity,
        remaining_quantity=quantities.remaining_quantity,
        tracked_quantity=sum(entry.quantity for entry in entries),
        status=quantities.status,
        tracking=entries
    )


def aggregate_tracking(order: Order, records: list[ShipmentRecord]) -> FulfillmentView:
    """Build the per-item tracking view and overall status of an order."""
    items = [item_view(item, records) for item in order.line_items]

    return FulfillmentView(
        order_id=order.id,
        order_number=order.number,
        items=items,
        overall_status=order_status(item.status for item in items),
        total_ordered=sum(item.ordered_quantity for item in items),
        total_fulfilled=sum(item.fulfilled_quantity for item in items),
        total_remaining=sum(item.remaining_quantity for item in items),
        # Every recorded shipment has already shipped, so only unshipped quantity can take new tracking
        can_add_tracking=any(item.remaining_quantity > 0 for item in items),
        can_edit_tracking=any(item.tracking for item in items)
    )
