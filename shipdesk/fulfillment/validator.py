from collections import defaultdict
from typing import Iterable

from shipdesk.fulfillment.quantity import reconcile_line_item
from shipdesk.schemas.fulfillment import InvalidItem, InvalidReason, ValidationResult
from shipdesk.schemas.order import Order, ShipmentItem, ShipmentRecord


def validate_items(
    requested: Iterable[ShipmentItem],
    order: Order,
    records: list[ShipmentRecord]
) -> ValidationResult:
    """
    Split requested (item, quantity) pairs into the ones that can ship and
    the ones that cannot, each with a reason.

    Every entry is accepted or rejected whole. Remaining quantity comes from
    the given shipment records; entries repeating an item are checked
    against what the earlier accepted entries left over.
    """
    line_items = {item.id: item for item in order.line_items if item.id}
    claimed = defaultdict(int)
    result = ValidationResult()

    for entry in requested:
        line_item = line_items.get(entry.line_item_id)
        if line_item is None:
            result.invalid_items.append(InvalidItem(
                line_item_id=entry.line_item_id,
                quantity=entry.quantity,
                reason=InvalidReason.ITEM_NOT_IN_ORDER,
                message=f"Item {entry.line_item_id} not found in order"
            ))
            continue

        remaining = reconcile_line_item(line_item, records).remaining_quantity
        remaining = max(0, remaining - claimed[entry.line_item_id])

        if entry.quantity <= 0:
            result.invalid_items.append(InvalidItem(
                line_item_id=entry.line_item_id,
                quantity=entry.quantity,
                reason=InvalidReason.QUANTITY_NOT_POSITIVE,
                message="Quantity must be greater than 0",
                remaining_quantity=remaining
            ))
            continue

        if entry.quantity > remaining:
            result.invalid_items.append(InvalidItem(
                line_item_id=entry.line_item_id,
                quantity=entry.quantity,
                reason=InvalidReason.QUANTITY_EXCEEDS_REMAINING,
                message=f"Requested {entry.quantity} but only {remaining} remaining",
                remaining_quantity=remaining
            ))
            continue

        claimed[entry.line_item_id] += entry.quantity
        result.valid_items.append(ShipmentItem(line_item_id=entry.line_item_id, quantity=entry.quantity))

    return result
