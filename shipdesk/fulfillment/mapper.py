"""
Boundary adapter between raw platform JSON and the strict order/shipment
schemas.

Platform responses are not consistently shaped: ids show up as `_id`, `id`
or `lineItemId`, lists may be wrapped in envelopes, and product names may be
plain strings or translation objects. All of the fallbacks live here so the
rest of the engine only ever sees `Order`, `LineItem` and `ShipmentRecord`.
A record missing something the engine cannot do without raises MappingError
instead of being filled with a guess.
"""
from typing import Any

from pydantic import ValidationError

from shipdesk.errors import MappingError
from shipdesk.schemas.order import LineItem, Order, OrderPage, ShipmentItem, ShipmentRecord, TrackingInfo
from shipdesk.utils.logger import log

ID_KEYS = ("_id", "id", "lineItemId")
LINE_ITEM_KEYS = ("lineItems", "line_items", "items")
CREATED_KEYS = ("_createdDate", "createdDate", "created_at", "dateCreated")


def _first(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _require(raw: dict, what: str, *keys: str) -> Any:
    value = _first(raw, *keys)
    if value is None:
        raise MappingError(f"{what} is missing ({' / '.join(keys)})")
    return value


def _quantity(raw: dict, what: str) -> int:
    value = _require(raw, f"{what} quantity", "quantity")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MappingError(f"{what} quantity is not a number: {value!r}")


def _product_name(raw: dict) -> str:
    name = raw.get("productName")
    if isinstance(name, dict):
        name = name.get("original") or name.get("translated")
    return name or raw.get("name") or "Unknown Product"


def parse_line_item(raw: dict) -> LineItem:
    item_id = _first(raw, *ID_KEYS)
    if item_id is None:
        log.warning(f"Line item '{_product_name(raw)}' has no id and cannot be shipped")

    try:
        return LineItem(
            id=str(item_id) if item_id is not None else None,
            name=_product_name(raw),
            quantity=_quantity(raw, "Line item")
        )
    except ValidationError as e:
        raise MappingError(f"Invalid line item {item_id}: {e}") from e


def parse_order(raw: dict) -> Order:
    if not isinstance(raw, dict):
        raise MappingError(f"Expected an order object, got {type(raw).__name__}")

    order_id = _require(raw, "Order id", "_id", "id")
    raw_items = _first(raw, *LINE_ITEM_KEYS) or []

    try:
        return Order(
            id=str(order_id),
            number=str(_require(raw, "Order number", "number", "orderNumber")),
            line_items=[parse_line_item(item) for item in raw_items],
            created_at=_first(raw, *CREATED_KEYS)
        )
    except ValidationError as e:
        raise MappingError(f"Invalid order {order_id}: {e}") from e


def parse_shipment_item(raw: dict) -> ShipmentItem:
    return ShipmentItem(
        line_item_id=str(_require(raw, "Shipment line item id", "lineItemId", "_id", "id")),
        quantity=_quantity(raw, "Shipment line item")
    )


def parse_tracking_info(raw: dict | None) -> TrackingInfo | None:
    if not raw:
        return None

    tracking_number = _first(raw, "trackingNumber", "tracking_number")
    if tracking_number is None:
        return None

    return TrackingInfo(
        tracking_number=str(tracking_number),
        shipping_provider=_first(raw, "shippingProvider", "shipping_provider", "carrier") or "other",
        tracking_link=_first(raw, "trackingLink", "tracking_link", "trackingUrl")
    )


def parse_shipment_record(raw: dict) -> ShipmentRecord:
    record_id = _require(raw, "Shipment record id", "_id", "id", "fulfillmentId")

    try:
        return ShipmentRecord(
            id=str(record_id),
            created_at=_first(raw, *CREATED_KEYS),
            items=[parse_shipment_item(item) for item in _first(raw, *LINE_ITEM_KEYS) or []],
            tracking_info=parse_tracking_info(_first(raw, "trackingInfo", "tracking_info"))
        )
    except ValidationError as e:
        raise MappingError(f"Invalid shipment record {record_id}: {e}") from e


def extract_shipment_records(payload: Any) -> list[ShipmentRecord]:
    """Unwrap the shipment list from any of the envelopes the platform uses."""
    if isinstance(payload, dict):
        if isinstance(payload.get("orderWithFulfillments"), dict):
            payload = payload["orderWithFulfillments"].get("fulfillments") or []
        else:
            payload = payload.get("fulfillments") or []

    if not isinstance(payload, list):
        raise MappingError(f"Unexpected shipment list payload: {type(payload).__name__}")

    return [parse_shipment_record(record) for record in payload]


def parse_order_page(payload: dict) -> OrderPage:
    metadata = payload.get("metadata") or {}
    cursors = metadata.get("cursors") or {}

    return OrderPage(
        orders=[parse_order(order) for order in payload.get("orders") or []],
        has_next=bool(metadata.get("hasNext", False)),
        next_cursor=cursors.get("next") or None
    )


def created_shipment_id(payload: dict) -> str:
    """Id of the shipment record a create call produced."""
    if isinstance(payload.get("fulfillment"), dict):
        payload = payload["fulfillment"]
    return str(_require(payload, "Created shipment record id", "fulfillmentId", "_id", "id"))
