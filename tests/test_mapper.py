"""
Mapping raw platform payloads onto the order and shipment schemas.
"""
import pytest

from shipdesk.errors import MappingError
from shipdesk.fulfillment.mapper import (
    created_shipment_id,
    extract_shipment_records,
    parse_line_item,
    parse_order,
    parse_order_page,
    parse_shipment_record,
)


class TestParseOrder:

    def test_platform_shape(self):
        order = parse_order({
            "_id": "o1",
            "number": 10042,
            "_createdDate": "2026-03-01T12:00:00Z",
            "lineItems": [
                {"_id": "li1", "productName": {"original": "Mug"}, "quantity": 2},
                {"id": "li2", "name": "Plate", "quantity": "3"},
            ],
        })

        assert order.id == "o1"
        assert order.number == "10042"
        assert order.created_at is not None
        assert [(i.id, i.name, i.quantity) for i in order.line_items] == [("li1", "Mug", 2), ("li2", "Plate", 3)]

    def test_alternate_keys(self):
        order = parse_order({"id": "o2", "orderNumber": "A-7", "line_items": [{"lineItemId": "x", "quantity": 1}]})

        assert order.number == "A-7"
        assert order.line_items[0].id == "x"
        assert order.line_items[0].name == "Unknown Product"

    def test_translated_product_name(self):
        item = parse_line_item({"_id": "li", "productName": {"translated": "Tasse"}, "quantity": 1})

        assert item.name == "Tasse"

    def test_line_item_without_id_is_kept(self):
        order = parse_order({"_id": "o1", "number": "1", "lineItems": [{"name": "Gift wrap", "quantity": 1}]})

        assert order.line_items[0].id is None

    def test_missing_lines_gives_empty_order(self):
        assert parse_order({"_id": "o1", "number": "1"}).line_items == []

    @pytest.mark.parametrize("raw", [
        {"number": "1", "lineItems": []},
        {"_id": "o1", "lineItems": []},
        {"_id": "o1", "number": "1", "lineItems": [{"_id": "li"}]},
        {"_id": "o1", "number": "1", "lineItems": [{"_id": "li", "quantity": "many"}]},
        {"_id": "o1", "number": "1", "lineItems": [{"_id": "li", "quantity": 0}]},
    ])
    def test_missing_or_broken_fields_raise(self, raw):
        with pytest.raises(MappingError):
            parse_order(raw)

    def test_not_an_object(self):
        with pytest.raises(MappingError):
            parse_order(["o1"])


class TestShipmentRecords:

    RECORD = {
        "_id": "f1",
        "_createdDate": "2026-03-02T09:30:00Z",
        "lineItems": [{"_id": "li1", "quantity": 2}],
        "trackingInfo": {"trackingNumber": "1Z999", "shippingProvider": "Ups", "trackingLink": "https://ups/1Z999"},
    }

    def test_record_fields(self):
        record = parse_shipment_record(self.RECORD)

        assert record.id == "f1"
        assert record.quantity_for("li1") == 2
        assert record.quantity_for("other") == 0
        assert record.tracking_info.tracking_number == "1Z999"
        assert record.tracking_info.shipping_provider == "Ups"
        assert record.tracking_info.tracking_link == "https://ups/1Z999"

    def test_record_without_tracking(self):
        record = parse_shipment_record({"id": "f2", "lineItems": [{"lineItemId": "li1", "quantity": 1}], "trackingInfo": {}})

        assert record.tracking_info is None
        assert record.created_at is None

    def test_record_item_without_quantity_raises(self):
        with pytest.raises(MappingError):
            parse_shipment_record({"_id": "f3", "lineItems": [{"lineItemId": "li1"}]})

    @pytest.mark.parametrize("payload", [
        {"orderWithFulfillments": {"orderId": "o1", "fulfillments": [RECORD]}},
        {"fulfillments": [RECORD]},
        [RECORD],
    ])
    def test_envelopes(self, payload):
        assert [r.id for r in extract_shipment_records(payload)] == ["f1"]

    def test_empty_envelopes(self):
        assert extract_shipment_records({"orderWithFulfillments": {"orderId": "o1"}}) == []
        assert extract_shipment_records({}) == []

    def test_unexpected_payload(self):
        with pytest.raises(MappingError):
            extract_shipment_records("f1")


def test_order_page():
    page = parse_order_page({
        "orders": [{"_id": "o2", "number": "2"}, {"_id": "o1", "number": "1"}],
        "metadata": {"hasNext": True, "cursors": {"next": "abc"}},
    })

    assert [o.id for o in page.orders] == ["o2", "o1"]
    assert page.has_next is True
    assert page.next_cursor == "abc"


def test_last_order_page():
    page = parse_order_page({"orders": [], "metadata": {"cursors": {"next": ""}}})

    assert page.has_next is False
    assert page.next_cursor is None


@pytest.mark.parametrize("payload", [
    {"fulfillmentId": "f9"},
    {"fulfillment": {"_id": "f9"}},
    {"id": "f9"},
])
def test_created_shipment_id(payload):
    assert created_shipment_id(payload) == "f9"


def test_created_shipment_id_missing():
    with pytest.raises(MappingError):
        created_shipment_id({"fulfillment": {}})
