from datetime import datetime
from pydantic import BaseModel, Field

class ShipmentItem(BaseModel):
    line_item_id: str
    quantity: int

class LineItem(BaseModel):
    id: str | None
    name: str
    quantity: int = Field(ge=1)

class Order(BaseModel):
    id: str
    number: str
    line_items: list[LineItem]
    created_at: datetime | None = None

class TrackingInfo(BaseModel):
    tracking_number: str
    shipping_provider: str
    tracking_link: str | None = None
    
    def to_platform(self) -> dict:
        payload = {
            "trackingNumber": self.tracking_number,
            "shippingProvider": self.shipping_provider
        }
        # The platform rejects an empty link, so it is left out entirely
        if self.tracking_link:
            payload["trackingLink"] = self.tracking_link
        return payload

class ShipmentRecord(BaseModel):
    id: str
    created_at: datetime | None = None
    items: list[ShipmentItem]
    tracking_info: TrackingInfo | None = None
    
    def quantity_for(self, line_item_id: str) -> int:
        return sum(item.quantity for item in self.items if item.line_item_id == line_item_id)

class ShipmentRequest(BaseModel):
    order_id: str
    items: list[ShipmentItem] = []
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None
    custom_carrier_name: str | None = None
    notify_customer: bool = False
    shipment_record_id: str | None = None

class OrderPage(BaseModel):
    orders: list[Order]
    has_next: bool = False
    next_cursor: str | None = None
