from datetime import datetime
from enum import Enum
from pydantic import BaseModel, computed_field

from shipdesk.errors import ErrorKind
from shipdesk.schemas.order import ShipmentItem

class FulfillmentStatus(str, Enum):
    NOT_FULFILLED = "NOT_FULFILLED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    FULFILLED = "FULFILLED"

class FulfillmentMode(str, Enum):
    CREATE_FULL = "CREATE_FULL"
    CREATE_PARTIAL = "CREATE_PARTIAL"
    UPDATE_EXISTING = "UPDATE_EXISTING"

class InvalidReason(str, Enum):
    ITEM_NOT_IN_ORDER = "ITEM_NOT_IN_ORDER"
    QUANTITY_EXCEEDS_REMAINING = "QUANTITY_EXCEEDS_REMAINING"
    QUANTITY_NOT_POSITIVE = "QUANTITY_NOT_POSITIVE"

class NormalizedCarrier(BaseModel):
    code: str
    display_name: str
    tracking_url: str | None = None

class ItemFulfillment(BaseModel):
    ordered_quantity: int
    fulfilled_quantity: int
    remaining_quantity: int
    status: FulfillmentStatus

class InvalidItem(BaseModel):
    line_item_id: str
    quantity: int
    reason: InvalidReason
    message: str
    remaining_quantity: int = 0

class ValidationResult(BaseModel):
    valid_items: list[ShipmentItem] = []
    invalid_items: list[InvalidItem] = []
    
    @computed_field
    @property
    def can_proceed(self) -> bool:
        return len(self.invalid_items) == 0

class FulfillmentIssue(BaseModel):
    kind: ErrorKind
    line_item_id: str
    message: str

class FulfillmentResult(BaseModel):
    success: bool
    order_id: str
    mode: FulfillmentMode | None = None
    shipment_record_id: str | None = None
    is_partial: bool = False
    order_complete: bool = False
    notified: bool = False
    covered_items: list[ShipmentItem] = []
    issues: list[FulfillmentIssue] = []
    invalid_items: list[InvalidItem] = []
    error_kind: ErrorKind | None = None
    error: str | None = None
    retriable: bool | None = None

class FulfillmentBody(BaseModel):
    items: list[ShipmentItem] = []
    tracking_number: str
    carrier: str
    tracking_url: str | None = None
    custom_carrier_name: str | None = None
    notify_customer: bool = False
    shipment_record_id: str | None = None
    mode: FulfillmentMode | None = None
    strict: bool = False

class BulkFulfillmentBody(BaseModel):
    order_ids: list[str]
    tracking_number: str | None = None
    carrier: str | None = None
    notify_customer: bool = False

class BulkFulfillmentResult(BaseModel):
    results: list[FulfillmentResult] = []
    success_count: int = 0
    failure_count: int = 0

class TrackingUpdateBody(BaseModel):
    tracking_number: str
    carrier: str
    tracking_url: str | None = None
    custom_carrier_name: str | None = None
    notify_customer: bool = False

class TrackingEntry(BaseModel):
    tracking_number: str
    carrier: str
    quantity: int
    tracking_url: str | None = None
    shipment_record_id: str
    shipped_at: datetime | None = None

class ItemFulfillmentView(BaseModel):
    line_item_id: str | None
    name: str
    ordered_quantity: int
    fulfilled_quantity: int
    remaining_quantity: int
    tracked_quantity: int
    status: FulfillmentStatus
    tracking: list[TrackingEntry] = []

class FulfillmentView(BaseModel):
    order_id: str
    order_number: str
    items: list[ItemFulfillmentView]
    overall_status: FulfillmentStatus
    total_ordered: int
    total_fulfilled: int
    total_remaining: int
    can_add_tracking: bool
    can_edit_tracking: bool
