import uuid
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

class FulfillmentLogBase(SQLModel):
    order_id: str = Field(index=True)
    mode: str | None = None
    success: bool
    shipment_record_id: str | None = None
    tracking_number: str | None = None
    notified: bool = False
    is_partial: bool = False
    error_kind: str | None = None
    error: str | None = None

class FulfillmentLog(FulfillmentLogBase, table=True):
    __tablename__ = "fulfillment_logs"
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
