import asyncio
from collections import deque
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from shipdesk.agents.postgres import PostgresAgent
from shipdesk.config import settings
from shipdesk.errors import ErrorKind, FulfillmentError
from shipdesk.fulfillment.engine import FulfillmentEngine
from shipdesk.fulfillment.watcher import OrderWatcher
from shipdesk.schemas.fulfillment import BulkFulfillmentBody, FulfillmentBody, FulfillmentMode, TrackingUpdateBody
from shipdesk.schemas.order import Order, ShipmentItem, ShipmentRequest
from shipdesk.utils.logger import log

new_orders: deque[Order] = deque(maxlen=settings.SEEN_ORDERS_MAX)
_engine: FulfillmentEngine | None = None

def get_history():
    if not settings.FULFILLMENT_LOG_ENABLED:
        return None
    return PostgresAgent()

def get_engine():
    global _engine
    if _engine is None:
        _engine = FulfillmentEngine(history=get_history())
    return _engine

async def remember_new_order(order: Order):
    new_orders.append(order)

@asynccontextmanager
async def lifespan(app: FastAPI):
    watcher_task = None
    if settings.ORDER_WATCH_ENABLED:
        watcher = OrderWatcher(get_engine(), on_new_order=remember_new_order)
        watcher_task = asyncio.create_task(watcher.run())
    app.state.watcher_task = watcher_task
    yield
    if watcher_task:
        watcher_task.cancel()

app = FastAPI(lifespan=lifespan)

ERROR_STATUS = {
    ErrorKind.ORDER_NOT_FOUND: 404,
    ErrorKind.EXTERNAL_CALL_FAILED: 502,
}

@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 400),
        content={"error_kind": exc.kind.value, "error": exc.message, "retriable": exc.retriable}
    )

@app.post("/orders/fulfillments/bulk")
async def bulk_fulfill(body: BulkFulfillmentBody, engine: FulfillmentEngine = Depends(get_engine)):
    return await engine.fulfill_many(
        body.order_ids,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        notify_customer=body.notify_customer
    )

@app.post("/orders/{order_id}/fulfillments")
async def create_fulfillment(order_id: str, body: FulfillmentBody, engine: FulfillmentEngine = Depends(get_engine)):
    request = ShipmentRequest(order_id=order_id, **body.model_dump(exclude={"mode", "strict"}))

    return await engine.fulfill(request, mode=body.mode, strict=body.strict)

@app.put("/orders/{order_id}/fulfillments/{shipment_record_id}")
async def update_tracking(order_id: str, shipment_record_id: str, body: TrackingUpdateBody, engine: FulfillmentEngine = Depends(get_engine)):
    request = ShipmentRequest(order_id=order_id, shipment_record_id=shipment_record_id, **body.model_dump())

    return await engine.fulfill(request, mode=FulfillmentMode.UPDATE_EXISTING)

@app.get("/orders/{order_id}/fulfillment")
async def get_fulfillment_view(order_id: str, engine: FulfillmentEngine = Depends(get_engine)):
    return await engine.get_fulfillment_view(order_id)

@app.post("/orders/{order_id}/fulfillment/validate")
async def validate_items(order_id: str, items: list[ShipmentItem], engine: FulfillmentEngine = Depends(get_engine)):
    return await engine.validate(order_id, items)

@app.get("/orders/new")
async def get_new_orders():
    return list(new_orders)

@app.get("/orders")
async def list_orders(limit: int = 50, cursor: str | None = None, engine: FulfillmentEngine = Depends(get_engine)):
    return await engine.list_orders(limit=limit, cursor=cursor)

@app.get("/orders/{order_id}/fulfillment-log")
async def get_fulfillment_log(order_id: str, engine: FulfillmentEngine = Depends(get_engine)):
    if engine.history is None:
        raise HTTPException(status_code=404, detail="Fulfillment history is disabled")

    return await engine.history.get_fulfillment_logs(order_id)

@app.get("/refresh")
def refresh():
    result = settings.refresh()
    log.info("Settings reloaded")

    return result.model_dump(exclude={"PLATFORM_API_TOKEN", "PLATFORM_ELEVATED_TOKEN", "DATABASE_URL"})
