"""
Fulfillment decision engine.

`fulfill` takes a shipment request through a fixed sequence: load the order
and its shipment records, work out which (item, quantity) pairs the shipment
covers, normalize the carrier, then either create a new shipment record or
amend the tracking of an existing one. Each step depends on the previous
one, so they never run out of order.

Every outcome is a FulfillmentResult. Validation problems come back as
structured failures, and platform failures are retried first and only then
reported with the last error's message.
"""
from typing import Callable, Optional

from shipdesk.agents.platform import PlatformAgent
from shipdesk.errors import ErrorKind, FulfillmentError, MappingError
from shipdesk.fulfillment.carrier import normalize_carrier
from shipdesk.fulfillment.mapper import (
    created_shipment_id,
    extract_shipment_records,
    parse_order,
    parse_order_page,
)
from shipdesk.fulfillment.quantity import reconcile_line_item
from shipdesk.fulfillment.tracking import aggregate_tracking
from shipdesk.fulfillment.validator import validate_items
from shipdesk.models.fulfillment_log import FulfillmentLogBase
from shipdesk.schemas.fulfillment import (
    BulkFulfillmentResult,
    FulfillmentIssue,
    FulfillmentMode,
    FulfillmentResult,
    FulfillmentView,
    InvalidReason,
    ValidationResult,
)
from shipdesk.schemas.order import Order, OrderPage, ShipmentItem, ShipmentRecord, ShipmentRequest, TrackingInfo
from shipdesk.utils.logger import log
from shipdesk.utils.retry import RetryContext, RetryPolicy, is_retriable_error


def resolve_mode(request: ShipmentRequest) -> FulfillmentMode:
    if request.shipment_record_id:
        return FulfillmentMode.UPDATE_EXISTING
    if request.items:
        return FulfillmentMode.CREATE_PARTIAL
    return FulfillmentMode.CREATE_FULL


def mode_conflict(request: ShipmentRequest, mode: FulfillmentMode) -> Optional[str]:
    if mode == FulfillmentMode.UPDATE_EXISTING and not request.shipment_record_id:
        return "Updating tracking requires an existing shipment record id"
    if mode == FulfillmentMode.UPDATE_EXISTING and not request.tracking_number:
        return "Updating tracking requires a tracking number"
    if mode == FulfillmentMode.CREATE_PARTIAL and not request.items:
        return "Partial fulfillment requires at least one item"
    if mode == FulfillmentMode.CREATE_FULL and request.items:
        return "Full fulfillment ships every remaining item and takes no item list"
    return None


def remaining_items(order: Order, records: list[ShipmentRecord]) -> list[ShipmentItem]:
    """One entry per line item that still has something to ship, for its remaining quantity."""
    items = []
    for line_item in order.line_items:
        if not line_item.id:
            continue
        remaining = reconcile_line_item(line_item, records).remaining_quantity
        if remaining > 0:
            items.append(ShipmentItem(line_item_id=line_item.id, quantity=remaining))
    return items


def total_remaining(order: Order, records: list[ShipmentRecord]) -> int:
    return sum(reconcile_line_item(item, records).remaining_quantity for item in order.line_items)


class FulfillmentEngine:
    def __init__(self, platform=None, retry_policy: RetryPolicy | None = None, history=None):
        self.platform = platform or PlatformAgent()
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.history = history

    async def call(self, operation: str, func, *args, **kwargs):
        """Run one platform call through the retry controller."""
        try:
            async with RetryContext(self.retry_policy, operation) as ctx:
                return await ctx.execute(func, *args, **kwargs)
        except Exception as e:
            raise FulfillmentError(
                ErrorKind.EXTERNAL_CALL_FAILED,
                f"{operation} failed: {e}",
                retriable=is_retriable_error(e)
            ) from e

    async def load_order(self, order_id: str) -> tuple[Order, list[ShipmentRecord]]:
        raw_order = await self.call("get_order", self.platform.get_order, order_id)
        if raw_order is None:
            raise FulfillmentError(ErrorKind.ORDER_NOT_FOUND, f"Order {order_id} not found")

        raw_shipments = await self.call("list_shipments", self.platform.list_shipments, order_id)

        try:
            return parse_order(raw_order), extract_shipment_records(raw_shipments)
        except MappingError as e:
            raise FulfillmentError(
                ErrorKind.EXTERNAL_CALL_FAILED,
                f"Unexpected platform data for order {order_id}: {e}",
                retriable=False
            ) from e

    async def validate(self, order_id: str, items: list[ShipmentItem]) -> ValidationResult:
        order, records = await self.load_order(order_id)
        return validate_items(items, order, records)

    async def get_fulfillment_view(self, order_id: str) -> FulfillmentView:
        order, records = await self.load_order(order_id)
        return aggregate_tracking(order, records)

    async def list_orders(self, limit: int = 50, cursor: str | None = None) -> OrderPage:
        payload = await self.call("search_orders", self.platform.search_orders, limit=limit, cursor=cursor)
        try:
            return parse_order_page(payload)
        except MappingError as e:
            raise FulfillmentError(ErrorKind.EXTERNAL_CALL_FAILED, f"Unexpected order list data: {e}", retriable=False) from e

    async def fulfill(
        self,
        request: ShipmentRequest,
        mode: FulfillmentMode | None = None,
        is_alive: Callable[[], bool] | None = None,
        strict: bool = False
    ) -> FulfillmentResult:
        """
        Record a shipment for an order, or amend the tracking of one.

        Args:
            request: What to ship and how it is tracked
            mode: Create full / create partial / update; derived from the request when omitted
            is_alive: Returns False once the caller has abandoned the operation
            strict: Fail the whole request if any requested item is invalid,
                instead of shipping the valid ones

        Returns:
            FulfillmentResult, successful or carrying the failure kind and reason
        """
        alive = is_alive or (lambda: True)
        mode = mode or resolve_mode(request)

        result = await self._fulfill(request, mode, alive, strict)

        if result.success:
            log.info(
                f"Order {request.order_id}: {mode.value} -> shipment {result.shipment_record_id} "
                f"(partial={result.is_partial}, complete={result.order_complete}, notified={result.notified})"
            )
        else:
            log.error(f"Order {request.order_id}: {mode.value} failed [{result.error_kind.value}] {result.error}")

        # A caller that walked away must not see its outcome recorded afterwards
        if result.error_kind != ErrorKind.CANCELLED and alive():
            await self.record_history(request, result)

        return result

    async def fulfill_many(
        self,
        order_ids: list[str],
        tracking_number: str | None = None,
        carrier: str | None = None,
        notify_customer: bool = False
    ) -> BulkFulfillmentResult:
        """
        Ship everything that remains on each of the given orders.

        Orders are handled one after another and independently: a failing
        order is reported in its own result and the rest still go through.
        Tracking is attached only when both a tracking number and a carrier
        are given.
        """
        with_tracking = bool(tracking_number and carrier)
        bulk = BulkFulfillmentResult()

        for order_id in order_ids:
            request = ShipmentRequest(
                order_id=order_id,
                tracking_number=tracking_number if with_tracking else None,
                carrier=carrier if with_tracking else None,
                notify_customer=notify_customer
            )
            result = await self.fulfill(request, mode=FulfillmentMode.CREATE_FULL)

            bulk.results.append(result)
            if result.success:
                bulk.success_count += 1
            else:
                bulk.failure_count += 1

        log.info(f"Bulk fulfillment: {bulk.success_count} fulfilled, {bulk.failure_count} failed of {len(order_ids)} orders")
        return bulk

    async def _fulfill(self, request: ShipmentRequest, mode: FulfillmentMode, alive: Callable[[], bool], strict: bool) -> FulfillmentResult:
        def failure(kind: ErrorKind, message: str, **extra) -> FulfillmentResult:
            return FulfillmentResult(success=False, order_id=request.order_id, mode=mode, error_kind=kind, error=message, **extra)

        conflict = mode_conflict(request, mode)
        if conflict:
            return failure(ErrorKind.INVALID_REQUEST, conflict)

        try:
            order, records = await self.load_order(request.order_id)
        except FulfillmentError as e:
            return failure(e.kind, e.message, retriable=e.retriable)

        if not alive():
            return failure(ErrorKind.CANCELLED, "Operation abandoned before any shipment was written")

        if not order.line_items:
            return failure(ErrorKind.NO_LINE_ITEMS, f"Order {order.number} has no line items to fulfill")

        covered: list[ShipmentItem] = []
        issues: list[FulfillmentIssue] = []
        invalid_items = []

        if mode == FulfillmentMode.CREATE_PARTIAL:
            validation = validate_items(request.items, order, records)
            invalid_items = validation.invalid_items

            for invalid in invalid_items:
                log.warning(f"Order {order.number}: rejected item {invalid.line_item_id} ({invalid.reason.value}): {invalid.message}")

            if strict and invalid_items:
                return failure(
                    ErrorKind.INVALID_ITEMS,
                    "Invalid items: " + ", ".join(f"{i.line_item_id}: {i.message}" for i in invalid_items),
                    invalid_items=invalid_items
                )

            if not validation.valid_items:
                return failure(
                    ErrorKind.NO_VALID_ITEMS,
                    f"No valid line items to fulfill in order {order.number}",
                    invalid_items=invalid_items
                )

            covered = validation.valid_items
            issues = [
                FulfillmentIssue(kind=ErrorKind.PARTIAL_QUANTITY_EXCEEDED, line_item_id=i.line_item_id, message=i.message)
                for i in invalid_items
                if i.reason == InvalidReason.QUANTITY_EXCEEDS_REMAINING
            ]
        elif mode == FulfillmentMode.CREATE_FULL:
            covered = remaining_items(order, records)
            if not covered:
                return failure(ErrorKind.NO_VALID_ITEMS, f"Order {order.number} has nothing left to ship")
        else:
            # The record keeps its items; only its tracking changes
            record = next((r for r in records if r.id == request.shipment_record_id), None)
            covered = list(record.items) if record else []

        tracking = None
        if request.tracking_number:
            carrier = normalize_carrier(
                request.carrier,
                request.tracking_number,
                custom_name=request.custom_carrier_name,
                explicit_url=request.tracking_url
            )
            tracking = TrackingInfo(
                tracking_number=request.tracking_number,
                shipping_provider=carrier.display_name,
                tracking_link=carrier.tracking_url
            )

        try:
            if mode == FulfillmentMode.UPDATE_EXISTING:
                await self.call(
                    "update_shipment",
                    self.platform.update_shipment,
                    order.id,
                    request.shipment_record_id,
                    tracking.to_platform(),
                    notify=request.notify_customer
                )
                shipment_record_id = request.shipment_record_id
            else:
                fulfillment = {
                    "lineItems": [{"lineItemId": item.line_item_id, "quantity": item.quantity} for item in covered],
                    "status": "Fulfilled"
                }
                if tracking:
                    fulfillment["trackingInfo"] = tracking.to_platform()

                response = await self.call(
                    "create_shipment",
                    self.platform.create_shipment,
                    order.id,
                    fulfillment,
                    notify=request.notify_customer
                )
                shipment_record_id = created_shipment_id(response)
        except FulfillmentError as e:
            return failure(e.kind, e.message, retriable=e.retriable, invalid_items=invalid_items)
        except MappingError as e:
            return failure(ErrorKind.EXTERNAL_CALL_FAILED, f"Shipment created but its id could not be read: {e}", retriable=False)

        remaining_after = total_remaining(order, records)
        if mode != FulfillmentMode.UPDATE_EXISTING:
            remaining_after -= sum(item.quantity for item in covered)

        return FulfillmentResult(
            success=True,
            order_id=order.id,
            mode=mode,
            shipment_record_id=shipment_record_id,
            is_partial=mode == FulfillmentMode.CREATE_PARTIAL,
            order_complete=remaining_after <= 0,
            notified=request.notify_customer,
            covered_items=covered,
            issues=issues,
            invalid_items=invalid_items
        )

    async def record_history(self, request: ShipmentRequest, result: FulfillmentResult):
        if self.history is None:
            return

        entry = FulfillmentLogBase(
            order_id=request.order_id,
            mode=result.mode.value if result.mode else None,
            success=result.success,
            shipment_record_id=result.shipment_record_id,
            tracking_number=request.tracking_number,
            notified=result.notified,
            is_partial=result.is_partial,
            error_kind=result.error_kind.value if result.error_kind else None,
            error=result.error
        )

        try:
            await self.history.insert_fulfillment_log(entry)
        except Exception:
            log.exception(f"Could not record fulfillment history for order {request.order_id}")
