"""
PlatformAgent against a mocked HTTP transport.
"""
import json

import httpx
import pytest

from shipdesk.agents.platform import PlatformAgent
from shipdesk.errors import PlatformError


class Recorder:
    """Mock transport handler that answers with queued responses and keeps every request."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_agent(*responses: httpx.Response):
    recorder = Recorder(*responses)
    agent = PlatformAgent(transport=httpx.MockTransport(recorder))
    agent.base_url = "https://platform.test/api/v1"
    agent.api_token = "basic-token"
    agent.elevated_token = "elevated-token"
    return agent, recorder


@pytest.mark.asyncio
async def test_get_order_unwraps_envelope():
    agent, recorder = make_agent(httpx.Response(200, json={"order": {"_id": "o1", "number": "1"}}))

    assert await agent.get_order("o1") == {"_id": "o1", "number": "1"}

    sent = recorder.requests[0]
    assert sent.method == "GET"
    assert sent.url.path == "/api/v1/orders/o1"
    assert sent.headers["Authorization"] == "Bearer elevated-token"


@pytest.mark.asyncio
async def test_get_order_not_found():
    agent, _ = make_agent(httpx.Response(404, json={"message": "order not found"}))

    assert await agent.get_order("missing") is None


@pytest.mark.asyncio
async def test_server_error_carries_status():
    agent, _ = make_agent(httpx.Response(503, json={"message": "maintenance"}))

    with pytest.raises(PlatformError) as exc_info:
        await agent.list_shipments("o1")

    assert exc_info.value.status_code == 503
    assert str(exc_info.value) == "503 Service Unavailable: maintenance"


@pytest.mark.asyncio
async def test_error_without_json_body():
    agent, _ = make_agent(httpx.Response(500, text="<html>oops</html>"))

    with pytest.raises(PlatformError) as exc_info:
        await agent.get_order("o1")

    assert exc_info.value.status_code == 500
    assert "oops" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize("notify,token", [(True, "elevated-token"), (False, "basic-token")])
async def test_create_shipment_credential_follows_notify(notify, token):
    agent, recorder = make_agent(httpx.Response(200, json={"fulfillmentId": "f1"}))
    fulfillment = {"lineItems": [{"lineItemId": "li-1", "quantity": 2}], "trackingInfo": {"trackingNumber": "T"}}

    assert await agent.create_shipment("o1", fulfillment, notify=notify) == {"fulfillmentId": "f1"}

    sent = recorder.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == "/api/v1/orders/o1/fulfillments"
    assert sent.headers["Authorization"] == f"Bearer {token}"
    assert json.loads(sent.content) == {"fulfillment": fulfillment}


@pytest.mark.asyncio
async def test_update_shipment_sends_tracking_only():
    agent, recorder = make_agent(httpx.Response(200, json={"fulfillment": {"_id": "f1"}}))

    await agent.update_shipment("o1", "f1", {"trackingNumber": "NEW", "shippingProvider": "Ups"})

    sent = recorder.requests[0]
    assert sent.method == "PATCH"
    assert sent.url.path == "/api/v1/orders/o1/fulfillments/f1"
    assert sent.headers["Authorization"] == "Bearer basic-token"
    assert json.loads(sent.content) == {"fulfillment": {"trackingInfo": {"trackingNumber": "NEW", "shippingProvider": "Ups"}}}


@pytest.mark.asyncio
async def test_search_orders_paging():
    agent, recorder = make_agent(httpx.Response(200, json={"orders": []}), httpx.Response(200, json={"orders": []}))

    await agent.search_orders(limit=10)
    await agent.search_orders(limit=10, cursor="abc")

    first, second = (json.loads(r.content)["search"] for r in recorder.requests)
    assert first["cursorPaging"] == {"limit": 10}
    assert second["cursorPaging"] == {"limit": 10, "cursor": "abc"}
    assert first["sort"] == [{"fieldName": "createdDate", "order": "DESC"}]


@pytest.mark.asyncio
async def test_empty_success_body():
    agent, _ = make_agent(httpx.Response(204))

    assert await agent.update_shipment("o1", "f1", {"trackingNumber": "T"}) == {}
