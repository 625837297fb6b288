import httpx
from urllib.parse import quote

from shipdesk.config import settings
from shipdesk.errors import PlatformError

class PlatformAgent:
    """
    HTTP client for the commerce platform's order and fulfillment endpoints.

    Writes take a `notify` flag. The platform sends its own "your order has
    shipped" email only for writes made with the elevated credential, so
    notify picks the credential and nothing else differs between the two.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = settings.PLATFORM_API_URL.rstrip("/")
        self.api_token = settings.PLATFORM_API_TOKEN
        self.elevated_token = settings.PLATFORM_ELEVATED_TOKEN
        self.timeout = settings.PLATFORM_TIMEOUT
        self.transport = transport

    def headers(self, elevated: bool):
        token = self.elevated_token if elevated else self.api_token
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json"
        }

    async def request(self, method: str, path: str, elevated: bool, json: dict | None = None, params: dict | None = None):
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            response = await client.request(method, path, headers=self.headers(elevated), json=json, params=params)

        if response.is_error:
            raise PlatformError(self.error_message(response), status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def error_message(response: httpx.Response):
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                detail = body.get("message") or body.get("error") or ""
        except ValueError:
            detail = response.text[:200]

        message = f"{response.status_code} {response.reason_phrase}"
        return f"{message}: {detail}" if detail else message

    async def get_order(self, order_id: str):
        try:
            result = await self.request("GET", f"/orders/{quote(order_id, safe='')}", elevated=True)
        except PlatformError as e:
            if e.status_code == 404:
                return None
            raise

        return result.get("order", result)

    async def list_shipments(self, order_id: str):
        return await self.request("GET", f"/orders/{quote(order_id, safe='')}/fulfillments", elevated=True)

    async def create_shipment(self, order_id: str, fulfillment: dict, notify: bool = False):
        return await self.request(
            "POST",
            f"/orders/{quote(order_id, safe='')}/fulfillments",
            elevated=notify,
            json={"fulfillment": fulfillment}
        )

    async def update_shipment(self, order_id: str, shipment_record_id: str, tracking_info: dict, notify: bool = False):
        return await self.request(
            "PATCH",
            f"/orders/{quote(order_id, safe='')}/fulfillments/{quote(shipment_record_id, safe='')}",
            elevated=notify,
            json={"fulfillment": {"trackingInfo": tracking_info}}
        )

    async def search_orders(self, limit: int = 50, cursor: str | None = None):
        paging = {"limit": limit}
        if cursor:
            paging["cursor"] = cursor

        return await self.request(
            "POST",
            "/orders/search",
            elevated=True,
            json={
                "search": {
                    "sort": [{"fieldName": "createdDate", "order": "DESC"}],
                    "cursorPaging": paging
                }
            }
        )
