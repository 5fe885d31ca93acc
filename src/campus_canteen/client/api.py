"""
Async HTTP client for the canteen API, used by the handoff flow and the
dashboard pollers.
"""
import logging
from typing import Any, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class ApiError(Exception):
    """
    A failed API call. `kind` is the server's error kind (InvalidInput,
    Forbidden, ...) or "Network" when the request never got an answer.
    """

    def __init__(self, kind: str, detail: Any = None, status_code: Optional[int] = None):
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{kind}: {detail}")


class CanteenClient:
    def __init__(
        self,
        base_url: str = "",
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "CanteenClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise ApiError("Network", f"Request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise ApiError("Network", f"Server unreachable: {exc}") from exc

        if response.is_success:
            return response.json() if response.content else None

        try:
            body = response.json()
        except ValueError:
            body = {"detail": response.text}
        kind = body.get("kind") if isinstance(body, dict) else None
        detail = body.get("detail") if isinstance(body, dict) else body
        raise ApiError(kind or f"HTTP{response.status_code}", detail, response.status_code)

    async def list_menu(self, available_only: bool = False) -> List[dict]:
        params = {"available_only": "true"} if available_only else None
        return await self._request("GET", "/menu", params=params)

    async def create_order(self, items: List[dict], idempotency_key: Optional[str] = None) -> dict:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self._request("POST", "/orders", json={"items": items}, headers=headers)

    async def my_orders(self) -> List[dict]:
        return await self._request("GET", "/orders/mine")

    async def all_orders(self, status: Optional[str] = None) -> List[dict]:
        params = {"status": status} if status else None
        return await self._request("GET", "/orders", params=params)

    async def get_order(self, order_id: int) -> dict:
        return await self._request("GET", f"/orders/{order_id}")

    async def update_status(self, order_id: int, status: str) -> dict:
        return await self._request("PATCH", f"/orders/{order_id}/status", json={"status": status})

    async def cancel_order(self, order_id: int) -> dict:
        return await self.update_status(order_id, "cancelled")
