"""Store-side call contract and its Shopify Admin API implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from .config import ShopifyConfig, RateLimitConfig
from .errors import RemoteCallError
from .http_client import HttpClient
from .models.ave_models import StoreCredential, normalize_store_ref
from .rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger("ave_crm_shopify.store")


class StoreClient(ABC):
    """Operations the connector invokes on one store. Any of them may raise."""

    @abstractmethod
    async def create_product(self, payload: Dict[str, Any]) -> Any:
        """Create a product; the response carries the new product and variant ids."""

    @abstractmethod
    async def update_product(self, product_id: str, payload: Dict[str, Any]) -> Any:
        """Update an existing product."""

    @abstractmethod
    async def default_variant_id(self, product_id: str) -> str:
        """Store id of the first variant of a product."""

    @abstractmethod
    async def update_stock(self, variant_id: str, quantity: int) -> Any:
        """Set the available quantity of one variant."""

    @abstractmethod
    async def create_order(self, payload: Dict[str, Any]) -> Any:
        """Create an order."""

    @abstractmethod
    async def sync_order(self, order_id: str, payload: Dict[str, Any]) -> Any:
        """Push CRM order data onto an existing order."""

    @abstractmethod
    async def cancel_order(self, order_id: str, reason: str = "DECLINED") -> Any:
        """Cancel an order."""

    @abstractmethod
    async def add_note(self, order_id: str, note: str) -> Any:
        """Replace the order note."""

    @abstractmethod
    async def add_timeline_comment(self, order_id: str, message: str) -> Any:
        """Attach a comment to the order."""

    @abstractmethod
    async def open_order(self, order_id: str) -> Any:
        """Reopen a closed order."""

    @abstractmethod
    async def fulfill_order(self, order_id: str) -> Any:
        """Fulfill every open fulfillment order of an order."""

    @abstractmethod
    async def close_order(self, order_id: str) -> Any:
        """Close (archive) an order."""

    async def aclose(self) -> None:
        """Release resources held by the client."""


ORDER_UPDATE = """
mutation orderUpdate($input: OrderInput!) {
  orderUpdate(input: $input) {
    order { id note }
    userErrors { field message }
  }
}
"""

ORDER_CANCEL = """
mutation orderCancel($orderId: ID!, $reason: OrderCancelReason!, $refund: Boolean!, $restock: Boolean!, $notifyCustomer: Boolean) {
  orderCancel(orderId: $orderId, reason: $reason, refund: $refund, restock: $restock, notifyCustomer: $notifyCustomer) {
    job { id done }
    orderCancelUserErrors { field message code }
  }
}
"""

ORDER_OPEN = """
mutation orderOpen($input: OrderOpenInput!) {
  orderOpen(input: $input) {
    order { id closed }
    userErrors { field message }
  }
}
"""

ORDER_CLOSE = """
mutation orderClose($input: OrderCloseInput!) {
  orderClose(input: $input) {
    order { id closed }
    userErrors { field message }
  }
}
"""

FULFILLMENT_ORDERS = """
query fulfillmentOrders($id: ID!) {
  order(id: $id) {
    fulfillmentOrders(first: 10) {
      nodes { id status }
    }
  }
}
"""

FULFILLMENT_CREATE = """
mutation fulfillmentCreate($fulfillment: FulfillmentInput!) {
  fulfillmentCreate(fulfillment: $fulfillment) {
    fulfillment { id status }
    userErrors { field message }
  }
}
"""

FULFILLABLE_STATUSES = {"OPEN", "IN_PROGRESS"}


def order_gid(order_id: str) -> str:
    return f"gid://shopify/Order/{normalize_store_ref(order_id)}"


def _user_errors(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    errors = []
    for payload in (data or {}).values():
        if not isinstance(payload, dict):
            continue
        for key, value in payload.items():
            if key.endswith("serErrors") and value:
                errors.extend(value)
    return errors


class ShopifyStoreClient(StoreClient):
    """
    Shopify Admin API client for one store.

    Products, orders and inventory go through REST; order state changes go
    through GraphQL. Every request passes the store's rate limiter and is
    attempted once.
    """

    def __init__(
        self,
        credential: StoreCredential,
        config: Optional[ShopifyConfig] = None,
        rate_limit: Optional[RateLimitConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
    ):
        """
        Initialize the client.

        Args:
            credential: Store URL and access token
            config: Shopify API settings
            rate_limit: Rate limiter settings, used when no limiter is given
            client: Optional httpx client (e.g. one built on httpx.MockTransport)
            rate_limiter: Limiter shared by every client of the same store
        """
        self.credential = credential
        self.config = config or ShopifyConfig()
        if rate_limiter is None:
            rate_limit = rate_limit or RateLimitConfig()
            rate_limiter = TokenBucketRateLimiter(
                rate=rate_limit.max_requests_per_second,
                burst_size=rate_limit.burst_size,
            )
        self.rate_limiter = rate_limiter

        store_url = credential.store_url.rstrip("/")
        if "://" not in store_url:
            store_url = f"https://{store_url}"
        self.base_url = f"{store_url}/admin/api/{self.config.api_version}"
        self.http = HttpClient(
            client or httpx.AsyncClient(timeout=self.config.timeout_seconds),
        )
        self._owns_client = client is None
        self._location_id: Optional[str] = self.config.location_id

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _rest(self, method: str, path: str, data: Any = None, params: Any = None) -> Any:
        await self.rate_limiter.acquire()
        return await self.http.request(
            method,
            f"{self.base_url}/{path}",
            headers={"X-Shopify-Access-Token": self.credential.access_token},
            data=data,
            params=params,
        )

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/graphql.json"
        response = await self._rest("POST", "graphql.json", data={"query": query, "variables": variables})
        if not isinstance(response, dict):
            raise RemoteCallError("POST", url, "empty GraphQL response")
        if response.get("errors"):
            raise RemoteCallError("POST", url, str(response["errors"]))
        data = response.get("data") or {}
        user_errors = _user_errors(data)
        if user_errors:
            message = "; ".join(str(e.get("message")) for e in user_errors)
            raise RemoteCallError("POST", url, message)
        return data

    async def create_product(self, payload: Dict[str, Any]) -> Any:
        return await self._rest("POST", "products.json", data=payload)

    async def update_product(self, product_id: str, payload: Dict[str, Any]) -> Any:
        product_id = normalize_store_ref(product_id)
        body = {"product": {**payload.get("product", {}), "id": product_id}}
        return await self._rest("PUT", f"products/{product_id}.json", data=body)

    async def default_variant_id(self, product_id: str) -> str:
        product_id = normalize_store_ref(product_id)
        response = await self._rest("GET", f"products/{product_id}.json", params={"fields": "id,variants"})
        variants = ((response or {}).get("product") or {}).get("variants") or []
        if not variants:
            raise RemoteCallError(
                "GET", f"{self.base_url}/products/{product_id}.json", "product has no variants"
            )
        return str(variants[0]["id"])

    async def _inventory_location(self) -> str:
        if self._location_id:
            return self._location_id
        response = await self._rest("GET", "locations.json")
        locations = [loc for loc in (response or {}).get("locations", []) if loc.get("active", True)]
        if not locations:
            raise RemoteCallError("GET", f"{self.base_url}/locations.json", "store has no active location")
        self._location_id = str(locations[0]["id"])
        return self._location_id

    async def update_stock(self, variant_id: str, quantity: int) -> Any:
        variant_id = normalize_store_ref(variant_id)
        response = await self._rest("GET", f"variants/{variant_id}.json")
        variant = (response or {}).get("variant") or {}
        inventory_item_id = variant.get("inventory_item_id")
        if not inventory_item_id:
            raise RemoteCallError(
                "GET", f"{self.base_url}/variants/{variant_id}.json", "variant has no inventory item"
            )
        location_id = await self._inventory_location()
        return await self._rest(
            "POST",
            "inventory_levels/set.json",
            data={
                "location_id": int(location_id),
                "inventory_item_id": inventory_item_id,
                "available": int(quantity),
            },
        )

    async def create_order(self, payload: Dict[str, Any]) -> Any:
        return await self._rest("POST", "orders.json", data=payload)

    async def sync_order(self, order_id: str, payload: Dict[str, Any]) -> Any:
        order_id = normalize_store_ref(order_id)
        body = {"order": {**payload.get("order", {}), "id": order_id}}
        return await self._rest("PUT", f"orders/{order_id}.json", data=body)

    async def cancel_order(self, order_id: str, reason: str = "DECLINED") -> Any:
        return await self._graphql(
            ORDER_CANCEL,
            {
                "orderId": order_gid(order_id),
                "reason": reason,
                "refund": False,
                "restock": True,
                "notifyCustomer": False,
            },
        )

    async def add_note(self, order_id: str, note: str) -> Any:
        return await self._graphql(ORDER_UPDATE, {"input": {"id": order_gid(order_id), "note": note}})

    async def add_timeline_comment(self, order_id: str, message: str) -> Any:
        # The Admin API has no timeline comment mutation; keep it as an order attribute.
        return await self._graphql(
            ORDER_UPDATE,
            {
                "input": {
                    "id": order_gid(order_id),
                    "customAttributes": [{"key": "Aveonline", "value": message}],
                }
            },
        )

    async def open_order(self, order_id: str) -> Any:
        return await self._graphql(ORDER_OPEN, {"input": {"id": order_gid(order_id)}})

    async def close_order(self, order_id: str) -> Any:
        return await self._graphql(ORDER_CLOSE, {"input": {"id": order_gid(order_id)}})

    async def fulfill_order(self, order_id: str) -> Any:
        data = await self._graphql(FULFILLMENT_ORDERS, {"id": order_gid(order_id)})
        nodes = (((data.get("order") or {}).get("fulfillmentOrders") or {}).get("nodes")) or []
        open_ids = [node["id"] for node in nodes if node.get("status") in FULFILLABLE_STATUSES]
        if not open_ids:
            raise RemoteCallError(
                "POST", f"{self.base_url}/graphql.json", "order has no open fulfillment orders"
            )
        logger.info("fulfilling_order", extra={"order_id": order_id, "fulfillment_orders": len(open_ids)})
        return await self._graphql(
            FULFILLMENT_CREATE,
            {
                "fulfillment": {
                    "lineItemsByFulfillmentOrder": [{"fulfillmentOrderId": gid} for gid in open_ids],
                    "notifyCustomer": False,
                }
            },
        )
