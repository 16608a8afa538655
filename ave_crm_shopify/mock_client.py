"""In-memory store client for sandbox mode and tests."""

import itertools
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import RemoteCallError
from .store_client import StoreClient


class MockStoreClient(StoreClient):
    """
    Store client that records every call and answers like Shopify would.

    Args:
        store_url: Store the client pretends to talk to
        fail_on: Operation names that raise RemoteCallError
        missing_skus: SKUs left out of create/update responses
    """

    _ids = itertools.count(1000)

    def __init__(
        self,
        store_url: str = "mock.myshopify.com",
        fail_on: Iterable[str] = (),
        missing_skus: Iterable[str] = (),
    ):
        self.store_url = store_url
        self.fail_on = set(fail_on)
        self.missing_skus = set(missing_skus)
        self.calls: List[Tuple[str, tuple]] = []
        self.products: Dict[str, List[str]] = {}
        self.closed = False

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.fail_on:
            raise RemoteCallError("POST", f"https://{self.store_url}", f"mock failure in {operation}", 500)

    def called(self, operation: str) -> List[tuple]:
        """Arguments of every call to an operation."""
        return [args for name, args in self.calls if name == operation]

    def _product_response(self, payload: Dict[str, Any], product_id: Optional[str] = None) -> Dict[str, Any]:
        product = payload.get("product", {})
        product_id = product_id or str(next(self._ids))
        variants = []
        for variant in product.get("variants", []):
            if variant.get("sku") in self.missing_skus:
                continue
            variant_id = variant.get("id") or str(next(self._ids))
            variants.append({
                "id": f"gid://shopify/ProductVariant/{variant_id}",
                "sku": variant.get("sku"),
                "position": variant.get("position"),
            })
        self.products[product_id] = [v["id"].rsplit("/", 1)[1] for v in variants]
        return {
            "product": {
                "id": f"gid://shopify/Product/{product_id}",
                "title": product.get("title"),
                "variants": variants,
            }
        }

    async def create_product(self, payload: Dict[str, Any]) -> Any:
        self._record("create_product", payload)
        return self._product_response(payload)

    async def update_product(self, product_id: str, payload: Dict[str, Any]) -> Any:
        self._record("update_product", product_id, payload)
        return self._product_response(payload, product_id)

    async def default_variant_id(self, product_id: str) -> str:
        self._record("default_variant_id", product_id)
        variants = self.products.get(str(product_id))
        if not variants:
            raise RemoteCallError("GET", f"https://{self.store_url}/products/{product_id}.json", "product not found", 404)
        return variants[0]

    async def update_stock(self, variant_id: str, quantity: int) -> Any:
        self._record("update_stock", variant_id, quantity)
        return {"inventory_level": {"variant_id": variant_id, "available": quantity}}

    async def create_order(self, payload: Dict[str, Any]) -> Any:
        self._record("create_order", payload)
        return {"order": {"id": next(self._ids), **payload.get("order", {})}}

    async def sync_order(self, order_id: str, payload: Dict[str, Any]) -> Any:
        self._record("sync_order", order_id, payload)
        return {"order": {"id": order_id, **payload.get("order", {})}}

    async def cancel_order(self, order_id: str, reason: str = "DECLINED") -> Any:
        self._record("cancel_order", order_id, reason)
        return {"orderCancel": {"job": {"id": f"gid://shopify/Job/{order_id}", "done": False}}}

    async def add_note(self, order_id: str, note: str) -> Any:
        self._record("add_note", order_id, note)
        return {"orderUpdate": {"order": {"id": order_id, "note": note}}}

    async def add_timeline_comment(self, order_id: str, message: str) -> Any:
        self._record("add_timeline_comment", order_id, message)
        return {"orderUpdate": {"order": {"id": order_id}}}

    async def open_order(self, order_id: str) -> Any:
        self._record("open_order", order_id)
        return {"orderOpen": {"order": {"id": order_id, "closed": False}}}

    async def fulfill_order(self, order_id: str) -> Any:
        self._record("fulfill_order", order_id)
        return {"fulfillmentCreate": {"fulfillment": {"id": order_id, "status": "SUCCESS"}}}

    async def close_order(self, order_id: str) -> Any:
        self._record("close_order", order_id)
        return {"orderClose": {"order": {"id": order_id, "closed": True}}}

    async def aclose(self) -> None:
        self.closed = True
