"""Typed operations against the Ave CRM Shopify API."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import CrmConfig
from .errors import Lookup
from .http_client import HttpClient
from .models.ave_models import StoreCredential, CrossReference, OrderRecord

logger = logging.getLogger("ave_crm_shopify.crm")


def _envelope_rows(envelope: Any) -> List[Any]:
    """Rows of a {data: [...]} envelope; anything else means no rows."""
    if not isinstance(envelope, dict):
        return []
    data = envelope.get("data")
    if not data:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


class AveCrmGateway:
    """
    Client for the Ave CRM endpoints the connector needs.

    Raw operations propagate RemoteCallError. The token lookups are also
    offered in a collapsed form that returns None both when nothing is
    configured and when the lookup failed.
    """

    def __init__(self, http: HttpClient, config: Optional[CrmConfig] = None):
        self.http = http
        self.config = config or CrmConfig()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _headers(auth_token: str) -> Dict[str, str]:
        return {"Authorization": auth_token}

    async def get_shops_tokens(self, company_id: str, auth_token: str) -> Any:
        """Raw token envelope for every store of a company."""
        return await self.http.request(
            "GET", self._url(f"token/{company_id}"), self._headers(auth_token)
        )

    async def get_agent_shop_token(self, company_id: str, auth_token: str, agent_id: str) -> Any:
        """Raw token envelope for the store of one agent."""
        return await self.http.request(
            "GET", self._url(f"token/{company_id}/{agent_id}"), self._headers(auth_token)
        )

    async def lookup_store_tokens(self, company_id: str, auth_token: str) -> Lookup:
        try:
            rows = _envelope_rows(await self.get_shops_tokens(company_id, auth_token))
            if not rows:
                return Lookup.empty()
            return Lookup.ok([StoreCredential.model_validate(row) for row in rows])
        except Exception as e:
            logger.warning(
                "store_token_lookup_failed",
                extra={"company_id": company_id, "error": str(e)},
            )
            return Lookup.failed(e)

    async def lookup_agent_store_token(self, company_id: str, auth_token: str, agent_id: str) -> Lookup:
        try:
            rows = _envelope_rows(await self.get_agent_shop_token(company_id, auth_token, agent_id))
            if not rows:
                return Lookup.empty()
            return Lookup.ok(StoreCredential.model_validate(rows[0]))
        except Exception as e:
            logger.warning(
                "agent_token_lookup_failed",
                extra={"company_id": company_id, "agent_id": agent_id, "error": str(e)},
            )
            return Lookup.failed(e)

    async def get_store_tokens_by_company(
        self, company_id: str, auth_token: str
    ) -> Optional[List[StoreCredential]]:
        """Stores of a company, or None when there are none or the lookup failed."""
        return (await self.lookup_store_tokens(company_id, auth_token)).or_none()

    async def get_store_token_by_company_agent(
        self, company_id: str, auth_token: str, agent_id: str
    ) -> Optional[StoreCredential]:
        """First store of an agent, or None when there is none or the lookup failed."""
        return (await self.lookup_agent_store_token(company_id, auth_token, agent_id)).or_none()

    async def get_order_by_number(self, auth_token: str, order_number: str) -> Optional[OrderRecord]:
        """Order log entry for an Ave order number, or None."""
        response = await self.http.request(
            "GET", self._url(f"orders/log/{order_number}"), self._headers(auth_token)
        )
        rows = response if isinstance(response, list) else _envelope_rows(response)
        if not rows or not isinstance(rows[0], dict):
            return None
        record = OrderRecord.model_validate(rows[0])
        if record.order_number is None:
            record.order_number = str(order_number)
        return record

    async def _get_references(self, auth_token: str, key: str, ids: Sequence[str]) -> List[CrossReference]:
        ids = [str(i) for i in ids if i]
        if not ids:
            return []
        response = await self.http.request(
            "GET",
            self._url("productEcommerce"),
            self._headers(auth_token),
            params={f"{key}[]": ids},
        )
        return [CrossReference.model_validate(row) for row in _envelope_rows(response)]

    async def get_cross_references(self, auth_token: str, internal_ids: Sequence[str]) -> List[CrossReference]:
        """Every known mapping, across all stores, for products and variants mixed."""
        return await self._get_references(auth_token, "products_id", internal_ids)

    async def get_dropshipping_references(
        self, auth_token: str, dropshipping_ids: Sequence[str]
    ) -> List[CrossReference]:
        """Every known mapping for dropshipping product ids."""
        return await self._get_references(auth_token, "product_dropshipping_id", dropshipping_ids)

    async def put_cross_references(self, auth_token: str, refs: Sequence[CrossReference]) -> Any:
        """Upsert mappings; the CRM echoes the stored rows."""
        if not refs:
            return None
        return await self.http.request(
            "POST",
            self._url("productEcommerce"),
            self._headers(auth_token),
            data=[ref.to_wire() for ref in refs],
        )
