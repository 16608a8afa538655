"""Send CRM orders to Shopify and keep their status in step."""

import logging
import unicodedata
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from .config import ConnectorConfig
from .crm import AveCrmGateway
from .errors import ConnectorError, require
from .fanout import StoreClientFactory, dispatch, open_store
from .models.ave_models import OrderInput, StoreCredential
from .models.results import FanoutReport, StoreResult, OperationResult, StatusChangeResult
from .models.shopify_models import CanonicalOrder
from .payload import build_order_payload
from .store_client import StoreClient

logger = logging.getLogger("ave_crm_shopify.orders")

OrderLike = Union[OrderInput, Dict[str, Any]]

REOPEN_STATUSES = (
    "solicitada",
    "sin confirmar",
    "pre confirmado",
    "en alistamiento",
    "lista para despacho",
    "procesando guia",
    "en bodega de origen",
    "en devolucion",
)
FULFILL_STATUSES = ("en reparto",)
CLOSE_STATUSES = ("entregada",)
CANCEL_STATUSES = ("anulada", "anulada full")
INFO_STATUSES = (
    "modificado por comprador",
    "error en cobertura",
    "direccion incompleta",
    "sin producto",
    "sin inventario",
    "preparado por otro operador",
    "novedad",
)

STATUS_NOTE = "Nota desde Aveonline - estado de pedido: {status}"
CANCELLED_NOTE = "Pedido marcado como 'Anulado' desde Aveonline"
INFO_NOTE = "Pedido con estado: {status}"
UNKNOWN_STATUS = "Estado no reconocido: {status}"


def normalize_status(status: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    text = unicodedata.normalize("NFKD", status or "")
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return " ".join(text.split()).lower()


class OrderTargetNotFound(ConnectorError):
    """No store or no Shopify order matches the CRM order."""


class OrderSync:
    """
    Order operations.

    New orders fan out to every store of the company. Follow-up operations
    address the single store of the agent that owns the order.
    """

    def __init__(
        self,
        crm: AveCrmGateway,
        store_client_factory: StoreClientFactory,
        config: Optional[ConnectorConfig] = None,
    ):
        self.crm = crm
        self.store_client_factory = store_client_factory
        self.config = config or ConnectorConfig()

    def build(self, order: OrderLike) -> CanonicalOrder:
        """Build the canonical order for a CRM order."""
        if not isinstance(order, OrderInput):
            order = OrderInput.model_validate(order)
        return build_order_payload(order, currency=self.config.order.currency)

    async def post(self, company_id: str, auth_token: str, order: OrderLike) -> Optional[FanoutReport]:
        """
        Create the order in every store of the company.

        Returns:
            Per-store results, or None when the company has no stores
        """
        canonical = self.build(order)
        stores = await self.crm.get_store_tokens_by_company(company_id, auth_token)
        if not stores:
            logger.info("no_stores_configured", extra={"operation": "order.post", "company_id": company_id})
            return None

        payload = canonical.to_rest_payload()

        async def handle(credential: StoreCredential) -> StoreResult:
            async with open_store(self.store_client_factory, credential) as client:
                response = await client.create_order(payload)
            return StoreResult(
                store_url=credential.store_url,
                store_id=credential.store_id,
                sent_payload=payload,
                remote_result=response,
            )

        results = await dispatch(
            stores,
            handle,
            operation="order.post",
            payload=payload,
            max_concurrency=self.config.fanout.max_concurrent_stores,
        )
        return FanoutReport(results=results, stores=stores)

    @staticmethod
    def _validate(order_id: str, company_id: str, auth_token: str, agent_id: str) -> None:
        require(order_id, "El ID de la orden no puede estar vacio.")
        require(company_id, "El ID de la empresa no puede estar vacio.")
        require(auth_token, "El token no puede estar vacio.")
        require(agent_id, "El ID del agente no puede estar vacio.")

    async def resolve_target(
        self, order_id: str, company_id: str, auth_token: str, agent_id: str
    ) -> Tuple[StoreCredential, str]:
        """
        Find the agent's store and the Shopify id of a CRM order.

        Raises:
            OrderTargetNotFound: no store for the agent, or no Shopify order
        """
        credential = await self.crm.get_store_token_by_company_agent(company_id, auth_token, agent_id)
        if credential is None:
            raise OrderTargetNotFound("No se encontraron tiendas Shopify asociadas a la empresa y agente.")
        record = await self.crm.get_order_by_number(auth_token, order_id)
        if record is None or not record.shopify_order_id:
            raise OrderTargetNotFound("No se encontraron ordenes de Shopify asociadas al ID de la orden.")
        return credential, record.shopify_order_id

    async def _single_store(
        self,
        operation: str,
        order_id: str,
        company_id: str,
        auth_token: str,
        agent_id: str,
        call: Callable[[StoreClient, str], Awaitable[Any]],
    ) -> OperationResult:
        self._validate(order_id, company_id, auth_token, agent_id)
        try:
            credential, shopify_order_id = await self.resolve_target(order_id, company_id, auth_token, agent_id)
            async with open_store(self.store_client_factory, credential) as client:
                result = await call(client, shopify_order_id)
            return OperationResult(success=True, result=result)
        except Exception as e:
            logger.warning(
                "order_operation_failed",
                extra={"operation": operation, "order_id": order_id, "error": str(e)},
            )
            return OperationResult(success=False, error=str(e))

    async def sync(
        self,
        order_id: str,
        company_id: str,
        auth_token: str,
        agent_id: str,
        order: OrderLike,
    ) -> OperationResult:
        """Push the CRM order data onto the existing Shopify order."""
        payload = self.build(order).to_rest_payload()
        return await self._single_store(
            "order.sync", order_id, company_id, auth_token, agent_id,
            lambda client, shopify_id: client.sync_order(shopify_id, payload),
        )

    async def cancel(
        self,
        order_id: str,
        company_id: str,
        auth_token: str,
        agent_id: str,
        cancel_reason: Optional[str] = None,
    ) -> OperationResult:
        """Cancel the Shopify order in the agent's store."""
        reason = cancel_reason or self.config.order.default_cancel_reason
        return await self._single_store(
            "order.cancel", order_id, company_id, auth_token, agent_id,
            lambda client, shopify_id: client.cancel_order(shopify_id, reason),
        )

    async def add_note(
        self, order_id: str, company_id: str, auth_token: str, agent_id: str, note: str
    ) -> OperationResult:
        return await self._single_store(
            "order.add_note", order_id, company_id, auth_token, agent_id,
            lambda client, shopify_id: client.add_note(shopify_id, note),
        )

    async def add_timeline_comment(
        self, order_id: str, company_id: str, auth_token: str, agent_id: str, message: str
    ) -> OperationResult:
        return await self._single_store(
            "order.add_timeline_comment", order_id, company_id, auth_token, agent_id,
            lambda client, shopify_id: client.add_timeline_comment(shopify_id, message),
        )

    async def _apply_status(self, client: StoreClient, shopify_order_id: str, status: str) -> OperationResult:
        normalized = normalize_status(status)
        try:
            if normalized in REOPEN_STATUSES:
                result = await client.open_order(shopify_order_id)
            elif normalized in FULFILL_STATUSES:
                result = await client.fulfill_order(shopify_order_id)
            elif normalized in CLOSE_STATUSES:
                result = await client.close_order(shopify_order_id)
            elif normalized in CANCEL_STATUSES:
                await client.add_note(shopify_order_id, CANCELLED_NOTE)
                result = await client.close_order(shopify_order_id)
            elif normalized in INFO_STATUSES:
                result = await client.add_note(
                    shopify_order_id, INFO_NOTE.format(status=normalized.capitalize())
                )
            else:
                return OperationResult(success=False, error=UNKNOWN_STATUS.format(status=status))
        except Exception as e:
            logger.warning(
                "order_status_action_failed",
                extra={"order_id": shopify_order_id, "status": normalized, "error": str(e)},
            )
            return OperationResult(success=False, error=str(e))
        return OperationResult(success=True, result=result)

    async def change_status(
        self, order_id: str, company_id: str, auth_token: str, agent_id: str, status: str
    ) -> StatusChangeResult:
        """
        Mirror an Ave order status in Shopify.

        A note with the status is always added first. The mapped action's
        outcome is reported in result_change_status; its failure does not
        fail the call.
        """
        self._validate(order_id, company_id, auth_token, agent_id)
        try:
            credential, shopify_order_id = await self.resolve_target(order_id, company_id, auth_token, agent_id)
            async with open_store(self.store_client_factory, credential) as client:
                result_note = await client.add_note(shopify_order_id, STATUS_NOTE.format(status=status))
                result_change = await self._apply_status(client, shopify_order_id, status)
        except Exception as e:
            logger.warning(
                "order_status_change_failed",
                extra={"order_id": order_id, "status": status, "error": str(e)},
            )
            return StatusChangeResult(success=False, error=str(e))
        return StatusChangeResult(
            success=True,
            result_note=result_note,
            result_change_status=result_change,
        )
