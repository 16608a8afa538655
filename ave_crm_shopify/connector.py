"""Entry point wiring the CRM gateway, store clients and orchestrators."""

from typing import Dict, Optional

import httpx

from .config import ConnectorConfig
from .crm import AveCrmGateway
from .fanout import StoreClientFactory
from .http_client import HttpClient
from .models.ave_models import ImageContext, StoreCredential
from .orders import OrderSync
from .products import ProductSync
from .rate_limiter import TokenBucketRateLimiter
from .store_client import ShopifyStoreClient, StoreClient
from .telemetry import init_metrics


class AveCrmShopifyConnector:
    """
    Connects Ave CRM to every Shopify store of a company.

    Example:
        async with AveCrmShopifyConnector() as connector:
            report = await connector.product.post(company_id, token, product)
    """

    def __init__(
        self,
        config: Optional[ConnectorConfig] = None,
        image_context: Optional[ImageContext] = None,
        store_client_factory: Optional[StoreClientFactory] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the connector.

        Args:
            config: Connector configuration
            image_context: Where relative product image paths are published from
            store_client_factory: Builds the client for one store (defaults to Shopify)
            client: Optional httpx client for CRM calls
        """
        self.config = config or ConnectorConfig()
        if self.config.telemetry.console_export:
            init_metrics()

        self._rate_limiters: Dict[str, TokenBucketRateLimiter] = {}
        self.http = HttpClient(client, timeout=self.config.crm.timeout_seconds)
        self.crm = AveCrmGateway(self.http, self.config.crm)
        factory = store_client_factory or self._shopify_client
        self.product = ProductSync(self.crm, factory, self.config, image_context)
        self.order = OrderSync(self.crm, factory, self.config)

    def rate_limiter_for(self, store_url: str) -> TokenBucketRateLimiter:
        """One limiter per store for the connector's lifetime."""
        limiter = self._rate_limiters.get(store_url)
        if limiter is None:
            limiter = TokenBucketRateLimiter(
                rate=self.config.rate_limit.max_requests_per_second,
                burst_size=self.config.rate_limit.burst_size,
            )
            self._rate_limiters[store_url] = limiter
        return limiter

    def _shopify_client(self, credential: StoreCredential) -> StoreClient:
        return ShopifyStoreClient(
            credential,
            self.config.shopify,
            rate_limiter=self.rate_limiter_for(credential.store_url),
        )

    async def close(self):
        """Close HTTP client."""
        await self.http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
