"""
Ave CRM to Shopify connector

Publishes CRM products and orders to every Shopify store of a company and
records the resulting store ids back in the CRM.
"""

__version__ = "0.1.0"

from .connector import AveCrmShopifyConnector
from .config import ConnectorConfig, load_config
from .crm import AveCrmGateway
from .errors import RemoteCallError, TransportError, InvalidArgumentError
from .mock_client import MockStoreClient
from .store_client import StoreClient, ShopifyStoreClient

__all__ = [
    "AveCrmShopifyConnector",
    "ConnectorConfig",
    "load_config",
    "AveCrmGateway",
    "RemoteCallError",
    "TransportError",
    "InvalidArgumentError",
    "MockStoreClient",
    "StoreClient",
    "ShopifyStoreClient",
]
