import json

import httpx
import pytest

from ave_crm_shopify.config import ConnectorConfig
from ave_crm_shopify.connector import AveCrmShopifyConnector
from ave_crm_shopify.mock_client import MockStoreClient

API_PREFIX = "/api-shopify/public/api/"

STORES = [
    {"id": 1, "url": "uno.myshopify.com", "token": "shpat_uno", "id_agente": 10},
    {"id": 2, "url": "dos.myshopify.com", "token": "shpat_dos", "id_agente": 20},
    {"id": 3, "url": "tres.myshopify.com", "token": "shpat_tres", "id_agente": 30},
]


class FakeCrm:
    """Ave CRM endpoints served from memory through httpx.MockTransport."""

    def __init__(self, stores=None, refs=None, orders=None):
        self.stores = stores if stores is not None else []
        self.refs = list(refs or [])
        self.orders = orders or {}
        self.fail = set()
        self.fail_writes = set()
        self.requests = []

    def route(self, request: httpx.Request) -> str:
        return request.url.path.split(API_PREFIX, 1)[1]

    def requests_to(self, prefix: str, method: str = None):
        return [
            r for r in self.requests
            if self.route(r).startswith(prefix) and (method is None or r.method == method)
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.route(request)
        if any(route.startswith(prefix) for prefix in self.fail):
            raise httpx.ConnectError("connection refused", request=request)

        if route.startswith("token/"):
            parts = route.split("/")
            if len(parts) == 2:
                return httpx.Response(200, json={"data": self.stores})
            rows = [s for s in self.stores if str(s.get("id_agente")) == parts[2]]
            return httpx.Response(200, json={"data": rows})

        if route == "productEcommerce" and request.method == "POST":
            if route in self.fail_writes:
                return httpx.Response(503, json={"message": "unavailable"})
            for row in json.loads(request.content):
                self.refs = [
                    r for r in self.refs
                    if not (str(r["product_id"]) == str(row["product_id"])
                            and str(r["token_id"]) == str(row["token_id"]))
                ]
                self.refs.append(row)
            return httpx.Response(200, json={"data": json.loads(request.content)})

        if route == "productEcommerce":
            ids = request.url.params.get_list("products_id[]")
            dropshipping_ids = request.url.params.get_list("product_dropshipping_id[]")
            if ids:
                rows = [r for r in self.refs if str(r["product_id"]) in ids]
            else:
                rows = [r for r in self.refs if str(r.get("product_dropshipping_id")) in dropshipping_ids]
            return httpx.Response(200, json={"data": rows})

        if route.startswith("orders/log/"):
            number = route.rsplit("/", 1)[1]
            return httpx.Response(200, json=self.orders.get(number, []))

        return httpx.Response(404, json={"message": "not found"})

    def async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def crm():
    return FakeCrm(stores=[dict(s) for s in STORES])


@pytest.fixture
def store_clients():
    return {s["url"]: MockStoreClient(s["url"]) for s in STORES}


@pytest.fixture
def make_connector(crm, store_clients):
    def _make(config: ConnectorConfig = None) -> AveCrmShopifyConnector:
        return AveCrmShopifyConnector(
            config=config,
            client=crm.async_client(),
            store_client_factory=lambda credential: store_clients[credential.store_url],
        )
    return _make


@pytest.fixture
def connector(make_connector):
    return make_connector()
