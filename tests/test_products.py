import json

import pytest

from ave_crm_shopify.config import ConnectorConfig
from ave_crm_shopify.errors import InvalidArgumentError, RemoteCallError
from ave_crm_shopify.mock_client import MockStoreClient


def sample_product(**overrides):
    data = {
        "productName": "Gorra Trucker",
        "productRef": "GOR-001",
        "sugerido": 30000,
        "peso": 200,
        "unidades": 4,
        "productId": "501",
        "variants": [
            {"id": "601", "sku": "GOR-001-N", "stock": 3, "attributes": {"color": "Negra"}},
            {"id": "602", "sku": "GOR-001-B", "stock": 0, "attributes": {"color": "Blanca"}},
            {"id": "603", "sku": "GOR-001-R", "stock": 9, "attributes": {"color": "Roja"}},
        ],
    }
    data.update(overrides)
    return data


def mapped(store_id, refs):
    """Wire rows mapping internal ids to store ids in one store."""
    return [
        {
            "product_id": internal_id,
            "parent_id": None if internal_id == "501" else "501",
            "product_ref": store_ref,
            "token_id": store_id,
            "product_type": "own",
        }
        for internal_id, store_ref in refs.items()
    ]


def posted_rows(crm):
    return [json.loads(r.content) for r in crm.requests_to("productEcommerce", "POST")]


class FlakyStockClient(MockStoreClient):
    def __init__(self, store_url, failing_variant):
        super().__init__(store_url)
        self.failing_variant = failing_variant

    async def update_stock(self, variant_id, quantity):
        if variant_id == self.failing_variant:
            self.calls.append(("update_stock", (variant_id, quantity)))
            raise RemoteCallError("POST", "https://x/inventory_levels/set.json", "boom", 422)
        return await super().update_stock(variant_id, quantity)


@pytest.mark.asyncio
async def test_no_stores_returns_none_without_store_calls(crm, connector, store_clients):
    crm.stores = []
    assert await connector.product.post("55", "t", sample_product()) is None
    assert all(not client.calls for client in store_clients.values())
    assert crm.requests_to("productEcommerce") == []


@pytest.mark.asyncio
async def test_failed_token_lookup_also_returns_none(crm, connector, store_clients):
    crm.fail.add("token/")
    assert await connector.product.sync("55", "t", sample_product()) is None
    assert all(not client.calls for client in store_clients.values())


@pytest.mark.asyncio
async def test_post_creates_in_every_store_and_persists_bare_ids(crm, connector, store_clients):
    report = await connector.product.post("55", "t", sample_product())

    assert list(report.results) == ["uno.myshopify.com", "dos.myshopify.com", "tres.myshopify.com"]
    assert report.all_succeeded
    for url, client in store_clients.items():
        assert len(client.called("create_product")) == 1
        assert client.closed

    rows = posted_rows(crm)
    assert len(rows) == 3
    assert [row["token_id"] for row in rows[0]] == ["1", "1", "1", "1"]
    assert [row["product_id"] for row in rows[0]] == ["501", "601", "602", "603"]
    assert all(row["product_ref"].isdigit() for batch in rows for row in batch)
    assert rows[0][1]["parent_id"] == "501"

    result = report.results["dos.myshopify.com"]
    assert result.store_id == "2"
    assert result.sent_payload["product"]["title"] == "Gorra Trucker"
    assert len(result.derived_refs) == 4


@pytest.mark.asyncio
async def test_second_post_is_precreated(crm, connector, store_clients):
    await connector.product.post("55", "t", sample_product())
    report = await connector.product.post("55", "t", sample_product())

    assert all(r.precreated for r in report.results.values())
    assert all(r.success for r in report.results.values())
    for client in store_clients.values():
        assert len(client.called("create_product")) == 1
    assert len(crm.requests_to("productEcommerce", "POST")) == 3


@pytest.mark.asyncio
async def test_one_failing_store_does_not_affect_the_others(crm, connector, store_clients):
    store_clients["dos.myshopify.com"].fail_on.add("create_product")

    report = await connector.product.post("55", "t", sample_product())

    assert report.failed_stores == ["dos.myshopify.com"]
    assert "mock failure in create_product" in report.results["dos.myshopify.com"].error
    assert report.results["dos.myshopify.com"].sent_payload["product"]["handle"] == "gorra-trucker"
    assert report.results["uno.myshopify.com"].success
    assert report.results["tres.myshopify.com"].success
    assert len(store_clients["tres.myshopify.com"].called("create_product")) == 1
    assert sorted({r["token_id"] for r in crm.refs}) == ["1", "3"]


@pytest.mark.asyncio
async def test_missing_variant_in_response_is_recorded_without_store_ref(crm, connector, store_clients):
    store_clients["uno.myshopify.com"].missing_skus.add("GOR-001-B")

    report = await connector.product.post("55", "t", sample_product())

    refs = {r.internal_product_id: r.store_product_ref for r in report.results["uno.myshopify.com"].derived_refs}
    assert refs["602"] is None
    assert refs["601"] is not None


@pytest.mark.asyncio
async def test_dropshipping_references_take_precedence(crm, connector, store_clients):
    crm.refs = [dict(mapped("1", {"501": "7001"})[0], product_dropshipping_id="900")]

    report = await connector.product.post("55", "t", sample_product(dropshippingId="900"))

    lookups = crm.requests_to("productEcommerce", "GET")
    assert len(lookups) == 1
    assert lookups[0].url.params.get_list("product_dropshipping_id[]") == ["900"]
    assert report.results["uno.myshopify.com"].precreated
    assert not store_clients["uno.myshopify.com"].called("create_product")
    assert len(store_clients["dos.myshopify.com"].called("create_product")) == 1
    assert {row["product_type"] for batch in posted_rows(crm) for row in batch} == {"dropshipping"}


@pytest.mark.asyncio
async def test_dropshipping_lookup_falls_back_to_internal_ids(crm, connector):
    await connector.product.post("55", "t", sample_product(dropshippingId="900"))

    lookups = crm.requests_to("productEcommerce", "GET")
    assert lookups[0].url.params.get_list("product_dropshipping_id[]") == ["900"]
    assert lookups[1].url.params.get_list("products_id[]") == ["501", "601", "602", "603"]


@pytest.mark.asyncio
async def test_sync_updates_mapped_stores_and_creates_elsewhere(crm, connector, store_clients):
    crm.refs = mapped("1", {"501": "7001", "601": "8001"})

    report = await connector.product.sync("55", "t", sample_product())

    assert report.all_succeeded
    uno = store_clients["uno.myshopify.com"]
    assert not uno.called("create_product")
    product_id, payload = uno.called("update_product")[0]
    assert product_id == "7001"
    assert payload["product"]["id"] == "7001"
    assert payload["product"]["variants"][0]["id"] == "8001"
    assert "id" not in payload["product"]["variants"][1]

    for url in ("dos.myshopify.com", "tres.myshopify.com"):
        assert len(store_clients[url].called("create_product")) == 1
        assert not store_clients[url].called("update_product")

    # Only the variants the update created are persisted for store uno.
    first_batch = posted_rows(crm)[0]
    assert [row["product_id"] for row in first_batch] == ["602", "603"]
    assert {row["token_id"] for row in first_batch} == {"1"}


@pytest.mark.asyncio
async def test_put_requires_product_id(crm, connector):
    with pytest.raises(InvalidArgumentError, match="El ID del producto no puede estar vacio."):
        await connector.product.put("55", "t", sample_product(productId=None))
    assert crm.requests == []


@pytest.mark.asyncio
async def test_put_fails_only_the_stores_without_the_product(crm, connector, store_clients):
    crm.refs = mapped("1", {"501": "7001", "601": "8001", "602": "8002", "603": "8003"})

    report = await connector.product.put("55", "t", sample_product())

    assert report.results["uno.myshopify.com"].success
    assert len(store_clients["uno.myshopify.com"].called("update_product")) == 1
    assert report.failed_stores == ["dos.myshopify.com", "tres.myshopify.com"]
    assert report.results["dos.myshopify.com"].error == (
        "El producto 501 no existe en la tienda dos.myshopify.com"
    )
    assert not store_clients["dos.myshopify.com"].calls
    assert crm.requests_to("productEcommerce", "POST") == []


@pytest.mark.asyncio
async def test_put_stock_reports_each_variant(crm, make_connector, store_clients):
    store_clients["uno.myshopify.com"] = FlakyStockClient("uno.myshopify.com", failing_variant="8002")
    crm.refs = (
        mapped("1", {"501": "7001", "601": "8001", "602": "8002", "603": "8003"})
        + mapped("2", {"501": "7101", "601": "8101", "602": "8102", "603": "8103"})
    )
    connector = make_connector()

    report = await connector.product.put_stock("55", "t", sample_product())

    uno = report.results["uno.myshopify.com"]
    assert not uno.success
    assert uno.error == "1 de 3 variantes sin actualizar"
    assert [(i.store_ref, i.quantity, i.success) for i in uno.items] == [
        ("8001", 3, True),
        ("8002", 0, False),
        ("8003", 9, True),
    ]

    dos = report.results["dos.myshopify.com"]
    assert dos.success
    assert store_clients["dos.myshopify.com"].called("update_stock") == [("8101", 3), ("8102", 0), ("8103", 9)]

    tres = report.results["tres.myshopify.com"]
    assert not tres.success
    assert tres.error == "3 de 3 variantes sin actualizar"
    assert tres.items[0].error == "La variante GOR-001-N no existe en la tienda"
    assert not store_clients["tres.myshopify.com"].called("update_stock")


@pytest.mark.asyncio
async def test_put_stock_requires_product_id(connector):
    with pytest.raises(InvalidArgumentError):
        await connector.product.put_stock("55", "t", sample_product(productId=""))


@pytest.mark.asyncio
async def test_reference_lookup_failure_fails_every_store(crm, connector, store_clients):
    crm.fail.add("productEcommerce")

    report = await connector.product.sync("55", "t", sample_product())

    assert report.failed_stores == ["uno.myshopify.com", "dos.myshopify.com", "tres.myshopify.com"]
    assert report.results["uno.myshopify.com"].error.startswith(
        "No se pudieron consultar las referencias del producto"
    )
    assert all(not client.calls for client in store_clients.values())


@pytest.mark.asyncio
async def test_concurrent_dispatch_keeps_store_order(make_connector, store_clients):
    connector = make_connector(ConnectorConfig(fanout={"max_concurrent_stores": 3}))

    report = await connector.product.post("55", "t", sample_product())

    assert list(report.results) == ["uno.myshopify.com", "dos.myshopify.com", "tres.myshopify.com"]
    assert report.all_succeeded
    assert all(len(c.called("create_product")) == 1 for c in store_clients.values())


@pytest.mark.asyncio
async def test_put_stock_reaches_the_default_variant_of_a_simple_product(crm, connector, store_clients):
    simple = sample_product(variants=[], unidades=7)
    await connector.product.post("55", "t", simple)

    report = await connector.product.put_stock("55", "t", simple)

    assert report.all_succeeded
    for client in store_clients.values():
        (product_id,) = client.called("default_variant_id")[0]
        variant_id = client.products[product_id][0]
        assert client.called("update_stock") == [(variant_id, 7)]


@pytest.mark.asyncio
async def test_put_stock_on_unmapped_simple_product_fails_without_store_calls(connector, store_clients):
    report = await connector.product.put_stock("55", "t", sample_product(variants=[]))

    assert report.failed_stores == ["uno.myshopify.com", "dos.myshopify.com", "tres.myshopify.com"]
    assert all(not client.calls for client in store_clients.values())


@pytest.mark.asyncio
async def test_dropshipping_product_posted_twice_is_created_once(crm, connector, store_clients):
    product = sample_product(dropshippingId="900")

    await connector.product.post("55", "t", product)
    report = await connector.product.post("55", "t", product)

    assert all(r.precreated for r in report.results.values())
    assert all(len(c.called("create_product")) == 1 for c in store_clients.values())
    assert {row["product_dropshipping_id"] for row in crm.refs} == {"900"}


@pytest.mark.asyncio
async def test_failed_reference_persist_keeps_the_store_response(crm, connector, store_clients):
    crm.fail_writes.add("productEcommerce")

    report = await connector.product.post("55", "t", sample_product())

    result = report.results["uno.myshopify.com"]
    assert not result.success
    assert result.error.startswith("No se pudieron guardar las referencias del producto")
    assert result.remote_result["product"]["id"].startswith("gid://shopify/Product/")
    assert [r.internal_product_id for r in result.derived_refs] == ["501", "601", "602", "603"]
    assert len(store_clients["dos.myshopify.com"].called("create_product")) == 1
