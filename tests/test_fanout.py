import asyncio

import pytest

from ave_crm_shopify.fanout import dispatch, open_store
from ave_crm_shopify.mock_client import MockStoreClient
from ave_crm_shopify.models.ave_models import StoreCredential
from ave_crm_shopify.models.results import StoreResult
from ave_crm_shopify.rate_limiter import TokenBucketRateLimiter


def credentials(count=3):
    return [
        StoreCredential(id=str(i), url=f"tienda{i}.myshopify.com", token=f"shpat_{i}")
        for i in range(1, count + 1)
    ]


@pytest.mark.asyncio
async def test_exception_in_one_store_becomes_its_result():
    async def handler(credential):
        if credential.store_id == "2":
            raise RuntimeError("store down")
        return StoreResult(store_url=credential.store_url, store_id=credential.store_id)

    results = await dispatch(credentials(), handler, operation="test", payload={"x": 1})

    assert list(results) == ["tienda1.myshopify.com", "tienda2.myshopify.com", "tienda3.myshopify.com"]
    failed = results["tienda2.myshopify.com"]
    assert (failed.success, failed.error, failed.sent_payload) == (False, "store down", {"x": 1})
    assert results["tienda1.myshopify.com"].success
    assert results["tienda3.myshopify.com"].success


@pytest.mark.asyncio
async def test_sequential_by_default():
    running = []
    overlap = []

    async def handler(credential):
        running.append(credential.store_id)
        overlap.append(len(running))
        await asyncio.sleep(0)
        running.remove(credential.store_id)
        return StoreResult(store_url=credential.store_url)

    await dispatch(credentials(), handler, operation="test")
    assert max(overlap) == 1


@pytest.mark.asyncio
async def test_bounded_concurrency():
    running = []
    overlap = []

    async def handler(credential):
        running.append(credential.store_id)
        overlap.append(len(running))
        await asyncio.sleep(0.01)
        running.remove(credential.store_id)
        return StoreResult(store_url=credential.store_url)

    results = await dispatch(credentials(5), handler, operation="test", max_concurrency=2)

    assert max(overlap) == 2
    assert list(results) == [f"tienda{i}.myshopify.com" for i in range(1, 6)]


@pytest.mark.asyncio
async def test_open_store_closes_client_on_error():
    client = MockStoreClient()

    with pytest.raises(RuntimeError):
        async with open_store(lambda credential: client, credentials(1)[0]):
            raise RuntimeError("boom")
    assert client.closed


@pytest.mark.asyncio
async def test_rate_limiter_burst_then_refill():
    limiter = TokenBucketRateLimiter(rate=100.0, burst_size=2)

    assert limiter.try_acquire()
    assert limiter.try_acquire()
    assert not limiter.try_acquire()

    await limiter.acquire()
    assert limiter.tokens < 1
