"""Per-store dispatch with failure isolation."""

import asyncio
import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Sequence

from .models.ave_models import StoreCredential
from .models.results import StoreResult
from .store_client import StoreClient
from .telemetry import get_dispatch_duration_histogram, get_dispatch_failure_counter

logger = logging.getLogger("ave_crm_shopify.fanout")

StoreClientFactory = Callable[[StoreCredential], StoreClient]
StoreHandler = Callable[[StoreCredential], Awaitable[StoreResult]]


@asynccontextmanager
async def open_store(factory: StoreClientFactory, credential: StoreCredential) -> AsyncIterator[StoreClient]:
    """Create a store client for one dispatch and close it afterwards."""
    client = factory(credential)
    try:
        yield client
    finally:
        await client.aclose()


def failed_result(credential: StoreCredential, error: str, payload: Any = None) -> StoreResult:
    return StoreResult(
        store_url=credential.store_url,
        store_id=credential.store_id,
        success=False,
        sent_payload=payload,
        error=error,
    )


async def dispatch(
    credentials: Sequence[StoreCredential],
    handler: StoreHandler,
    *,
    operation: str,
    payload: Any = None,
    max_concurrency: int = 1,
) -> Dict[str, StoreResult]:
    """
    Run one operation against every store.

    An exception raised while handling a store becomes that store's failed
    result; other stores are unaffected. Stores run one after the other
    unless max_concurrency allows more.

    Args:
        credentials: Stores to dispatch to
        handler: Coroutine producing the result for one store
        operation: Operation name for logs and metrics
        payload: Payload recorded on failed results
        max_concurrency: Stores processed at the same time

    Returns:
        Results keyed by store URL, in credential order
    """
    duration_histogram = get_dispatch_duration_histogram()
    failure_counter = get_dispatch_failure_counter()

    async def run_one(credential: StoreCredential) -> StoreResult:
        start = perf_counter()
        try:
            result = await handler(credential)
        except Exception as e:
            logger.error(
                "store_dispatch_failed",
                extra={"operation": operation, "store": credential.store_url, "error": str(e)},
            )
            result = failed_result(credential, str(e), payload)

        attributes = {"operation": operation, "store": credential.store_url}
        duration_ms = (perf_counter() - start) * 1000
        if duration_histogram:
            duration_histogram.record(duration_ms, attributes=attributes)
        if not result.success and failure_counter:
            failure_counter.add(1, attributes=attributes)
        logger.info(
            "store_dispatch_done",
            extra={**attributes, "success": result.success, "duration_ms": duration_ms},
        )
        return result

    if max_concurrency <= 1:
        results = [await run_one(credential) for credential in credentials]
    else:
        semaphore = asyncio.Semaphore(max_concurrency)

        async def bounded(credential: StoreCredential) -> StoreResult:
            async with semaphore:
                return await run_one(credential)

        results = await asyncio.gather(*(bounded(c) for c in credentials))

    return {credential.store_url: result for credential, result in zip(credentials, results)}
