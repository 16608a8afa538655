"""Rate limiter implementation using token bucket algorithm."""

import asyncio
import time


class TokenBucketRateLimiter:
    """
    Token bucket rate limiter for Shopify Admin API calls.

    One limiter belongs to one store client, so a burst of stock updates in
    one store never delays another store.
    """

    def __init__(self, rate: float, burst_size: int):
        """
        Initialize rate limiter.

        Args:
            rate: Tokens added per second (requests per second)
            burst_size: Maximum tokens in bucket (maximum burst)
        """
        self.rate = rate
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(self.burst_size, self.tokens + elapsed * self.rate)
        self.last_update = now

    async def acquire(self, tokens: int = 1) -> None:
        """
        Acquire tokens from the bucket, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire (default: 1)
        """
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                wait_time = (tokens - self.tokens) / self.rate
                await asyncio.sleep(wait_time)

    def try_acquire(self, tokens: int = 1) -> bool:
        """
        Try to acquire tokens without waiting.

        Returns:
            True if tokens were acquired, False otherwise
        """
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False
