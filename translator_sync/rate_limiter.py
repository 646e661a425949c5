"""Token bucket shared by every locale task of a run."""
import logging

from aiolimiter import AsyncLimiter

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Leaky-bucket rate limiter around ``aiolimiter.AsyncLimiter``.

    The bucket holds ``capacity`` tokens and regains ``refill_per_second``
    tokens per second. The level is recomputed lazily from the event loop
    clock whenever a caller asks for tokens, so no background task runs.

    Args:
        capacity: Maximum number of tokens that can be spent in a burst.
        refill_per_second: Tokens regained per second.
    """

    def __init__(self, capacity: float, refill_per_second: float):
        if capacity <= 0:
            raise ValueError("Rate limiter capacity must be positive")
        if refill_per_second <= 0:
            raise ValueError("Rate limiter refill rate must be positive")
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self._limiter = AsyncLimiter(max_rate=capacity, time_period=capacity / refill_per_second)

    async def acquire(self, amount: float = 1) -> None:
        """
        Wait until ``amount`` tokens are available and consume them.

        Raises:
            ValueError: If ``amount`` exceeds the bucket capacity; such a
                request could never be served.
        """
        if amount > self.capacity:
            raise ValueError(
                f"Cannot acquire {amount} tokens from a rate limiter with capacity {self.capacity}"
            )
        if not self._limiter.has_capacity(amount):
            logger.debug("Rate limit reached, waiting for %s token(s)", amount)
        await self._limiter.acquire(amount)

    def has_capacity(self, amount: float = 1) -> bool:
        return self._limiter.has_capacity(amount)

    async def __aenter__(self) -> None:
        await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None
