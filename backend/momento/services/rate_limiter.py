"""
Outbound push rate limiting backed by a shared counter store
"""
import asyncio
import logging
import time
from typing import Optional, Protocol

from momento.core.config import settings
from momento.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...


class RateLimiter:
    """
    Caps sends per key within a short window.

    A caller over the cap waits and re-checks instead of being rejected, up to
    ``max_wait_seconds``. The read-compare-write on the counter is not atomic,
    so concurrent callers on one key can slightly exceed the cap.

    With ``fail_open`` (the default) an unreachable store or an exhausted wait
    budget lets the send through; otherwise RateLimitError is raised.
    """

    KEY_PREFIX = "rate_limit:"

    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int = 10,
        window_seconds: int = 1,
        wait_seconds: float = 1.0,
        max_wait_seconds: float = 30.0,
        fail_open: bool = True,
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.wait_seconds = wait_seconds
        self.max_wait_seconds = max_wait_seconds
        self.fail_open = fail_open

    @classmethod
    def from_settings(cls, store: RateLimitStore) -> "RateLimiter":
        return cls(
            store,
            max_requests=settings.FCM_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.FCM_RATE_LIMIT_WINDOW_SECONDS,
            wait_seconds=settings.FCM_RATE_LIMIT_TIMEOUT,
            max_wait_seconds=settings.FCM_RATE_LIMIT_MAX_WAIT,
            fail_open=settings.FCM_RATE_LIMIT_FAIL_OPEN,
        )

    async def apply_rate_limit(self, key: str) -> None:
        """
        Count one send against ``key``, waiting while the key is at its cap

        Raises:
            RateLimitError: Only in fail-closed mode, when the store fails or
                the wait budget runs out
        """
        redis_key = f"{self.KEY_PREFIX}{key}"
        started = time.monotonic()

        while True:
            try:
                count = int(await self.store.get(redis_key) or 0)
                if count < self.max_requests:
                    await self.store.set(redis_key, str(count + 1), self.window_seconds)
                    return
            except Exception as e:
                if self.fail_open:
                    logger.error(f"Rate limit error for {key} (allowing send): {e}")
                    return
                logger.error(f"Rate limit error for {key} (blocking send): {e}")
                raise RateLimitError(retry_after=self.window_seconds)

            waited = time.monotonic() - started
            if waited + self.wait_seconds > self.max_wait_seconds:
                if self.fail_open:
                    logger.warning(f"Rate limit wait budget spent for {key} after {waited:.1f}s, sending anyway")
                    return
                raise RateLimitError(retry_after=self.window_seconds)

            logger.debug(f"Rate limit reached for {key} ({count}/{self.max_requests}), waiting")
            await asyncio.sleep(self.wait_seconds)
