import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[
        Callable[[int, BaseException, float], Awaitable[None] | None]
    ] = None,
) -> T:
    """Await `func` up to `retries` times with capped exponential backoff.

    Only exceptions listed in `retry_on` are retried; the last one is re-raised
    once attempts run out. `on_retry(attempt, exc, sleep_for)` may be sync or
    async and runs before each backoff sleep.
    """
    retryable = tuple(retry_on)
    attempts = max(1, retries)
    delay = base_delay
    for attempt in range(attempts):
        try:
            return await func()
        except retryable as exc:
            if attempt == attempts - 1:
                raise
            sleep_for = min(delay, max_delay) + random.uniform(0, delay * jitter)
            if on_retry:
                try:
                    result = on_retry(attempt + 1, exc, sleep_for)
                    if result is not None:
                        await result  # support async callback
                except Exception:
                    logger.warning("retry_callback_failed", exc_info=True)
            await asyncio.sleep(sleep_for)
            delay = min(delay * 2, max_delay)
    raise RuntimeError("async retry exhausted")
