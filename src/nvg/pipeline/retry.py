"""Bounded retry with exponential backoff for provider calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import Config
from ..errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, float, TransientError], Optional[Awaitable[None]]]


@dataclass
class RetryPolicy:
    """How often and how patiently a provider call is retried."""

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float = 120.0

    @classmethod
    def from_config(cls, config: Config) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            timeout=config.provider_timeout,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt + 1` (attempt counts from 0)."""
        return min(self.max_delay, self.base_delay * (2 ** attempt))


async def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy,
    on_retry: Optional[RetryCallback] = None,
    **kwargs: Any,
) -> T:
    """Run a blocking provider call in a worker thread, retrying transient failures.

    A call that outlives `policy.timeout` is classified transient. The worker
    thread is not interrupted; its eventual result is ignored.

    Args:
        fn: Blocking callable.
        *args: Positional arguments for fn.
        policy: Retry policy.
        on_retry: Called with (attempt, delay, error) before each backoff.
        **kwargs: Keyword arguments for fn.

    Returns:
        The callable's result.

    Raises:
        TransientError: When every attempt failed transiently.
        ProviderError: Any non-transient failure, immediately.
    """
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=policy.timeout)
        except asyncio.TimeoutError as e:
            error = TransientError(f"Provider call timed out after {policy.timeout:.0f}s")
            error.__cause__ = e
        except TransientError as e:
            error = e

        if attempt >= policy.max_retries:
            raise error
        delay = policy.delay_for(attempt)
        logger.warning(f"Transient failure ({error}). Retrying in {delay:.1f}s...")
        if on_retry is not None:
            result = on_retry(attempt + 1, delay, error)
            if asyncio.iscoroutine(result):
                await result
        await asyncio.sleep(delay)
        attempt += 1
