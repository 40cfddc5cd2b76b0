"""
Exponential backoff retry policy.

Ordinary failures wait ``base_delay * 2^(k-1)`` before retry ``k``;
quota / rate-limit failures wait ``base_delay * 3^(k-1)``. Non-retryable
errors propagate on the first attempt.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Type, TypeVar
import logging

from core.exceptions import (
    BatchWriteExhaustedError,
    ETLException,
    NonRetryableError,
    RateLimitError,
    UploadInterrupted,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUOTA_SIGNATURES = (
    "resource_exhausted",
    "quota exceeded",
    "rate limit",
    "too many requests",
)


async def interruptible_sleep(delay: float, stop_event: Optional[asyncio.Event] = None):
    """Sleep for ``delay`` seconds, returning early once ``stop_event`` is set"""
    if stop_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


class RetryPolicy:
    """
    Run an async operation with bounded retries.

    Attributes:
        max_retries: Total number of attempts (default: 3)
        base_delay: Delay before the first retry in seconds (default: 5.0)
        stop_event: Once set, no further attempt is started
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 5.0,
        stop_event: Optional[asyncio.Event] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        exhausted_error: Type[ETLException] = BatchWriteExhaustedError
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.stop_event = stop_event
        self.exhausted_error = exhausted_error
        self._sleep = sleep or (lambda delay: interruptible_sleep(delay, self.stop_event))

    @staticmethod
    def is_quota_error(error: BaseException) -> bool:
        if isinstance(error, RateLimitError):
            return True
        message = str(error).lower()
        return any(signature in message for signature in QUOTA_SIGNATURES)

    def delay_for(self, attempt: int, error: BaseException) -> float:
        """Delay in seconds after failed attempt ``attempt`` (1-indexed)"""
        factor = 3 if self.is_quota_error(error) else 2
        delay = self.base_delay * factor ** (attempt - 1)
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            delay = max(delay, float(retry_after))
        return delay

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        """
        Invoke ``operation`` until it succeeds or attempts run out.

        Raises:
            NonRetryableError: Immediately, without retry
            UploadInterrupted: If a stop was requested between attempts
            BatchWriteExhaustedError: After the last failed attempt (or the
                configured ``exhausted_error``), chained to the last failure
        """
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            if attempt > 1 and self._stop_requested():
                raise UploadInterrupted(
                    f"Stop requested before attempt {attempt} of {description}",
                    context={"operation": description, "attempts": attempt - 1},
                    original_exception=last_exception
                )

            try:
                return await operation()

            except NonRetryableError:
                raise

            except Exception as e:
                last_exception = e
                if attempt == self.max_retries:
                    break

                delay = self.delay_for(attempt, e)
                if self.is_quota_error(e):
                    logger.warning(
                        f"Quota exceeded on attempt {attempt}/{self.max_retries} of {description}, "
                        f"waiting {delay:.1f}s before retry"
                    )
                else:
                    logger.warning(
                        f"Attempt {attempt}/{self.max_retries} of {description} failed, "
                        f"retrying in {delay:.1f}s: {e}"
                    )
                await self._sleep(delay)

        raise self.exhausted_error(
            f"{description} failed after {self.max_retries} attempts",
            context={"operation": description, "attempts": self.max_retries},
            original_exception=last_exception
        )
