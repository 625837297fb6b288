"""
Retry utilities with exponential backoff for platform API calls.

Failures are classified as retriable (network trouble, timeouts, 5xx, rate
limiting) or permanent (auth, not found, bad request). Permanent failures
abort immediately; retriable ones are retried with exponential backoff plus
random jitter.
"""
import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple, Type

import httpx

from shipdesk.config import settings
from shipdesk.utils.logger import log


NON_RETRIABLE_PATTERNS: Tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid credentials",
    "authentication failed",
    "not found",
    "bad request",
    "method not allowed",
)

NON_RETRIABLE_STATUS_CODES: Tuple[int, ...] = (400, 401, 403, 404, 405, 409, 422)

RETRIABLE_PATTERNS: Tuple[str, ...] = (
    "network error",
    "timeout",
    "timed out",
    "connection",
    "server error",
    "bad gateway",
    "gateway",
    "unavailable",
)

RETRIABLE_STATUS_CODES: Tuple[int, ...] = (408, 429, 500, 501, 502, 503, 504, 507, 508, 510, 511)

# Transport level failures never reached the platform, so they are always worth another try
RETRIABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


@dataclass
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_jitter: float = 1.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY,
            max_jitter=settings.RETRY_MAX_JITTER,
        )


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        self.total_delay_seconds += delay
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        self.success = True

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "success": self.success,
            "last_error": self.last_error,
            "errors": self.errors[:5]
        }


def error_status_code(error: BaseException) -> Optional[int]:
    """Pull an HTTP-equivalent status code off an error, if it carries one."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value

    return None


def is_retriable_error(error: BaseException) -> bool:
    """
    Decide whether a failed platform call is worth retrying.

    Permanent failures are checked first so that e.g. a 404 whose message
    also mentions a gateway is never retried. Anything that cannot be
    classified is treated as retriable.
    """
    if isinstance(error, RETRIABLE_EXCEPTIONS):
        return True

    message = str(error).lower()
    status_code = error_status_code(error)

    if any(pattern in message for pattern in NON_RETRIABLE_PATTERNS):
        return False

    if status_code in NON_RETRIABLE_STATUS_CODES:
        return False

    if any(pattern in message for pattern in RETRIABLE_PATTERNS):
        return True

    if status_code in RETRIABLE_STATUS_CODES:
        return True

    return True


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_jitter: float = 1.0,
    exponential_base: float = 2.0
) -> float:
    """
    Calculate the wait after a failed attempt.

    Args:
        attempt: Attempt that just failed (1-indexed)
        base_delay: Multiplier for the exponential term
        max_jitter: Upper bound of the random seconds added on top
        exponential_base: Base for exponential calculation

    Returns:
        Delay in seconds
    """
    delay = base_delay * (exponential_base ** attempt)

    if max_jitter > 0:
        delay += random.uniform(0, max_jitter)

    return delay


class RetryContext:
    """
    Context manager for retry operations with stats tracking. Leaving the
    block logs the collected stats at debug level when a retry happened.

    Usage:
        async with RetryContext(policy, "get_order") as ctx:
            order = await ctx.execute(agent.get_order, order_id)
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        operation: str = "operation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.policy = policy or RetryPolicy.from_settings()
        self.operation = operation
        self.sleep = sleep
        self.stats = RetryStats()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Only worth reporting once a retry actually happened
        if self.stats.attempts > 1:
            log.debug(f"{self.operation} retry stats: {self.stats.to_dict()}")
        return False

    async def execute(self, func: Callable[..., Awaitable], *args, **kwargs):
        """Await func(*args, **kwargs), retrying retriable failures."""
        max_attempts = max(1, self.policy.max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                retriable = is_retriable_error(e)

                if not retriable or attempt >= max_attempts:
                    self.stats.record_attempt(error=e)
                    reason = "non-retriable error" if not retriable else f"{attempt} attempts"
                    log.error(f"{self.operation} failed ({reason}): {e}")
                    raise

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.policy.base_delay,
                    max_jitter=self.policy.max_jitter
                )
                self.stats.record_attempt(error=e, delay=delay)

                log.warning(
                    f"{self.operation} attempt {attempt}/{max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )

                await self.sleep(delay)
                continue

            self.stats.record_attempt()
            self.stats.mark_success()

            if attempt > 1:
                log.info(
                    f"{self.operation} succeeded on attempt {attempt} "
                    f"after {self.stats.total_delay_seconds:.1f}s total delay"
                )

            return result
