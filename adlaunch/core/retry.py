"""ADLAUNCH — Retry with Exponential Backoff.

Used for calls to internal APIs. The wrapped operation is re-invoked in full
on every attempt, so it must be safe to repeat. Meta create calls made by the
publish orchestrator do not go through here.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import httpx

from adlaunch.config import settings
from adlaunch.core.errors import RetryExhaustedError
from adlaunch.core.logging import get_logger
from adlaunch.core.publish_logger import PublishLogger

logger = get_logger("core.retry")

MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
HTTP_ERROR = "http_error"
JITTER_RATIO = 0.25


def default_should_retry(outcome: Any) -> bool:
    """Retry transport failures and 5xx responses."""
    if isinstance(outcome, httpx.TransportError):
        return True
    if isinstance(outcome, httpx.Response):
        return 500 <= outcome.status_code < 600
    return False


@dataclass
class RetryPolicy:
    max_attempts: int = field(default_factory=lambda: settings.retry_max_attempts)
    base_delay_ms: int = field(default_factory=lambda: settings.retry_base_delay_ms)
    max_delay_ms: int = field(default_factory=lambda: settings.retry_max_delay_ms)
    should_retry: Callable[[Any], bool] = default_should_retry


@dataclass
class RetryContext:
    """Backoff state for one wait between attempts. Never persisted."""

    attempt: int
    delay: float
    jitter: float

    @property
    def wait_ms(self) -> float:
        return max(self.delay + self.jitter, 0.0)


@dataclass
class RetryResult:
    success: bool
    data: Any = None
    attempts: int = 0
    code: Optional[str] = None
    message: Optional[str] = None
    error: Any = None

    def unwrap(self) -> Any:
        """Return ``data`` or raise ``RetryExhaustedError``."""
        if self.success:
            return self.data
        raise RetryExhaustedError(
            self.message or "Request failed after multiple retries",
            attempts=self.attempts,
            last_error=self.error,
        )


def compute_backoff_delay(attempt: int, base_delay_ms: float, max_delay_ms: float) -> float:
    """``min(base * 2^attempt, max)`` with a zero-based attempt index."""
    return float(min(base_delay_ms * (2**attempt), max_delay_ms))


def backoff_context(attempt: int, policy: RetryPolicy) -> RetryContext:
    delay = compute_backoff_delay(attempt, policy.base_delay_ms, policy.max_delay_ms)
    jitter = delay * JITTER_RATIO * random.uniform(-1.0, 1.0)
    return RetryContext(attempt=attempt, delay=delay, jitter=jitter)


def _describe(outcome: Any) -> str:
    if isinstance(outcome, httpx.Response):
        return f"HTTP {outcome.status_code}"
    if isinstance(outcome, BaseException):
        return str(outcome) or type(outcome).__name__
    return repr(outcome)


async def execute_with_retry(
    operation: Callable[[], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
    publish_logger: Optional[PublishLogger] = None,
    operation_name: str = "request",
) -> RetryResult:
    """Run ``operation`` until it succeeds, is not retryable, or attempts run out.

    Returns a ``RetryResult`` in every case. An exception that the policy does
    not consider retryable propagates unchanged.
    """
    policy = policy or RetryPolicy()
    last_error: Any = None

    for attempt in range(policy.max_attempts):
        try:
            outcome = await operation()
        except Exception as e:
            if not policy.should_retry(e):
                raise
            outcome = e

        if not policy.should_retry(outcome):
            if isinstance(outcome, httpx.Response) and not outcome.is_success:
                return RetryResult(
                    success=False,
                    attempts=attempt + 1,
                    code=HTTP_ERROR,
                    message=f"HTTP {outcome.status_code}",
                    error=outcome,
                )
            return RetryResult(success=True, data=outcome, attempts=attempt + 1)

        last_error = outcome
        if attempt < policy.max_attempts - 1:
            ctx = backoff_context(attempt, policy)
            reason = _describe(outcome)
            if publish_logger is not None:
                publish_logger.retry(
                    operation_name, attempt + 1, policy.max_attempts, int(ctx.wait_ms), reason
                )
            else:
                logger.warning(
                    f"Retry attempt {attempt + 1}/{policy.max_attempts} for {operation_name} "
                    f"after {int(ctx.wait_ms)}ms: {reason}"
                )
            await asyncio.sleep(ctx.wait_ms / 1000)

    return RetryResult(
        success=False,
        attempts=policy.max_attempts,
        code=MAX_RETRIES_EXCEEDED,
        message=(
            str(last_error)
            if isinstance(last_error, BaseException)
            else "Request failed after multiple retries"
        ),
        error=last_error,
    )


class RetryingHTTPClient:
    """httpx client whose requests go through ``execute_with_retry``."""

    def __init__(
        self,
        base_url: str = "",
        policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        publish_logger: Optional[PublishLogger] = None,
        **kwargs: Any,
    ) -> RetryResult:
        async def _send() -> httpx.Response:
            return await self._client.request(method, url, **kwargs)

        return await execute_with_retry(
            _send, self.policy, publish_logger, operation_name=f"{method} {url}"
        )

    async def get(self, url: str, **kwargs: Any) -> RetryResult:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, json: Any = None, **kwargs: Any) -> RetryResult:
        return await self.request("POST", url, json=json, **kwargs)

    async def patch(self, url: str, json: Any = None, **kwargs: Any) -> RetryResult:
        return await self.request("PATCH", url, json=json, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> RetryResult:
        return await self.request("DELETE", url, **kwargs)
