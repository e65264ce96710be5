"""
Retry support for transport calls.

RetryPolicy decides how long to wait, tenacity drives the attempts:

    executor = RetryExecutor(ExponentialBackoffPolicy(max_retries=3))
    response = await executor.execute(lambda: client.send(request))

Rate-limit hints from the provider (retry-after, x-ratelimit-reset-*) take
priority over the exponential schedule.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from agentloop.domain import LLMResponse
from agentloop.llm.base import ModelRequest, TransportClient
from agentloop.llm.errors import (
    LLMError,
    LLMTimeoutError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Rate limit hints
# ============================================================================


def parse_reset_time(value: str | None) -> float | None:
    """Parse reset durations such as "120ms", "1.5s", "2m", "1h" or "30" into seconds."""
    if value is None:
        return None
    value = value.strip()
    multipliers = (("ms", 0.001), ("s", 1.0), ("m", 60.0), ("h", 3600.0))
    try:
        for suffix, factor in multipliers:
            if value.endswith(suffix):
                return float(value[: -len(suffix)]) * factor
        return float(value)
    except ValueError:
        return None


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class RateLimitInfo(BaseModel):
    """Rate limit state reported by the provider, all durations in seconds."""

    model_config = ConfigDict(frozen=True)

    retry_after: float | None = None
    remaining_requests: int | None = None
    requests_reset_in: float | None = None
    remaining_tokens: int | None = None
    tokens_reset_in: float | None = None

    @property
    def suggested_wait_time(self) -> float | None:
        if self.retry_after is not None:
            return self.retry_after
        if self.requests_reset_in is not None:
            return self.requests_reset_in
        return self.tokens_reset_in

    @classmethod
    def from_headers(cls, headers: Mapping[str, str] | None) -> "RateLimitInfo":
        if not headers:
            return cls()
        h = {str(k).lower(): v for k, v in headers.items()}
        return cls(
            retry_after=_parse_float(h.get("retry-after")),
            remaining_requests=_parse_int(h.get("x-ratelimit-remaining-requests")),
            requests_reset_in=parse_reset_time(h.get("x-ratelimit-reset-requests")),
            remaining_tokens=_parse_int(h.get("x-ratelimit-remaining-tokens")),
            tokens_reset_in=parse_reset_time(h.get("x-ratelimit-reset-tokens")),
        )


# ============================================================================
# Policies
# ============================================================================


class RetryPolicy(ABC):
    max_retries: int = 0

    @abstractmethod
    def should_retry(self, error: Exception, attempt: int) -> bool:
        """attempt is 1-based: the number of the call that just failed."""

    @abstractmethod
    def delay(self, attempt: int, error: Exception) -> float:
        """Seconds to wait before the next call."""


class ExponentialBackoffPolicy(RetryPolicy):
    """
    base_delay * 2^(attempt-1), capped at max_delay, plus up to jitter * delay.

    A positive rate-limit hint on the error replaces the exponential delay.
    """

    def __init__(
        self,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: float = 0.1,
    ):
        self.max_retries = max(0, max_retries)
        self.base_delay = max(0.0, base_delay)
        self.max_delay = max(self.base_delay, max_delay)
        self.jitter = min(1.0, max(0.0, jitter))

    @classmethod
    def from_settings(cls, settings=None) -> "ExponentialBackoffPolicy":
        if settings is None:
            from agentloop.config import settings

        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt > self.max_retries:
            return False
        return isinstance(error, LLMError) and error.is_retryable

    def delay(self, attempt: int, error: Exception) -> float:
        info = getattr(error, "rate_limit_info", None)
        suggested = info.suggested_wait_time if info is not None else None
        if suggested is not None and suggested > 0:
            return self._add_jitter(suggested)

        exponential = self.base_delay * (2 ** (attempt - 1))
        return self._add_jitter(min(exponential, self.max_delay))

    def _add_jitter(self, delay: float) -> float:
        return delay + delay * self.jitter * random.random()

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoffPolicy(max_retries={self.max_retries}, "
            f"base_delay={self.base_delay}, max_delay={self.max_delay}, jitter={self.jitter})"
        )


class NoRetryPolicy(RetryPolicy):
    max_retries = 0

    def should_retry(self, error: Exception, attempt: int) -> bool:
        return False

    def delay(self, attempt: int, error: Exception) -> float:
        return 0.0


# ============================================================================
# Events
# ============================================================================


class RetryEvent(BaseModel):
    """Emitted before each retry sleep."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    attempt: int
    max_retries: int
    error: Exception
    delay_seconds: float

    @property
    def reason(self) -> str:
        if isinstance(self.error, RateLimitError):
            return "Rate limit exceeded"
        if isinstance(self.error, ServerError):
            return f"Server error ({self.error.status_code})"
        if isinstance(self.error, LLMTimeoutError):
            return "Request timeout"
        if isinstance(self.error, NetworkError):
            return "Network error"
        return "Retryable error"

    @property
    def remaining_retries(self) -> int:
        return max(0, self.max_retries - self.attempt)


RetryEventHandler = Callable[[RetryEvent], Any]


# ============================================================================
# Executor
# ============================================================================


class RetryExecutor:
    """Runs an async operation under a RetryPolicy using tenacity."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        on_retry: RetryEventHandler | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.policy = policy or ExponentialBackoffPolicy()
        self.on_retry = on_retry
        self._sleep = sleep

    def _should_retry(self, retry_state: RetryCallState) -> bool:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return False
        error = retry_state.outcome.exception()
        return self.policy.should_retry(error, retry_state.attempt_number)

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception()
        return self.policy.delay(retry_state.attempt_number, error)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        event = RetryEvent(
            attempt=retry_state.attempt_number,
            max_retries=self.policy.max_retries,
            error=error,
            delay_seconds=delay,
        )
        logger.warning(
            "llm_retry_scheduled",
            attempt=event.attempt,
            max_retries=event.max_retries,
            reason=event.reason,
            delay_seconds=round(delay, 3),
            error=str(error),
        )
        if self.on_retry is not None:
            self.on_retry(event)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Call operation until it succeeds or the policy gives up; re-raise the last error."""
        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_retries + 1),
            wait=self._wait,
            retry=self._should_retry,
            before_sleep=self._before_sleep,
            reraise=True,
            **kwargs,
        )

        # AsyncRetrying only awaits coroutine functions, not callables returning awaitables
        async def attempt() -> T:
            return await operation()

        return await retrying(attempt)


class RetryingTransport(TransportClient):
    """TransportClient decorator that routes every send through a RetryExecutor."""

    def __init__(self, inner: TransportClient, executor: RetryExecutor | None = None):
        self.inner = inner
        self.executor = executor or RetryExecutor(ExponentialBackoffPolicy.from_settings())

    async def send(self, request: ModelRequest) -> LLMResponse:
        return await self.executor.execute(lambda: self.inner.send(request))


__all__ = [
    "RateLimitInfo",
    "parse_reset_time",
    "RetryPolicy",
    "ExponentialBackoffPolicy",
    "NoRetryPolicy",
    "RetryEvent",
    "RetryEventHandler",
    "RetryExecutor",
    "RetryingTransport",
]
