"""Retry-with-backoff shared by the HTTP provider clients."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from .exceptions import OversizedInputError, ProviderResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class ErrorKind(Enum):
    """How a failed call should be retried."""
    NETWORK = "network"  # exponential backoff
    API = "api"          # linear backoff
    FATAL = "fatal"      # no retry


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify an exception raised by an outbound provider call."""
    if isinstance(exc, (OversizedInputError, ProviderResponseError)):
        return ErrorKind.FATAL
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code in RETRYABLE_STATUS:
            return ErrorKind.API
        return ErrorKind.FATAL
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK
    return ErrorKind.FATAL


class wait_by_error_kind(wait_base):
    """Exponential wait for network errors, linear wait for API errors."""

    def __init__(
        self,
        classify: Callable[[BaseException], ErrorKind],
        base_delay: float,
        max_delay: float,
    ):
        self._classify = classify
        self._base_delay = base_delay
        self._max_delay = max_delay

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number
        exc = retry_state.outcome.exception() if retry_state.outcome else None

        if exc is not None and self._classify(exc) is ErrorKind.NETWORK:
            delay = self._base_delay * (2 ** (attempt - 1))
        else:
            delay = self._base_delay * attempt

        return min(delay, self._max_delay)


@dataclass
class RetryPolicy:
    """Retry policy parameterized by attempt budget and error classifier."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    classify: Callable[[BaseException], ErrorKind] = field(default=classify_error)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        kind = self.classify(exc).value if exc is not None else "unknown"
        logger.warning(
            f"Retry {retry_state.attempt_number}/{self.max_retries} "
            f"after {kind} error: {exc}"
        )

    async def call(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Await func, retrying retryable failures.

        The last exception is re-raised once retries are exhausted or a
        fatal error is seen.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(
                lambda e: self.classify(e) is not ErrorKind.FATAL
            ),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_by_error_kind(self.classify, self.base_delay, self.max_delay),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(func, *args, **kwargs)
