"""Per-call deadline + bounded exponential backoff for remote operations."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from erc20sync.exceptions import ExternalServiceError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE = (ExternalServiceError, TimeoutError)


class RetryPolicy:
    """Wraps an awaitable factory with a per-attempt timeout and retries.

    Only ExternalServiceError and timeouts are retried. After the last attempt
    the failure is raised as RemoteError carrying the operation context.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_attempts: int = 3,
        initial_delay: float = 0.2,
        max_delay: float = 5.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
        )

    async def run(
        self,
        operation: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> T:
        """Run ``fn(*args, **kwargs)`` under the policy. ``operation`` reads as "Failed to <operation>"."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RETRIABLE),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, max=self.max_delay),
            before_sleep=self._log_retry(operation, context),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await asyncio.wait_for(fn(*args, **kwargs), timeout=self.timeout)
        except RETRIABLE as e:
            raise RemoteError(f"Failed to {operation}: {self._describe(e)}", context=context) from e
        raise AssertionError("unreachable")  # pragma: no cover

    def _describe(self, error: BaseException) -> str:
        if isinstance(error, TimeoutError):
            return f"timed out after {self.timeout:g}s"
        return str(error) or error.__class__.__name__

    def _log_retry(
        self, operation: str, context: dict[str, Any] | None
    ) -> Callable[[RetryCallState], None]:
        def _before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "Retrying %s (attempt %d/%d, context=%s): %s",
                operation, state.attempt_number, self.max_attempts, context or {},
                self._describe(error) if error else "unknown error",
            )

        return _before_sleep
