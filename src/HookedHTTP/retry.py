"""Transport-level retry policy: Tenacity-based backoff around one dispatch.

Retries happen below the hook chain: hooks see one request and the final
response, whatever number of attempts it took. Replays issued by the refresh
coordinator never retry, so a refresh cycle cannot multiply the retry budget.

Design:
- **Idempotent methods only** by default (GET, PUT, HEAD, DELETE, OPTIONS, TRACE)
- **Retryable statuses**: 408, 413, 429, 500, 502, 503, 504
- **Retryable exceptions**: any ``httpx.TransportError``
- **Retry-After support**: server guidance wins over backoff, capped
- **Exhaustion**: the last response is returned, the last exception re-raised
"""

from __future__ import annotations

import email.utils
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from .settings import RetrySettings

__all__ = ["create_retry_policy", "should_retry", "send_with_retry"]

logger = logging.getLogger("HookedHTTP.retry")


def _parse_retry_after_value(value: Optional[str]) -> Optional[float]:
    """Convert a Retry-After header value into a delay in seconds."""
    if not value:
        return None

    try:
        delay = float(int(value))
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delay = (dt - datetime.now(timezone.utc)).total_seconds()

    return max(0.0, delay)


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: float) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self._retry_after_delay(retry_state)
        if delay is not None:
            return min(delay, float(self._max_delay_seconds))
        return float(self._fallback_wait(retry_state))

    def _retry_after_delay(self, retry_state: RetryCallState) -> Optional[float]:
        outcome = retry_state.outcome
        if outcome is None or outcome.failed:
            return None
        response = outcome.result()
        headers = getattr(response, "headers", None)
        if headers is None:
            return None
        return _parse_retry_after_value(headers.get("Retry-After"))


def _return_last_result(retry_state: RetryCallState) -> httpx.Response:
    # Exhausted on a retryable status: hand the last response to the hooks.
    return retry_state.outcome.result()


def create_retry_policy(settings: RetrySettings) -> AsyncRetrying:
    """Create a Tenacity ``AsyncRetrying`` for ``settings``.

    Example:
        >>> policy = create_retry_policy(RetrySettings(limit=3))
        >>> response = await policy(client.send, request)  # doctest: +SKIP
    """

    def retry_on_status(response: object) -> bool:
        return isinstance(response, httpx.Response) and response.status_code in settings.status_codes

    return AsyncRetrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=_RetryAfterOrBackoff(
            fallback_wait=wait_random_exponential(
                multiplier=settings.backoff_multiplier,
                max=settings.backoff_limit,
            ),
            max_delay_seconds=settings.backoff_limit,
        ),
        retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(retry_on_status),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=_return_last_result,
        reraise=True,
    )


def should_retry(settings: Optional[RetrySettings], request: httpx.Request) -> bool:
    return (
        settings is not None
        and settings.limit > 0
        and request.method.upper() in settings.methods
    )


async def send_with_retry(
    send: Callable[[httpx.Request], Awaitable[httpx.Response]],
    request: httpx.Request,
    settings: Optional[RetrySettings],
) -> httpx.Response:
    """Dispatch ``request`` through ``send``, retrying per ``settings``."""

    if not should_retry(settings, request):
        return await send(request)
    return await create_retry_policy(settings)(send, request)
