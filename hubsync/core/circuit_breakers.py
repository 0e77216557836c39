"""
Circuit Breakers and Retry Logic
Bounded retries for HubSpot API calls so one flaky request does not kill a sync
"""
import logging

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


# ============================================================================
# HUBSPOT CIRCUIT BREAKER
# ============================================================================

def is_retryable_hubspot_error(exc: BaseException) -> bool:
    """
    Retry on:
    - Rate limit errors (429)
    - Server errors (5xx)
    - Connection / timeout errors
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or 500 <= status < 600
    return isinstance(exc, httpx.TransportError)


def _retry_after_wait(min_wait: float, max_wait: float):
    """Exponential backoff, except a 429 with Retry-After waits what HubSpot asks (capped)."""
    backoff = wait_exponential(multiplier=1, min=min_wait, max=max_wait)

    def wait(retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
            retry_after = exc.response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(float(retry_after), max_wait)
                except ValueError:
                    pass
        return backoff(retry_state)

    return wait


def hubspot_retrying(max_attempts: int = 5, min_wait: float = 1.0, max_wait: float = 30.0) -> AsyncRetrying:
    """
    Retry controller for one HubSpot request.

    Strategy:
    - Max `max_attempts` attempts (HubSpot client default is 5)
    - Exponential backoff between min_wait and max_wait
    - Logs before each retry, re-raises the last error once exhausted

    Usage:
        async for attempt in hubspot_retrying(5):
            with attempt:
                response = await http_client.get(...)
                response.raise_for_status()
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_retryable_hubspot_error),
        stop=stop_after_attempt(max_attempts),
        wait=_retry_after_wait(min_wait, max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
