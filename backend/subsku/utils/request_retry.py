"""Retry policy for outbound Shopify requests, built on tenacity."""

from dataclasses import dataclass

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from subsku.config import settings

logger = structlog.get_logger(__name__)


@dataclass
class RequestRetryConfig:
    """Exponential backoff settings for one client."""

    max_attempts: int = 3
    min_wait: float = 1.0
    max_wait: float = 10.0
    multiplier: float = 1.0

    @classmethod
    def from_settings(cls) -> "RequestRetryConfig":
        return cls(max_attempts=settings.shopify_retry_attempts, max_wait=settings.shopify_retry_max_wait)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying outbound request",
        attempt=retry_state.attempt_number,
        error_type=type(error).__name__ if error else None,
        error=str(error) if error else None,
        sleep=retry_state.next_action.sleep if retry_state.next_action else None,
    )


def get_request_retrying(
    config: RequestRetryConfig | None = None,
    retry_on: tuple[type[BaseException], ...] = (httpx.RequestError,),
) -> AsyncRetrying:
    """Build an AsyncRetrying for transient request failures.

    Usage:
        async for attempt in get_request_retrying(retry_on=(httpx.RequestError, ShopifyThrottled)):
            with attempt:
                response = await client.post(url, json=body)

    Args:
        config: Backoff settings. Defaults to the Shopify settings.
        retry_on: Exception types that trigger another attempt.

    Returns:
        AsyncRetrying that logs each retry and re-raises the last error when
        attempts run out.
    """
    cfg = config or RequestRetryConfig.from_settings()
    return AsyncRetrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(cfg.max_attempts),
        wait=wait_exponential(multiplier=cfg.multiplier, min=cfg.min_wait, max=cfg.max_wait),
        before_sleep=_log_retry,
        reraise=True,
    )
