"""Backoff retry for Drive API calls.

Drive list/export endpoints are rate limited in practice. Requests failing
with a retryable status (rate limit or transient server error) are retried
with exponential backoff; everything else propagates immediately. Backoff
sleeps honor the shared CancellationContext.

Example:
    response = execute_with_retry(
        lambda: service.files().list(q=query).execute(),
        ctx,
        config.retry,
        description="list folder",
    )
"""

import json
from typing import Callable, List, Optional, TypeVar

import structlog
from googleapiclient.errors import HttpError

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import OperationCancelledError
from drive_exporter.gdrive.config import RetryConfig

logger = structlog.get_logger()

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Drive reports per-user quota exhaustion as 403 with one of these reasons
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def http_status(error: HttpError) -> Optional[int]:
    """Return the HTTP status code carried by an HttpError."""
    status = getattr(error, "status_code", None) or getattr(
        getattr(error, "resp", None), "status", None
    )
    return int(status) if status is not None else None


def error_reasons(error: HttpError) -> List[str]:
    """Extract ``error.errors[].reason`` values from a Drive error payload."""
    try:
        payload = json.loads(error.content.decode("utf-8"))
    except (AttributeError, UnicodeDecodeError, ValueError):
        return []
    if not isinstance(payload, dict):
        return []
    details = payload.get("error", {})
    if not isinstance(details, dict):
        return []
    return [str(item.get("reason")) for item in details.get("errors", []) if isinstance(item, dict)]


def is_retryable(error: BaseException) -> bool:
    """True if ``error`` is worth retrying after a pause."""
    if isinstance(error, HttpError):
        status = http_status(error)
        if status in RETRYABLE_STATUS_CODES:
            return True
        if status == 403:
            return bool(RATE_LIMIT_REASONS.intersection(error_reasons(error)))
        return False
    return isinstance(error, (TimeoutError, ConnectionError))


def backoff_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    delay = config.initial_delay_seconds * (config.multiplier ** attempt)
    return float(min(delay, config.max_delay_seconds))


def execute_with_retry(
    operation: Callable[[], T],
    ctx: CancellationContext,
    config: RetryConfig,
    description: str = "drive request",
) -> T:
    """Run ``operation``, retrying retryable failures with backoff.

    Args:
        operation: Zero-argument callable performing one API request.
        ctx: Cancellation context checked before each attempt and during sleeps.
        config: Retry limits and delays.
        description: Short label for log events.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        OperationCancelledError: If ``ctx`` is cancelled.
        Exception: The last error from ``operation`` when not retryable or
            when retries are exhausted.
    """
    attempt = 0
    while True:
        ctx.raise_if_cancelled()
        try:
            return operation()
        except Exception as e:
            if attempt >= config.max_retries or not is_retryable(e):
                raise
            delay = backoff_delay(config, attempt)
            logger.warning(
                "retrying_request",
                operation=description,
                attempt=attempt + 1,
                delay_seconds=delay,
                error=str(e),
            )
            if ctx.wait(delay):
                raise OperationCancelledError(reason=ctx.reason) from e
            attempt += 1
