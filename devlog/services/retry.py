"""Exponential backoff for rate-limited API calls"""

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
RATE_LIMIT_CODE = "rate_limited"

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_S = 1.0


def is_rate_limited(exc: Exception) -> bool:
    """True if the error carries a 429 status or a rate_limited code."""
    # NotionApiError uses `status`, python-gitlab uses `response_code`, requests uses `status_code`
    for attr in ("status", "response_code", "status_code"):
        if getattr(exc, attr, None) == RATE_LIMIT_STATUS:
            return True
    return getattr(exc, "code", None) == RATE_LIMIT_CODE


def backoff_delay(base_delay_s: float, attempt: int) -> float:
    """Delay before retry number `attempt` (0-based)."""
    return base_delay_s * (2 ** attempt)


def with_retries(
    fn: Callable[[], T],
    *,
    max_attempts: int = DEFAULT_MAX_RETRIES,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
    should_retry: Callable[[Exception], bool] = is_rate_limited,
    sleep: Callable[[float], None] = time.sleep,
    label: Optional[str] = None,
) -> T:
    """Run `fn`, retrying up to `max_attempts` times on rate limiting.

    `fn` is called at most `max_attempts + 1` times. Errors that are not a
    rate-limit signal are raised immediately; when the retries are used up
    the last rate-limit error is raised unchanged.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= max_attempts or not should_retry(e):
                raise
            delay = backoff_delay(base_delay_s, attempt)
            what = f" ({label})" if label else ""
            logger.warning(
                f"Rate limit hit{what}, retrying in {int(delay * 1000)}ms "
                f"(attempt {attempt + 1}/{max_attempts + 1})"
            )
            sleep(delay)
            attempt += 1
