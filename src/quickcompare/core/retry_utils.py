"""
Extraction/store error types and the per-pair retry policy.
Only errors flagged retry_possible are retried; permanent ones surface on the first attempt.
"""

import logging
import random
import time
from typing import Callable, Optional, TypeVar
from functools import wraps

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT
from quickcompare.models.api import ErrorKind

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

T = TypeVar('T')


class ExtractionError(Exception):
    """Base exception for extraction capability failures."""

    kind = ErrorKind.EXTRACTION_FAILED

    def __init__(self, message: str, platform: Optional[str] = None, retry_possible: bool = True):
        self.message = message
        self.platform = platform
        self.retry_possible = retry_possible
        super().__init__(self.message)


class TransientError(ExtractionError):
    """Error that might be transient (timeouts, 5xx, connection resets)."""
    pass


class PermanentError(ExtractionError):
    """Error that won't be resolved by retrying."""

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message, platform, retry_possible=False)


class UnsupportedPlatformError(PermanentError):
    """Platform is selectable but the adapter has no search target for it."""

    kind = ErrorKind.UNSUPPORTED_PLATFORM


class StoreWriteError(Exception):
    """A delete or insert against the result store failed."""

    kind = ErrorKind.STORE_WRITE_FAILED

    def __init__(self, message: str, owner: Optional[str] = None):
        self.message = message
        self.owner = owner
        super().__init__(self.message)


class RetryConfig:
    """How often one (platform, item) extraction is re-attempted."""

    def __init__(
        self,
        max_retries: int = 0,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        jitter: bool = True
    ):
        self.max_retries = max(0, max_retries)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.jitter = jitter

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, retry: int) -> float:
        """Seconds to wait before retry number `retry` (0-based); doubles each time."""
        delay = min(self.initial_backoff * (2 ** retry), self.max_backoff)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


def retry_with_backoff(func: Callable[..., T], config: Optional[RetryConfig] = None) -> Callable[..., T]:
    """
    Wrap an extraction call so retryable ExtractionErrors are re-attempted.

    The last error is re-raised once the attempts are used up. Any other
    exception propagates immediately.
    """
    config = config or RetryConfig()

    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        for retry in range(config.attempts):
            try:
                return func(*args, **kwargs)
            except ExtractionError as e:
                if not e.retry_possible or retry == config.max_retries:
                    raise
                delay = config.delay(retry)
                logger.warning(
                    f"[RETRY] Extraction failed for {e.platform or 'unknown platform'}: {e.message}. "
                    f"Attempt {retry + 2}/{config.attempts} in {delay:.2f}s"
                )
                time.sleep(delay)

    return wrapper
