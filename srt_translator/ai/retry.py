"""
Retry Policy

Wraps a translation client call with failure classification and exponential
backoff. The policy owns no presentation: status strings go to an optional
callback and the logger. It never checks for cancellation itself: an
exception raised by the status callback ends the attempts, which is how the
batch pipeline abandons a retry cycle after a stop.
"""

import asyncio
import random
from typing import Awaitable, Callable, List, Optional, Protocol

from srt_translator.config import DEFAULT_BASE_DELAY, DEFAULT_JITTER, DEFAULT_MAX_RETRIES
from srt_translator.logger import get_logger
from srt_translator.ai.exceptions import (
    MalformedResponseError,
    RateLimitError,
    RetryExhaustedError,
    ServerFaultError,
    TranslationError,
)

logger = get_logger(__name__)

RATE_LIMIT = "rate_limit"
SERVER_ERROR = "server_error"
MALFORMED_RESPONSE = "malformed_response"

ERROR_CLASS_LABELS = {
    RATE_LIMIT: "Rate limit",
    SERVER_ERROR: "Server error",
    MALFORMED_RESPONSE: "Malformed response",
}


class Translator(Protocol):
    async def translate(self, texts: List[str], target_language: str, model: str) -> List[str]:
        ...


def categorize_error(error: Exception) -> Optional[str]:
    """
    Categorize an error for the retry decision.

    Typed errors from the providers are classified by type. Untyped
    TranslationErrors fall back to markers in the message.

    Returns:
        The retryable class name, or None when the error must not be retried
    """
    if isinstance(error, RateLimitError):
        return RATE_LIMIT
    if isinstance(error, ServerFaultError):
        return SERVER_ERROR
    if isinstance(error, MalformedResponseError):
        return MALFORMED_RESPONSE
    if type(error) is not TranslationError:
        # Auth/request rejections, exhausted retries, missing credentials, bugs
        return None

    error_str = str(error).lower()

    # Rate limiting (429) / quota exhaustion
    if '429' in error_str or 'rate limit' in error_str or 'quota' in error_str \
            or 'resource_exhausted' in error_str or 'too many requests' in error_str:
        return RATE_LIMIT

    # Server errors (5xx), overload, timeouts
    if any(code in error_str for code in ['500', '502', '503', '504']) \
            or 'overloaded' in error_str or 'timeout' in error_str:
        return SERVER_ERROR

    # Parse errors
    if 'parse' in error_str or 'json' in error_str:
        return MALFORMED_RESPONSE

    return None


class RetryPolicy:
    """Exponential backoff with jitter around one translation call."""

    def __init__(
        self,
        client: Translator,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        jitter: float = DEFAULT_JITTER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self.client = client
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng or random.Random()

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds after failed attempt ``attempt`` (1-indexed)."""
        return self.base_delay * (2 ** (attempt - 1)) + self._rng.uniform(0, self.jitter)

    async def translate(
        self,
        texts: List[str],
        target_language: str,
        model: str,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> List[str]:
        """
        Translate a batch, retrying transient failures.

        Args:
            texts: Source strings
            target_language: Target language name
            model: Model identifier
            on_status: Optional callback receiving a human-readable status
                before every backoff wait

        Returns:
            The client's result for the first successful attempt

        Raises:
            RetryExhaustedError: every attempt failed with a retryable error
            TranslationError: a non-retryable error, propagated unchanged
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                if attempt > 1:
                    logger.info(f"  Retry attempt {attempt}/{self.max_retries}")
                return await self.client.translate(texts, target_language, model)
            except Exception as e:
                error_class = categorize_error(e)
                if error_class is None:
                    logger.error(f"  Non-recoverable error: {e}")
                    raise
                last_error = e

                if attempt >= self.max_retries:
                    break

                wait_time = self.compute_delay(attempt)
                status = (
                    f"{ERROR_CLASS_LABELS[error_class]} ({e}). "
                    f"Retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})..."
                )
                if on_status:
                    on_status(status)
                logger.warning(f"  Attempt {attempt} failed: {e}. Waiting {wait_time:.1f}s before retry...")
                await self._sleep(wait_time)

        logger.warning(f"Translation failed after {self.max_retries} attempts: {last_error}")
        raise RetryExhaustedError(
            str(last_error),
            details={"attempts": self.max_retries, "last_error": type(last_error).__name__},
        ) from last_error
