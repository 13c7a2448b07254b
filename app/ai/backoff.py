"""Retry logic with exponential backoff for rate-limited model calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from app.ai.errors import RateLimitClassifier, is_rate_limit_error

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]
logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 5.0


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
  """Return the wait in seconds after a rate-limited attempt (0-based)."""
  return (2**attempt) * base_delay


async def retry_with_backoff(
  operation: Callable[[], Awaitable[T]],
  *,
  max_attempts: int = DEFAULT_MAX_ATTEMPTS,
  base_delay: float = DEFAULT_BASE_DELAY,
  is_retryable: RateLimitClassifier | None = None,
  sleep: Sleep | None = None,
) -> T:
  """
  Execute an async operation, retrying only rate-limit failures.

  Delays: 5s, 10s, 20s, 40s with the default base delay.
  Any other error is raised immediately without another attempt.
  """
  if max_attempts < 1:
    raise ValueError("max_attempts must be at least 1.")

  classify = is_retryable or is_rate_limit_error
  # Resolve at call time so tests can patch asyncio.sleep.
  wait = sleep or asyncio.sleep

  for attempt in range(max_attempts):
    try:
      return await operation()
    except Exception as e:
      if not classify(e):
        # Non-retryable error, raise immediately
        raise

      if attempt == max_attempts - 1:
        logger.error("Rate limit persisted after %s attempts; giving up. Error: %s", max_attempts, e)
        raise

      delay = backoff_delay(attempt, base_delay)
      logger.warning("Rate limit. Attempt %s/%s. Waiting %.1fs... Error: %s", attempt + 1, max_attempts, delay, e)
      await wait(delay)

  # Unreachable: the loop either returns or raises.
  raise RuntimeError("retry_with_backoff exited without a result.")
