"""Shared error types and classification helpers for AI provider handling."""

from __future__ import annotations

from collections.abc import Callable

RateLimitClassifier = Callable[[BaseException], bool]

_RATE_LIMIT_STATUS = 429
_RATE_LIMIT_HINTS: tuple[str, ...] = ("resource exhausted",)


class ProviderError(RuntimeError):
  """Raised when the model service rejects or fails a request."""

  def __init__(self, message: str, *, status_code: int | None = None, provider: str | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.provider = provider


class UnsupportedMediaTypeError(ValueError):
  """Raised when a binary content part carries a media type the model cannot accept."""


class EmptyRefinementError(RuntimeError):
  """Raised when a refinement call returns no replacement document."""


def _status_of(exc: BaseException) -> int | None:
  """Return the HTTP-style status carried by an exception, if any."""
  # SDKs disagree on the attribute name; google-genai uses `code`, httpx-based clients `status_code`.
  for attr in ("status_code", "code", "status"):
    value = getattr(exc, attr, None)
    if isinstance(value, int) and not isinstance(value, bool):
      return value
  return None


def is_rate_limit_error(exc: BaseException) -> bool:
  """Return True when an exception indicates the service is temporarily refusing requests."""
  if _status_of(exc) == _RATE_LIMIT_STATUS:
    return True

  message = str(exc).lower().replace("_", " ")
  return any(hint in message for hint in _RATE_LIMIT_HINTS)
