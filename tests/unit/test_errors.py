from __future__ import annotations

import pytest

from app.ai.errors import ProviderError, is_rate_limit_error


class _CodedError(Exception):
  def __init__(self, code: int) -> None:
    super().__init__("request failed")
    self.code = code


@pytest.mark.parametrize(
  "exc",
  [
    ProviderError("quota", status_code=429),
    _CodedError(429),
    RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded"),
    RuntimeError("Resource exhausted for project"),
  ],
)
def test_rate_limit_errors_are_recognized(exc: Exception) -> None:
  assert is_rate_limit_error(exc) is True


@pytest.mark.parametrize(
  "exc",
  [
    ProviderError("bad request", status_code=400),
    _CodedError(503),
    ValueError("invalid argument"),
    ConnectionError("network unreachable"),
  ],
)
def test_other_errors_are_not_rate_limits(exc: Exception) -> None:
  assert is_rate_limit_error(exc) is False
