import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.ai.errors import UnsupportedMediaTypeError
from app.media.payload import InvalidGenerationInputError
from app.services.sessions import ArtifactNotFoundError, LessonRequestFailedError, SessionBusyError, SessionNotFoundError


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Exceptions in validation contexts are not JSON serializable.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any) -> dict[str, Any]:
  return {"detail": detail}


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch unhandled errors without leaking internals to callers."""
  logger = logging.getLogger("uvicorn.error")
  logger.error("Global exception path=%s error_type=%s", request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error"))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors without echoing request bodies."""
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed path=%s method=%s errors=%s", request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Pass 4xx details through and hide 5xx details."""
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException path=%s status_code=%s detail=%s", request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error"))
  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail), headers=getattr(exc, "headers", None))


async def lesson_request_exception_handler(request: Request, exc: LessonRequestFailedError) -> JSONResponse:
  """Map failed model-backed requests to 429 (rate limited) or 502 (upstream failure)."""
  status_code = status.HTTP_429_TOO_MANY_REQUESTS if exc.rate_limited else status.HTTP_502_BAD_GATEWAY
  # The cause is already logged with its traceback by the session service.
  logging.getLogger("uvicorn.error").warning("Lesson request failed path=%s status_code=%s", request.url.path, status_code)
  return JSONResponse(status_code=status_code, content=_error_payload(exc.message))


async def session_not_found_exception_handler(request: Request, exc: SessionNotFoundError | ArtifactNotFoundError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_payload(str(exc)))


async def session_busy_exception_handler(request: Request, exc: SessionBusyError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_payload(str(exc)))


async def invalid_input_exception_handler(request: Request, exc: InvalidGenerationInputError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(str(exc)))


async def unsupported_media_exception_handler(request: Request, exc: UnsupportedMediaTypeError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload(str(exc)))
