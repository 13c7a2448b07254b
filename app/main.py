from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.ai.errors import UnsupportedMediaTypeError
from app.api.routes import sessions
from app.config import get_settings
from app.core.exceptions import (
  global_exception_handler,
  http_exception_handler,
  invalid_input_exception_handler,
  lesson_request_exception_handler,
  request_validation_exception_handler,
  session_busy_exception_handler,
  session_not_found_exception_handler,
  unsupported_media_exception_handler,
)
from app.core.lifespan import lifespan
from app.media.payload import InvalidGenerationInputError
from app.services.sessions import ArtifactNotFoundError, LessonRequestFailedError, SessionBusyError, SessionNotFoundError

APP_VERSION = "0.1.0"

settings = get_settings()

app = FastAPI(title="Sway Lesson Architect", version=APP_VERSION, lifespan=lifespan, docs_url="/docs" if settings.debug else None, redoc_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "content-disposition"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(LessonRequestFailedError, lesson_request_exception_handler)
app.add_exception_handler(SessionNotFoundError, session_not_found_exception_handler)
app.add_exception_handler(ArtifactNotFoundError, session_not_found_exception_handler)
app.add_exception_handler(SessionBusyError, session_busy_exception_handler)
app.add_exception_handler(InvalidGenerationInputError, invalid_input_exception_handler)
app.add_exception_handler(UnsupportedMediaTypeError, unsupported_media_exception_handler)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": APP_VERSION}


app.include_router(sessions.router, prefix="/v1/sessions", tags=["sessions"])
