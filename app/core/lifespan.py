import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging after uvicorn starts and report the active model settings."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
  except Exception:
    # Fall back to the server's own logging rather than refusing to start.
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  logger.info("Startup complete - env=%s provider=%s model=%s", settings.environment, settings.provider, settings.model)
  if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY is not set; generation requests will fail until it is configured.")

  yield

  logger.info("Shutdown complete.")
