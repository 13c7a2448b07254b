"""Shared FastAPI dependencies for session storage and the lesson orchestrator."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, status

from app.ai.orchestrator import LessonOrchestrator
from app.config import Settings, get_settings
from app.services.sessions import LessonSession, SessionStore

logger = logging.getLogger(__name__)

_SESSION_STORE = SessionStore()


def get_session_store() -> SessionStore:
  """Return the process-wide session store."""
  return _SESSION_STORE


def get_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> LessonSession:  # noqa: B008
  """Resolve the session named in the path (404 when unknown)."""
  return store.get(session_id)


@lru_cache(maxsize=1)
def _build_orchestrator(settings: Settings) -> LessonOrchestrator:
  return LessonOrchestrator.from_settings(settings)


def get_orchestrator(settings: Settings = Depends(get_settings)) -> LessonOrchestrator:  # noqa: B008
  """Build the orchestrator once per settings instance."""
  try:
    return _build_orchestrator(settings)
  except ValueError as exc:
    logger.error("Failed to build lesson orchestrator: %s", exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Lesson generation is not configured.") from exc
