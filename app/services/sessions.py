"""In-memory lesson sessions: attachments, artifact and conversation for one user."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Literal

from app.ai.errors import EmptyRefinementError
from app.ai.orchestrator import LessonOrchestrator, OrchestrationResult
from app.ai.pipeline.assembly import extract_lesson_metadata
from app.ai.pipeline.contracts import LessonMetadata, StageUsage
from app.media.payload import InputMode, InvalidGenerationInputError, build_generation_input
from app.media.registry import AttachmentRegistry
from app.utils.ids import generate_session_id

logger = logging.getLogger(__name__)

IDLE_STATUS = "Initializing..."
START_STATUS = "Starting AI Pipeline..."
REFINE_STATUS = "Refining your lesson..."

GENERATED_REPLY = "I have analyzed your input and built the initial interactive lesson using the 5-stage pipeline. Use this chat to request adjustments."
REFINED_REPLY = "Code updated! The preview has been refreshed."
REFINE_RATE_LIMIT_REPLY = "Sorry, the AI is at its limit. Please wait a moment and then try sending your request again."
REFINE_FAILURE_REPLY = "Sorry, I encountered an error while updating the code."
REFINE_UNCHANGED_REPLY = "The AI returned no updated code, so your current lesson was kept. Try rephrasing your request."
GENERATE_RATE_LIMIT_MESSAGE = "The AI is currently receiving too many requests (Rate Limit). Please wait about 60 seconds and try again."
GENERATE_FAILURE_MESSAGE = "Failed to generate lesson. Please check your network connection and try again."

Role = Literal["user", "assistant"]


class SessionNotFoundError(LookupError):
  """Raised when a session (or an attachment inside it) does not exist."""


class SessionBusyError(RuntimeError):
  """Raised when a session already has a generation or refinement running."""


class ArtifactNotFoundError(LookupError):
  """Raised when an operation needs a lesson that has not been generated yet."""


class LessonRequestFailedError(RuntimeError):
  """A model-backed request failed; carries the user-facing message."""

  def __init__(self, message: str, *, rate_limited: bool) -> None:
    super().__init__(message)
    self.message = message
    self.rate_limited = rate_limited


@dataclass(frozen=True)
class ConversationEntry:
  role: Role
  text: str


@dataclass
class LessonSession:
  """Mutable state behind one workspace."""

  session_id: str
  created_at: float = field(default_factory=time.time)
  attachments: AttachmentRegistry = field(default_factory=AttachmentRegistry)
  artifact: str | None = None
  conversation: list[ConversationEntry] = field(default_factory=list)
  usage: list[StageUsage] = field(default_factory=list)
  is_processing: bool = False
  status_message: str = IDLE_STATUS
  last_error: str | None = None

  def set_status(self, message: str) -> None:
    self.status_message = message

  def say(self, role: Role, text: str) -> None:
    self.conversation.append(ConversationEntry(role=role, text=text))

  def metadata(self) -> LessonMetadata | None:
    if not self.artifact:
      return None
    return extract_lesson_metadata(self.artifact)

  def require_artifact(self) -> str:
    if not self.artifact:
      raise ArtifactNotFoundError("No lesson has been generated for this session yet.")
    return self.artifact

  def reset(self) -> None:
    """Return to an empty workspace."""
    if self.is_processing:
      raise SessionBusyError("Cannot reset while a request is running.")
    self.attachments.clear()
    self.artifact = None
    self.conversation.clear()
    self.usage.clear()
    self.status_message = IDLE_STATUS
    self.last_error = None


class SessionStore:
  """Process-local session registry."""

  def __init__(self) -> None:
    self._sessions: dict[str, LessonSession] = {}

  def __len__(self) -> int:
    return len(self._sessions)

  def create(self) -> LessonSession:
    session = LessonSession(session_id=generate_session_id())
    self._sessions[session.session_id] = session
    logger.info("Created session %s", session.session_id)
    return session

  def get(self, session_id: str) -> LessonSession:
    session = self._sessions.get(session_id)
    if session is None:
      raise SessionNotFoundError(f"Session {session_id} not found.")
    return session

  def discard(self, session_id: str) -> None:
    session = self.get(session_id)
    if session.is_processing:
      raise SessionBusyError("Cannot discard a session while a request is running.")
    del self._sessions[session_id]
    logger.info("Discarded session %s", session_id)


@contextmanager
def _claim(session: LessonSession, status: str) -> Iterator[None]:
  """Mark the session busy for the duration of one model-backed request."""
  if session.is_processing:
    raise SessionBusyError("A request is already running for this session.")
  session.is_processing = True
  session.last_error = None
  session.set_status(status)
  try:
    yield
  finally:
    session.is_processing = False


async def generate_session_lesson(session: LessonSession, orchestrator: LessonOrchestrator, *, mode: InputMode | str, text: str | None = None, url: str | None = None) -> OrchestrationResult:
  """Build the lesson for a session from its input mode and completed attachments.

  On success the artifact is replaced and the conversation restarts with the
  generation summary. On failure the previous artifact is kept and a
  LessonRequestFailedError carries the message shown to the user.
  """
  if session.is_processing:
    raise SessionBusyError("A request is already running for this session.")
  generation_input = build_generation_input(mode, text, url, session.attachments.records())

  with _claim(session, START_STATUS):
    try:
      result = await orchestrator.generate_lesson(generation_input.prompt, generation_input.parts, on_status=session.set_status)
    except Exception as exc:  # noqa: BLE001
      rate_limited = orchestrator.is_retryable(exc)
      message = GENERATE_RATE_LIMIT_MESSAGE if rate_limited else GENERATE_FAILURE_MESSAGE
      logger.error("Lesson generation failed for session %s: %s", session.session_id, exc, exc_info=True)
      session.last_error = message
      raise LessonRequestFailedError(message, rate_limited=rate_limited) from exc

  session.artifact = result.html
  session.usage = list(result.usage)
  if generation_input.parts:
    opener = f"Created lesson from {len(generation_input.parts)} file(s) with instructions: {generation_input.prompt}"
  else:
    opener = "Draft this lesson plan."
  session.conversation = [ConversationEntry(role="user", text=opener), ConversationEntry(role="assistant", text=GENERATED_REPLY)]
  logger.info("Session %s lesson generated (%s chars)", session.session_id, len(result.html))
  return result


async def refine_session_lesson(session: LessonSession, orchestrator: LessonOrchestrator, request: str) -> str:
  """Apply a chat change request to the session's lesson, log the exchange and return the assistant reply."""
  change_request = request.strip()
  if not change_request:
    raise InvalidGenerationInputError("Refinement request must not be empty.")
  if session.is_processing:
    raise SessionBusyError("A request is already running for this session.")
  current_html = session.require_artifact()

  with _claim(session, REFINE_STATUS):
    session.say("user", change_request)
    try:
      refined = await orchestrator.refine_lesson(current_html, change_request)
    except EmptyRefinementError:
      # The previous lesson stays in place.
      logger.warning("Refinement for session %s returned no document; keeping the current lesson.", session.session_id)
      session.say("assistant", REFINE_UNCHANGED_REPLY)
      return REFINE_UNCHANGED_REPLY
    except Exception as exc:  # noqa: BLE001
      rate_limited = orchestrator.is_retryable(exc)
      apology = REFINE_RATE_LIMIT_REPLY if rate_limited else REFINE_FAILURE_REPLY
      logger.error("Refinement failed for session %s: %s", session.session_id, exc, exc_info=True)
      session.say("assistant", apology)
      session.last_error = apology
      raise LessonRequestFailedError(apology, rate_limited=rate_limited) from exc

  session.artifact = refined
  session.say("assistant", REFINED_REPLY)
  return REFINED_REPLY
