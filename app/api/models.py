from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from app.ai.pipeline.contracts import LessonMetadata, StageUsage
from app.media.models import Attachment
from app.services.sessions import LessonSession

MAX_INSTRUCTION_CHARS = 20_000
MAX_REFINE_REQUEST_CHARS = 4_000


class GenerateLessonRequest(BaseModel):
  """Request payload for building a lesson from one of the input modes."""

  mode: Literal["text", "url", "file"] = Field(default="text", description="Where the source material comes from.")
  text: StrictStr | None = Field(default=None, max_length=MAX_INSTRUCTION_CHARS, description="Lesson text (text mode) or extra instructions (url/file modes).", examples=["A lesson about ordering coffee for A2 learners"])
  url: StrictStr | None = Field(default=None, max_length=2048, description="Source link for url mode.", examples=["https://www.youtube.com/watch?v=example"])
  model_config = ConfigDict(extra="forbid")


class RefineLessonRequest(BaseModel):
  """Natural-language change request for the current lesson."""

  request: StrictStr = Field(min_length=1, max_length=MAX_REFINE_REQUEST_CHARS, examples=["Make the vocabulary cards larger"])
  model_config = ConfigDict(extra="forbid")


class AttachmentResponse(BaseModel):
  """Attachment state without the heavy payloads."""

  id: str
  name: str
  media_type: str
  status: Literal["processing", "completed", "error"]
  progress: int
  payload: Literal["text", "data", "keyframes"] | None = None
  keyframe_count: int | None = None
  is_media: bool
  size_bytes: int | None = None
  error: str | None = None

  @classmethod
  def from_record(cls, record: Attachment) -> AttachmentResponse:
    populated = record.payload_fields()
    return cls(
      id=record.attachment_id,
      name=record.name,
      media_type=record.media_type,
      status=record.status,
      progress=record.progress,
      payload=populated[0] if populated else None,
      keyframe_count=len(record.keyframes) if record.keyframes is not None else None,
      is_media=record.is_media,
      size_bytes=record.size_bytes,
      error=record.error,
    )


class AttachmentListResponse(BaseModel):
  attachments: list[AttachmentResponse]


class ConversationEntryResponse(BaseModel):
  role: Literal["user", "assistant"]
  text: str


class SessionStateResponse(BaseModel):
  """Snapshot of a lesson workspace."""

  session_id: str
  status_message: str
  is_processing: bool
  has_artifact: bool
  attachments: list[AttachmentResponse] = Field(default_factory=list)
  conversation: list[ConversationEntryResponse] = Field(default_factory=list)
  metadata: LessonMetadata | None = None
  last_error: str | None = None

  @classmethod
  def from_session(cls, session: LessonSession) -> SessionStateResponse:
    return cls(
      session_id=session.session_id,
      status_message=session.status_message,
      is_processing=session.is_processing,
      has_artifact=bool(session.artifact),
      attachments=[AttachmentResponse.from_record(record) for record in session.attachments.records()],
      conversation=[ConversationEntryResponse(role=entry.role, text=entry.text) for entry in session.conversation],
      metadata=session.metadata(),
      last_error=session.last_error,
    )


class GenerateLessonResponse(BaseModel):
  """Result of a generation run."""

  session_id: str
  status_message: str
  html_length: int
  usage: list[StageUsage] = Field(default_factory=list)
  metadata: LessonMetadata | None = None


class RefineLessonResponse(BaseModel):
  session_id: str
  reply: str
  html_length: int
