"""Shared data contracts for the AI pipeline."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.ai.errors import UnsupportedMediaTypeError

# Media families the model accepts as inline data.
SUPPORTED_MEDIA_PREFIXES: tuple[str, ...] = ("image/", "audio/", "video/", "text/")
SUPPORTED_MEDIA_TYPES: frozenset[str] = frozenset({"application/pdf"})


def is_supported_media_type(media_type: str | None) -> bool:
  """Return True when the model accepts inline data of this media type."""
  if not media_type:
    return False
  normalized = media_type.strip().lower()
  return normalized in SUPPORTED_MEDIA_TYPES or normalized.startswith(SUPPORTED_MEDIA_PREFIXES)


class ContentPart(BaseModel):
  """One unit of model input: either text or binary data tagged with a media type."""

  text: str | None = None
  data: bytes | None = None
  media_type: str | None = None
  model_config = ConfigDict(frozen=True)

  @model_validator(mode="after")
  def _check_kind(self) -> ContentPart:
    if (self.text is None) == (self.data is None):
      raise ValueError("ContentPart requires exactly one of text or data.")
    if self.data is not None and not (self.media_type or "").strip():
      raise ValueError("Binary ContentPart requires a media type.")
    return self

  @classmethod
  def from_text(cls, text: str) -> ContentPart:
    return cls(text=text)

  @classmethod
  def from_bytes(cls, data: bytes, media_type: str) -> ContentPart:
    """Build a binary part, rejecting media types the model cannot accept."""
    # Checked here rather than in the validator so callers see the domain error, not a ValidationError.
    if not is_supported_media_type(media_type):
      raise UnsupportedMediaTypeError(f"Unsupported media type for inline data: {media_type!r}")
    return cls(data=data, media_type=media_type.strip().lower())

  @property
  def is_text(self) -> bool:
    return self.text is not None


class GenerationRequest(BaseModel):
  """Inputs for one lesson generation run."""

  user_text: str
  parts: list[ContentPart] = Field(default_factory=list)


class StageUsage(BaseModel):
  """Token usage recorded for one model call."""

  stage: str
  model: str
  prompt_tokens: int = 0
  completion_tokens: int = 0
  total_tokens: int = 0


class LessonMetadata(BaseModel):
  """Structured data layer embedded in the generated lesson document."""

  topic: str | None = None
  level: str | None = None
  vocabulary: list[str] = Field(default_factory=list)
  grammar: str | None = None
  lesson_id: str | None = Field(default=None, alias="lessonId")
  version: str | None = None
  model_config = ConfigDict(populate_by_name=True, extra="allow")
