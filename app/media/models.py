"""Domain models for uploaded attachments."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

AttachmentStatus = Literal["processing", "completed", "error"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "error"})


class UploadKind(str, Enum):
  """How an upload is normalized."""

  VIDEO = "video"
  DOCUMENT = "document"
  TEXT = "text"
  BINARY = "binary"


@dataclass(frozen=True)
class Attachment:
  """Normalized, uniform representation of one uploaded file.

  A completed attachment carries exactly one of `text`, `data` (base64) or
  `keyframes` (base64 JPEG frames). An errored attachment carries none of them.
  """

  attachment_id: str
  name: str
  media_type: str
  status: AttachmentStatus = "processing"
  progress: int = 0
  text: str | None = None
  data: str | None = None
  keyframes: tuple[str, ...] | None = None
  error: str | None = None
  size_bytes: int | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @property
  def is_media(self) -> bool:
    return self.keyframes is not None or self.media_type.startswith(("image/", "audio/", "video/"))

  def payload_fields(self) -> list[str]:
    """Names of the populated payload fields."""
    return [name for name in ("text", "data", "keyframes") if getattr(self, name) is not None]

