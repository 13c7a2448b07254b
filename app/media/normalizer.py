"""Normalize uploaded files into attachment records."""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePath

from starlette.concurrency import run_in_threadpool

from app.media.documents import decode_text, extract_docx_text
from app.media.models import Attachment, UploadKind
from app.media.registry import AttachmentRegistry
from app.media.video import OpenCVFrameReader, ReaderFactory, extract_video_keyframes
from app.utils.ids import generate_attachment_id

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".mov", ".webm"})
PROGRESS_STEP = 15
PROGRESS_INTERVAL_SECONDS = 0.1
PROGRESS_CAP = 90


class AttachmentTooLargeError(ValueError):
  """Raised when an upload exceeds the configured size limit."""


@dataclass(frozen=True)
class Upload:
  """Raw file handed to the normalizer."""

  name: str
  content: bytes
  media_type: str | None = None


def resolve_media_type(name: str, declared: str | None) -> str:
  """Prefer the declared type, then a guess from the extension, then a generic binary type."""
  if declared and declared.strip():
    return declared.strip().lower()
  guessed, _encoding = mimetypes.guess_type(name)
  return guessed or DEFAULT_MEDIA_TYPE


def classify_upload(name: str, media_type: str | None) -> UploadKind:
  """Decide how an upload is normalized from its media type and file extension."""
  extension = PurePath(name.lower()).suffix
  normalized_type = (media_type or "").lower()
  if normalized_type.startswith("video/") or extension in VIDEO_EXTENSIONS:
    return UploadKind.VIDEO
  if extension == ".docx":
    return UploadKind.DOCUMENT
  if extension == ".txt" or normalized_type == "text/plain":
    return UploadKind.TEXT
  return UploadKind.BINARY


async def _tick_progress(registry: AttachmentRegistry, attachment_id: str) -> None:
  """Climb toward, but never reach, completion while the real work runs."""
  progress = 0
  while True:
    await asyncio.sleep(PROGRESS_INTERVAL_SECONDS)
    progress += PROGRESS_STEP
    if progress > PROGRESS_CAP:
      return
    if registry.update(attachment_id, progress=progress) is None:
      return


async def _extract(upload: Upload, kind: UploadKind, reader_factory: ReaderFactory) -> dict[str, object]:
  if kind is UploadKind.VIDEO:
    frames = await run_in_threadpool(extract_video_keyframes, upload.content, upload.name, reader_factory)
    return {"keyframes": tuple(frames)}
  if kind is UploadKind.DOCUMENT:
    return {"text": await run_in_threadpool(extract_docx_text, upload.content)}
  if kind is UploadKind.TEXT:
    return {"text": decode_text(upload.content)}
  return {"data": base64.b64encode(upload.content).decode("ascii")}


def register_upload(registry: AttachmentRegistry, upload: Upload) -> Attachment:
  """Create the processing record for an upload before normalization starts."""
  media_type = resolve_media_type(upload.name, upload.media_type)
  record = Attachment(attachment_id=generate_attachment_id(), name=upload.name, media_type=media_type, size_bytes=len(upload.content))
  return registry.add(record)


async def normalize_upload(registry: AttachmentRegistry, attachment_id: str, upload: Upload, *, max_bytes: int | None = None, reader_factory: ReaderFactory = OpenCVFrameReader) -> Attachment | None:
  """Normalize one upload into its attachment record and return the terminal record.

  Failures are recorded on this attachment only; they never propagate to the
  caller, so sibling uploads are unaffected. Cancellation marks the attachment
  as an error and is re-raised.
  """
  record = registry.get(attachment_id)
  if record is None:
    return None

  kind = classify_upload(upload.name, record.media_type)
  ticker = asyncio.create_task(_tick_progress(registry, attachment_id))
  try:
    if max_bytes is not None and len(upload.content) > max_bytes:
      raise AttachmentTooLargeError(f"File exceeds {max_bytes} byte limit.")
    changes = await _extract(upload, kind, reader_factory)
  except asyncio.CancelledError:
    logger.warning("Normalization of %s upload %s was cancelled", kind.value, upload.name)
    registry.update(attachment_id, status="error", error="Upload processing was cancelled.")
    raise
  except Exception as exc:  # noqa: BLE001
    logger.exception("Failed to normalize %s upload %s", kind.value, upload.name)
    return registry.update(attachment_id, status="error", error=str(exc) or type(exc).__name__)
  finally:
    await _stop(ticker)

  logger.info("Normalized %s upload %s as %s", kind.value, upload.name, next(iter(changes)))
  return registry.update(attachment_id, status="completed", progress=100, **changes)


async def normalize_uploads(registry: AttachmentRegistry, uploads: Sequence[Upload], *, max_bytes: int | None = None, reader_factory: ReaderFactory = OpenCVFrameReader) -> list[Attachment]:
  """Register and normalize several uploads concurrently, each independently of the others."""
  records = [register_upload(registry, upload) for upload in uploads]
  await asyncio.gather(*(normalize_upload(registry, record.attachment_id, upload, max_bytes=max_bytes, reader_factory=reader_factory) for record, upload in zip(records, uploads, strict=True)))
  # Re-read so callers see the merged terminal state (None when removed mid-flight).
  return [current for record in records if (current := registry.get(record.attachment_id)) is not None]


async def _stop(ticker: asyncio.Task[None]) -> None:
  ticker.cancel()
  with contextlib.suppress(asyncio.CancelledError):
    await ticker
