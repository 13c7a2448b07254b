"""Video keyframe sampling (video -> three representative JPEG frames)."""

from __future__ import annotations

import base64
import io
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import cv2
from PIL import Image

logger = logging.getLogger(__name__)

# Fixed sampling policy: three frames stand in for the motion content.
KEYFRAME_POSITIONS: tuple[float, ...] = (0.1, 0.5, 0.9)
KEYFRAME_SCALE = 0.5
KEYFRAME_JPEG_QUALITY = 70


class VideoDecodeError(RuntimeError):
  """Raised when a video cannot be opened, measured or seeked."""


class FrameReader(Protocol):
  """Minimal seekable video source."""

  @property
  def duration(self) -> float: ...

  def frame_at(self, seconds: float) -> Image.Image: ...

  def close(self) -> None: ...


class OpenCVFrameReader:
  """Frame reader backed by an OpenCV capture of a file on disk."""

  def __init__(self, path: str | Path) -> None:
    self._capture = cv2.VideoCapture(str(path))
    if not self._capture.isOpened():
      self._capture.release()
      raise VideoDecodeError("Video could not be loaded")

  @property
  def duration(self) -> float:
    fps = self._capture.get(cv2.CAP_PROP_FPS)
    frame_count = self._capture.get(cv2.CAP_PROP_FRAME_COUNT)
    if not fps or fps <= 0 or not frame_count or frame_count <= 0:
      raise VideoDecodeError("Video duration is unavailable")
    return float(frame_count) / float(fps)

  def frame_at(self, seconds: float) -> Image.Image:
    self._capture.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000.0)
    ok, frame = self._capture.read()
    if not ok or frame is None:
      raise VideoDecodeError(f"Could not decode frame at {seconds:.2f}s")
    # OpenCV decodes to BGR; Pillow expects RGB.
    return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

  def close(self) -> None:
    self._capture.release()


ReaderFactory = Callable[[Path], FrameReader]


def keyframe_timestamps(duration: float) -> list[float]:
  """Return the playback positions (seconds) sampled for a video of this duration."""
  if duration <= 0:
    raise VideoDecodeError(f"Cannot sample keyframes from a video of duration {duration}")
  return [duration * position for position in KEYFRAME_POSITIONS]


def encode_keyframe(image: Image.Image) -> str:
  """Render a frame at half resolution and return it as base64 JPEG."""
  width = max(1, int(image.width * KEYFRAME_SCALE))
  height = max(1, int(image.height * KEYFRAME_SCALE))
  scaled = image.convert("RGB").resize((width, height))
  output = io.BytesIO()
  scaled.save(output, format="JPEG", quality=KEYFRAME_JPEG_QUALITY)
  return base64.b64encode(output.getvalue()).decode("ascii")


def extract_keyframes(reader: FrameReader) -> list[str]:
  """Sample the fixed keyframe positions from an open reader."""
  return [encode_keyframe(reader.frame_at(timestamp)) for timestamp in keyframe_timestamps(reader.duration)]


def extract_video_keyframes(content: bytes, filename: str, reader_factory: ReaderFactory = OpenCVFrameReader) -> list[str]:
  """Decode uploaded video bytes and return three base64 JPEG keyframes.

  OpenCV only reads from paths, so the upload is spooled to a temporary file
  that keeps the original extension for container sniffing.
  """
  suffix = Path(filename).suffix or ".mp4"
  handle, temp_name = tempfile.mkstemp(suffix=suffix)
  temp_path = Path(temp_name)
  try:
    with os.fdopen(handle, "wb") as spool:
      spool.write(content)
    reader = reader_factory(temp_path)
    try:
      frames = extract_keyframes(reader)
    finally:
      reader.close()
  finally:
    temp_path.unlink(missing_ok=True)

  logger.info("Extracted %s keyframes from %s", len(frames), filename)
  return frames
