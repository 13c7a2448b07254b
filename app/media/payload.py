"""Turn a user's input mode, text and attachments into model input."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from app.ai.pipeline.contracts import ContentPart
from app.media.models import Attachment

KEYFRAME_MEDIA_TYPE = "image/jpeg"
DEFAULT_URL_INSTRUCTIONS = "Transform this into a full ESL lesson."
DEFAULT_CONTENT_INSTRUCTIONS = "Analyze the following content to create an ESL lesson plan."
DEFAULT_MEDIA_INSTRUCTIONS = "Analyze the attached media to create a full ESL lesson plan."


class InputMode(str, Enum):
  """Where the lesson source material comes from."""

  TEXT = "text"
  URL = "url"
  FILE = "file"


class InvalidGenerationInputError(ValueError):
  """Raised when the submitted input cannot start a generation run."""


@dataclass(frozen=True)
class GenerationInput:
  """Prompt text and binary parts handed to the orchestrator."""

  prompt: str
  parts: list[ContentPart] = field(default_factory=list)


def _decode(data: str, name: str) -> bytes:
  try:
    return base64.b64decode(data, validate=True)
  except (binascii.Error, ValueError) as exc:
    raise InvalidGenerationInputError(f"Attachment {name} holds corrupt data.") from exc


def _collect_attachment_context(attachments: Sequence[Attachment]) -> tuple[list[str], list[ContentPart]]:
  blocks: list[str] = []
  parts: list[ContentPart] = []
  for attachment in attachments:
    # Processing and failed uploads contribute nothing.
    if attachment.status != "completed":
      continue
    if attachment.text is not None:
      blocks.append(f"--- CONTENT FROM {attachment.name} ---\n{attachment.text}")
    elif attachment.keyframes is not None:
      parts.extend(ContentPart.from_bytes(_decode(frame, attachment.name), KEYFRAME_MEDIA_TYPE) for frame in attachment.keyframes)
      blocks.append(f"--- VIDEO CONTEXT: {attachment.name} (analyzing {len(attachment.keyframes)} keyframes) ---")
    elif attachment.data is not None:
      parts.append(ContentPart.from_bytes(_decode(attachment.data, attachment.name), attachment.media_type))
      if attachment.media_type.startswith("audio/"):
        blocks.append(f"--- AUDIO CONTEXT: {attachment.name} (analyzing audio for transcription and lesson content) ---")
  return blocks, parts


def build_generation_input(mode: InputMode | str, text: str | None, url: str | None, attachments: Sequence[Attachment]) -> GenerationInput:
  """Compose the first-stage prompt and binary parts for the chosen input mode.

  Raises InvalidGenerationInputError when the mode's required input is
  missing or attachments are still being normalized, and
  UnsupportedMediaTypeError when a completed binary attachment has a media
  type the model cannot accept.
  """
  try:
    input_mode = InputMode(mode)
  except ValueError as exc:
    raise InvalidGenerationInputError(f"Unknown input mode: {mode!r}") from exc

  instructions = (text or "").strip()

  if input_mode is InputMode.TEXT:
    if not instructions:
      raise InvalidGenerationInputError("Text mode requires lesson text.")
    return GenerationInput(prompt=instructions)

  if input_mode is InputMode.URL:
    link = (url or "").strip()
    if not link:
      raise InvalidGenerationInputError("URL mode requires a link.")
    return GenerationInput(prompt=f"Analyze this link: {link}\n\nUser Instructions: {instructions or DEFAULT_URL_INSTRUCTIONS}")

  if not attachments:
    raise InvalidGenerationInputError("File mode requires at least one attachment.")
  if any(attachment.status == "processing" for attachment in attachments):
    raise InvalidGenerationInputError("Attachments are still processing.")

  blocks, parts = _collect_attachment_context(attachments)
  if blocks:
    prompt = f"{instructions or DEFAULT_CONTENT_INSTRUCTIONS}\n\n" + "\n\n".join(blocks)
  else:
    prompt = instructions or DEFAULT_MEDIA_INSTRUCTIONS

  return GenerationInput(prompt=prompt, parts=parts)
