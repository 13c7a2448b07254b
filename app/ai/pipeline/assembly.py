"""String-splicing assembly of the final lesson document."""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from app.ai.pipeline.contracts import LessonMetadata

logger = logging.getLogger(__name__)

CONTENT_PLACEHOLDER = "<!-- CONTENT_PLACEHOLDER -->"
BODY_CLOSE = "</body>"
FALLBACK_CONTAINER = '<div class="container py-5"><div class="row">{content}</div></div>'

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")
_METADATA_RE = re.compile(r'<script[^>]*id=["\']lesson-metadata["\'][^>]*>(.*?)</script>', re.IGNORECASE | re.DOTALL)


def strip_code_fences(text: str) -> str:
  """Remove every markdown code fence delimiter (```html, ```javascript, ```) from model output."""
  return _FENCE_RE.sub("", text)


def _drop_markers(text: str) -> str:
  """Remove every placeholder marker, including ones formed by joining the pieces of an earlier removal."""
  while CONTENT_PLACEHOLDER in text:
    text = text.replace(CONTENT_PLACEHOLDER, "")
  return text


def _insert_before_body_close(document: str, fragment: str) -> str:
  """Insert a fragment before the last closing body tag, or append it when there is none."""
  head, separator, tail = document.rpartition(BODY_CLOSE)
  if separator:
    return f"{head}{fragment}{BODY_CLOSE}{tail}"
  logger.warning("Document has no %s; appending fragment at the end.", BODY_CLOSE)
  return f"{document}{fragment}"


def assemble_artifact(shell: str, content: str, script: str) -> str:
  """
  Splice the content and script fragments into the shell document.

  The content replaces the placeholder marker when present, otherwise it is wrapped
  in a generic container before the closing body tag. The script always lands
  immediately before the closing body tag. No marker survives into the result,
  wherever the model emitted it.
  """
  document = strip_code_fences(shell)
  clean_content = _drop_markers(strip_code_fences(content))
  clean_script = _drop_markers(strip_code_fences(script))

  if CONTENT_PLACEHOLDER in document:
    head, _marker, tail = document.partition(CONTENT_PLACEHOLDER)
    document = f"{head}{clean_content}{tail}"
  else:
    logger.info("Shell is missing %s; using fallback container.", CONTENT_PLACEHOLDER)
    document = _insert_before_body_close(document, FALLBACK_CONTAINER.format(content=clean_content))

  # Repeated shell markers and markers joined across fragment boundaries.
  return _drop_markers(_insert_before_body_close(document, clean_script))


def extract_lesson_metadata(document: str) -> LessonMetadata | None:
  """Read the embedded lesson-metadata JSON block, or None when missing or malformed."""
  match = _METADATA_RE.search(document)
  if not match:
    return None
  try:
    return LessonMetadata.model_validate(json.loads(match.group(1)))
  except (json.JSONDecodeError, ValidationError) as exc:
    logger.warning("Ignoring malformed lesson metadata: %s", exc)
    return None
