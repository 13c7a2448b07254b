"""Text extraction for document and plain-text uploads."""

from __future__ import annotations

import io
import logging

import mammoth

logger = logging.getLogger(__name__)


class DocumentConversionError(RuntimeError):
  """Raised when a structured document cannot be converted to text."""


def extract_docx_text(content: bytes) -> str:
  """Extract raw text from a .docx document."""
  try:
    result = mammoth.extract_raw_text(io.BytesIO(content))
  except Exception as exc:  # noqa: BLE001
    # mammoth surfaces zipfile/xml errors directly; normalize them for callers.
    raise DocumentConversionError(f"Could not convert document: {exc}") from exc

  for message in result.messages:
    logger.debug("mammoth: %s", message)
  return result.value


def decode_text(content: bytes) -> str:
  """Decode a plain-text upload, tolerating a BOM and stray invalid bytes."""
  return content.decode("utf-8-sig", errors="replace")
