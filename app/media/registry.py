"""Per-session arena of attachment records keyed by identifier."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from app.media.models import Attachment

logger = logging.getLogger(__name__)


class AttachmentInvariantError(ValueError):
  """Raised when an update would leave an attachment in an inconsistent state."""


def _check_invariants(record: Attachment) -> None:
  populated = record.payload_fields()
  if record.status == "completed" and len(populated) != 1:
    raise AttachmentInvariantError(f"Completed attachment {record.attachment_id} must carry exactly one payload, found {populated or 'none'}.")
  if record.status == "error" and populated:
    raise AttachmentInvariantError(f"Errored attachment {record.attachment_id} must not carry a payload, found {populated}.")
  if not 0 <= record.progress <= 100:
    raise AttachmentInvariantError(f"Attachment progress must be within 0-100, got {record.progress}.")


class AttachmentRegistry:
  """Holds attachment records and applies updates as merges onto the latest record.

  Every update reads the stored record at the moment it is applied, so concurrent
  normalizers completing in any order never overwrite each other's fields.
  """

  def __init__(self) -> None:
    self._records: dict[str, Attachment] = {}

  def __len__(self) -> int:
    return len(self._records)

  def __contains__(self, attachment_id: object) -> bool:
    return attachment_id in self._records

  def add(self, record: Attachment) -> Attachment:
    if record.attachment_id in self._records:
      raise AttachmentInvariantError(f"Attachment {record.attachment_id} already exists.")
    _check_invariants(record)
    self._records[record.attachment_id] = record
    return record

  def get(self, attachment_id: str) -> Attachment | None:
    return self._records.get(attachment_id)

  def records(self) -> list[Attachment]:
    """Return records in upload order."""
    return list(self._records.values())

  def update(self, attachment_id: str, **changes: Any) -> Attachment | None:
    """Merge changes onto the stored record.

    Returns None when the attachment was removed meanwhile; terminal records are
    returned unchanged.
    """
    current = self._records.get(attachment_id)
    if current is None:
      logger.debug("Dropping update for removed attachment %s", attachment_id)
      return None
    if current.is_terminal:
      logger.debug("Ignoring update for terminal attachment %s (%s)", attachment_id, current.status)
      return current

    updated = replace(current, **changes)
    _check_invariants(updated)
    self._records[attachment_id] = updated
    return updated

  def remove(self, attachment_id: str) -> Attachment | None:
    return self._records.pop(attachment_id, None)

  def clear(self) -> None:
    self._records.clear()

  def has_processing(self) -> bool:
    return any(record.status == "processing" for record in self._records.values())

  def completed(self) -> list[Attachment]:
    return [record for record in self._records.values() if record.status == "completed"]
