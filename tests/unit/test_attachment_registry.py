from __future__ import annotations

import pytest

from app.media.models import Attachment
from app.media.registry import AttachmentInvariantError, AttachmentRegistry


def _registry_with(*ids: str) -> AttachmentRegistry:
  registry = AttachmentRegistry()
  for attachment_id in ids:
    registry.add(Attachment(attachment_id=attachment_id, name=f"{attachment_id}.txt", media_type="text/plain"))
  return registry


def test_removing_one_attachment_leaves_others_unchanged() -> None:
  registry = _registry_with("a", "b", "c")
  registry.update("a", status="completed", progress=100, text="alpha")
  before_a = registry.get("a")
  before_c = registry.get("c")

  registry.remove("b")

  assert [record.attachment_id for record in registry.records()] == ["a", "c"]
  assert registry.get("a") == before_a
  assert registry.get("c") == before_c
  # Late completion for the removed record is dropped.
  assert registry.update("b", status="completed", progress=100, text="beta") is None
  assert "b" not in registry


def test_updates_merge_onto_latest_record() -> None:
  registry = _registry_with("a")

  registry.update("a", progress=30)
  merged = registry.update("a", status="completed", progress=100, text="done")

  assert merged is not None
  assert merged.name == "a.txt"
  assert (merged.status, merged.progress, merged.text) == ("completed", 100, "done")


def test_terminal_records_are_not_modified() -> None:
  registry = _registry_with("a")
  registry.update("a", status="error", error="broken")

  result = registry.update("a", progress=45)

  assert result is not None
  assert result.status == "error"
  assert result.progress == 0


@pytest.mark.parametrize(
  "changes",
  [
    {"status": "completed", "progress": 100},
    {"status": "completed", "progress": 100, "text": "t", "data": "ZGF0YQ=="},
    {"status": "error", "error": "x", "text": "t"},
    {"progress": 120},
  ],
)
def test_invalid_updates_are_rejected(changes: dict[str, object]) -> None:
  registry = _registry_with("a")

  with pytest.raises(AttachmentInvariantError):
    registry.update("a", **changes)

  assert registry.get("a").status == "processing"


def test_duplicate_ids_are_rejected() -> None:
  registry = _registry_with("a")

  with pytest.raises(AttachmentInvariantError):
    registry.add(Attachment(attachment_id="a", name="again.txt", media_type="text/plain"))


def test_has_processing_and_clear() -> None:
  registry = _registry_with("a", "b")
  registry.update("a", status="completed", progress=100, text="alpha")

  assert registry.has_processing()
  assert [record.attachment_id for record in registry.completed()] == ["a"]

  registry.clear()
  assert len(registry) == 0
