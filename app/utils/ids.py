"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import uuid


def generate_session_id() -> str:
  """Return a new workspace session identifier."""
  return str(uuid.uuid4())


def generate_attachment_id(size: int = 9) -> str:
  """Return a short non-sequential id for an uploaded attachment."""
  alphabet = string.ascii_lowercase + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))
