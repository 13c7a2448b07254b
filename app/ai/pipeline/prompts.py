"""Prompt helpers shared by the pipeline stages."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
  """Load a system instruction template by name from the prompts directory."""
  prompt_path = PROMPTS_DIR / f"{name}.md"
  # Missing templates are a packaging error; let the OSError surface.
  return prompt_path.read_text(encoding="utf-8").strip()


def render_blueprint_context(blueprint: str, assets: str) -> str:
  """Combine the blueprint and asset manifest for the builder stages."""
  return f"BLUEPRINT:\n{blueprint}\n\nASSETS:\n{assets}"


def render_refine_request(current_html: str, request: str) -> str:
  """Combine the current document and the change request for refinement."""
  return f"HTML: {current_html}\n\nREQUEST: {request}"
