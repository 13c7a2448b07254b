"""Shared fakes for pipeline, session and API tests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest

from app.ai.pipeline.contracts import ContentPart
from app.ai.providers.base import AIModel, ModelResponse, SimpleModelResponse

SHELL_HTML = "<!DOCTYPE html><html><head><title>Coffee Shop: Level A2</title></head><body><header>Coffee Shop</header><!-- CONTENT_PLACEHOLDER --><footer>Practice</footer></body></html>"
CONTENT_HTML = '<div class="card">Menu words</div>'
SCRIPT_HTML = '<script>AOS.init();</script><script id="lesson-metadata" type="application/json">{"topic": "Coffee Shop", "level": "A2", "vocabulary": ["latte", "receipt"], "grammar": "Polite requests with could", "lessonId": "abc-123", "version": "2.0"}</script>'


@dataclass
class ModelCall:
  system_instruction: str
  parts: list[ContentPart]
  temperature: float


@dataclass
class ScriptedModel(AIModel):
  """Model fake that replays a fixed script of responses and errors."""

  script: list[object] = field(default_factory=list)
  name: str = "fake-model"
  calls: list[ModelCall] = field(default_factory=list)

  async def generate(self, system_instruction: str, parts: Sequence[ContentPart], temperature: float) -> ModelResponse:
    self.calls.append(ModelCall(system_instruction=system_instruction, parts=list(parts), temperature=temperature))
    if not self.script:
      raise AssertionError("Model called more times than scripted.")
    item = self.script.pop(0)
    if isinstance(item, BaseException):
      raise item
    if isinstance(item, SimpleModelResponse):
      return item
    return SimpleModelResponse(content=str(item))


class RecordingSleep:
  """Async sleep replacement that records requested delays."""

  def __init__(self) -> None:
    self.delays: list[float] = []

  async def __call__(self, seconds: float) -> None:
    self.delays.append(seconds)


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def recording_sleep() -> RecordingSleep:
  return RecordingSleep()


@pytest.fixture
def lesson_script() -> list[object]:
  """Stage outputs for one successful five-stage run."""
  return ["BLUEPRINT: coffee shop lesson", "ASSETS: voices and images", f"```html\n{SHELL_HTML}\n```", CONTENT_HTML, f"```javascript\n{SCRIPT_HTML}\n```"]


@pytest.fixture
def scripted_model():
  """Factory for scripted model fakes."""

  def _build(script: list[object]) -> ScriptedModel:
    return ScriptedModel(script=list(script))

  return _build
