from __future__ import annotations

import pytest

from app.ai.errors import ProviderError
from app.ai.orchestrator import LessonOrchestrator
from app.ai.pipeline.assembly import CONTENT_PLACEHOLDER
from app.ai.pipeline.contracts import ContentPart
from app.ai.pipeline.prompts import load_prompt
from app.ai.pipeline.stages import ARCHITECT, ASSET_MAPPER, CONTENT_BUILDER, FINALIZE_STATUS, LESSON_STAGES, LOGIC_BUILDER, SHELL_BUILDER, SHELL_INSTRUCTION


def _orchestrator(model, sleep, **kwargs) -> LessonOrchestrator:
  return LessonOrchestrator(model, sleep=sleep, **kwargs)


@pytest.mark.anyio
async def test_pipeline_runs_stages_in_order_and_assembles(scripted_model, lesson_script, recording_sleep) -> None:
  model = scripted_model(lesson_script)
  statuses: list[str] = []

  result = await _orchestrator(model, recording_sleep).generate_lesson("Coffee shop vocabulary for A2", on_status=statuses.append)

  assert statuses == [stage.status for stage in LESSON_STAGES] + [FINALIZE_STATUS]
  assert [call.system_instruction for call in model.calls] == [load_prompt(stage.prompt) for stage in LESSON_STAGES]
  assert list(result.stage_outputs) == [ARCHITECT, ASSET_MAPPER, SHELL_BUILDER, CONTENT_BUILDER, LOGIC_BUILDER]

  html = result.html
  assert CONTENT_PLACEHOLDER not in html
  assert "```" not in html
  assert html.count('<div class="card">Menu words</div>') == 1
  assert html.index('id="lesson-metadata"') < html.index("</body>")
  assert html.rstrip().endswith("</html>")


@pytest.mark.anyio
async def test_stage_inputs_flow_from_earlier_outputs(scripted_model, lesson_script, recording_sleep) -> None:
  model = scripted_model(lesson_script)
  image = ContentPart.from_bytes(b"\x89PNG", "image/png")

  await _orchestrator(model, recording_sleep).generate_lesson("Make a lesson", [image])

  architect, assets, shell, content, logic = model.calls
  assert architect.parts[0].text == "Make a lesson"
  assert architect.parts[1] == image
  assert assets.parts == [ContentPart.from_text("BLUEPRINT: coffee shop lesson")]
  assert shell.parts == [ContentPart.from_text(SHELL_INSTRUCTION)]
  expected_context = "BLUEPRINT:\nBLUEPRINT: coffee shop lesson\n\nASSETS:\nASSETS: voices and images"
  assert content.parts[0].text == expected_context
  assert logic.parts[0].text == expected_context
  assert {call.temperature for call in model.calls} == {0.7}


@pytest.mark.anyio
async def test_cooldown_between_stages_only(scripted_model, lesson_script, recording_sleep) -> None:
  model = scripted_model(lesson_script)

  await _orchestrator(model, recording_sleep, cooldown_seconds=1.5).generate_lesson("topic")

  assert recording_sleep.delays == [1.5, 1.5, 1.5, 1.5]


@pytest.mark.anyio
async def test_rate_limited_stage_is_retried_with_backoff(scripted_model, lesson_script, recording_sleep) -> None:
  throttled = ProviderError("429 RESOURCE_EXHAUSTED", status_code=429)
  script = [lesson_script[0], throttled, throttled, *lesson_script[1:]]
  model = scripted_model(script)

  result = await _orchestrator(model, recording_sleep, cooldown_seconds=0).generate_lesson("topic")

  assert len(model.calls) == 7
  assert recording_sleep.delays == [5.0, 10.0]
  assert "Menu words" in result.html


@pytest.mark.anyio
async def test_non_retryable_failure_aborts_pipeline(scripted_model, lesson_script, recording_sleep) -> None:
  failure = ProviderError("500 INTERNAL", status_code=500)
  model = scripted_model([lesson_script[0], lesson_script[1], failure])
  statuses: list[str] = []

  with pytest.raises(ProviderError) as excinfo:
    await _orchestrator(model, recording_sleep).generate_lesson("topic", on_status=statuses.append)

  assert excinfo.value is failure
  assert len(model.calls) == 3
  assert FINALIZE_STATUS not in statuses
  # Only the two cooldowns that preceded the failing stage.
  assert recording_sleep.delays == [1.5, 1.5]


@pytest.mark.anyio
async def test_broken_status_listener_does_not_abort(scripted_model, lesson_script, recording_sleep) -> None:
  def _explode(message: str) -> None:
    raise RuntimeError("listener gone")

  result = await _orchestrator(scripted_model(lesson_script), recording_sleep).generate_lesson("topic", on_status=_explode)

  assert "Menu words" in result.html


@pytest.mark.anyio
async def test_empty_stage_output_still_assembles(scripted_model, recording_sleep) -> None:
  model = scripted_model(["blueprint", "assets", "<body></body>", "", ""])

  result = await _orchestrator(model, recording_sleep).generate_lesson("topic")

  assert result.html == '<body><div class="container py-5"><div class="row"></div></div></body>'


@pytest.mark.anyio
async def test_usage_is_recorded_per_stage(scripted_model, lesson_script, recording_sleep) -> None:
  from app.ai.providers.base import SimpleModelResponse

  script = [SimpleModelResponse(content=str(item), usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}) for item in lesson_script]

  result = await _orchestrator(scripted_model(script), recording_sleep).generate_lesson("topic")

  assert [entry.stage for entry in result.usage] == [stage.name for stage in LESSON_STAGES]
  assert sum(entry.total_tokens for entry in result.usage) == 75
  assert {entry.model for entry in result.usage} == {"fake-model"}
