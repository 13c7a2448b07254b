"Orchestration for the multi-stage lesson assembly line."

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.ai.backoff import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, retry_with_backoff
from app.ai.errors import EmptyRefinementError, RateLimitClassifier, is_rate_limit_error
from app.ai.pipeline.assembly import assemble_artifact, strip_code_fences
from app.ai.pipeline.contracts import ContentPart, GenerationRequest, StageUsage
from app.ai.pipeline.prompts import load_prompt, render_refine_request
from app.ai.pipeline.stages import CONTENT_BUILDER, FINALIZE_STATUS, LESSON_STAGES, LOGIC_BUILDER, SHELL_BUILDER, StageContext, StageDefinition
from app.ai.providers.base import AIModel, ModelResponse
from app.ai.router import get_model_for_mode
from app.config import Settings

StatusCallback = Callable[[str], None] | None
Sleep = Callable[[float], Awaitable[None]]
DEFAULT_COOLDOWN_SECONDS = 1.5
DEFAULT_GENERATION_TEMPERATURE = 0.7
DEFAULT_REFINE_TEMPERATURE = 0.5
REFINE_STAGE = "refiner"


@dataclass(frozen=True)
class OrchestrationResult:
  """Output from the lesson assembly line."""

  html: str
  stage_outputs: dict[str, str] = field(default_factory=dict)
  usage: list[StageUsage] = field(default_factory=list)


class LessonOrchestrator:
  """Runs the five lesson stages in order and applies chat refinements."""

  def __init__(
    self,
    model: AIModel,
    *,
    provider_name: str = "gemini",
    generation_temperature: float = DEFAULT_GENERATION_TEMPERATURE,
    refine_temperature: float = DEFAULT_REFINE_TEMPERATURE,
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    is_retryable: RateLimitClassifier = is_rate_limit_error,
    sleep: Sleep | None = None,
    stages: Sequence[StageDefinition] = LESSON_STAGES,
  ) -> None:
    self._model = model
    self._provider_name = provider_name
    self._generation_temperature = generation_temperature
    self._refine_temperature = refine_temperature
    self._cooldown_seconds = cooldown_seconds
    self._max_attempts = max_attempts
    self._base_delay = base_delay
    self._is_retryable = is_retryable
    self._sleep = sleep
    self._stages = tuple(stages)

  @classmethod
  def from_settings(cls, settings: Settings, model: AIModel | None = None) -> LessonOrchestrator:
    """Build an orchestrator from process settings, creating the model client when none is given."""
    resolved_model = model or get_model_for_mode(settings.provider, settings.model, api_key=settings.gemini_api_key)
    return cls(
      resolved_model,
      provider_name=settings.provider,
      generation_temperature=settings.generation_temperature,
      refine_temperature=settings.refine_temperature,
      cooldown_seconds=settings.stage_cooldown_seconds,
      max_attempts=settings.retry_max_attempts,
      base_delay=settings.retry_base_delay_seconds,
    )

  @property
  def is_retryable(self) -> RateLimitClassifier:
    """Expose the rate-limit classifier so callers can phrase failures consistently."""
    return self._is_retryable

  async def generate_lesson(self, user_text: str, parts: Sequence[ContentPart] | None = None, on_status: StatusCallback = None) -> OrchestrationResult:
    """Run every stage in order and assemble the final lesson document."""
    logger = logging.getLogger(__name__)
    request = GenerationRequest(user_text=user_text, parts=list(parts or []))
    ctx = StageContext(request=request)
    usage: list[StageUsage] = []

    text_preview = user_text[:50] + "..." if len(user_text) >= 50 else user_text
    logger.info("Starting lesson pipeline for '%s' with %s attachment part(s) on %s/%s", text_preview, len(request.parts), self._provider_name, _model_name(self._model))

    last_index = len(self._stages) - 1
    for index, stage in enumerate(self._stages):
      _notify(on_status, stage.status, logger)
      system_instruction = load_prompt(stage.prompt)
      stage_parts = stage.build_input(ctx)

      try:
        response = await self._call(system_instruction, stage_parts, self._generation_temperature)
      except Exception as exc:
        _log_request_failure(logger=logger, stage=stage.name, provider=self._provider_name, model=_model_name(self._model), error=exc, rate_limited=self._is_retryable(exc))
        raise

      ctx.outputs[stage.name] = response.content
      usage.append(_usage_entry(stage.name, self._model, response))
      logger.info("Stage %s complete (%s chars)", stage.name, len(response.content))

      # Proactive pacing between stages; the final stage goes straight to assembly.
      if index < last_index and self._cooldown_seconds > 0:
        await self._wait(self._cooldown_seconds)

    _notify(on_status, FINALIZE_STATUS, logger)
    html = assemble_artifact(ctx.outputs.get(SHELL_BUILDER, ""), ctx.outputs.get(CONTENT_BUILDER, ""), ctx.outputs.get(LOGIC_BUILDER, ""))
    logger.info("Lesson pipeline complete (%s chars)", len(html))
    return OrchestrationResult(html=html, stage_outputs=dict(ctx.outputs), usage=usage)

  async def refine_lesson(self, current_html: str, request: str) -> str:
    """Apply a natural-language change request and return the full replacement document."""
    logger = logging.getLogger(__name__)
    parts = [ContentPart.from_text(render_refine_request(current_html, request))]

    try:
      response = await self._call(load_prompt(REFINE_STAGE), parts, self._refine_temperature)
    except Exception as exc:
      _log_request_failure(logger=logger, stage=REFINE_STAGE, provider=self._provider_name, model=_model_name(self._model), error=exc, rate_limited=self._is_retryable(exc))
      raise

    refined = strip_code_fences(response.content).strip()
    if not refined:
      raise EmptyRefinementError("Refinement returned an empty document.")
    logger.info("Refinement complete (%s chars)", len(refined))
    return refined

  async def _call(self, system_instruction: str, parts: list[ContentPart], temperature: float) -> ModelResponse:
    async def _operation() -> ModelResponse:
      return await self._model.generate(system_instruction, parts, temperature)

    return await retry_with_backoff(_operation, max_attempts=self._max_attempts, base_delay=self._base_delay, is_retryable=self._is_retryable, sleep=self._sleep)

  async def _wait(self, seconds: float) -> None:
    wait = self._sleep or asyncio.sleep
    await wait(seconds)


def _notify(on_status: StatusCallback, message: str, logger: logging.Logger) -> None:
  """Send a status update without letting a broken listener abort the run."""
  if on_status is None:
    return
  try:
    on_status(message)
  except Exception:  # noqa: BLE001
    logger.warning("Status callback failed for %r", message, exc_info=True)


def _usage_entry(stage: str, model: AIModel, response: ModelResponse) -> StageUsage:
  raw: dict[str, Any] = dict(response.usage or {})
  return StageUsage(stage=stage, model=_model_name(model), prompt_tokens=int(raw.get("prompt_tokens") or 0), completion_tokens=int(raw.get("completion_tokens") or 0), total_tokens=int(raw.get("total_tokens") or 0))


def _log_request_failure(*, logger: logging.Logger, stage: str, provider: str, model: str, error: Exception, rate_limited: bool) -> None:
  """Log stage failures with provider details."""
  kind = "rate limit" if rate_limited else "error"
  logger.error("Stage %s request failed (provider=%s, model=%s, kind=%s): %s", stage, provider, model, kind, error)


def _model_name(model: AIModel) -> str:
  return getattr(model, "name", "unknown")
