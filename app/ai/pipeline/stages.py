"""Stage descriptors for the five-step lesson assembly line."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from app.ai.pipeline.contracts import ContentPart, GenerationRequest
from app.ai.pipeline.prompts import render_blueprint_context

ARCHITECT = "architect"
ASSET_MAPPER = "asset_mapper"
SHELL_BUILDER = "shell_builder"
CONTENT_BUILDER = "content_builder"
LOGIC_BUILDER = "logic_builder"

SHELL_INSTRUCTION = "Create shell for topic based on blueprint content."


@dataclass
class StageContext:
  """Inputs and stage outputs visible to later stages."""

  request: GenerationRequest
  outputs: dict[str, str] = field(default_factory=dict)

  def output(self, stage_name: str) -> str:
    return self.outputs[stage_name]


InputBuilder = Callable[[StageContext], list[ContentPart]]


@dataclass(frozen=True)
class StageDefinition:
  """One model-invoking step: which prompt to use, what to tell the user, how to build its input."""

  name: str
  status: str
  prompt: str
  build_input: InputBuilder


def _architect_input(ctx: StageContext) -> list[ContentPart]:
  # The user text always leads; attachment parts follow in upload order.
  return [ContentPart.from_text(ctx.request.user_text), *ctx.request.parts]


def _asset_input(ctx: StageContext) -> list[ContentPart]:
  return [ContentPart.from_text(ctx.output(ARCHITECT))]


def _shell_input(ctx: StageContext) -> list[ContentPart]:
  return [ContentPart.from_text(SHELL_INSTRUCTION)]


def _builder_input(ctx: StageContext) -> list[ContentPart]:
  return [ContentPart.from_text(render_blueprint_context(ctx.output(ARCHITECT), ctx.output(ASSET_MAPPER)))]


LESSON_STAGES: tuple[StageDefinition, ...] = (
  StageDefinition(name=ARCHITECT, status="Designing Lesson Blueprint...", prompt="architect", build_input=_architect_input),
  StageDefinition(name=ASSET_MAPPER, status="Mapping Visual & Audio Assets...", prompt="asset_mapper", build_input=_asset_input),
  StageDefinition(name=SHELL_BUILDER, status="Constructing HTML Framework...", prompt="shell_builder", build_input=_shell_input),
  StageDefinition(name=CONTENT_BUILDER, status="Coding Interactive Cards...", prompt="content_builder", build_input=_builder_input),
  StageDefinition(name=LOGIC_BUILDER, status="Embedding Data Layer & JS Logic...", prompt="logic_builder", build_input=_builder_input),
)

FINALIZE_STATUS = "Finalizing Export Build..."
