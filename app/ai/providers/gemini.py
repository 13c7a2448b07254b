"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import os
import warnings
from collections.abc import Sequence
from typing import Any, Final

from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors as genai_errors
  from google.genai import types

from app.ai.errors import ProviderError
from app.ai.pipeline.contracts import ContentPart
from app.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse

logger = logging.getLogger(__name__)


def _to_sdk_part(part: ContentPart) -> types.Part:
  if part.text is not None:
    return types.Part.from_text(text=part.text)
  return types.Part.from_bytes(data=part.data, mime_type=part.media_type)


def _usage_from(response: Any) -> dict[str, int] | None:
  metadata = getattr(response, "usage_metadata", None)
  if not metadata:
    return None
  return {"prompt_tokens": metadata.prompt_token_count or 0, "completion_tokens": metadata.candidates_token_count or 0, "total_tokens": metadata.total_token_count or 0}


class GeminiModel(AIModel):
  """Gemini model client for multimodal single-turn generation."""

  def __init__(self, name: str, api_key: str | None = None, client: Any | None = None) -> None:
    self.name: str = name

    if client is not None:
      self._client = client
      return

    # Configure Gemini API
    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def generate(self, system_instruction: str, parts: Sequence[ContentPart], temperature: float) -> ModelResponse:
    """Generate text from Gemini for a system instruction and an ordered list of parts."""
    if not parts:
      raise ValueError("Gemini request payload must contain at least one part.")

    contents = [types.Content(role="user", parts=[_to_sdk_part(part) for part in parts])]
    config = types.GenerateContentConfig(system_instruction=system_instruction, temperature=temperature)

    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await self._client.aio.models.generate_content(model=self.name, contents=contents, config=config)
    except genai_errors.APIError as e:
      # Keep the status code and service message so rate limits stay recognizable upstream.
      raise ProviderError(f"Gemini request failed: {e.code} {e.status}. {e.message}", status_code=e.code, provider="gemini") from e

    text = response.text or ""
    logger.debug("Gemini response (%s chars) from %s", len(text), self.name)
    return SimpleModelResponse(content=text, usage=_usage_from(response))


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-3-flash-preview"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-3-flash-preview", "gemini-3-pro-preview", "gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.0-flash"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")

    return GeminiModel(model_name, api_key=self._api_key)
