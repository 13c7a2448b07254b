"""Routing utilities for provider/model selection."""

from __future__ import annotations

from enum import Enum

from app.ai.providers.base import AIModel, Provider
from app.ai.providers.gemini import GeminiProvider


class ProviderMode(str, Enum):
  """Supported provider modes."""

  GEMINI = "gemini"


def get_provider_for_mode(mode: str | ProviderMode, *, api_key: str | None = None) -> Provider:
  """Return a provider instance for the given mode."""
  key = mode.value if isinstance(mode, ProviderMode) else str(mode).strip().lower()
  if key == ProviderMode.GEMINI.value:
    return GeminiProvider(api_key=api_key)
  raise ValueError(f"Unsupported provider mode '{mode}'.")


def get_model_for_mode(mode: str | ProviderMode, model: str | None = None, *, api_key: str | None = None) -> AIModel:
  """Return a model client for the given mode and model name."""
  provider = get_provider_for_mode(mode, api_key=api_key)
  return provider.get_model(model)
