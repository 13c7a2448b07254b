"""Provider implementations."""

from app.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse
from app.ai.providers.gemini import GeminiModel, GeminiProvider

__all__ = ["AIModel", "ModelResponse", "SimpleModelResponse", "Provider", "GeminiModel", "GeminiProvider"]
