"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Sway lesson service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  gemini_api_key: str | None
  provider: str
  model: str
  generation_temperature: float
  refine_temperature: float
  stage_cooldown_seconds: float
  retry_max_attempts: int
  retry_base_delay_seconds: float
  max_upload_bytes: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SWAY_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SWAY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _parse_temperature(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value < 0.0 or value > 2.0:
    raise ValueError(f"{name} must be between 0.0 and 2.0.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SWAY_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SWAY_DEBUG"))
  allowed_origins = _parse_origins(os.getenv("SWAY_ALLOWED_ORIGINS"))

  log_dir = (os.getenv("SWAY_LOG_DIR") or "./logs").strip()
  log_max_bytes = int(os.getenv("SWAY_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("SWAY_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("SWAY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SWAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  provider = (os.getenv("SWAY_PROVIDER") or "gemini").strip().lower()
  model = (os.getenv("SWAY_MODEL") or "gemini-3-flash-preview").strip()

  generation_temperature = _parse_temperature("SWAY_GENERATION_TEMPERATURE", "0.7")
  refine_temperature = _parse_temperature("SWAY_REFINE_TEMPERATURE", "0.5")

  # Pacing delay inserted between pipeline stages, independent of retry backoff.
  stage_cooldown_seconds = float(os.getenv("SWAY_STAGE_COOLDOWN_SECONDS", "1.5"))
  if stage_cooldown_seconds < 0:
    raise ValueError("SWAY_STAGE_COOLDOWN_SECONDS must be zero or positive.")

  retry_max_attempts = int(os.getenv("SWAY_RETRY_MAX_ATTEMPTS", "5"))
  if retry_max_attempts <= 0:
    raise ValueError("SWAY_RETRY_MAX_ATTEMPTS must be a positive integer.")

  retry_base_delay_seconds = float(os.getenv("SWAY_RETRY_BASE_DELAY_SECONDS", "5.0"))
  if retry_base_delay_seconds < 0:
    raise ValueError("SWAY_RETRY_BASE_DELAY_SECONDS must be zero or positive.")

  max_upload_bytes = int(os.getenv("SWAY_MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))
  if max_upload_bytes <= 0:
    raise ValueError("SWAY_MAX_UPLOAD_BYTES must be a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=allowed_origins,
    log_dir=log_dir,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    provider=provider,
    model=model,
    generation_temperature=generation_temperature,
    refine_temperature=refine_temperature,
    stage_cooldown_seconds=stage_cooldown_seconds,
    retry_max_attempts=retry_max_attempts,
    retry_base_delay_seconds=retry_base_delay_seconds,
    max_upload_bytes=max_upload_bytes,
  )
