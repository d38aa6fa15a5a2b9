"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_VAPID_SUB = "mailto:support@gospelera.com"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Gospel Era push service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  supabase_url: str | None
  supabase_anon_key: str | None
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_sub: str
  firebase_service_account_json: str | None
  push_timeout_seconds: float
  push_max_attempts: int
  push_delivery_deadline_seconds: float
  push_max_concurrency: int
  daily_broadcast_timezone: str
  task_secret: str | None

  @property
  def web_push_configured(self) -> bool:
    return bool(self.push_vapid_public_key and self.push_vapid_private_key)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  # Only the web app needs origins; offline scripts run without them.
  origins = [origin.strip() for origin in (raw or "").split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("GOSPEL_ALLOWED_ORIGINS must not include wildcard origins.")

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


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _validate_timezone(name: str) -> str:
  try:
    ZoneInfo(name)
  except (ZoneInfoNotFoundError, ValueError) as exc:
    raise ValueError(f"GOSPEL_DAILY_BROADCAST_TIMEZONE is not a known time zone: {name!r}") from exc
  return name


def _pg_dsn() -> str | None:
  return _optional_str(os.getenv("GOSPEL_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))


def _pg_connect_timeout() -> int:
  pg_connect_timeout = int(os.getenv("GOSPEL_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("GOSPEL_PG_CONNECT_TIMEOUT must be a positive integer.")
  return pg_connect_timeout


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("GOSPEL_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("GOSPEL_DEBUG"))

  log_max_bytes = int(os.getenv("GOSPEL_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("GOSPEL_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("GOSPEL_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("GOSPEL_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_vapid_public_key = _optional_str(os.getenv("GOSPEL_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("GOSPEL_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_sub = _optional_str(os.getenv("GOSPEL_PUSH_VAPID_SUB")) or DEFAULT_VAPID_SUB
  # Push services reject VAPID claims whose subject is not a contact URI.
  if not (push_vapid_sub.startswith("mailto:") or push_vapid_sub.startswith("https://")):
    raise ValueError("GOSPEL_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  push_max_attempts = int(os.getenv("GOSPEL_PUSH_MAX_ATTEMPTS", "3"))
  if push_max_attempts < 1:
    raise ValueError("GOSPEL_PUSH_MAX_ATTEMPTS must be at least 1.")

  push_max_concurrency = int(os.getenv("GOSPEL_PUSH_MAX_CONCURRENCY", "20"))
  if push_max_concurrency < 1:
    raise ValueError("GOSPEL_PUSH_MAX_CONCURRENCY must be at least 1.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("GOSPEL_ALLOWED_ORIGINS")),
    debug=debug,
    log_dir=_optional_str(os.getenv("GOSPEL_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("GOSPEL_LOG_HTTP_4XX")),
    pg_dsn=_pg_dsn(),
    pg_connect_timeout=_pg_connect_timeout(),
    supabase_url=_optional_str(os.getenv("SUPABASE_URL")),
    supabase_anon_key=_optional_str(os.getenv("SUPABASE_ANON_KEY")),
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_sub=push_vapid_sub,
    firebase_service_account_json=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")),
    push_timeout_seconds=_positive_float("GOSPEL_PUSH_TIMEOUT_SECONDS", "10"),
    push_max_attempts=push_max_attempts,
    push_delivery_deadline_seconds=_positive_float("GOSPEL_PUSH_DELIVERY_DEADLINE_SECONDS", "30"),
    push_max_concurrency=push_max_concurrency,
    daily_broadcast_timezone=_validate_timezone(os.getenv("GOSPEL_DAILY_BROADCAST_TIMEZONE", "UTC").strip()),
    task_secret=_optional_str(os.getenv("GOSPEL_TASK_SECRET")),
  )


def require_allowed_origins(settings: Settings) -> tuple[str, ...]:
  """Return the CORS origins, failing fast when the web app starts without any."""
  if not settings.allowed_origins:
    raise ValueError("GOSPEL_ALLOWED_ORIGINS must be set to one or more origins.")
  return settings.allowed_origins


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  return DatabaseSettings(debug=_parse_bool(os.getenv("GOSPEL_DEBUG")), pg_dsn=_pg_dsn(), pg_connect_timeout=_pg_connect_timeout())
