"""Runtime configuration loaded from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from warelay.errors import ConfigError

DEFAULT_PORT = 3000
DEFAULT_MAX_MESSAGE_LENGTH = 1000
DEFAULT_SEND_DELAY_MS = 100
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024  # base64 media fits comfortably

MISSING_EVOLUTION_CONFIG = (
    "Missing Evolution config: EVOLUTION_BASE_URL, EVOLUTION_INSTANCE, EVOLUTION_API_KEY"
)


@dataclass(frozen=True)
class EvolutionConfig:
    """Evolution API connection settings."""

    base_url: str
    instance: str
    api_key: str
    webhook_secret: str = ""


@dataclass(frozen=True)
class Settings:
    """Validated service settings.

    Attributes:
        api_token: Static bearer secret for protected routes.
        host: Listen address.
        port: Listen port.
        country_code: Prefix prepended to every recipient.
        recipient_digits: Exact digit count of a raw recipient segment.
        max_message_length: Upper bound for text bodies.
        send_delay_ms: Pause between sequential sends.
        dispatch_concurrency: Sends in flight per batch (1 = sequential).
        max_body_bytes: Request body cap.
        media_fetch_timeout: Seconds allowed for downloading remote media.
        session_poll_interval: Seconds between connection state polls; 0 disables.
        evolution: Messaging client settings, None when not configured.
        log_level: Root log level name.
        log_dir: Directory for rotating log files; empty disables them.
    """

    api_token: str
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    country_code: str = "51"
    recipient_digits: int = 9
    max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH
    send_delay_ms: int = DEFAULT_SEND_DELAY_MS
    dispatch_concurrency: int = 1
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    media_fetch_timeout: float = 15.0
    session_poll_interval: float = 30.0
    evolution: EvolutionConfig | None = None
    log_level: str = "INFO"
    log_dir: str = ""


def _int_env(env: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _load_evolution(env: Mapping[str, str]) -> EvolutionConfig | None:
    base_url = env.get("EVOLUTION_BASE_URL", "")
    instance = env.get("EVOLUTION_INSTANCE", "")
    api_key = env.get("EVOLUTION_API_KEY", "")

    if not base_url and not instance and not api_key:
        return None
    if not base_url or not instance or not api_key:
        raise ConfigError(MISSING_EVOLUTION_CONFIG)

    return EvolutionConfig(
        base_url=base_url.rstrip("/"),
        instance=instance,
        api_key=api_key,
        webhook_secret=env.get("EVOLUTION_WEBHOOK_SECRET", ""),
    )


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        env: Mapping to read from. Defaults to os.environ.

    Returns:
        Validated Settings.

    Raises:
        ConfigError: If API_TOKEN is missing or a value is malformed.
    """
    if env is None:
        env = os.environ

    api_token = env.get("API_TOKEN", "")
    if not api_token:
        raise ConfigError("API_TOKEN environment variable is not defined")

    country_code = env.get("COUNTRY_CODE", "51").strip()
    if not country_code.isdigit():
        raise ConfigError(f"COUNTRY_CODE must be digits only, got {country_code!r}")

    return Settings(
        api_token=api_token,
        host=env.get("HOST", "0.0.0.0"),
        port=_int_env(env, "PORT", DEFAULT_PORT, minimum=1),
        country_code=country_code,
        recipient_digits=_int_env(env, "RECIPIENT_DIGITS", 9, minimum=1),
        max_message_length=_int_env(
            env, "MAX_MESSAGE_LENGTH", DEFAULT_MAX_MESSAGE_LENGTH, minimum=1
        ),
        send_delay_ms=_int_env(env, "SEND_DELAY_MS", DEFAULT_SEND_DELAY_MS, minimum=0),
        dispatch_concurrency=_int_env(env, "DISPATCH_CONCURRENCY", 1, minimum=1),
        max_body_bytes=_int_env(env, "MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES, minimum=1),
        media_fetch_timeout=_float_env(env, "MEDIA_FETCH_TIMEOUT", 15.0),
        session_poll_interval=_int_env(env, "SESSION_POLL_INTERVAL", 30, minimum=0),
        evolution=_load_evolution(env),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        log_dir=env.get("LOG_DIR", ""),
    )
