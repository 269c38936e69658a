"""Application configuration helpers for audio-gateway.

Usage:
    from audio_gateway.config import get_settings
    settings = get_settings()
    print(settings.audio_dir)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Settings(BaseModel):
    """Strongly-typed settings loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    audio_dir: str = Field(default_factory=lambda: os.getenv("AUDIO_DIR", ""))
    default_audio_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("AUDIO_GATEWAY_DEFAULT_DIR") or Path.cwd() / "public" / "audio"
        )
    )
    port: int = Field(
        default_factory=lambda: _parse_int(os.getenv("AUDIO_GATEWAY_PORT", os.getenv("PORT")), 8080)
    )
    chunk_size: int = Field(
        default_factory=lambda: _parse_int(os.getenv("AUDIO_GATEWAY_CHUNK_SIZE"), 64 * 1024), gt=0
    )
    json_buffer_limit: int = Field(
        default_factory=lambda: _parse_int(os.getenv("AUDIO_GATEWAY_JSON_BUFFER_LIMIT"), 1024 * 1024), ge=0
    )
    rate_limit_enabled: bool = Field(
        default_factory=lambda: _parse_bool(os.getenv("AUDIO_GATEWAY_RATE_LIMIT_ENABLED"), default=True)
    )
    rate_limit_window_ms: int = Field(
        default_factory=lambda: _parse_int(os.getenv("RATE_LIMIT_WINDOW"), 60000), gt=0
    )
    max_requests_per_window: int = Field(
        default_factory=lambda: _parse_int(os.getenv("MAX_REQUESTS_PER_WINDOW"), 100)
    )
    audio_file_limit: int = Field(default_factory=lambda: _parse_int(os.getenv("AUDIO_FILE_LIMIT"), 10))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings loaded from environment variables."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear cached settings (useful for tests when environment changes)."""

    get_settings.cache_clear()
