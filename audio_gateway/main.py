"""Entry point for the audio-gateway FastAPI application.

Usage:
    uvicorn audio_gateway.main:app --host 0.0.0.0 --port 8080
    python -m audio_gateway.main
"""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from audio_gateway.api.audio import router as audio_router
from audio_gateway.api.ratelimit import RateLimiter
from audio_gateway.config import Settings, get_settings
from audio_gateway.storage.roots import RootRegistry


def _configure_logging() -> None:
    """Initialize structured logging once for the service."""

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("audio_gateway").setLevel(logging.INFO)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a new FastAPI instance with the root registry built once."""

    _configure_logging()
    settings = settings or get_settings()
    application = FastAPI(title="audio-gateway", version="0.1.0")
    application.state.settings = settings
    application.state.roots = RootRegistry.from_config(settings.audio_dir, settings.default_audio_dir)
    application.state.rate_limiter = RateLimiter.from_settings(settings) if settings.rate_limit_enabled else None
    application.include_router(audio_router)

    @application.get("/health")
    async def healthcheck():
        return {
            "ok": True,
            "service": "audio-gateway",
            "roots": len(application.state.roots),
        }

    return application


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("audio_gateway.main:app", host="0.0.0.0", port=settings.port, reload=False)
