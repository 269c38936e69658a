"""Per-client request throttling for the audio endpoints.

Counters live in an explicitly injected ``RateLimitStore`` kept on
``app.state`` so tests can build one with a fake clock.

Example:
    limiter = RateLimiter(RateLimitStore(window_ms=60000), audio_limit=10, api_limit=100)
    decision = limiter.check("203.0.113.9", "/api/audio/audio/song.mp3", has_range=False)
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from fastapi import HTTPException, Request, Response

from audio_gateway.config import Settings
from audio_gateway.storage.content_types import CacheClass, classify_path


logger = logging.getLogger("audio_gateway.ratelimit")

AUDIO_BUCKET = "audio"
API_BUCKET = "api"


@dataclass
class _ClientWindow:
    started_at: float
    counts: Dict[str, int]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    current: int
    reset_in_s: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current)

    @property
    def retry_after_s(self) -> int:
        return max(1, math.ceil(self.reset_in_s))

    def headers(self, now: float) -> Dict[str, str]:
        """Advisory headers; the reset is epoch milliseconds as seen at ``now``."""

        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int((now + self.reset_in_s) * 1000)),
        }


class RateLimitStore:
    """Fixed-window counters keyed by client identity."""

    def __init__(self, window_ms: int, clock: Callable[[], float] = time.monotonic):
        self.window_s = window_ms / 1000.0
        self._clock = clock
        self._lock = threading.Lock()
        self._clients: Dict[str, _ClientWindow] = {}
        self._last_prune = clock()

    def hit(self, client: str, bucket: str) -> tuple[int, float]:
        """Count one request; return the bucket count and seconds left in the window."""

        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._clients.get(client)
            if window is None or self._expired(window, now):
                window = _ClientWindow(started_at=now, counts={})
                self._clients[client] = window
            window.counts[bucket] = window.counts.get(bucket, 0) + 1
            return window.counts[bucket], window.started_at + self.window_s - now

    def peek(self, client: str, bucket: str) -> tuple[int, float]:
        """Like ``hit`` without counting the request."""

        now = self._clock()
        with self._lock:
            window = self._clients.get(client)
            if window is None or self._expired(window, now):
                return 0, self.window_s
            return window.counts.get(bucket, 0), window.started_at + self.window_s - now

    def current(self, client: str, bucket: str) -> int:
        return self.peek(client, bucket)[0]

    def __len__(self) -> int:
        return len(self._clients)

    def _expired(self, window: _ClientWindow, now: float) -> bool:
        return now - window.started_at > self.window_s

    def _prune(self, now: float) -> None:
        if now - self._last_prune <= self.window_s:
            return
        expired = [key for key, window in self._clients.items() if self._expired(window, now)]
        for key in expired:
            del self._clients[key]
        self._last_prune = now


class RateLimiter:
    def __init__(self, store: RateLimitStore, *, audio_limit: int, api_limit: int):
        self.store = store
        self.audio_limit = audio_limit
        self.api_limit = api_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            RateLimitStore(settings.rate_limit_window_ms),
            audio_limit=settings.audio_file_limit,
            api_limit=settings.max_requests_per_window,
        )

    def check(self, client: str, path: str, *, has_range: bool) -> RateLimitDecision:
        """Count the request where it applies and decide against its bucket.

        Audio files use the audio budget, everything else the general one.
        Range requests for audio (seeks within a playback already counted)
        and images are not counted, but are still refused once their bucket
        is over the limit.
        """

        cache_class = classify_path(path).cache_class
        if cache_class is CacheClass.MEDIA:
            bucket, limit = AUDIO_BUCKET, self.audio_limit
        else:
            bucket, limit = API_BUCKET, self.api_limit

        counted = not (cache_class is CacheClass.IMAGE or (cache_class is CacheClass.MEDIA and has_range))
        if counted:
            current, remaining_s = self.store.hit(client, bucket)
        else:
            current, remaining_s = self.store.peek(client, bucket)
        return RateLimitDecision(
            allowed=current <= limit,
            limit=limit,
            current=current,
            reset_in_s=max(0.0, remaining_s),
        )


def client_identity(request: Request) -> str:
    """Best-effort client address, honouring common proxy headers."""

    headers = request.headers
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = headers.get(header, "").strip()
        if value:
            return value
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown-ip"


def rate_limit_headers(request: Request) -> Dict[str, str]:
    """Headers recorded by ``enforce_rate_limit`` for a response built by hand."""

    return dict(getattr(request.state, "rate_limit_headers", {}))


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency rejecting clients over their window budget with 429.

    Allowed requests get ``X-RateLimit-*`` headers; routes returning their own
    ``Response`` pick them up through ``rate_limit_headers``.
    """

    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client = client_identity(request)
    decision = limiter.check(client, request.url.path, has_range="range" in request.headers)
    if decision.allowed:
        headers = decision.headers(time.time())
        request.state.rate_limit_headers = headers
        response.headers.update(headers)
        return
    logger.warning(
        "rate_limited",
        extra={"client": client, "path": request.url.path, "limit": decision.limit},
    )
    raise HTTPException(
        status_code=429,
        detail={"error": "Too many requests", "limit": decision.limit, "current": decision.current},
        headers={"Retry-After": str(decision.retry_after_s)},
    )
