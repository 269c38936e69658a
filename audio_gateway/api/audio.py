"""Audio streaming endpoints.

Example calls:
    curl http://localhost:8080/api/audio
    curl -O http://localhost:8080/api/audio/audio/artist/song.mp3
    curl -H 'Range: bytes=100-199' http://localhost:8080/api/audio/audio/artist/song.mp3
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import anyio
import anyio.to_thread
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send

from audio_gateway.api.ratelimit import enforce_rate_limit, rate_limit_headers
from audio_gateway.storage.content_types import JSON_MIME_TYPE, cache_control
from audio_gateway.storage.paths import TraversalRejected, safe_join
from audio_gateway.storage.ranges import ByteRange, RangeNotSatisfiable, negotiate
from audio_gateway.storage.roots import RootNotFound, RootRegistry, VirtualRoot
from audio_gateway.storage.streams import StreamOutcome, StreamSession, read_whole_file
from audio_gateway.storage.targets import ResolvedTarget, TargetNotFound, resolve_target


logger = logging.getLogger("audio_gateway.audio")

router = APIRouter(prefix="/api/audio", tags=["audio"])


class SessionStreamingResponse(StreamingResponse):
    """Stream a StreamSession and release its handle however the response ends.

    A failed send surfaces as ``ClientDisconnect`` (ASGI 2.4) or as a
    connection error; both mean the listener left and are not errors.
    """

    def __init__(self, session: StreamSession, request: Request, **kwargs):
        self._chunks = session.iter_chunks(request.is_disconnected)
        super().__init__(self._chunks, **kwargs)
        self.session = session

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except (ClientDisconnect, ConnectionResetError, BrokenPipeError):
            self.session.outcome = StreamOutcome.ABORTED
            logger.debug(
                "stream_aborted",
                extra={"path": str(self.session.path), "bytes_sent": self.session.bytes_sent},
            )
        finally:
            await self._chunks.aclose()
            await self.session.aclose()


def get_registry(request: Request) -> RootRegistry:
    registry: RootRegistry | None = getattr(request.app.state, "roots", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Audio roots are not configured")
    return registry


def _require_root(registry: RootRegistry, slug: str) -> VirtualRoot:
    try:
        return registry.resolve(slug)
    except RootNotFound as exc:
        raise HTTPException(status_code=400, detail="Invalid directory") from exc


async def _require_safe_path(root: VirtualRoot, relative_path: str) -> Path:
    try:
        return await anyio.to_thread.run_sync(safe_join, root, relative_path)
    except TraversalRejected as exc:
        logger.warning(
            "traversal_rejected",
            extra={"slug": root.slug, "path": exc.raw_path, "reason": str(exc)},
        )
        raise HTTPException(status_code=400, detail="Invalid path") from exc
    except OSError as exc:
        logger.warning(
            "path_unresolvable",
            extra={"slug": root.slug, "path": relative_path, "reason": exc.strerror},
        )
        raise HTTPException(status_code=404, detail="File not found") from exc


async def _require_target(path: Path) -> ResolvedTarget:
    try:
        return await anyio.to_thread.run_sync(resolve_target, path)
    except TargetNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except OSError as exc:
        logger.exception("stat_failed", extra={"path": str(path)})
        raise HTTPException(status_code=500, detail="Internal Server Error") from exc


@router.get("")
async def list_roots(registry: RootRegistry = Depends(get_registry)):
    """List configured audio roots without exposing their filesystem paths."""

    return [
        {"slug": root.slug, "name": root.display_name, "accessible": root.accessible}
        for root in registry.list_all()
    ]


@router.api_route("/{slug}", methods=["GET", "HEAD"], dependencies=[Depends(enforce_rate_limit)])
async def audio_root_without_path(slug: str, registry: RootRegistry = Depends(get_registry)):
    _require_root(registry, slug)
    raise HTTPException(status_code=400, detail="Invalid path")


@router.api_route(
    "/{slug}/{relative_path:path}",
    methods=["GET", "HEAD"],
    dependencies=[Depends(enforce_rate_limit)],
)
async def stream_audio(
    slug: str,
    relative_path: str,
    request: Request,
    range_header: Optional[str] = Header(default=None, alias="range"),
    registry: RootRegistry = Depends(get_registry),
):
    """Serve one file from a virtual root, honouring byte ranges for audio."""

    root = _require_root(registry, slug)
    path = await _require_safe_path(root, relative_path)
    target = await _require_target(path)

    try:
        byte_range = negotiate(range_header, target.size_bytes, target.mime_type)
    except RangeNotSatisfiable as exc:
        raise HTTPException(
            status_code=416,
            detail="Range Not Satisfiable",
            headers={"Content-Range": exc.content_range},
        ) from exc

    logger.info(
        "stream_audio",
        extra={
            "slug": root.slug,
            "path": relative_path,
            "range": byte_range.content_range if byte_range else None,
        },
    )
    return await _serve(target, byte_range, request)


def _response_headers(target: ResolvedTarget, byte_range: ByteRange | None) -> Dict[str, str]:
    headers = {"Cache-Control": cache_control(target.cache_class)}
    if byte_range is not None:
        headers["Content-Range"] = byte_range.content_range
        headers["Accept-Ranges"] = "bytes"
        headers["Content-Length"] = str(byte_range.length)
    else:
        if target.content_type.streamable:
            headers["Accept-Ranges"] = "bytes"
        headers["Content-Length"] = str(target.size_bytes)
    return headers


async def _serve(target: ResolvedTarget, byte_range: ByteRange | None, request: Request) -> Response:
    settings = request.app.state.settings
    headers = _response_headers(target, byte_range)
    headers.update(rate_limit_headers(request))
    status_code = 206 if byte_range is not None else 200

    if request.method == "HEAD":
        return Response(status_code=status_code, headers=headers, media_type=target.mime_type)

    if target.mime_type == JSON_MIME_TYPE and target.size_bytes <= settings.json_buffer_limit:
        try:
            body = await read_whole_file(target.absolute_path)
        except OSError as exc:
            logger.exception("json_read_failed", extra={"path": str(target.absolute_path)})
            raise HTTPException(status_code=500, detail="Error reading file") from exc
        headers["Content-Length"] = str(len(body))
        return Response(content=body, headers=headers, media_type=target.mime_type)

    start, length = (byte_range.start, byte_range.length) if byte_range else (0, target.size_bytes)
    try:
        session = await StreamSession.open(target.absolute_path, start, length, settings.chunk_size)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc
    except OSError as exc:
        logger.exception("stream_open_failed", extra={"path": str(target.absolute_path)})
        raise HTTPException(status_code=500, detail="Error streaming file") from exc

    return SessionStreamingResponse(
        session,
        request,
        status_code=status_code,
        headers=headers,
        media_type=target.mime_type,
    )
