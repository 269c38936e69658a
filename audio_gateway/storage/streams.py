"""Chunked file streaming with one owned handle per response.

Example:
    session = await StreamSession.open(path, start=100, length=100)
    async for chunk in session.iter_chunks(request.is_disconnected):
        ...
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

import anyio
from anyio import AsyncFile


logger = logging.getLogger("audio_gateway.streams")

DEFAULT_CHUNK_SIZE = 64 * 1024

CancelProbe = Callable[[], Awaitable[bool]]


class StreamAborted(Exception):
    """The client went away before the body was fully sent."""


class StreamOutcome(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


async def _close_shielded(handle: AsyncFile[bytes]) -> None:
    with anyio.CancelScope(shield=True):
        await handle.aclose()


async def read_whole_file(path: Path) -> bytes:
    """Read a small sidecar file into memory in one go."""

    async with await anyio.open_file(path, "rb") as handle:
        return await handle.read()


class StreamSession:
    """Own exactly one open file handle for one response body.

    The handle is released on completion, read failure, client abort or task
    cancellation; ``aclose`` is idempotent so callers may also close a
    session whose body was never iterated.
    """

    def __init__(
        self,
        handle: AsyncFile[bytes],
        path: Path,
        start: int,
        length: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._handle = handle
        self.path = path
        self.start = start
        self.length = length
        self.chunk_size = chunk_size
        self.bytes_sent = 0
        self.outcome = StreamOutcome.PENDING
        self._closed = False

    @classmethod
    async def open(
        cls,
        path: Path,
        start: int,
        length: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "StreamSession":
        handle = await anyio.open_file(path, "rb")
        try:
            if start:
                await handle.seek(start)
        except BaseException:
            await _close_shielded(handle)
            raise
        return cls(handle, path, start, length, chunk_size)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.outcome is StreamOutcome.PENDING:
            self.outcome = StreamOutcome.ABORTED
        await _close_shielded(self._handle)

    async def iter_chunks(self, is_cancelled: Optional[CancelProbe] = None) -> AsyncIterator[bytes]:
        """Yield at most ``length`` bytes, checking for disconnects per chunk."""

        remaining = self.length
        try:
            while remaining > 0:
                if is_cancelled is not None and await is_cancelled():
                    raise StreamAborted(str(self.path))
                chunk = await self._handle.read(min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                self.bytes_sent += len(chunk)
                yield chunk
        except (StreamAborted, ConnectionResetError, BrokenPipeError):
            self.outcome = StreamOutcome.ABORTED
            logger.debug("stream_aborted", extra={"path": str(self.path), "bytes_sent": self.bytes_sent})
            return
        except OSError:
            self.outcome = StreamOutcome.FAILED
            logger.exception("stream_failed", extra={"path": str(self.path), "bytes_sent": self.bytes_sent})
            raise
        except (anyio.get_cancelled_exc_class(), GeneratorExit):
            self.outcome = StreamOutcome.ABORTED
            raise
        else:
            if remaining > 0:
                # file shrank after it was stat'd; Content-Length can no longer be honoured
                self.outcome = StreamOutcome.FAILED
                logger.warning("stream_truncated", extra={"path": str(self.path), "missing": remaining})
            else:
                self.outcome = StreamOutcome.COMPLETED
        finally:
            await self.aclose()
