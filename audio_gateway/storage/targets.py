"""Stat and classify a resolved file before it is served."""

from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from audio_gateway.storage.content_types import CacheClass, ContentType, classify_path


class TargetNotFound(LookupError):
    """Raised when the requested file is missing or not a regular file."""


@dataclass(frozen=True)
class ResolvedTarget:
    absolute_path: Path
    size_bytes: int
    mime_type: str
    cache_class: CacheClass

    @property
    def content_type(self) -> ContentType:
        return ContentType(self.mime_type, self.cache_class)


def resolve_target(path: Path) -> ResolvedTarget:
    """Stat ``path`` fresh for this request and attach its content type.

    Unexpected OSErrors (permissions, I/O) propagate to the caller.
    """

    try:
        info = os.stat(path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise TargetNotFound("File not found") from exc
    except OSError as exc:
        if exc.errno != errno.ELOOP:
            raise
        raise TargetNotFound("File not found") from exc
    if not stat.S_ISREG(info.st_mode):
        raise TargetNotFound("Not a file")

    content_type = classify_path(path)
    return ResolvedTarget(
        absolute_path=path,
        size_bytes=info.st_size,
        mime_type=content_type.mime_type,
        cache_class=content_type.cache_class,
    )
