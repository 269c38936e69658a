"""Path helpers for traversal-safe resolution inside a virtual root.

Example:
    from audio_gateway.storage.paths import safe_join
    target = safe_join(registry.resolve("audio"), "artist/song.mp3")
"""

from __future__ import annotations

import errno
import posixpath
from pathlib import Path

from audio_gateway.storage.roots import VirtualRoot


class TraversalRejected(ValueError):
    """Raised when a requested path could escape its root or is unusable."""

    def __init__(self, message: str, raw_path: str):
        super().__init__(message)
        self.raw_path = raw_path


def normalize_relative_path(requested: str) -> str:
    """Collapse ``.`` and ``..`` segments lexically and reject unsafe results.

    The check never touches the filesystem, so it also holds for targets
    that do not exist.
    """

    if not requested or not requested.strip("/"):
        raise TraversalRejected("Relative path cannot be empty", requested)
    if "\x00" in requested:
        raise TraversalRejected("Relative path cannot contain NUL bytes", requested)

    normalized = posixpath.normpath(requested)
    if (
        normalized == "."
        or normalized.startswith("..")
        or normalized.startswith("/")
        or "/../" in normalized
        or normalized.endswith("/..")
    ):
        raise TraversalRejected("Relative path cannot traverse directories", requested)
    return normalized


def safe_join(root: VirtualRoot, requested: str) -> Path:
    """Return the absolute path for ``requested`` inside ``root``.

    Raises TraversalRejected when the lexical check fails, or when the
    canonical form of the joined path (symlinks followed) leaves the root.
    Touches the filesystem, so async callers run it in a worker thread.
    """

    normalized = normalize_relative_path(requested)
    base = root.absolute_path
    candidate = base / normalized

    try:
        canonical_base = base.resolve()
        canonical = candidate.resolve()
    except RuntimeError as exc:
        # Python < 3.13 reports symlink loops this way
        raise OSError(errno.ELOOP, "Symlink loop", str(candidate)) from exc
    if canonical_base not in canonical.parents:
        raise TraversalRejected("Requested path is outside the root", requested)
    return candidate
