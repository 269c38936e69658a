"""Extension based content-type and cache-policy lookup."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath


class CacheClass(str, Enum):
    MEDIA = "media"
    IMAGE = "image"
    GENERIC = "generic"


@dataclass(frozen=True)
class ContentType:
    mime_type: str
    cache_class: CacheClass

    @property
    def streamable(self) -> bool:
        return is_streamable(self.mime_type)


JSON_MIME_TYPE = "application/json"
DEFAULT_MIME_TYPE = "application/octet-stream"

AUDIO_EXTENSIONS = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".m4a": "audio/mp4",
    ".opus": "audio/opus",
}
IMAGE_EXTENSIONS = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

CONTENT_TYPES: dict[str, ContentType] = {
    **{ext: ContentType(mime, CacheClass.MEDIA) for ext, mime in AUDIO_EXTENSIONS.items()},
    **{ext: ContentType(mime, CacheClass.IMAGE) for ext, mime in IMAGE_EXTENSIONS.items()},
    ".json": ContentType(JSON_MIME_TYPE, CacheClass.GENERIC),
}
DEFAULT_CONTENT_TYPE = ContentType(DEFAULT_MIME_TYPE, CacheClass.GENERIC)

CACHE_CONTROL = {
    CacheClass.MEDIA: "public, max-age=3600",
    CacheClass.IMAGE: "public, max-age=86400",
    CacheClass.GENERIC: "public, max-age=3600",
}


def classify(extension: str) -> ContentType:
    """Map an extension (``"mp3"`` or ``".MP3"``) to its content type."""

    ext = (extension or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def classify_path(path: str | PurePath) -> ContentType:
    return classify(PurePath(path).suffix)


def cache_control(cache_class: CacheClass) -> str:
    return CACHE_CONTROL[cache_class]


def is_streamable(mime_type: str) -> bool:
    """Only audio is eligible for partial responses."""

    return mime_type.startswith("audio/")
