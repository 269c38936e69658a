from __future__ import annotations

import pytest

from audio_gateway.storage.content_types import CacheClass, cache_control, classify, classify_path


@pytest.mark.parametrize(
    ("extension", "mime_type"),
    [
        ("mp3", "audio/mpeg"),
        (".wav", "audio/wav"),
        ("OGG", "audio/ogg"),
        (".flac", "audio/flac"),
        ("aac", "audio/aac"),
        ("m4a", "audio/mp4"),
        ("opus", "audio/opus"),
    ],
)
def test_audio_extensions_are_media(extension: str, mime_type: str):
    content_type = classify(extension)
    assert content_type.mime_type == mime_type
    assert content_type.cache_class is CacheClass.MEDIA
    assert content_type.streamable is True


def test_images_get_long_cache_lifetime():
    for extension in ("jpg", "jpeg", "png", "gif", "webp"):
        content_type = classify(extension)
        assert content_type.mime_type.startswith("image/")
        assert content_type.cache_class is CacheClass.IMAGE
        assert content_type.streamable is False
    assert cache_control(CacheClass.IMAGE) == "public, max-age=86400"
    assert cache_control(CacheClass.MEDIA) == "public, max-age=3600"
    assert cache_control(CacheClass.GENERIC) == "public, max-age=3600"


def test_json_and_unknown_extensions():
    assert classify("json").mime_type == "application/json"
    assert classify("json").cache_class is CacheClass.GENERIC
    assert classify("txt").mime_type == "application/octet-stream"
    assert classify("").mime_type == "application/octet-stream"


def test_classify_path_uses_last_suffix():
    assert classify_path("artist/album.v2/track.MP3").mime_type == "audio/mpeg"
    assert classify_path("artist/cover.jpg.bak").mime_type == "application/octet-stream"
    assert classify_path("artist/README").mime_type == "application/octet-stream"
