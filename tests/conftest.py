from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from audio_gateway import config


@pytest.fixture()
def library_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    monkeypatch.setenv("AUDIO_DIR", f"{root}:Audio")
    monkeypatch.setenv("AUDIO_GATEWAY_CHUNK_SIZE", "4096")
    monkeypatch.setenv("AUDIO_GATEWAY_RATE_LIMIT_ENABLED", "false")
    config.reset_settings_cache()
    yield root
    config.reset_settings_cache()


@pytest.fixture()
def client(library_root: Path) -> TestClient:
    module = importlib.import_module("audio_gateway.main")
    application = module.create_app()
    return TestClient(application)


@pytest.fixture()
def song(library_root: Path) -> tuple[Path, bytes]:
    target = library_root / "artist" / "song.mp3"
    target.parent.mkdir(parents=True)
    payload = bytes(range(256)) * 40
    target.write_bytes(payload)
    return target, payload
