"""Virtual root registry mapping URL slugs to audio library directories.

Example:
    registry = RootRegistry.from_config("/mnt/music:Music,/mnt/talks", Path("/srv/audio"))
    root = registry.resolve("music")
    print(root.absolute_path, root.display_name)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator


logger = logging.getLogger("audio_gateway.roots")

DEFAULT_SLUG = "audio"
DEFAULT_DISPLAY_NAME = "Audio"

_WHITESPACE = re.compile(r"\s+")
_INVALID_SLUG_CHARS = re.compile(r"[^a-z0-9\-]")
_REPEATED_HYPHENS = re.compile(r"-+")


class ConfigError(ValueError):
    """Raised at startup when the configured audio roots are unusable."""


class RootNotFound(LookupError):
    """Raised when a slug does not name any configured root."""


def slugify(name: str) -> str:
    """Turn a display name into a URL-safe slug; may return an empty string."""

    slug = _WHITESPACE.sub("-", (name or "").lower())
    slug = _INVALID_SLUG_CHARS.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def unique_slug(name: str, existing: set[str]) -> str:
    """Return a slug for ``name`` that does not collide with ``existing``."""

    base = slugify(name) or DEFAULT_SLUG
    candidate = base
    counter = 1
    while candidate in existing:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


class VirtualRoot(BaseModel):
    """A configured directory exposed under a slug."""

    model_config = ConfigDict(frozen=True)

    slug: str = Field(description="URL-safe identifier used as the first path segment")
    absolute_path: Path = Field(description="Directory holding the library files")
    display_name: str = Field(description="Human readable label for the root")

    @model_validator(mode="after")
    def _validate(self) -> "VirtualRoot":
        if not self.slug or slugify(self.slug) != self.slug:
            raise ValueError(f"Invalid root slug: {self.slug!r}")
        if not str(self.absolute_path):
            raise ValueError("Root path cannot be empty")
        resolved = Path(self.absolute_path).expanduser().resolve()
        object.__setattr__(self, "absolute_path", resolved)
        return self

    @property
    def accessible(self) -> bool:
        """Return True if the root directory is reachable on disk."""

        return self.absolute_path.is_dir()


def parse_root_entries(raw: str | None) -> List[tuple[str, str]]:
    """Split a ``path[:name],path[:name]`` string into ``(path, name)`` pairs.

    Blank entries are skipped. A missing name falls back to the directory
    basename.
    """

    entries: List[tuple[str, str]] = []
    for chunk in (raw or "").split(","):
        parts = chunk.strip().split(":")
        path = parts[0].strip()
        if not path:
            continue
        name = parts[1].strip() if len(parts) > 1 else ""
        entries.append((path, name or Path(path).name))
    return entries


class RootRegistry:
    """Read-only slug lookup built once at startup."""

    def __init__(self, roots: Iterable[VirtualRoot]):
        mapping: dict[str, VirtualRoot] = {}
        for root in roots:
            if root.slug in mapping:
                raise ConfigError(f"Duplicate root slug: {root.slug}")
            mapping[root.slug] = root
        if not mapping:
            raise ConfigError("At least one audio root must be configured")
        self._roots: Mapping[str, VirtualRoot] = MappingProxyType(mapping)

    @classmethod
    def from_config(cls, raw: str | None, default_dir: Path) -> "RootRegistry":
        """Build the registry from the ``AUDIO_DIR`` style configuration string."""

        existing: set[str] = set()
        roots: List[VirtualRoot] = []
        for path, name in parse_root_entries(raw):
            slug = unique_slug(name, existing)
            existing.add(slug)
            roots.append(_build_root(slug, Path(path), name or DEFAULT_DISPLAY_NAME))
        if not roots:
            roots.append(_build_root(DEFAULT_SLUG, Path(default_dir), DEFAULT_DISPLAY_NAME))
        return cls(roots)

    def resolve(self, slug: str) -> VirtualRoot:
        try:
            return self._roots[slug]
        except KeyError:
            raise RootNotFound(f"Unknown audio root: {slug}") from None

    def list_all(self) -> List[VirtualRoot]:
        return sorted(self._roots.values(), key=lambda root: root.display_name.lower())

    def __contains__(self, slug: object) -> bool:
        return slug in self._roots

    def __len__(self) -> int:
        return len(self._roots)


def _build_root(slug: str, path: Path, name: str) -> VirtualRoot:
    root = VirtualRoot(slug=slug, absolute_path=path, display_name=name)
    if root.absolute_path.exists() and not root.absolute_path.is_dir():
        raise ConfigError(f"Audio root for '{slug}' is not a directory")
    if not root.absolute_path.exists():
        logger.warning("audio_root_missing", extra={"slug": slug, "root": str(root.absolute_path)})
    return root
