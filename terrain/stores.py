from __future__ import annotations

"""
Tile stores: the tiers the resolver walks.

Each store answers two questions for a (tileset, coord) pair:
    load -> bytes | None   (None = not held here; BackendError on any other fault)
    save -> None           (BackendError on fault; callers treat it as best effort)

Layout on disk (FileStore):

    root/
      └─ {tileset}/
          ├─ layer.json
          └─ {z}/
              └─ {x}/
                  └─ {y}.terrain   (gzip-compressed tile)
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import redis

from common.errors import BackendError
from common.logging_setup import get_logger
from common.types import TileCoord
from common.utils import redact_url


log = get_logger(__name__)


def is_safe_tileset(tileset: str) -> bool:
    """Tileset names map to one directory directly under the root."""
    return bool(tileset) and tileset not in (".", "..") and "/" not in tileset and "\\" not in tileset


class TileStore(ABC):
    """Base interface for every tier."""

    name: str = "store"

    @abstractmethod
    def load(self, tileset: str, coord: TileCoord) -> Optional[bytes]:
        """Return the payload, or None if this tier does not hold the tile."""

    @abstractmethod
    def save(self, tileset: str, coord: TileCoord, body: bytes) -> None:
        """Store the payload under (tileset, coord)."""

    def describe(self) -> Dict[str, Any]:
        """Health/debug view; must never include credentials."""
        return {"type": self.name}


class FileStore(TileStore):
    """
    Read-only view of pre-generated tilesets on disk.

    `save` is a no-op: the directory tree is source data and is never
    written at request time.
    """

    name = "file"

    def __init__(self, root: str | Path = ".", extension: str = ".terrain"):
        self.root = Path(root)
        self.extension = extension

    def path_for(self, tileset: str, coord: TileCoord) -> Path:
        z, x, y = coord.as_tokens()
        return self.root / tileset / z / x / f"{y}{self.extension}"

    def load(self, tileset: str, coord: TileCoord) -> Optional[bytes]:
        if not is_safe_tileset(tileset):
            return None
        path = self.path_for(tileset, coord)
        try:
            body = path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise BackendError(f"file store read failed for {tileset}/{coord}: {e.strerror or type(e).__name__}",
                               store=self.name) from e
        log.debug("load fs: %s", path)
        return body

    def save(self, tileset: str, coord: TileCoord, body: bytes) -> None:
        log.debug("save fs (no-op): %s/%s", tileset, coord)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.name, "root": str(self.root), "extension": self.extension}


class RedisStore(TileStore):
    """
    Shared cache tier backed by Redis.

    Keys are "{tileset}/{z}/{x}/{y}", optionally namespaced as
    "{prefix}:{tileset}/{z}/{x}/{y}". Latency is bounded by the client's socket
    timeouts (see `from_url`); a timeout is a RedisError like any other and
    surfaces as BackendError.
    """

    name = "redis"

    def __init__(self, client: "redis.Redis", prefix: str = "", ttl_seconds: Optional[int] = None,
                 url: str = ""):
        self.client = client
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds
        self._url = redact_url(url) if url else ""

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        prefix: str = "",
        ttl_seconds: Optional[int] = None,
        socket_timeout: float = 1.0,
        connect_timeout: float = 1.0,
    ) -> "RedisStore":
        """
        Build a store from a connection string.

        Accepts redis://, rediss:// and unix:// URLs; a bare "host:port"
        (memcache-style) is read as redis://host:port/0.
        """
        if "://" not in url:
            url = f"redis://{url}/0"
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=connect_timeout,
        )
        return cls(client, prefix=prefix, ttl_seconds=ttl_seconds, url=url)

    def key(self, tileset: str, coord: TileCoord) -> str:
        k = f"{tileset}/{coord.z}/{coord.x}/{coord.y}"
        return f"{self.prefix}:{k}" if self.prefix else k

    def load(self, tileset: str, coord: TileCoord) -> Optional[bytes]:
        key = self.key(tileset, coord)
        try:
            val = self.client.get(key)
        except redis.exceptions.RedisError as e:
            raise BackendError(f"redis load failed: {type(e).__name__}", store=self.name) from e
        if val is None:
            log.debug("load redis miss: %s", key)
            return None
        log.debug("load redis: %s", key)
        return bytes(val)

    def save(self, tileset: str, coord: TileCoord, body: bytes) -> None:
        key = self.key(tileset, coord)
        log.debug("save redis: %s", key)
        try:
            if self.ttl_seconds:
                self.client.set(key, body, ex=int(self.ttl_seconds))
            else:
                self.client.set(key, body)
        except redis.exceptions.RedisError as e:
            raise BackendError(f"redis save failed: {type(e).__name__}", store=self.name) from e

    def describe(self) -> Dict[str, Any]:
        return {"type": self.name, "url": self._url, "prefix": self.prefix, "ttl_seconds": self.ttl_seconds}
