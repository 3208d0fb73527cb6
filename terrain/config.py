from __future__ import annotations

"""
Server configuration.

Precedence (highest first): CLI flags -> environment -> YAML file -> defaults.

    server:  {host, port}
    tiles:   {root, extension}
    cache:   {redis_url, key_prefix, ttl_seconds, socket_timeout, connect_timeout}
    logging: {level}
"""

import copy
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from terrain.stores import FileStore, RedisStore, TileStore


DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict = {
    "server": {"host": "0.0.0.0", "port": 8000},
    "tiles": {"root": ".", "extension": ".terrain"},
    "cache": {
        "redis_url": "",
        "key_prefix": "",
        "ttl_seconds": None,
        "socket_timeout": 1.0,
        "connect_timeout": 1.0,
    },
    "logging": {"level": "INFO"},
}

# env var -> (section, key)
ENV_OVERRIDES = {
    "TERRAIN_TILES_ROOT": ("tiles", "root"),
    "TERRAIN_REDIS_URL": ("cache", "redis_url"),
    "LOG_LEVEL": ("logging", "level"),
}


def _merge(base: Dict, custom: Dict) -> None:
    """Recursively merge custom into base (in place)."""
    for key, value in custom.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


def load_config(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> Dict:
    """
    Load settings as a plain nested dict.

    `path` defaults to $TERRAIN_CONFIG, then config/params.yaml. A missing
    default file is fine (defaults apply); a missing explicit file is an error.
    """
    env = os.environ if env is None else env
    P = copy.deepcopy(DEFAULTS)

    explicit = path or env.get("TERRAIN_CONFIG")
    cfg_path = Path(explicit or DEFAULT_CONFIG_PATH)
    if cfg_path.exists():
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config file {cfg_path} must contain a mapping")
        _merge(P, data)
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is not None:
            P.setdefault(section, {})[key] = value
    return P


def apply_overrides(P: Dict, **overrides) -> Dict:
    """
    Apply CLI-style overrides given as section__key=value; None values are
    ignored so unset flags leave the file/env value alone.
    """
    for name, value in overrides.items():
        if value is None:
            continue
        section, key = name.split("__", 1)
        P.setdefault(section, {})[key] = value
    return P


def build_stores(P: Dict) -> Tuple[TileStore, ...]:
    """
    Assemble the store chain once at startup: the Redis cache (if configured)
    always precedes the file store.
    """
    tiles = P.get("tiles", {})
    cache = P.get("cache", {})
    stores: Tuple[TileStore, ...] = (
        FileStore(tiles.get("root", "."), extension=tiles.get("extension", ".terrain")),
    )
    url = cache.get("redis_url") or ""
    if url:
        ttl = cache.get("ttl_seconds")
        redis_store = RedisStore.from_url(
            str(url),
            prefix=str(cache.get("key_prefix") or ""),
            ttl_seconds=int(ttl) if ttl else None,
            socket_timeout=float(cache.get("socket_timeout") or 1.0),
            connect_timeout=float(cache.get("connect_timeout") or 1.0),
        )
        stores = (redis_store,) + stores
    return stores
