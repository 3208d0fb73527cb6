from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

from common.errors import BackendError, TilesetNotFound
from terrain.stores import is_safe_tileset


# Served when a tileset directory exists but ships no layer.json
DEFAULT_LAYER: Dict = {
    "tilejson": "2.1.0",
    "format": "heightmap-1.0",
    "version": "1.0.0",
    "scheme": "tms",
    "tiles": ["{z}/{x}/{y}.terrain"],
}


def default_layer_bytes() -> bytes:
    return json.dumps(DEFAULT_LAYER, indent=2).encode("utf-8")


def load_layer(root: str | Path, tileset: str) -> bytes:
    """
    Return the raw `layer.json` for a tileset.

    - <root>/<tileset>/layer.json present -> its bytes, untouched
    - directory present, no layer.json   -> DEFAULT_LAYER
    - directory missing                  -> TilesetNotFound
    """
    if not is_safe_tileset(tileset):
        raise TilesetNotFound(f"The tileset `{tileset}` does not exist")
    tileset_dir = Path(root) / tileset
    try:
        return (tileset_dir / "layer.json").read_bytes()
    except (FileNotFoundError, NotADirectoryError):
        pass
    except OSError as e:
        raise BackendError(f"cannot read layer.json for `{tileset}`: {e.strerror or type(e).__name__}",
                           store="file") from e

    if not tileset_dir.is_dir():
        raise TilesetNotFound(f"The tileset `{tileset}` does not exist")
    return default_layer_bytes()
