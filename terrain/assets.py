from __future__ import annotations

from functools import lru_cache
from importlib import resources

from common.errors import PlaceholderSubstitutionError


BLANK_TILE = "smallterrain-blank.terrain"


@lru_cache(maxsize=None)
def _read_asset(name: str) -> bytes:
    try:
        data = resources.files("terrain").joinpath("data").joinpath(name).read_bytes()
    except OSError as e:
        raise PlaceholderSubstitutionError(f"packaged asset {name!r} is unavailable") from e
    if not data:
        raise PlaceholderSubstitutionError(f"packaged asset {name!r} is empty")
    return data


def load_placeholder() -> bytes:
    """
    Gzip-compressed heightmap-1.0 tile with zero heights and no children,
    served in place of a missing root tile.
    """
    return _read_asset(BLANK_TILE)
