from __future__ import annotations

from typing import Optional


class TerrainError(Exception):
    """Base class for every error the tile server raises on purpose."""


class MalformedCoordinate(TerrainError, ValueError):
    """A z/x/y token is not a base-10 non-negative integer (client fault)."""


class TileNotFound(TerrainError, LookupError):
    """No tier holds the tile and it is not a root tile."""


class TilesetNotFound(TerrainError, LookupError):
    """The tileset directory does not exist under the tileset root."""


class BackendError(TerrainError):
    """
    A store failed for a reason other than "absent".

    The message is safe to return to clients: stores build it from the
    operation and the exception class, never from connection strings.
    """

    def __init__(self, message: str, store: Optional[str] = None):
        super().__init__(message)
        self.store = store


class PlaceholderSubstitutionError(TerrainError):
    """The packaged blank tile is missing or unreadable (packaging defect)."""
