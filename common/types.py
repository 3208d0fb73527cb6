from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from common.errors import MalformedCoordinate
from common.utils import parse_uint


Token = Union[str, int]


@dataclass(frozen=True, slots=True)
class TileCoord:
    """
    Address of a tile in the TMS quadtree pyramid.

    Attributes:
        z: zoom level (0 = the two root tiles split at the anti-meridian).
        x, y: column / row at that zoom. No upper bound is enforced here;
              stores simply report tiles outside their coverage as missing.
    """
    z: int
    x: int
    y: int

    def __post_init__(self) -> None:
        for name in ("z", "x", "y"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise MalformedCoordinate(f"{name} must be a non-negative integer, got {v!r}")

    @classmethod
    def parse(cls, z: Token, x: Token, y: Token) -> "TileCoord":
        """Build a coordinate from path tokens; raises MalformedCoordinate."""
        return cls(z=parse_uint(z, "z"), x=parse_uint(x, "x"), y=parse_uint(y, "y"))

    @property
    def is_root(self) -> bool:
        return self.z == 0 and self.y == 0 and self.x in (0, 1)

    def as_tokens(self) -> Tuple[str, str, str]:
        return (str(self.z), str(self.x), str(self.y))

    def __str__(self) -> str:
        return "/".join(self.as_tokens())


@dataclass(slots=True)
class Tile:
    """
    A coordinate plus its payload.

    `body` is the compressed on-wire representation (gzip for heightmap
    tiles); nothing in the server decompresses or validates it.
    """
    coord: TileCoord
    body: bytes = field(default=b"", repr=False)

    def to_meta(self) -> Dict[str, Any]:
        """Metadata without payload bytes (safe to log/serialize)."""
        return {"z": self.coord.z, "x": self.coord.x, "y": self.coord.y, "bytes": len(self.body)}
