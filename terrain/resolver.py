from __future__ import annotations

"""
Tiered tile resolution (cache-aside with backfill).

Stores are consulted in order, fastest first:

    [redis, file]   -> redis hit: done
                    -> redis miss, file hit: return, then save into redis
                    -> both miss: root tile ? blank placeholder : TileNotFound

Only a miss moves the walk to the next tier; a BackendError aborts it.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

from common.errors import BackendError, TileNotFound
from common.logging_setup import get_logger
from common.types import Tile, TileCoord
from terrain.assets import load_placeholder
from terrain.stores import TileStore


log = get_logger(__name__)

# Scheduler for deferred work, e.g. fastapi.BackgroundTasks.add_task
Defer = Callable[..., None]


@dataclass(slots=True)
class Resolution:
    """Outcome of a successful resolve()."""
    tile: Tile
    source: Optional[int]                 # index of the store that answered; None = placeholder
    backfilled: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def placeholder(self) -> bool:
        return self.source is None

    @property
    def body(self) -> bytes:
        return self.tile.body


class TieredResolver:
    """
    Walks a fixed, ordered tuple of stores for each request.

    The store tuple is read-only after construction, so one resolver can be
    shared by concurrent requests.
    """

    def __init__(self, stores: Sequence[TileStore], placeholder: Callable[[], bytes] = load_placeholder):
        if not stores:
            raise ValueError("at least one store is required")
        self.stores: Tuple[TileStore, ...] = tuple(stores)
        self._placeholder = placeholder

    def resolve(self, tileset: str, coord: TileCoord, defer: Optional[Defer] = None) -> Resolution:
        """
        Return the tile payload for (tileset, coord).

        Raises:
            BackendError: a store failed; lower tiers are not consulted.
            TileNotFound: no store holds a non-root tile.
            PlaceholderSubstitutionError: a root tile is missing and the
                packaged blank tile cannot be read.

        When the tile came from store i > 0, stores 0..i-1 are backfilled.
        With `defer` the backfill is handed to that scheduler (it then runs
        after the response is sent); without it, it runs before returning.
        Backfill failures are logged, never raised.
        """
        tile = Tile(coord)
        source: Optional[int] = None
        for i, store in enumerate(self.stores):
            body = self._load(store, tileset, coord)
            if body is not None:
                tile.body = body
                source = i
                break

        if source is None:
            if not coord.is_root:
                raise TileNotFound(f"terrain tile {tileset}/{coord} does not exist")
            tile.body = self._placeholder()
            log.info("serving blank placeholder for missing root tile %s/%s", tileset, coord,
                     extra={"extra": {"tileset": tileset, **tile.to_meta()}})
            return Resolution(tile=tile, source=None)

        targets = tuple(range(source))
        if targets:
            if defer is not None:
                defer(self.backfill, tileset, tile, source)
            else:
                self.backfill(tileset, tile, source)
        return Resolution(tile=tile, source=source, backfilled=targets)

    def backfill(self, tileset: str, tile: Tile, upto: int) -> int:
        """
        Save `tile` into stores[0:upto], in order. Returns the number of
        successful saves; failures are logged and dropped.
        """
        ok = 0
        for store in self.stores[:upto]:
            try:
                store.save(tileset, tile.coord, tile.body)
            except Exception as e:
                log.warning("failed to backfill %s/%s into %s: %s", tileset, tile.coord, store.name, e,
                            exc_info=not isinstance(e, BackendError),
                            extra={"extra": {"tileset": tileset, "store": store.name, **tile.to_meta()}})
                continue
            ok += 1
        return ok

    @staticmethod
    def _load(store: TileStore, tileset: str, coord: TileCoord) -> Optional[bytes]:
        try:
            return store.load(tileset, coord)
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"{store.name} store failed: {type(e).__name__}", store=store.name) from e
