"""
Unit tests for TieredResolver: tier walk, backfill and root placeholder
"""

import gzip
import os
import sys
from typing import Dict, List, Optional, Tuple
from unittest.mock import patch

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.errors import BackendError, PlaceholderSubstitutionError, TileNotFound
from common.types import TileCoord
from terrain.assets import load_placeholder
from terrain.resolver import TieredResolver
from terrain.stores import TileStore


class RecordingStore(TileStore):
    """In-memory store that records every call."""

    def __init__(self, name: str, tiles: Optional[Dict] = None, load_error: Exception = None,
                 save_error: Exception = None):
        self.name = name
        self.tiles: Dict[Tuple[str, TileCoord], bytes] = dict(tiles or {})
        self.load_error = load_error
        self.save_error = save_error
        self.loads: List[Tuple[str, TileCoord]] = []
        self.saves: List[Tuple[str, TileCoord, bytes]] = []

    def load(self, tileset, coord):
        self.loads.append((tileset, coord))
        if self.load_error is not None:
            raise self.load_error
        return self.tiles.get((tileset, coord))

    def save(self, tileset, coord, body):
        self.saves.append((tileset, coord, body))
        if self.save_error is not None:
            raise self.save_error
        self.tiles[(tileset, coord)] = body


C = TileCoord(3, 5, 9)
ROOT = TileCoord(0, 0, 0)
P = b"\x1f\x8bpayload"


class TestTieredResolver:

    def test_requires_stores(self):
        with pytest.raises(ValueError):
            TieredResolver([])

    def test_first_tier_hit_saves_nothing(self):
        a = RecordingStore("a", {("world", C): P})
        b = RecordingStore("b", {("world", C): b"other"})
        res = TieredResolver([a, b]).resolve("world", C)

        assert res.body == P
        assert res.source == 0
        assert res.backfilled == ()
        assert b.loads == []
        assert a.saves == [] and b.saves == []

    def test_lower_tier_hit_backfills_upper(self):
        a = RecordingStore("a")
        b = RecordingStore("b", {("world", C): P})
        res = TieredResolver([a, b]).resolve("world", C)

        assert res.body == P
        assert res.source == 1
        assert res.backfilled == (0,)
        assert a.saves == [("world", C, P)]
        assert b.saves == []

    def test_backfill_only_tiers_above_hit(self):
        a, b = RecordingStore("a"), RecordingStore("b")
        c = RecordingStore("c", {("world", C): P})
        d = RecordingStore("d", {("world", C): b"never"})
        res = TieredResolver([a, b, c, d]).resolve("world", C)

        assert res.source == 2
        assert [s[2] for s in a.saves] == [P]
        assert [s[2] for s in b.saves] == [P]
        assert c.saves == [] and d.saves == [] and d.loads == []

    def test_second_request_hits_warmed_tier(self):
        a = RecordingStore("a")
        b = RecordingStore("b", {("world", C): P})
        resolver = TieredResolver([a, b])
        resolver.resolve("world", C)
        res = resolver.resolve("world", C)

        assert res.source == 0
        assert len(b.loads) == 1

    def test_missing_root_serves_placeholder(self):
        a = RecordingStore("a")
        res = TieredResolver([a], placeholder=lambda: b"blank").resolve("world", ROOT)

        assert res.body == b"blank"
        assert res.placeholder
        assert res.backfilled == ()
        assert a.saves == []

    def test_placeholder_never_backfilled(self):
        a, b = RecordingStore("a"), RecordingStore("b")
        TieredResolver([a, b], placeholder=lambda: b"blank").resolve("world", TileCoord(0, 1, 0))
        assert a.saves == [] and b.saves == []

    def test_present_root_is_served_normally(self):
        a = RecordingStore("a", {("world", ROOT): P})
        res = TieredResolver([a], placeholder=lambda: b"blank").resolve("world", ROOT)
        assert res.body == P and not res.placeholder

    def test_missing_non_root_is_not_found(self):
        a = RecordingStore("a")
        with pytest.raises(TileNotFound):
            TieredResolver([a]).resolve("world", C)

    def test_backend_error_aborts_walk(self):
        a = RecordingStore("a", load_error=BackendError("redis load failed: ConnectionError", store="a"))
        b = RecordingStore("b", {("world", C): P})
        with pytest.raises(BackendError, match="ConnectionError"):
            TieredResolver([a, b]).resolve("world", C)
        assert b.loads == []

    def test_unexpected_store_exception_is_wrapped(self):
        a = RecordingStore("a", load_error=RuntimeError("boom"))
        b = RecordingStore("b", {("world", C): P})
        with pytest.raises(BackendError) as ei:
            TieredResolver([a, b]).resolve("world", C)
        assert ei.value.store == "a"
        assert isinstance(ei.value.__cause__, RuntimeError)
        assert b.loads == []

    def test_backend_error_on_root_is_not_masked(self):
        a = RecordingStore("a", load_error=BackendError("down"))
        with pytest.raises(BackendError):
            TieredResolver([a], placeholder=lambda: b"blank").resolve("world", ROOT)

    def test_backfill_failure_does_not_fail_read(self):
        a = RecordingStore("a", save_error=BackendError("redis save failed: TimeoutError"))
        b = RecordingStore("b", save_error=RuntimeError("unexpected"))
        c = RecordingStore("c", {("world", C): P})
        res = TieredResolver([a, b, c]).resolve("world", C)

        assert res.body == P
        assert len(a.saves) == 1 and len(b.saves) == 1

    def test_backfill_returns_success_count(self):
        a = RecordingStore("a", save_error=BackendError("down"))
        b = RecordingStore("b")
        c = RecordingStore("c", {("world", C): P})
        resolver = TieredResolver([a, b, c])
        res = resolver.resolve("world", C, defer=lambda *args: None)
        assert resolver.backfill("world", res.tile, res.source) == 1

    def test_deferred_backfill(self):
        a = RecordingStore("a")
        b = RecordingStore("b", {("world", C): P})
        queued = []
        resolver = TieredResolver([a, b])
        res = resolver.resolve("world", C, defer=lambda fn, *args: queued.append((fn, args)))

        assert res.body == P
        assert a.saves == []
        assert len(queued) == 1

        fn, args = queued[0]
        fn(*args)
        assert a.saves == [("world", C, P)]

    def test_defer_not_called_without_backfill(self):
        a = RecordingStore("a", {("world", C): P})
        queued = []
        TieredResolver([a]).resolve("world", C, defer=lambda *args: queued.append(args))
        assert queued == []

    def test_placeholder_failure(self):
        def broken():
            raise PlaceholderSubstitutionError("packaged asset missing")

        with pytest.raises(PlaceholderSubstitutionError):
            TieredResolver([RecordingStore("a")], placeholder=broken).resolve("world", ROOT)

    def test_backfill_failure_logs_tile_metadata(self):
        a = RecordingStore("a", save_error=BackendError("redis save failed: TimeoutError"))
        b = RecordingStore("b", {("world", C): P})
        with patch("terrain.resolver.log") as mock_log:
            TieredResolver([a, b]).resolve("world", C)

        extra = mock_log.warning.call_args.kwargs["extra"]["extra"]
        assert extra == {"tileset": "world", "store": "a", "z": 3, "x": 5, "y": 9, "bytes": len(P)}

    def test_placeholder_logs_tile_metadata(self):
        with patch("terrain.resolver.log") as mock_log:
            TieredResolver([RecordingStore("a")], placeholder=lambda: b"blank").resolve("world", ROOT)

        extra = mock_log.info.call_args.kwargs["extra"]["extra"]
        assert extra == {"tileset": "world", "z": 0, "x": 0, "y": 0, "bytes": 5}

    def test_tilesets_are_isolated(self):
        a = RecordingStore("a", {("moon", C): P})
        with pytest.raises(TileNotFound):
            TieredResolver([a]).resolve("world", C)


def test_packaged_placeholder_is_blank_heightmap():
    body = load_placeholder()
    raw = gzip.decompress(body)
    # 65x65 uint16 heights + child mask + water mask
    assert len(raw) == 65 * 65 * 2 + 2
    assert raw == bytes(len(raw))
    assert load_placeholder() is body


def test_missing_asset_raises_placeholder_error():
    from terrain.assets import _read_asset

    with pytest.raises(PlaceholderSubstitutionError, match="missing.terrain"):
        _read_asset("missing.terrain")
