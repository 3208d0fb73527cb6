from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from common.errors import (
    BackendError,
    MalformedCoordinate,
    PlaceholderSubstitutionError,
    TileNotFound,
    TilesetNotFound,
)
from common.logging_setup import get_logger, setup_logging
from common.types import TileCoord
from common.utils import iso_now_ms
from terrain.config import apply_overrides, build_stores, load_config
from terrain.manifest import load_layer
from terrain.resolver import TieredResolver
from terrain.stores import TileStore


log = get_logger(__name__)


def _error(status: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse({"error": error, "detail": detail}, status_code=status)


def create_app(stores: Sequence[TileStore], tileset_root: str | Path = ".") -> FastAPI:
    """
    Build the HTTP app around a fixed store chain (fastest first).

    Routes:
        GET /tilesets/{tileset}/layer.json
        GET /tilesets/{tileset}/{z}/{x}/{y}.terrain
        GET /health
    """
    resolver = TieredResolver(stores)
    root = Path(tileset_root)

    app = FastAPI(title="Terrain Tile Server", version="1.0.0")
    app.state.resolver = resolver
    app.state.tileset_root = root

    # preflight handling; the header itself is set on every response below
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _allow_any_origin(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        return response

    @app.exception_handler(MalformedCoordinate)
    def _bad_coord(request: Request, exc: MalformedCoordinate):
        return _error(400, "malformed_coordinate", str(exc))

    @app.exception_handler(TileNotFound)
    def _no_tile(request: Request, exc: TileNotFound):
        log.info("tile not found: %s", request.url.path)
        return _error(404, "tile_not_found", "The terrain tile does not exist")

    @app.exception_handler(TilesetNotFound)
    def _no_tileset(request: Request, exc: TilesetNotFound):
        return _error(404, "tileset_not_found", str(exc))

    @app.exception_handler(BackendError)
    def _backend(request: Request, exc: BackendError):
        log.error("backend error on %s: %s", request.url.path, exc, exc_info=exc,
                  extra={"extra": {"store": exc.store}})
        return _error(500, "backend_error", str(exc))

    @app.exception_handler(PlaceholderSubstitutionError)
    def _placeholder(request: Request, exc: PlaceholderSubstitutionError):
        log.error("placeholder unavailable on %s: %s", request.url.path, exc, exc_info=exc)
        return _error(500, "placeholder_unavailable", str(exc))

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "ts": iso_now_ms(),
            "tileset_root": str(root),
            "stores": [s.describe() for s in resolver.stores],
        }

    @app.get("/tilesets/{tileset}/layer.json")
    def layer(tileset: str):
        body = load_layer(root, tileset)
        return Response(content=body, media_type="application/json")

    @app.get("/tilesets/{tileset}/{z}/{x}/{y}.terrain")
    def terrain_tile(tileset: str, z: str, x: str, y: str, background_tasks: BackgroundTasks):
        """
        Return the gzip-compressed tile bytes as-is.

        Backfill of faster tiers is queued as a background task, so it runs
        after the body has been sent.
        """
        coord = TileCoord.parse(z, x, y)
        res = resolver.resolve(tileset, coord, defer=background_tasks.add_task)
        headers = {
            "Content-Encoding": "gzip",
            "Content-Disposition": f"attachment;filename={coord.y}.terrain",
        }
        return Response(content=res.body, media_type="application/octet-stream", headers=headers)

    return app


def create_app_from_config(P: dict) -> FastAPI:
    tiles = P.get("tiles", {})
    return create_app(build_stores(P), tiles.get("root", "."))


P = load_config()
app = create_app_from_config(P)


def main(argv: Optional[Sequence[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Serve Cesium terrain tilesets")
    ap.add_argument("--config", default=None, help="YAML settings file (default: $TERRAIN_CONFIG or config/params.yaml)")
    ap.add_argument("--host", default=None, help="Interface to bind")
    ap.add_argument("--port", type=int, default=None, help="The port on which the server listens")
    ap.add_argument("--dir", default=None, help="Root directory under which tileset directories reside")
    ap.add_argument("--redis", default=None, help="Redis URL for caching tiles, e.g. redis://localhost:6379/0")
    ap.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    args = ap.parse_args(argv)

    settings = apply_overrides(
        load_config(args.config),
        server__host=args.host,
        server__port=args.port,
        tiles__root=args.dir,
        cache__redis_url=args.redis,
        logging__level=args.log_level,
    )
    setup_logging(settings["logging"].get("level"), force=True)

    server_app = create_app_from_config(settings)
    host = settings["server"].get("host", "0.0.0.0")
    port = int(settings["server"].get("port", 8000))
    log.info("Terrain server listening on %s:%d", host, port)
    uvicorn.run(server_app, host=host, port=port, log_config=None)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
