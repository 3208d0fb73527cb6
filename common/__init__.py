"""
Shared building blocks for the terrain tile server.

- errors: the error taxonomy mapped to HTTP statuses by terrain.server
- types: TileCoord / Tile value types
- utils: parsing and small helpers
- logging_setup: JSON-lines logging for every module
"""
