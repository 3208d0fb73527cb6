"""
Terrain tile server

- Serves Cesium heightmap tiles from `{root}/{tileset}/{z}/{x}/{y}.terrain`
- Optional Redis tier in front of the file tree, warmed by backfill on file hits
- Missing root tiles (0/0/0, 0/1/0) are answered with a packaged blank tile
- Endpoints: /tilesets/{tileset}/layer.json, /tilesets/{tileset}/{z}/{x}/{y}.terrain, /health
"""
