"""
Terrain Tile Server Test Suite

Structure:
- unit/: stores, resolver, coordinates, manifest and config
- integration/: HTTP API through FastAPI's TestClient (no live Redis)
"""
