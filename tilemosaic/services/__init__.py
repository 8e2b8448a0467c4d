"""Service utilities exposed by the ``tilemosaic.services`` package."""

from .addressing import ProviderConfig, TileScheme, resolve_tile_url
from .compositor import Mosaic, composite_tiles
from .fetcher import DecodedTile, TileRequest, fetch_tile_grid
from .grid import GeoBounds, TileCoordinate
from .tms import TmsProvider

__all__ = [
    "DecodedTile",
    "GeoBounds",
    "Mosaic",
    "ProviderConfig",
    "TileCoordinate",
    "TileRequest",
    "TileScheme",
    "TmsProvider",
    "composite_tiles",
    "fetch_tile_grid",
    "resolve_tile_url",
]
