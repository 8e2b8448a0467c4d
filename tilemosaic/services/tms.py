from __future__ import annotations

import logging
from typing import Any, List, Mapping

import httpx

from ..config import default_zoom, max_tile_count
from .addressing import (
    DEFAULT_ATTRIBUTION,
    DEFAULT_EXTENSION,
    DEFAULT_TILE_SIZE,
    ProviderConfig,
    TileScheme,
    resolve_tile_url,
)
from .compositor import Mosaic, composite_tiles
from .fetcher import TileRequest, fetch_tile_grid
from .grid import TileCoordinate, build_tile_grid, polygon_bounds

logger = logging.getLogger(__name__)


class TmsProvider:
    """Tile source that renders a polygon into a single mosaic.

    ``base_url`` is either a plain prefix (``https://host/tiles``) to which
    ``/{z}/{x}/{y}.{extension}`` is appended, or a template containing ``{x}``,
    ``{y}`` and ``{z}`` tokens.
    """

    def __init__(
        self,
        base_url: str,
        *,
        extension: str = DEFAULT_EXTENSION,
        api_key: str | None = None,
        attribution: str = DEFAULT_ATTRIBUTION,
        tile_size: int = DEFAULT_TILE_SIZE,
        headers: Mapping[str, str] | None = None,
        scheme: TileScheme | str = TileScheme.WEB_MERCATOR_XYZ,
    ) -> None:
        self.config = ProviderConfig(
            base_url=base_url,
            extension=extension,
            api_key=api_key,
            attribution=attribution,
            tile_size=tile_size,
            headers=headers,
            scheme=scheme,
        )

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def extension(self) -> str:
        return self.config.extension

    @property
    def api_key(self) -> str | None:
        return self.config.api_key

    @property
    def attribution(self) -> str:
        return self.config.attribution

    @property
    def tile_size(self) -> int:
        return self.config.tile_size

    @property
    def headers(self) -> Mapping[str, str] | None:
        return self.config.headers

    @property
    def scheme(self) -> TileScheme:
        return self.config.scheme

    def tile_url(self, x: int, y: int, z: int) -> str:
        return resolve_tile_url(TileCoordinate(x, y, z), self.config)

    def tile_requests(
        self, polygon: Mapping[str, Any], zoom: int | None = None
    ) -> List[List[TileRequest]]:
        """Resolve the grid of tile requests covering ``polygon``."""

        zoom = default_zoom() if zoom is None else zoom
        bounds = polygon_bounds(polygon)
        cells = build_tile_grid(bounds, zoom, max_tiles=max_tile_count())
        return [
            [
                TileRequest(
                    coordinate=cell.coordinate,
                    url=resolve_tile_url(cell.coordinate, self.config),
                    footprint=cell.footprint,
                    row=cell.row,
                    column=cell.column,
                )
                for cell in row
            ]
            for row in cells
        ]

    async def get_image(
        self,
        polygon: Mapping[str, Any],
        zoom: int | None = None,
        *,
        strict: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> Mosaic:
        """Fetch and composite every tile covering ``polygon``.

        Input validation happens before any request is issued. Individual tile
        failures leave black gaps; losing every tile raises ``ImageLoadFailed``
        unless ``strict`` is false.
        """

        requests = self.tile_requests(polygon, zoom)
        logger.info(
            "Requesting %d x %d tiles from %s",
            len(requests[0]),
            len(requests),
            self.config.attribution,
        )
        tiles = await fetch_tile_grid(
            requests,
            strict=strict,
            headers=self.config.headers,
            client=client,
        )
        footprints = [[request.footprint for request in row] for row in requests]
        return composite_tiles(
            tiles,
            footprints,
            self.config.tile_size,
            attribution=self.config.attribution,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(base_url={self.config.base_url!r}, "
            f"scheme={self.config.scheme.value!r}, tile_size={self.config.tile_size})"
        )
