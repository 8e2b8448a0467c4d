from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import List, Mapping, Sequence

import httpx
from PIL import Image

from ..config import max_concurrency as default_max_concurrency
from ..config import request_timeout
from ..errors import ErrorType, TileMosaicError
from .grid import GeoBounds, TileCoordinate, ensure_rectangular

logger = logging.getLogger(__name__)

RGB_CHANNELS = 3


@dataclass(frozen=True)
class TileRequest:
    """A single grid cell ready to be fetched."""

    coordinate: TileCoordinate
    url: str
    footprint: GeoBounds
    row: int
    column: int


@dataclass
class DecodedTile:
    image: Image.Image
    footprint: GeoBounds
    row: int
    column: int
    channels: int = RGB_CHANNELS


@dataclass(frozen=True)
class TileFetchResult:
    """Outcome of fetching one cell: either a decoded tile or an error detail."""

    request: TileRequest
    tile: DecodedTile | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.tile is not None


class TileUnavailableError(Exception):
    """Raised when a tile cannot be downloaded or decoded."""


async def fetch_tile_grid(
    grid: Sequence[Sequence[TileRequest]],
    *,
    strict: bool = True,
    headers: Mapping[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
    max_concurrency: int | None = None,
) -> List[List[DecodedTile | None]]:
    """Fetch every cell of ``grid`` and return decoded tiles by grid position.

    Unavailable cells come back as ``None``. When every cell fails the call
    raises ``ImageLoadFailed`` in strict mode and returns the all-empty grid
    otherwise.
    """

    results = await fetch_tile_results(
        grid,
        headers=headers,
        client=client,
        max_concurrency=max_concurrency,
    )
    return collect_tiles(results, strict=strict)


async def fetch_tile_results(
    grid: Sequence[Sequence[TileRequest]],
    *,
    headers: Mapping[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
    max_concurrency: int | None = None,
) -> List[List[TileFetchResult]]:
    rows, columns = ensure_rectangular(grid)
    limit = max(1, max_concurrency or default_max_concurrency())
    semaphore = asyncio.Semaphore(limit)
    request_headers = dict(headers) if headers else None
    results: List[List[TileFetchResult | None]] = [[None] * columns for _ in range(rows)]

    async def _worker(http: httpx.AsyncClient, row: int, column: int, request: TileRequest) -> None:
        async with semaphore:
            outcome = await _fetch_cell(http, request, request_headers, row, column)
        results[row][column] = outcome

    async def _run(http: httpx.AsyncClient) -> None:
        await asyncio.gather(
            *(
                _worker(http, row, column, request)
                for row, cells in enumerate(grid)
                for column, request in enumerate(cells)
            )
        )

    logger.debug("Fetching %d tiles with concurrency %d", rows * columns, limit)
    if client is None:
        async with httpx.AsyncClient(timeout=request_timeout(), follow_redirects=True) as owned:
            await _run(owned)
    else:
        await _run(client)

    return results  # type: ignore[return-value]


def collect_tiles(
    results: Sequence[Sequence[TileFetchResult]], *, strict: bool = True
) -> List[List[DecodedTile | None]]:
    """Turn per-cell results into a tile grid, applying the total-failure policy."""

    ensure_rectangular(results)
    tiles: List[List[DecodedTile | None]] = []
    total = 0
    failed = 0
    for row_index, row in enumerate(results):
        row_tiles: List[DecodedTile | None] = []
        for column_index, result in enumerate(row):
            total += 1
            if not result.ok:
                failed += 1
                logger.warning(
                    "Tile at row %d, column %d (%s) unavailable: %s",
                    row_index,
                    column_index,
                    result.request.url,
                    result.error,
                )
            row_tiles.append(result.tile)
        tiles.append(row_tiles)

    if failed == total:
        message = f"Failed to load all tiles ({failed} of {total} unavailable)."
        if strict:
            raise TileMosaicError(ErrorType.IMAGE_LOAD_FAILED, message, tile_count=total)
        logger.error("%s Continuing with an empty mosaic because strict mode is off.", message)

    return tiles


async def _fetch_cell(
    client: httpx.AsyncClient,
    request: TileRequest,
    headers: Mapping[str, str] | None,
    row: int,
    column: int,
) -> TileFetchResult:
    try:
        image = await _download_tile_image(client, request.url, headers)
    except TileUnavailableError as exc:
        return TileFetchResult(request=request, error=str(exc))

    tile = DecodedTile(image=image, footprint=request.footprint, row=row, column=column)
    return TileFetchResult(request=request, tile=tile)


async def _download_tile_image(
    client: httpx.AsyncClient, url: str, headers: Mapping[str, str] | None
) -> Image.Image:
    try:
        response = await client.get(url, headers=headers)
    except (httpx.RequestError, httpx.InvalidURL) as exc:
        raise TileUnavailableError(str(exc) or exc.__class__.__name__) from exc

    if response.status_code == 204:
        raise TileUnavailableError("no imagery available (204 No Content)")

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        detail = _short_error_detail(exc.response.text)
        raise TileUnavailableError(f"{exc.response.status_code} {detail}") from exc

    try:
        image = Image.open(io.BytesIO(response.content))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        content_type = response.headers.get("Content-Type", "unknown")
        raise TileUnavailableError(f"unable to decode tile image ({content_type}): {exc}") from exc

    return image.convert("RGB")


def _short_error_detail(detail: str) -> str:
    detail = detail.strip()
    if len(detail) > 160:
        return f"{detail[:157]}..."
    return detail or "(no detail)"
