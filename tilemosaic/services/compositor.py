from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Sequence

from PIL import Image

from .fetcher import RGB_CHANNELS, DecodedTile
from .grid import GeoBounds, ensure_rectangular

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mosaic:
    """Composited RGB raster with the geographic bounds it covers."""

    image: Image.Image
    bounds: GeoBounds
    attribution: str | None = None
    missing_tiles: int = 0

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def channels(self) -> int:
        return RGB_CHANNELS

    @property
    def data(self) -> bytes:
        """Row-major interleaved RGB bytes."""

        return self.image.tobytes()

    def get_bounds(self) -> GeoBounds:
        return self.bounds

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.image.save(buffer, format="PNG")
        return buffer.getvalue()


def composite_tiles(
    tiles: Sequence[Sequence[DecodedTile | None]],
    footprints: Sequence[Sequence[GeoBounds]],
    tile_size: int,
    *,
    attribution: str | None = None,
) -> Mosaic:
    """Paste ``tiles`` into a single RGB image keyed by grid position.

    Missing cells stay black. Each tile is cropped (or padded with black) to
    ``tile_size`` and never resampled. Bounds are the envelope of every cell in
    ``footprints``, whether or not its tile was retrieved.
    """

    rows, columns = ensure_rectangular(tiles)
    footprint_shape = ensure_rectangular(footprints)
    if footprint_shape != (rows, columns):
        raise ValueError(
            f"Footprint grid is {footprint_shape[0]}x{footprint_shape[1]} "
            f"but tile grid is {rows}x{columns}."
        )
    if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size <= 0:
        raise ValueError(f"Tile size must be a positive integer, got {tile_size!r}.")

    mosaic = Image.new("RGB", (columns * tile_size, rows * tile_size))
    missing = 0
    for row, row_tiles in enumerate(tiles):
        for column, tile in enumerate(row_tiles):
            if tile is None:
                missing += 1
                continue
            image = tile.image
            if image.mode != "RGB":
                image = image.convert("RGB")
            if image.size != (tile_size, tile_size):
                image = image.crop((0, 0, tile_size, tile_size))
            mosaic.paste(image, (column * tile_size, row * tile_size))

    bounds = GeoBounds.envelope(box for row_boxes in footprints for box in row_boxes)
    if missing:
        logger.info(
            "Composited %dx%d mosaic with %d of %d tiles missing",
            mosaic.width,
            mosaic.height,
            missing,
            rows * columns,
        )
    else:
        logger.info("Composited %dx%d mosaic from %d tiles", mosaic.width, mosaic.height, rows * columns)

    return Mosaic(image=mosaic, bounds=bounds, attribution=attribution, missing_tiles=missing)
