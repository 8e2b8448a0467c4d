from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, NamedTuple, Sequence, Tuple

from ..config import MAX_ZOOM
from ..errors import ErrorType, TileMosaicError

logger = logging.getLogger(__name__)

MERCATOR_LATITUDE_LIMIT = 85.05112878
MIN_ZOOM = 0


class TileCoordinate(NamedTuple):
    """Slippy-map tile address with a top-left (XYZ) origin."""

    x: int
    y: int
    z: int


@dataclass(frozen=True)
class GeoBounds:
    """Geographic bounding box in decimal degrees."""

    north: float
    south: float
    east: float
    west: float

    @classmethod
    def envelope(cls, boxes: Iterable[GeoBounds]) -> GeoBounds:
        boxes = list(boxes)
        if not boxes:
            raise ValueError("Cannot compute the envelope of an empty set of bounds.")
        return cls(
            north=max(box.north for box in boxes),
            south=min(box.south for box in boxes),
            east=max(box.east for box in boxes),
            west=min(box.west for box in boxes),
        )

    def as_dict(self) -> dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


@dataclass(frozen=True)
class GridCell:
    coordinate: TileCoordinate
    footprint: GeoBounds
    row: int
    column: int


def lon_to_tile_x(lon: float, zoom: int) -> float:
    scale = float(2 ** zoom)
    return (lon + 180.0) / 360.0 * scale


def lat_to_tile_y(lat: float, zoom: int) -> float:
    clamped = _clamp(lat, -MERCATOR_LATITUDE_LIMIT, MERCATOR_LATITUDE_LIMIT)
    sin_lat = math.sin(math.radians(clamped))
    fraction = 0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)
    return fraction * float(2 ** zoom)


def tile_x_to_lon(x: float, zoom: int) -> float:
    return x / float(2 ** zoom) * 360.0 - 180.0


def tile_y_to_lat(y: float, zoom: int) -> float:
    n = math.pi - 2.0 * math.pi * y / float(2 ** zoom)
    return math.degrees(math.atan(math.sinh(n)))


def tile_footprint(coordinate: TileCoordinate) -> GeoBounds:
    """Geographic bounds of an XYZ tile."""

    x, y, z = coordinate
    return GeoBounds(
        north=tile_y_to_lat(y, z),
        south=tile_y_to_lat(y + 1, z),
        east=tile_x_to_lon(x + 1, z),
        west=tile_x_to_lon(x, z),
    )


def polygon_bounds(polygon: Mapping[str, Any]) -> GeoBounds:
    """Bounding box of the outer ring of a GeoJSON Feature or Polygon geometry."""

    if not isinstance(polygon, Mapping):
        raise TileMosaicError(ErrorType.MISSING_INPUT_FIELD, "A GeoJSON polygon is required.")

    geometry = polygon.get("geometry") if polygon.get("type") == "Feature" else polygon
    if not isinstance(geometry, Mapping):
        raise TileMosaicError(ErrorType.MISSING_INPUT_FIELD, "Polygon feature has no geometry.")
    if geometry.get("type") not in (None, "Polygon"):
        raise ValueError(f"Unsupported geometry type: {geometry.get('type')}")

    rings = geometry.get("coordinates")
    if rings and (not _is_sequence(rings) or not _is_sequence(rings[0])):
        raise ValueError("Polygon coordinates must be a list of rings")
    if not rings or not rings[0]:
        raise TileMosaicError(
            ErrorType.MISSING_INPUT_FIELD, "Polygon coordinates must contain a non-empty outer ring."
        )

    lons: List[float] = []
    lats: List[float] = []
    for position in rings[0]:
        lon, lat = _parse_position(position)
        lons.append(lon)
        lats.append(lat)

    bounds = GeoBounds(north=max(lats), south=min(lats), east=max(lons), west=min(lons))
    _validate_bounds(bounds)
    return bounds


def build_tile_grid(bounds: GeoBounds, zoom: int, *, max_tiles: int) -> List[List[GridCell]]:
    """Cover ``bounds`` with XYZ tiles, rows ordered north to south."""

    _validate_zoom(zoom)
    x_min, x_max = _tile_span(lon_to_tile_x(bounds.west, zoom), lon_to_tile_x(bounds.east, zoom), zoom)
    y_min, y_max = _tile_span(lat_to_tile_y(bounds.north, zoom), lat_to_tile_y(bounds.south, zoom), zoom)

    columns = x_max - x_min + 1
    rows = y_max - y_min + 1
    total_tiles = columns * rows
    if total_tiles > max_tiles:
        raise TileMosaicError(
            ErrorType.MAXIMUM_TILE_COUNT_EXCEEDED,
            f"Requested area requires {total_tiles} tiles at zoom {zoom}; "
            f"the limit is {max_tiles}. Reduce the area or the zoom level.",
            tile_count=total_tiles,
        )

    logger.debug(
        "Covering bounds %s at zoom %d with %d x %d tiles", bounds.as_dict(), zoom, columns, rows
    )

    grid: List[List[GridCell]] = []
    for row, tile_y in enumerate(range(y_min, y_max + 1)):
        cells: List[GridCell] = []
        for column, tile_x in enumerate(range(x_min, x_max + 1)):
            coordinate = TileCoordinate(tile_x, tile_y, zoom)
            cells.append(
                GridCell(
                    coordinate=coordinate,
                    footprint=tile_footprint(coordinate),
                    row=row,
                    column=column,
                )
            )
        grid.append(cells)
    return grid


def ensure_rectangular(grid: Sequence[Sequence[Any]]) -> Tuple[int, int]:
    """Return ``(rows, columns)`` of a non-empty grid with equal row lengths."""

    if not grid or not grid[0]:
        raise ValueError("Tile grid must contain at least one row and one column.")
    columns = len(grid[0])
    for index, row in enumerate(grid):
        if len(row) != columns:
            raise ValueError(
                f"Tile grid rows must have equal lengths; row {index} has {len(row)} cells, expected {columns}."
            )
    return len(grid), columns


def _tile_span(start: float, end: float, zoom: int) -> Tuple[int, int]:
    eps = 1e-9
    scale = float(2 ** zoom)
    start_clamped = min(max(min(start, end), 0.0), scale - eps)
    end_clamped = min(max(max(start, end), 0.0), scale - eps)
    low = int(math.floor(start_clamped))
    high = int(math.floor(max(start_clamped, end_clamped - eps)))
    if high < low:
        high = low
    return low, high


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _parse_position(position: Sequence[Any]) -> Tuple[float, float]:
    try:
        lon, lat = float(position[0]), float(position[1])
    except (TypeError, ValueError, IndexError, KeyError) as exc:
        raise ValueError(f"Invalid polygon position: {position!r}") from exc
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError(f"Invalid polygon position: {position!r}")
    return lon, lat


def _validate_bounds(bounds: GeoBounds) -> None:
    if bounds.north > 90.0 or bounds.south < -90.0:
        raise ValueError("Latitudes must be within -90 and 90 degrees.")
    if bounds.east > 180.0 or bounds.west < -180.0:
        raise ValueError("Longitudes must be within -180 and 180 degrees.")


def _validate_zoom(zoom: int) -> None:
    if isinstance(zoom, bool) or not isinstance(zoom, int) or not (MIN_ZOOM <= zoom <= MAX_ZOOM):
        raise ValueError(f"Zoom level must be an integer between {MIN_ZOOM} and {MAX_ZOOM}.")


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(min(value, maximum), minimum)
