import pytest

from tilemosaic.errors import ErrorType, TileMosaicError
from tilemosaic.services.grid import (
    GeoBounds,
    TileCoordinate,
    build_tile_grid,
    ensure_rectangular,
    lat_to_tile_y,
    lon_to_tile_x,
    polygon_bounds,
    tile_footprint,
)

ROME_POLYGON = {
    "type": "Feature",
    "properties": {},
    "geometry": {
        "type": "Polygon",
        "coordinates": [
            [
                [12.482802629103247, 41.885379230564524],
                [12.481392196198271, 41.885379230564524],
                [12.481392196198271, 41.884332326712524],
                [12.482802629103247, 41.884332326712524],
                [12.482802629103247, 41.885379230564524],
            ]
        ],
    },
}


def test_polygon_bounds_from_feature_and_geometry():
    from_feature = polygon_bounds(ROME_POLYGON)
    from_geometry = polygon_bounds(ROME_POLYGON["geometry"])

    assert from_feature == from_geometry
    assert from_feature.west == pytest.approx(12.481392196198271)
    assert from_feature.east == pytest.approx(12.482802629103247)
    assert from_feature.south == pytest.approx(41.884332326712524)
    assert from_feature.north == pytest.approx(41.885379230564524)


@pytest.mark.parametrize(
    "polygon",
    [
        {"type": "Feature", "properties": {}, "geometry": {"type": "Polygon", "coordinates": []}},
        {"type": "Polygon", "coordinates": [[]]},
        {"type": "Feature", "properties": {}},
    ],
)
def test_empty_polygon_is_missing_input(polygon):
    with pytest.raises(TileMosaicError) as exc:
        polygon_bounds(polygon)

    assert exc.value.type == ErrorType.MISSING_INPUT_FIELD


@pytest.mark.parametrize(
    "coordinates",
    [5, {"a": 1}, "ring", [5], [{"a": 1}], [[{"lon": 1, "lat": 2}]]],
)
def test_structurally_invalid_coordinates_are_rejected(coordinates):
    with pytest.raises(ValueError):
        polygon_bounds({"type": "Polygon", "coordinates": coordinates})


def test_malformed_positions_are_rejected():
    with pytest.raises(ValueError):
        polygon_bounds({"type": "Polygon", "coordinates": [[["a", "b"], [1, 2]]]})


def test_out_of_range_latitude_is_rejected():
    with pytest.raises(ValueError):
        polygon_bounds({"type": "Polygon", "coordinates": [[[0, 0], [1, 95], [0, 0]]]})


def test_tile_footprint_of_root_tile_covers_the_world():
    footprint = tile_footprint(TileCoordinate(0, 0, 0))

    assert footprint.west == pytest.approx(-180.0)
    assert footprint.east == pytest.approx(180.0)
    assert footprint.north == pytest.approx(85.0511287798)
    assert footprint.south == pytest.approx(-85.0511287798)


def test_tile_math_round_trips():
    footprint = tile_footprint(TileCoordinate(140160, 97108, 18))

    assert lon_to_tile_x(footprint.west, 18) == pytest.approx(140160)
    assert lat_to_tile_y(footprint.north, 18) == pytest.approx(97108)
    assert lat_to_tile_y(footprint.south, 18) == pytest.approx(97109)


def test_build_tile_grid_orders_rows_north_to_south():
    grid = build_tile_grid(polygon_bounds(ROME_POLYGON), 18, max_tiles=100)

    assert len(grid) == 2
    assert all(len(row) == 2 for row in grid)
    top_left, top_right = grid[0]
    bottom_left, _ = grid[1]
    assert top_right.coordinate.x == top_left.coordinate.x + 1
    assert bottom_left.coordinate.y == top_left.coordinate.y + 1
    assert top_left.footprint.north > bottom_left.footprint.north
    assert (top_left.row, top_left.column) == (0, 0)
    assert (bottom_left.row, bottom_left.column) == (1, 0)


def test_build_tile_grid_envelope_matches_known_bounds():
    grid = build_tile_grid(polygon_bounds(ROME_POLYGON), 18, max_tiles=100)
    envelope = GeoBounds.envelope(cell.footprint for row in grid for cell in row)

    assert envelope.north == pytest.approx(41.885921, abs=1e-6)
    assert envelope.south == pytest.approx(41.883876, abs=1e-6)
    assert envelope.east == pytest.approx(12.483216, abs=1e-6)
    assert envelope.west == pytest.approx(12.480469, abs=1e-6)


def test_build_tile_grid_enforces_tile_limit():
    bounds = GeoBounds(north=10.0, south=-10.0, east=10.0, west=-10.0)

    with pytest.raises(TileMosaicError) as exc:
        build_tile_grid(bounds, 10, max_tiles=50)

    assert exc.value.type == ErrorType.MAXIMUM_TILE_COUNT_EXCEEDED
    assert exc.value.code == 1001
    assert exc.value.tile_count > 50


@pytest.mark.parametrize("zoom", [-1, 23, 3.0, True])
def test_build_tile_grid_rejects_invalid_zoom(zoom):
    with pytest.raises(ValueError):
        build_tile_grid(GeoBounds(north=1.0, south=0.0, east=1.0, west=0.0), zoom, max_tiles=100)


def test_point_polygon_yields_single_tile():
    bounds = GeoBounds(north=0.5, south=0.5, east=0.5, west=0.5)

    grid = build_tile_grid(bounds, 4, max_tiles=1)

    assert len(grid) == 1 and len(grid[0]) == 1


def test_ensure_rectangular_rejects_ragged_and_empty_grids():
    assert ensure_rectangular([[1, 2], [3, 4], [5, 6]]) == (3, 2)
    with pytest.raises(ValueError):
        ensure_rectangular([])
    with pytest.raises(ValueError):
        ensure_rectangular([[]])
    with pytest.raises(ValueError):
        ensure_rectangular([[1, 2], [3]])
