"""
Tests for SVG rendering of puzzle grids.
"""

import pytest
from shapely.geometry import Polygon

import pipe_core
from pipe_core import CORNER, CROSS, DEAD_END, STRAIGHT, PuzzleSession, Tile, build_grid
from pipe_render import (
    CATALOG_TILES,
    DEFAULT_RENDER_PARAMS,
    cell_center,
    clip_line_outside_polygon,
    get_arm_polygon,
    get_tile_polygon,
    merge_render_params,
    render_session_svg,
    render_single_tile,
    render_svg,
)


L_PATH = [(0, 0), (0, 1), (0, 2), (1, 2), (2, 2)]


class TestGeometry:
    """Tests for tile polygons and cell placement."""

    def test_cell_center(self) -> None:
        assert cell_center(0, 0, 3) == (-100.0, -100.0)
        assert cell_center(1, 1, 3) == (0.0, 0.0)
        assert cell_center(2, 0, 3) == (-100.0, 100.0)
        assert cell_center(0, 1, 2) == (50.0, -50.0)

    def test_empty_tile_has_no_polygon(self) -> None:
        assert get_tile_polygon(Tile(), 0, 0) is None

    def test_arm_points_toward_direction(self) -> None:
        minx, miny, maxx, maxy = get_arm_polygon(pipe_core.RIGHT, 0, 0, 10).bounds
        assert (minx, miny, maxx, maxy) == pytest.approx((0, -10, 50, 10))
        minx, miny, maxx, maxy = get_arm_polygon(pipe_core.UP, 0, 0, 10).bounds
        assert (minx, miny, maxx, maxy) == pytest.approx((-10, -50, 10, 0))

    def test_straight_spans_cell(self) -> None:
        poly = get_tile_polygon(Tile(STRAIGHT), 0, 0, half_width=18)
        assert poly.area == pytest.approx(36 * 100)
        assert poly.bounds == pytest.approx((-18, -50, 18, 50))

    def test_rotated_straight(self) -> None:
        poly = get_tile_polygon(Tile(STRAIGHT, 90), 100, 0, half_width=18)
        assert poly.bounds == pytest.approx((50, -18, 150, 18))

    def test_cross_area(self) -> None:
        poly = get_tile_polygon(Tile(CROSS), 0, 0, half_width=18)
        assert poly.area == pytest.approx(2 * 36 * 100 - 36 * 36)

    def test_corner_is_single_polygon(self) -> None:
        poly = get_tile_polygon(Tile(CORNER, 180), 0, 0, half_width=18)
        assert poly.geom_type == 'Polygon'
        # Opens down and right
        assert poly.bounds == pytest.approx((-18, -18, 50, 50))

    def test_dead_end_has_rounded_cap(self) -> None:
        poly = get_tile_polygon(Tile(DEAD_END), 0, 0, half_width=18)
        minx, miny, maxx, maxy = poly.bounds
        assert miny == pytest.approx(-50)
        assert maxy == pytest.approx(18)
        assert (minx, maxx) == pytest.approx((-18, 18))

    def test_dead_end_facing_left(self) -> None:
        poly = get_tile_polygon(Tile(DEAD_END, 270), 0, 0, half_width=18)
        minx, miny, maxx, maxy = poly.bounds
        assert minx == pytest.approx(-50)
        assert maxx == pytest.approx(18)


class TestClipping:
    """Tests for wall clipping against neighbouring pipes."""

    def test_no_occlusion(self) -> None:
        assert clip_line_outside_polygon(0, 0, 10, 0, None) == [(0, 0, 10, 0)]

    def test_occlusion_splits_line(self) -> None:
        square = Polygon([(4, -1), (6, -1), (6, 1), (4, 1)])
        segments = clip_line_outside_polygon(0, 0, 10, 0, square)
        assert len(segments) == 2
        xs = sorted(x for seg in segments for x in (seg[0], seg[2]))
        assert xs == pytest.approx([0, 4, 6, 10])

    def test_fully_hidden_line(self) -> None:
        square = Polygon([(-1, -1), (11, -1), (11, 1), (-1, 1)])
        assert clip_line_outside_polygon(0, 0, 10, 0, square) == []


class TestRenderSvg:
    """Tests for whole-board SVG output."""

    def test_renders_svg_document(self) -> None:
        grid = build_grid(L_PATH, 3, scramble=False)
        svg = render_svg(grid, source=(0, 0), destination=(2, 2))
        assert '<svg' in svg
        assert '</svg>' in svg
        assert DEFAULT_RENDER_PARAMS['source_color'] in svg
        assert DEFAULT_RENDER_PARAMS['destination_color'] in svg

    def test_flow_colour_used_for_connected_pipes(self) -> None:
        grid = build_grid(L_PATH, 3, scramble=False)
        params = {'flow_color': '#123456', 'pipe_color': '#abcdef'}
        svg = render_svg(grid, flow={(0, 0), (0, 1)}, render_params=params)
        assert '#123456' in svg
        assert '#abcdef' in svg

    def test_won_colour(self) -> None:
        grid = build_grid(L_PATH, 3, scramble=False)
        svg = render_svg(grid, won=True, render_params={'won_color': '#0f0f0f'})
        assert '#0f0f0f' in svg
        assert DEFAULT_RENDER_PARAMS['pipe_color'] not in svg

    def test_progress_callback(self) -> None:
        calls = []
        grid = build_grid(L_PATH, 3, scramble=False)
        render_svg(grid, progress_callback=lambda current, total: calls.append((current, total)))
        assert calls[-1] == (9, 9)
        assert len(calls) == 9

    def test_render_session(self) -> None:
        session = PuzzleSession(level=2, seed=3)
        svg = render_session_svg(session)
        assert '<svg' in svg
        assert DEFAULT_RENDER_PARAMS['source_color'] in svg

    def test_render_does_not_mutate_session(self) -> None:
        session = PuzzleSession(seed=5)
        before = pipe_core.format_grid(session.grid)
        render_session_svg(session)
        assert pipe_core.format_grid(session.grid) == before

    @pytest.mark.parametrize("name,tile", CATALOG_TILES)
    def test_catalog_tiles_render(self, name, tile) -> None:
        svg = render_single_tile(tile)
        assert '<svg' in svg

    def test_merge_render_params(self) -> None:
        params = merge_render_params({'half_width': 5})
        assert params['half_width'] == 5
        assert params['stroke_width'] == DEFAULT_RENDER_PARAMS['stroke_width']
        assert DEFAULT_RENDER_PARAMS['half_width'] == 18
