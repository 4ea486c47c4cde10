import drawsvg as draw
import math
from shapely.geometry import Polygon, LineString
from shapely.ops import unary_union

import pipe_core


# ============================================================================
# RENDER SETTINGS
# ============================================================================

# Cells are 100x100 units, centred on their (xloc, yloc)
CELL_SIZE = 100
HALF_CELL = CELL_SIZE // 2

# Default render parameters (can be overridden via render_params)
DEFAULT_RENDER_PARAMS = {
    'half_width': 18,             # pipe half-width (out of 50 half-cell)
    'stroke_width': 1.5,          # pipe wall stroke
    'stroke_color': 'black',
    'pipe_color': '#9fb8d0',      # pipes not connected to the source
    'flow_color': '#3fa7d6',      # pipes connected to the source
    'won_color': '#4caf50',       # every pipe once the puzzle is solved
    'cell_color': '#f4f4f4',
    'source_color': '#c9dcff',
    'destination_color': '#cdeccd',
    'grid_color': '#d0d0d0',
    'grid_stroke_width': 1.0,
}

# Clockwise angle of each direction from 'up'
DIRECTION_ANGLES = {
    pipe_core.UP: 0,
    pipe_core.RIGHT: 90,
    pipe_core.DOWN: 180,
    pipe_core.LEFT: 270,
}


def merge_render_params(render_params=None):
    params = dict(DEFAULT_RENDER_PARAMS)
    if render_params:
        params.update(render_params)
    return params


# ============================================================================
# GEOMETRY HELPERS
# ============================================================================

def _rotate_vec(v, angle_deg):
    rad = math.radians(angle_deg)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    # Rounded so quarter turns land exactly on the cell grid
    return (round(v[0] * cos_a - v[1] * sin_a, 6), round(v[0] * sin_a + v[1] * cos_a, 6))


def cell_center(row, col, grid_size):
    """Canvas coordinates of a cell centre (grid centred on the origin)."""
    xloc = (col - (grid_size - 1) / 2.0) * CELL_SIZE
    yloc = (row - (grid_size - 1) / 2.0) * CELL_SIZE
    return xloc, yloc


def _place(points, direction, xloc, yloc):
    """Rotate local 'up'-facing points toward direction and move them to the cell."""
    angle = DIRECTION_ANGLES[direction]
    placed = []
    for px, py in points:
        rx, ry = _rotate_vec((px, py), angle)
        placed.append((xloc + rx, yloc + ry))
    return placed


def get_arm_polygon(direction, xloc, yloc, half_width):
    """Rectangle from the cell centre to the cell edge in the given direction."""
    hw = half_width
    return Polygon(_place([
        (-hw, -HALF_CELL), (hw, -HALF_CELL), (hw, 0), (-hw, 0),
    ], direction, xloc, yloc))


def get_endcap_polygon(direction, xloc, yloc, half_width, num_arc_points=8):
    """Return Shapely Polygon for a dead end (half-cell with rounded cap)."""
    hw = half_width
    # Port toward 'up', cap curves south around the cell centre
    arc = []
    for i in range(num_arc_points + 1):
        a = math.radians(180 * i / num_arc_points)
        arc.append((hw * math.cos(a), hw * math.sin(a)))
    pts = [(-hw, -HALF_CELL), (hw, -HALF_CELL)] + arc
    return Polygon(_place(pts, direction, xloc, yloc))


def get_tile_polygon(tile, xloc, yloc, half_width=None):
    """Return Shapely geometry for a tile's pipe, or None for empty tiles.

    Junction-style shapes are a centre square unioned with one arm per open
    direction; single openings get a rounded endcap.
    """
    if half_width is None:
        half_width = DEFAULT_RENDER_PARAMS['half_width']
    directions = tile.open_directions
    if not directions:
        return None
    if len(directions) == 1:
        return get_endcap_polygon(next(iter(directions)), xloc, yloc, half_width)

    hw = half_width
    center = Polygon([
        (xloc - hw, yloc - hw),
        (xloc + hw, yloc - hw),
        (xloc + hw, yloc + hw),
        (xloc - hw, yloc + hw),
    ])
    arms = [get_arm_polygon(d, xloc, yloc, hw) for d in sorted(directions)]
    return unary_union([center] + arms)


def _polygons(geom):
    """Flatten a Polygon or MultiPolygon into a list of polygons."""
    if geom is None or geom.is_empty:
        return []
    if geom.geom_type == 'Polygon':
        return [geom]
    return [g for g in getattr(geom, 'geoms', []) if g.geom_type == 'Polygon']


def build_neighbor_occlusion(poly_cache, row, col, pad=0):
    """Union of the pipe polygons in the 4 cells around (row, col)."""
    polygons = []
    for direction in pipe_core.DIRECTIONS:
        other = pipe_core.neighbor((row, col), direction)
        poly = poly_cache.get(other)
        if poly is None:
            continue
        if pad > 0:
            poly = poly.buffer(pad, join_style=2)
        polygons.append(poly)
    if not polygons:
        return None
    return unary_union(polygons).buffer(0)


# ============================================================================
# CLIPPED DRAWING
# ============================================================================

def clip_line_outside_polygon(x1, y1, x2, y2, occlusion_poly):
    """Clip a line segment to stay OUTSIDE the occlusion polygon.

    Returns list of (x1, y1, x2, y2) tuples for visible line segments.
    """
    if occlusion_poly is None:
        return [(x1, y1, x2, y2)]

    line = LineString([(x1, y1), (x2, y2)])
    clipped = line.difference(occlusion_poly)

    if clipped.is_empty:
        return []

    if clipped.geom_type == 'LineString':
        parts = [clipped]
    else:
        parts = [g for g in clipped.geoms if g.geom_type == 'LineString']

    result = []
    for geom in parts:
        coords = list(geom.coords)
        for i in range(len(coords) - 1):
            result.append((coords[i][0], coords[i][1], coords[i + 1][0], coords[i + 1][1]))
    return result


def clip_and_draw_line(drawing, x1, y1, x2, y2, occlusion_poly, sw, color='black'):
    """Clip a line against occlusion polygon and draw visible parts."""
    segments = clip_line_outside_polygon(x1, y1, x2, y2, occlusion_poly)
    for sx1, sy1, sx2, sy2 in segments:
        drawing.append(draw.Line(sx1, sy1, sx2, sy2,
                                 stroke=color, stroke_width=sw, fill='none'))


def draw_pipe_fill(drawing, geom, color):
    for poly in _polygons(geom):
        flat = [c for xy in poly.exterior.coords[:-1] for c in xy]
        drawing.append(draw.Lines(*flat, close=True, fill=color, stroke='none'))


def draw_pipe_outline(drawing, geom, occlusion_poly, sw, color='black'):
    """Draw a pipe's walls, leaving out parts hidden under adjoining pipes."""
    for poly in _polygons(geom):
        coords = list(poly.exterior.coords)
        for (x1, y1), (x2, y2) in zip(coords, coords[1:]):
            clip_and_draw_line(drawing, x1, y1, x2, y2, occlusion_poly, sw, color)


# ============================================================================
# SVG RENDERING
# ============================================================================

def render_svg(grid, source=None, destination=None, flow=None, won=False,
               render_params=None, progress_callback=None):
    """Render a puzzle grid to an SVG string.

    Args:
        grid: grid[row][col] of pipe_core.Tile
        source, destination: (row, col) cells to tint, or None
        flow: set of (row, col) cells drawn in the flow colour
        won: draw every pipe in the win colour
        render_params: dict overriding DEFAULT_RENDER_PARAMS
        progress_callback: called as progress_callback(current, total)
    """
    params = merge_render_params(render_params)
    grid_size = len(grid)
    hw = params['half_width']
    sw = params['stroke_width']
    flow = flow or set()

    canvas = grid_size * CELL_SIZE
    d = draw.Drawing(canvas, canvas, origin='center')

    # Precompute all pipe polygons once
    poly_cache = {}
    for row in range(grid_size):
        for col in range(grid_size):
            xloc, yloc = cell_center(row, col, grid_size)
            poly = get_tile_polygon(grid[row][col], xloc, yloc, hw)
            if poly is not None:
                poly = poly.buffer(0)
                if poly.is_valid and not poly.is_empty:
                    poly_cache[(row, col)] = poly

    for row in range(grid_size):
        for col in range(grid_size):
            xloc, yloc = cell_center(row, col, grid_size)
            if (row, col) == source:
                fill = params['source_color']
            elif (row, col) == destination:
                fill = params['destination_color']
            else:
                fill = params['cell_color']
            d.append(draw.Rectangle(xloc - HALF_CELL, yloc - HALF_CELL, CELL_SIZE, CELL_SIZE,
                                    fill=fill, stroke=params['grid_color'],
                                    stroke_width=params['grid_stroke_width']))

    pad = sw * 0.5 + 0.1
    total_tiles = grid_size * grid_size
    tile_count = 0
    for row in range(grid_size):
        for col in range(grid_size):
            tile_count += 1
            poly = poly_cache.get((row, col))
            if poly is not None:
                if won:
                    color = params['won_color']
                elif (row, col) in flow:
                    color = params['flow_color']
                else:
                    color = params['pipe_color']
                draw_pipe_fill(d, poly, color)
                occlusion_poly = build_neighbor_occlusion(poly_cache, row, col, pad=pad)
                draw_pipe_outline(d, poly, occlusion_poly, sw, params['stroke_color'])
            if progress_callback:
                progress_callback(tile_count, total_tiles)

    return d.as_svg()


def render_session_svg(session, render_params=None, progress_callback=None):
    """Render a PuzzleSession, highlighting pipes connected to the source."""
    return render_svg(session.grid, source=session.source,
                      destination=session.destination,
                      flow=session.component(), won=session.is_won,
                      render_params=render_params,
                      progress_callback=progress_callback)


def render_single_tile(tile, render_params=None):
    """Render a single tile as an isolated 1x1 SVG for catalog display."""
    return render_svg([[tile]], render_params=render_params)


# Representative tiles for the catalog view: (display_name, tile)
CATALOG_TILES = [
    ('dead end', pipe_core.Tile(pipe_core.DEAD_END)),
    ('straight', pipe_core.Tile(pipe_core.STRAIGHT)),
    ('corner', pipe_core.Tile(pipe_core.CORNER)),
    ('t-junction', pipe_core.Tile(pipe_core.T_JUNCTION)),
    ('cross', pipe_core.Tile(pipe_core.CROSS)),
]
