"""Pipe rotation puzzle engine.

Generates a random solvable layout (a simple path of pipe tiles from the
top-left corner to the bottom-right corner, every tile scrambled), validates
the current rotation state and tracks the level/win state of a play session.

Grids are indexed grid[row][col]. Row 0 is the top row; the 'up' direction
decreases the row index.
"""

import logging
import random
from collections import deque

logger = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

START_LEVEL = 1
GRID_MARGIN = 2                    # grid_size = level + GRID_MARGIN
ORIENTATIONS = (0, 90, 180, 270)


# ============================================================================
# ERRORS
# ============================================================================

class PuzzleError(Exception):
    """Base class for puzzle engine errors."""


class InvalidCoordinate(PuzzleError, IndexError):
    """A position outside the grid was used for a lookup or a move."""

    def __init__(self, position, grid_size):
        self.position = position
        self.grid_size = grid_size
        super().__init__(
            "Position {} is outside the {}x{} grid".format(position, grid_size, grid_size))


class FatalGenerationError(PuzzleError, RuntimeError):
    """The path search exhausted the grid without reaching the destination."""


# ============================================================================
# GEOMETRY
# ============================================================================

UP = 'up'
DOWN = 'down'
LEFT = 'left'
RIGHT = 'right'

DIRECTIONS = (UP, DOWN, LEFT, RIGHT)

DIRECTION_OFFSETS = {
    UP: (-1, 0), DOWN: (1, 0), LEFT: (0, -1), RIGHT: (0, 1),
}
OPPOSITE = {UP: DOWN, DOWN: UP, LEFT: RIGHT, RIGHT: LEFT}
ROTATED_RIGHT = {UP: RIGHT, RIGHT: DOWN, DOWN: LEFT, LEFT: UP}

EMPTY = 'empty'
DEAD_END = 'dead_end'
CORNER = 'corner'
STRAIGHT = 'straight'
T_JUNCTION = 't_junction'
CROSS = 'cross'

TILE_KINDS = (EMPTY, DEAD_END, CORNER, STRAIGHT, T_JUNCTION, CROSS)

# Open directions at orientation 0
BASE_CONNECTIONS = {
    EMPTY: frozenset(),
    DEAD_END: frozenset([UP]),
    STRAIGHT: frozenset([UP, DOWN]),
    CORNER: frozenset([UP, LEFT]),
    T_JUNCTION: frozenset([UP, LEFT, RIGHT]),
    CROSS: frozenset([UP, DOWN, LEFT, RIGHT]),
}

# Connection set -> (kind, orientation) for tiles placed along a path
PATH_TILES = {
    frozenset([UP]): (DEAD_END, 0),
    frozenset([RIGHT]): (DEAD_END, 90),
    frozenset([DOWN]): (DEAD_END, 180),
    frozenset([LEFT]): (DEAD_END, 270),
    frozenset([UP, DOWN]): (STRAIGHT, 0),
    frozenset([LEFT, RIGHT]): (STRAIGHT, 90),
    frozenset([UP, LEFT]): (CORNER, 0),
    frozenset([UP, RIGHT]): (CORNER, 90),
    frozenset([DOWN, RIGHT]): (CORNER, 180),
    frozenset([DOWN, LEFT]): (CORNER, 270),
}

# Single-character glyphs, same letters as the pipe tile charset
# ('r' opens S+E, '7' S+W, 'j' N+W, 'L' N+E, 'T' closed south, ...)
TILE_CHARS = {
    frozenset(): '.',
    frozenset([UP]): '^',
    frozenset([DOWN]): 'v',
    frozenset([LEFT]): '<',
    frozenset([RIGHT]): '>',
    frozenset([UP, DOWN]): '|',
    frozenset([LEFT, RIGHT]): '-',
    frozenset([DOWN, RIGHT]): 'r',
    frozenset([DOWN, LEFT]): '7',
    frozenset([UP, LEFT]): 'j',
    frozenset([UP, RIGHT]): 'L',
    frozenset([UP, LEFT, RIGHT]): 'T',
    frozenset([DOWN, LEFT, RIGHT]): 'B',
    frozenset([UP, DOWN, RIGHT]): 'E',
    frozenset([UP, DOWN, LEFT]): 'W',
    frozenset(DIRECTIONS): '+',
}


def rotated_right(direction):
    """Rotate a direction 90 degrees clockwise."""
    return ROTATED_RIGHT[direction]


def opposite(direction):
    return OPPOSITE[direction]


def rotation_steps(orientation):
    """Number of clockwise quarter turns for an orientation in degrees (0-3)."""
    return orientation // 90 % 4


def open_directions(kind, orientation=0):
    """Return the frozenset of open directions for a tile kind at an orientation."""
    if kind == EMPTY:
        return frozenset()
    steps = rotation_steps(orientation)
    result = set()
    for direction in BASE_CONNECTIONS[kind]:
        for _ in range(steps):
            direction = ROTATED_RIGHT[direction]
        result.add(direction)
    return frozenset(result)


class Tile:
    """A grid cell: a pipe kind plus its rotation in degrees."""

    __slots__ = ('kind', 'orientation')

    def __init__(self, kind=EMPTY, orientation=0):
        if kind not in BASE_CONNECTIONS:
            raise ValueError("Unknown tile kind: {!r}".format(kind))
        self.kind = kind
        self.orientation = orientation

    @property
    def open_directions(self):
        return open_directions(self.kind, self.orientation)

    @property
    def is_empty(self):
        return self.kind == EMPTY

    def copy(self):
        return Tile(self.kind, self.orientation)

    def __eq__(self, other):
        if not isinstance(other, Tile):
            return NotImplemented
        return self.kind == other.kind and self.orientation == other.orientation

    def __repr__(self):
        return "Tile({!r}, {})".format(self.kind, self.orientation)


def tile_char(tile):
    """Single-character glyph for a tile's current open directions."""
    return TILE_CHARS[tile.open_directions]


def format_grid(grid):
    """Render a grid as a list of text rows, one glyph per cell."""
    return [''.join(tile_char(tile) for tile in row) for row in grid]


# ============================================================================
# GRID HELPERS
# ============================================================================

def in_bounds(position, grid_size):
    row, col = position
    return 0 <= row < grid_size and 0 <= col < grid_size


def check_position(position, grid_size):
    """Raise InvalidCoordinate unless position is an integer (row, col) on the grid."""
    try:
        row, col = position
    except (TypeError, ValueError):
        raise InvalidCoordinate(position, grid_size) from None
    if isinstance(row, bool) or isinstance(col, bool):
        raise InvalidCoordinate(position, grid_size)
    if not isinstance(row, int) or not isinstance(col, int):
        raise InvalidCoordinate(position, grid_size)
    if not in_bounds((row, col), grid_size):
        raise InvalidCoordinate(position, grid_size)
    return (row, col)


def tile_at(grid, position):
    row, col = check_position(position, len(grid))
    return grid[row][col]


def neighbor(position, direction):
    drow, dcol = DIRECTION_OFFSETS[direction]
    return (position[0] + drow, position[1] + dcol)


def get_neighbors(position, grid_size):
    """In-bounds 4-neighbours of position, in DIRECTIONS order."""
    result = []
    for direction in DIRECTIONS:
        pos = neighbor(position, direction)
        if in_bounds(pos, grid_size):
            result.append(pos)
    return result


def direction_between(a, b):
    """Direction leading from cell a toward cell b, or None if they coincide."""
    if b[0] < a[0]:
        return UP
    elif b[0] > a[0]:
        return DOWN
    elif b[1] < a[1]:
        return LEFT
    elif b[1] > a[1]:
        return RIGHT
    return None


def create_empty_grid(grid_size):
    if grid_size < 1:
        raise ValueError("Grid size must be at least 1, got {}".format(grid_size))
    return [[Tile() for _ in range(grid_size)] for _ in range(grid_size)]


def copy_grid(grid):
    return [[tile.copy() for tile in row] for row in grid]


# ============================================================================
# PATH GENERATION
# ============================================================================

def _shuffled_neighbors(position, grid_size, rng, mask):
    candidates = [pos for pos in get_neighbors(position, grid_size)
                  if mask is None or mask[pos[0]][pos[1]]]
    rng.shuffle(candidates)
    return candidates


def generate_path(grid_size, source, destination, rng=None, mask=None):
    """Carve a random simple path from source to destination.

    Randomized depth-first search with an explicit stack of
    (position, remaining_neighbors) frames. A cell is entered at most once
    per search, so the search always terminates.

    Args:
        grid_size: side length of the square grid
        source, destination: (row, col) endpoints
        rng: random.Random-like object (shuffle); defaults to the random module
        mask: optional mask[row][col], True = allowed, False = blocked

    Returns:
        List of (row, col) positions from source to destination.

    Raises:
        FatalGenerationError: if no route exists.
    """
    if rng is None:
        rng = random
    source = check_position(source, grid_size)
    destination = check_position(destination, grid_size)
    if mask is not None and not (mask[source[0]][source[1]] and
                                 mask[destination[0]][destination[1]]):
        raise FatalGenerationError("Source or destination is masked out")

    visited = {source}
    path = [source]
    stack = [(source, _shuffled_neighbors(source, grid_size, rng, mask))]

    while stack:
        position, remaining = stack[-1]
        if position == destination:
            logger.debug("Generated path of length %d on %dx%d grid",
                         len(path), grid_size, grid_size)
            return path

        next_pos = None
        while remaining:
            candidate = remaining.pop()
            if candidate not in visited:
                next_pos = candidate
                break

        if next_pos is None:
            # Dead end: backtrack to the parent frame
            stack.pop()
            path.pop()
            continue

        visited.add(next_pos)
        path.append(next_pos)
        stack.append((next_pos, _shuffled_neighbors(next_pos, grid_size, rng, mask)))

    raise FatalGenerationError(
        "No path from {} to {} on {}x{} grid".format(
            source, destination, grid_size, grid_size))


def path_connections(path, index):
    """Directions from path[index] toward its previous and next path cells."""
    position = path[index]
    connections = set()
    if index > 0:
        connections.add(direction_between(position, path[index - 1]))
    if index < len(path) - 1:
        connections.add(direction_between(position, path[index + 1]))
    connections.discard(None)
    return frozenset(connections)


def tile_for_connections(connections):
    """Return (kind, orientation) whose open set at that orientation equals connections."""
    return PATH_TILES.get(frozenset(connections), (EMPTY, 0))


def scramble_grid(grid, rng=None):
    """Give every non-empty tile an independent random orientation, in place."""
    if rng is None:
        rng = random
    for row in grid:
        for tile in row:
            if not tile.is_empty:
                tile.orientation = rng.choice(ORIENTATIONS)
    return grid


def build_grid(path, grid_size, rng=None, scramble=True):
    """Lay pipe tiles along path on an empty grid.

    With scramble=False the result is the solved layout; otherwise every
    path tile gets a random orientation afterwards.
    """
    grid = create_empty_grid(grid_size)
    for i, position in enumerate(path):
        row, col = check_position(position, grid_size)
        kind, orientation = tile_for_connections(path_connections(path, i))
        grid[row][col] = Tile(kind, orientation)

    if scramble:
        scramble_grid(grid, rng)
    return grid


# ============================================================================
# VALIDATION
# ============================================================================

def _mutual_neighbor(grid, position, direction, grid_size):
    """Neighbour in direction if it is on the grid and opens back toward position."""
    other = neighbor(position, direction)
    if not in_bounds(other, grid_size):
        return None
    if OPPOSITE[direction] not in grid[other[0]][other[1]].open_directions:
        return None
    return other


def connected_component(grid, source):
    """Set of cells reachable from source through mutual connections (BFS)."""
    grid_size = len(grid)
    source = check_position(source, grid_size)

    component = {source}
    queue = deque([source])
    while queue:
        position = queue.popleft()
        tile = grid[position[0]][position[1]]
        for direction in tile.open_directions:
            other = _mutual_neighbor(grid, position, direction, grid_size)
            if other is not None and other not in component:
                component.add(other)
                queue.append(other)
    return component


def internal_connections(grid, position, component):
    """Count open directions of position mutually joined to a cell in component."""
    grid_size = len(grid)
    count = 0
    for direction in tile_at(grid, position).open_directions:
        other = _mutual_neighbor(grid, position, direction, grid_size)
        if other is not None and other in component:
            count += 1
    return count


def evaluate(grid, source, destination):
    """Return True if the grid forms a single simple path from source to destination.

    The component reachable from source must contain destination, both
    endpoints must have exactly one internal connection and every other
    component cell exactly two, and no non-empty tile may lie outside it.
    """
    grid_size = len(grid)
    source = check_position(source, grid_size)
    destination = check_position(destination, grid_size)

    component = connected_component(grid, source)
    if destination not in component:
        return False

    for position in component:
        expected = 1 if position in (source, destination) else 2
        if internal_connections(grid, position, component) != expected:
            return False

    for row in range(grid_size):
        for col in range(grid_size):
            if (row, col) not in component and not grid[row][col].is_empty:
                return False

    return True


# ============================================================================
# SESSION
# ============================================================================

class PuzzleSession:
    """One player's puzzle: current grid, level and win state.

    The session owns its grid exclusively. reset_puzzle/advance_level replace
    the grid with a freshly generated one; rotate_tile turns a single tile.
    Every mutation re-runs the validator and then calls on_change(session)
    if an observer was given.

    Randomness comes from rng (a random.Random) or, if not given, from a
    private random.Random(seed); passing both is an error.
    """

    def __init__(self, level=START_LEVEL, rng=None, seed=None, on_change=None):
        if isinstance(level, bool) or not isinstance(level, int) or level < 1:
            raise ValueError("Level must be an integer of at least 1, got {!r}".format(level))
        if rng is not None and seed is not None:
            raise ValueError("Pass either rng or seed, not both")
        if rng is None:
            rng = random.Random(seed)
        self.level = level
        self.rng = rng
        self.on_change = on_change
        self.grid = []
        self.path = []
        self.is_won = False
        self.reset_puzzle()

    @property
    def grid_size(self):
        return self.level + GRID_MARGIN

    @property
    def source(self):
        return (0, 0)

    @property
    def destination(self):
        return (self.grid_size - 1, self.grid_size - 1)

    def reset_puzzle(self):
        """Generate a new scrambled puzzle for the current level."""
        size = self.grid_size
        self.path = generate_path(size, self.source, self.destination, rng=self.rng)
        self.grid = build_grid(self.path, size, rng=self.rng)
        logger.debug("Level %d puzzle:\n%s", self.level, '\n'.join(format_grid(self.grid)))
        self._update_win_state()

    def advance_level(self):
        self.level += 1
        logger.info("Advancing to level %d (%dx%d)", self.level, self.grid_size, self.grid_size)
        self.reset_puzzle()

    def rotate_tile(self, row, col):
        """Turn the tile at (row, col) 90 degrees clockwise; empty tiles stay put."""
        tile = tile_at(self.grid, (row, col))
        if not tile.is_empty:
            tile.orientation += 90
        self._update_win_state()

    def tile_at(self, row, col):
        return tile_at(self.grid, (row, col))

    def component(self):
        """Cells currently connected to the source."""
        return connected_component(self.grid, self.source)

    def solution(self):
        """The solved layout of the current puzzle (a new grid)."""
        return build_grid(self.path, self.grid_size, scramble=False)

    def snapshot(self):
        """JSON-friendly copy of the session state."""
        return {
            'level': self.level,
            'grid_size': self.grid_size,
            'source': list(self.source),
            'destination': list(self.destination),
            'is_won': self.is_won,
            'tiles': [
                [{'kind': tile.kind,
                  'orientation': tile.orientation,
                  'open_directions': sorted(tile.open_directions)}
                 for tile in row]
                for row in self.grid
            ],
        }

    def _update_win_state(self):
        was_won = self.is_won
        self.is_won = evaluate(self.grid, self.source, self.destination)
        if self.is_won and not was_won:
            logger.info("Level %d solved", self.level)
        if self.on_change is not None:
            self.on_change(self)
