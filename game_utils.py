"""
Shared game utilities for the CLI arcade.

This module provides reusable components and helper functions used across
the three prototypes to reduce code duplication and keep each game small.

Components:
- Rect and the drawable shapes (Points, Line, Rectangle, Circle)
- Canvas grids that map floating-point game coordinates to terminal cells
- Frame: the rendered result handed to a display
- ShadowBuffer: Display wrapper that tracks cell changes for efficient updates
- BaseGame: Base class providing the fixed-tick game loop
- Bounce / collision helpers
"""

import logging
import math
import time
from collections import namedtuple

logger = logging.getLogger("arcade.game")

# ---------- Timing ----------
TICK_MS = 16

QUIT_KEY = "q"
RESTART_KEY = "r"

# ---------- Colors ----------
WHITE = (255, 255, 255)
GRAY = (128, 128, 128)
BLACK = (0, 0, 0)
RED = (255, 0, 0)
YELLOW = (255, 255, 0)

# ---------- Markers ----------
BRAILLE = "braille"
DOT = "dot"
BLOCK = "block"

MARKER_CHARS = {DOT: "•", BLOCK: "█"}

# Bit for each dot of a 2x4 braille cell, indexed [row][col].
BRAILLE_OFFSET = 0x2800
BRAILLE_BITS = (
    (0x01, 0x08),
    (0x02, 0x10),
    (0x04, 0x20),
    (0x40, 0x80),
)

# Rounded border pieces
BORDER_TOP_LEFT = "╭"
BORDER_TOP_RIGHT = "╮"
BORDER_BOTTOM_LEFT = "╰"
BORDER_BOTTOM_RIGHT = "╯"
BORDER_HORIZONTAL = "─"
BORDER_VERTICAL = "│"

Cell = namedtuple("Cell", ["char", "color", "bold"])
BLANK = Cell(" ", None, False)


class RestartProgram(Exception):
    """
    Special exception used to trigger a soft restart of the running game.
    Raised by display input handlers when the restart key is pressed.
    """

    pass


def ticks_ms():
    """Return a monotonic timestamp in milliseconds."""
    return int(time.monotonic() * 1000)


def ticks_diff(a, b):
    """Return the difference between two tick values (a - b)."""
    return a - b


def clamp(value, low, high):
    """Clamp `value` into the closed interval [low, high]."""
    return max(low, min(high, value))


class Rect:
    """
    Integer rectangle describing a playground.

    `top` is the smaller y edge and `bottom` the larger one, so a playground
    ``Rect(10, 10, 200, 100)`` spans x in [10, 210] and y in [10, 110].
    """

    def __init__(self, x, y, width, height):
        self.x = x
        self.y = y
        self.width = width
        self.height = height

    @property
    def left(self):
        return self.x

    @property
    def right(self):
        return self.x + self.width

    @property
    def top(self):
        return self.y

    @property
    def bottom(self):
        return self.y + self.height

    def x_bounds(self):
        return (float(self.left), float(self.right))

    def y_bounds(self):
        return (float(self.top), float(self.bottom))

    def __eq__(self, other):
        if not isinstance(other, Rect):
            return NotImplemented
        return (self.x, self.y, self.width, self.height) == (
            other.x,
            other.y,
            other.width,
            other.height,
        )

    def __repr__(self):
        return f"Rect({self.x}, {self.y}, {self.width}, {self.height})"


# ---------- Shapes ----------
class Points:
    """A set of individual points sharing one color."""

    def __init__(self, coords, color):
        self.coords = list(coords)
        self.color = color

    def draw(self, painter):
        for x, y in self.coords:
            point = painter.get_point(x, y)
            if point is not None:
                painter.paint(point[0], point[1], self.color)


class Line:
    """A straight segment between two points."""

    def __init__(self, x1, y1, x2, y2, color):
        self.x1 = x1
        self.y1 = y1
        self.x2 = x2
        self.y2 = y2
        self.color = color

    def draw(self, painter):
        """
        Draw a Bresenham line between the two grid points.

        Segments with an end outside the canvas bounds are skipped.
        """
        start = painter.get_point(self.x1, self.y1)
        end = painter.get_point(self.x2, self.y2)
        if start is None or end is None:
            return

        x0, y0 = start
        x1, y1 = end
        dx = abs(x1 - x0)
        dy = -abs(y1 - y0)
        sx = 1 if x0 < x1 else -1
        sy = 1 if y0 < y1 else -1
        err = dx + dy

        while True:
            painter.paint(x0, y0, self.color)
            if x0 == x1 and y0 == y1:
                break
            e2 = 2 * err
            if e2 >= dy:
                err += dy
                x0 += sx
            if e2 <= dx:
                err += dx
                y0 += sy


class Rectangle:
    """
    Rectangle outline with its lower-left corner at (x, y).

    Attributes:
        x, y (float): Lower-left corner in game coordinates.
        width, height (float): Extent along each axis.
        color (tuple): (r, g, b) outline color.
    """

    def __init__(self, x, y, width, height, color):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.color = color

    def edges(self):
        """Return the four outline segments: bottom, top, left, right."""
        left = self.x
        right = self.x + self.width
        bottom = self.y
        top = self.y + self.height
        return [
            Line(left, bottom, right, bottom, self.color),
            Line(left, top, right, top, self.color),
            Line(left, bottom, left, top, self.color),
            Line(right, bottom, right, top, self.color),
        ]

    def bbox(self):
        """Return (left, bottom, right, top)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def draw(self, painter):
        for edge in self.edges():
            edge.draw(painter)


class Circle:
    """Circle outline sampled once per degree."""

    def __init__(self, x, y, radius, color):
        self.x = x
        self.y = y
        self.radius = radius
        self.color = color

    def bbox(self):
        """Return (left, bottom, right, top)."""
        r = self.radius
        return (self.x - r, self.y - r, self.x + r, self.y + r)

    def draw(self, painter):
        for angle in range(360):
            a = math.radians(angle)
            point = painter.get_point(
                self.x + self.radius * math.cos(a), self.y + self.radius * math.sin(a)
            )
            if point is not None:
                painter.paint(point[0], point[1], self.color)


# ---------- Grids ----------
class _Grid:
    """Cell grid shared by all markers; subclasses decide how dots map to cells."""

    def __init__(self, width, height):
        self.width = width
        self.height = height
        self.colors = [None] * (width * height)
        # painted dots in resolution space: (x, y) -> color
        self.dots = {}

    def resolution(self):
        return (self.width, self.height)

    def paint(self, x, y, color):
        res_w, res_h = self.resolution()
        if x < 0 or x >= res_w or y < 0 or y >= res_h:
            return
        self.dots[(x, y)] = color
        self._mark(x, y, color)

    def _mark(self, x, y, color):
        raise NotImplementedError

    def cell(self, col, row):
        raise NotImplementedError


class BrailleGrid(_Grid):
    """Grid with 2x4 braille dots per terminal cell."""

    def __init__(self, width, height):
        super().__init__(width, height)
        self.patterns = bytearray(width * height)

    def resolution(self):
        return (self.width * 2, self.height * 4)

    def _mark(self, x, y, color):
        index = (y // 4) * self.width + (x // 2)
        self.patterns[index] |= BRAILLE_BITS[y % 4][x % 2]
        self.colors[index] = color

    def cell(self, col, row):
        index = row * self.width + col
        if not self.patterns[index]:
            return BLANK
        return Cell(chr(BRAILLE_OFFSET + self.patterns[index]), self.colors[index], False)


class CharGrid(_Grid):
    """Grid with one marker character per terminal cell."""

    def __init__(self, width, height, char):
        super().__init__(width, height)
        self.char = char
        self.filled = bytearray(width * height)

    def _mark(self, x, y, color):
        index = y * self.width + x
        self.filled[index] = 1
        self.colors[index] = color

    def cell(self, col, row):
        index = row * self.width + col
        if not self.filled[index]:
            return BLANK
        return Cell(self.char, self.colors[index], False)


def make_grid(marker, width, height):
    """Return an empty grid for `marker` covering width x height cells."""
    if marker == BRAILLE:
        return BrailleGrid(width, height)
    if marker in MARKER_CHARS:
        return CharGrid(width, height, MARKER_CHARS[marker])
    raise ValueError(f"Unknown canvas marker: {marker!r}")


class Canvas:
    """
    Drawing surface mapping floating-point game coordinates onto a grid.

    The y axis grows upwards: `y_bounds[1]` is drawn on the first row.

    Args:
        width, height (int): Size of the drawable area in terminal cells.
        x_bounds (tuple): (left, right) game coordinates shown on screen.
        y_bounds (tuple): (bottom, top) game coordinates shown on screen.
        marker (str): One of BRAILLE, DOT or BLOCK.
    """

    def __init__(self, width, height, x_bounds, y_bounds, marker=BRAILLE):
        self.x_bounds = x_bounds
        self.y_bounds = y_bounds
        self.grid = make_grid(marker, width, height)

    def get_point(self, x, y):
        """
        Map a game coordinate to a grid coordinate.

        Returns:
            tuple or None: (col, row) in grid resolution, or None when the point
            lies outside the bounds or the bounds have no extent.
        """
        left, right = self.x_bounds
        bottom, top = self.y_bounds
        if x < left or x > right or y < bottom or y > top:
            return None
        width = right - left
        height = top - bottom
        if width == 0 or height == 0:
            return None
        res_w, res_h = self.grid.resolution()
        col = int((x - left) * (res_w - 1) / width)
        row = int((top - y) * (res_h - 1) / height)
        return (col, row)

    def paint(self, x, y, color):
        self.grid.paint(x, y, color)

    def draw(self, shape):
        shape.draw(self)

    def cells(self):
        """Yield (col, row, Cell) for every cell of the canvas."""
        for row in range(self.grid.height):
            for col in range(self.grid.width):
                yield col, row, self.grid.cell(col, row)


class Frame:
    """
    A fully rendered screen: a grid of cells plus the raw dot raster.

    Cell displays (terminal) use `cells`; pixel displays (pygame) use
    `pixels`, a list of (x, y, color) in `resolution` space.
    """

    def __init__(self, width, height, title=""):
        self.width = width
        self.height = height
        self.title = title
        self.cells = [[BLANK for _ in range(width)] for _ in range(height)]
        self.pixels = []
        self.resolution = (0, 0)

    def set_cell(self, x, y, cell):
        if 0 <= x < self.width and 0 <= y < self.height:
            self.cells[y][x] = cell

    def row_text(self, y):
        """Return the characters of row `y` as a plain string."""
        return "".join(cell.char for cell in self.cells[y])


def draw_block(frame, title, title_color=YELLOW, border_color=None):
    """
    Draw a rounded border around the whole frame with a centred title.

    Titles that do not fit on the top edge are truncated.
    """
    w, h = frame.width, frame.height
    if w < 2 or h < 2:
        return
    horizontal = Cell(BORDER_HORIZONTAL, border_color, False)
    vertical = Cell(BORDER_VERTICAL, border_color, False)
    for x in range(1, w - 1):
        frame.set_cell(x, 0, horizontal)
        frame.set_cell(x, h - 1, horizontal)
    for y in range(1, h - 1):
        frame.set_cell(0, y, vertical)
        frame.set_cell(w - 1, y, vertical)
    frame.set_cell(0, 0, Cell(BORDER_TOP_LEFT, border_color, False))
    frame.set_cell(w - 1, 0, Cell(BORDER_TOP_RIGHT, border_color, False))
    frame.set_cell(0, h - 1, Cell(BORDER_BOTTOM_LEFT, border_color, False))
    frame.set_cell(w - 1, h - 1, Cell(BORDER_BOTTOM_RIGHT, border_color, False))

    inner = w - 2
    text = title[:inner]
    start = 1 + (inner - len(text)) // 2
    for i, ch in enumerate(text):
        frame.set_cell(start + i, 0, Cell(ch, title_color, True))


def render_frame(title, shapes, x_bounds, y_bounds, width, height, marker=BRAILLE):
    """
    Render `shapes` on a bordered canvas filling a width x height cell area.

    Args:
        title (str): Block title drawn on the top border.
        shapes (list): Objects with a ``draw(painter)`` method, painted in order.
        x_bounds, y_bounds (tuple): Visible game coordinate ranges.
        width, height (int): Frame size in cells, border included.
        marker (str): Canvas marker.

    Returns:
        Frame: The rendered frame.
    """
    frame = Frame(width, height, title)
    draw_block(frame, title)
    inner_w = width - 2
    inner_h = height - 2
    if inner_w <= 0 or inner_h <= 0:
        return frame

    canvas = Canvas(inner_w, inner_h, x_bounds, y_bounds, marker)
    for shape in shapes:
        canvas.draw(shape)
    for col, row, cell in canvas.cells():
        frame.set_cell(col + 1, row + 1, cell)
    frame.resolution = canvas.grid.resolution()
    frame.pixels = [(x, y, color) for (x, y), color in canvas.grid.dots.items()]
    return frame


# ---------- Physics ----------
def reflect_velocity(x, y, radius, vx, vy, playground):
    """
    Flip velocity components whose bounding edge crossed a playground wall.

    Args:
        x, y (float): Shape centre.
        radius (float): Half extent of the shape on both axes.
        vx, vy (float): Current velocity.
        playground (Rect): Bounds to bounce inside.

    Returns:
        tuple: The (vx, vy) to integrate with on this tick.
    """
    if x - radius < playground.left or x + radius > playground.right:
        vx = -vx
    if y - radius < playground.top or y + radius > playground.bottom:
        vy = -vy
    return vx, vy


def aabb_overlap(a, b):
    """Return True when two (left, bottom, right, top) boxes intersect."""
    return a[0] <= b[2] and b[0] <= a[2] and a[1] <= b[3] and b[1] <= a[3]


class ShadowBuffer:
    """
    Display wrapper that tracks cell changes to minimize redundant writes.

    This class wraps a display object and maintains a shadow copy of the
    current screen. It only forwards set_cell calls when a cell actually
    changes, so a steady frame costs almost no terminal output.
    """

    def __init__(self, width, height, display):
        """
        Initialize the shadow buffer.

        Args:
            width (int): Screen width in cells
            height (int): Screen height in cells
            display: Underlying display object with set_cell, clear, show methods
        """
        self.width = width
        self.height = height
        self.display = display
        # None marks an "unknown" cell that must be written
        self.shadow = [[None for _ in range(width)] for _ in range(height)]

    def set_cell(self, x, y, cell):
        """Set a cell, but only forward it if it changed."""
        if x < 0 or x >= self.width or y < 0 or y >= self.height:
            return
        if self.shadow[y][x] != cell:
            self.shadow[y][x] = cell
            self.display.set_cell(x, y, cell)

    def clear(self):
        """Clear the display and reset shadow buffer."""
        for y in range(self.height):
            for x in range(self.width):
                self.shadow[y][x] = None
        self.display.clear()

    def show(self):
        """Present the frame to the display."""
        if hasattr(self.display, "show"):
            self.display.show()


class BaseGame:
    """
    Base class for the arcade prototypes providing the fixed-tick loop.

    This class implements the common pattern used by every game:
    - A playground rectangle mapped onto a bordered canvas
    - A tick counter advanced once every `frame_ms`
    - Quit on the quit key, soft reset on RestartProgram

    Subclasses should override:
    - reset(): Initialize/reset game state
    - on_tick(): Advance game state by one tick
    - handle_key(key): React to a key press
    - shapes(): Return the shapes to draw this frame
    """

    title = "Arcade"
    marker = BRAILLE
    quit_keys = (QUIT_KEY,)
    # (x, y, width, height) of the playground
    playground_rect = (0, 0, 200, 100)

    def __init__(self):
        """Initialize base game state."""
        self.playground = Rect(*self.playground_rect)
        self.frame_ms = TICK_MS
        self.last_frame_time = 0
        self.reset()

    def reset(self):
        """
        Reset game state to initial values.

        Override this in subclasses to initialize game-specific state.
        Always call super().reset() to reset base state.
        """
        self.tick_count = 0

    def on_tick(self):
        """Advance game state by one fixed tick."""
        self.tick_count += 1

    def handle_key(self, key):
        pass

    def shapes(self):
        return []

    def frame_title(self):
        return self.title

    def render(self, width, height):
        """Render the current state into a width x height Frame."""
        return render_frame(
            self.frame_title(),
            self.shapes(),
            self.playground.x_bounds(),
            self.playground.y_bounds(),
            width,
            height,
            self.marker,
        )

    def main_loop(self, display, clock=ticks_ms):
        """
        Standard fixed-tick game loop.

        This implements the common pattern:
        1. Reset game state
        2. Loop:
           a. Draw frame
           b. Poll input for whatever is left of the current tick
           c. Quit on the quit key, otherwise hand the key to the game
           d. Advance state once the tick interval has elapsed

        Args:
            display: Object with size(), present(frame) and poll(timeout).
            clock: Callable returning the current time in milliseconds.
        """
        self.reset()
        self.last_frame_time = clock()
        logger.debug("%s: loop start (frame_ms=%d)", self.title, self.frame_ms)

        while True:
            try:
                width, height = display.size()
                display.present(self.render(width, height))

                elapsed = ticks_diff(clock(), self.last_frame_time)
                timeout = max(0, self.frame_ms - elapsed)
                key = display.poll(timeout / 1000)
                if key in self.quit_keys:
                    logger.debug("%s: quit after %d ticks", self.title, self.tick_count)
                    return
                if key is not None:
                    self.handle_key(key)

                now = clock()
                if ticks_diff(now, self.last_frame_time) >= self.frame_ms:
                    self.on_tick()
                    self.last_frame_time = now
            except RestartProgram:
                logger.info("%s: restart requested", self.title)
                self.reset()
                self.last_frame_time = clock()
