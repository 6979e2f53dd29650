"""
This file contains the core logic for the CLI arcade: the display backends,
keyboard input translation, the three game prototypes and the entry points.

The prototypes are mutually exclusive: each run plays exactly one of
Clisnake, Clipong (the bouncing-ball demo) or Clipong Duel.
"""

import argparse
import logging
import random
import sys
from contextlib import ExitStack

from blessed import Terminal

import arcade_env
from arcade_logging import setup_logging
from game_utils import (
    GRAY,
    QUIT_KEY,
    RED,
    RESTART_KEY,
    WHITE,
    YELLOW,
    BaseGame,
    Circle,
    Points,
    Rectangle,
    RestartProgram,
    ShadowBuffer,
    aabb_overlap,
    clamp,
    reflect_velocity,
)

logger = logging.getLogger("arcade.app")


def _boot_log(tag):
    """
    Log a boot-time message.
    Useful for tracking startup when a log file is configured.

    Args:
        tag (str): A descriptive tag for the log message.
    """
    logger.debug("BOOT: %s", tag)


# ---------- Keys ----------
KEY_UP = "KEY_UP"
KEY_DOWN = "KEY_DOWN"
KEY_LEFT = "KEY_LEFT"
KEY_RIGHT = "KEY_RIGHT"
KEY_ESCAPE = "KEY_ESCAPE"


def translate_keystroke(keystroke):
    """
    Normalise a blessed Keystroke into the arcade's key names.

    Printable keys map to themselves, special keys to their blessed name
    (``KEY_UP``...). Returns None when no key was pressed.
    """
    if not keystroke:
        return None
    if keystroke.is_sequence:
        return keystroke.name
    return str(keystroke)


def check_restart(key):
    """Raise `RestartProgram` when `key` is the restart key."""
    if key == RESTART_KEY:
        raise RestartProgram()


# ---------- Displays ----------
class TerminalDisplay:
    """
    Fullscreen terminal display driven by blessed.

    Cells are written through a `ShadowBuffer` so only the cells that changed
    since the previous frame are sent to the terminal.
    """

    def __init__(self, term=None, stream=None):
        self.term = term
        self.stream = stream if stream is not None else sys.stdout
        self.buffer = None
        self._pending = []
        self._stack = None

    def start(self):
        """
        Enter fullscreen, cbreak and hidden-cursor modes.

        Idempotent. Raises RuntimeError when stdout is not a terminal.
        """
        if self._stack is not None:
            return
        arcade_env.require_terminal()
        if self.term is None:
            self.term = Terminal()
        stack = ExitStack()
        try:
            stack.enter_context(self.term.fullscreen())
            stack.enter_context(self.term.cbreak())
            stack.enter_context(self.term.hidden_cursor())
        except Exception:
            stack.close()
            raise
        self._stack = stack
        _boot_log(f"terminal started ({self.term.width}x{self.term.height})")

    def stop(self):
        """Restore the terminal to the state it was in before start()."""
        if self._stack is not None:
            self._stack.close()
            self._stack = None
        self.buffer = None
        self._pending = []

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def size(self):
        return (self.term.width, self.term.height)

    def set_cell(self, x, y, cell):
        t = self.term
        style = ""
        if cell.color is not None:
            style += t.color_rgb(*cell.color)
        if cell.bold:
            style += t.bold
        self._pending.append(
            t.move_xy(x, y) + style + cell.char + (t.normal if style else "")
        )

    def clear(self):
        self._pending.append(self.term.home + self.term.clear)

    def show(self):
        if not self._pending:
            return
        self.stream.write("".join(self._pending))
        self.stream.flush()
        self._pending = []

    def present(self, frame):
        """Write the cells of `frame` that differ from the previous one."""
        if self.buffer is None or (self.buffer.width, self.buffer.height) != (
            frame.width,
            frame.height,
        ):
            # first frame or terminal resized
            self.buffer = ShadowBuffer(frame.width, frame.height, self)
            self.buffer.clear()
        for y, row in enumerate(frame.cells):
            for x, cell in enumerate(row):
                self.buffer.set_cell(x, y, cell)
        self.buffer.show()

    def poll(self, timeout):
        """Wait up to `timeout` seconds for a key press and return its name."""
        key = translate_keystroke(self.term.inkey(timeout=timeout))
        check_restart(key)
        return key


class PyGameDisplay:
    """
    Desktop window emulating the canvas raster using pygame.

    Every canvas dot becomes one `scale`-sized pixel. The border is left to
    the window frame and the block title becomes the window caption.
    """

    def __init__(self, cols=102, rows=27, scale=4):
        """
        Initialize the PyGame-based display emulator.

        Args:
            cols, rows (int): Emulated terminal size in cells, border included.
            scale (int): Window scaling factor per dot.
        """
        self.cols = int(cols)
        self.rows = int(rows)
        self.scale = int(scale)
        # braille resolution of the inner canvas
        self.w = (self.cols - 2) * 2
        self.h = (self.rows - 2) * 4
        self._pg = None
        self._screen = None
        self._surface = None
        self._keymap = {}

    def start(self):
        """
        Initialize the PyGame display and internal surfaces.

        This method is idempotent and will do nothing if initialization
        has already been performed.
        """
        if self._pg is not None:
            return
        try:
            import pygame  # type: ignore
        except ImportError as e:
            raise RuntimeError(
                "PyGame not installed. Install with: pip install 'cli-arcade[pygame]'"
            ) from e
        self._pg = pygame
        pygame.init()
        pygame.display.set_caption("CLI Arcade")
        self._keymap = {
            pygame.K_UP: KEY_UP,
            pygame.K_DOWN: KEY_DOWN,
            pygame.K_LEFT: KEY_LEFT,
            pygame.K_RIGHT: KEY_RIGHT,
            pygame.K_ESCAPE: KEY_ESCAPE,
        }
        self._screen = pygame.display.set_mode((self.w * self.scale, self.h * self.scale))
        self._surface = pygame.Surface((self.w, self.h))
        self.clear()
        self.show()
        _boot_log(f"pygame window started ({self.w}x{self.h} x{self.scale})")

    def stop(self):
        if self._pg is not None:
            self._pg.quit()
        self._pg = None
        self._screen = None
        self._surface = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def size(self):
        return (self.cols, self.rows)

    def set_pixel(self, x, y, r, g, b):
        """Set a pixel on the internal surface with bounds checking."""
        if not self._surface:
            return
        if 0 <= x < self.w and 0 <= y < self.h:
            self._surface.set_at((int(x), int(y)), (int(r) & 255, int(g) & 255, int(b) & 255))

    def clear(self):
        """Clear the internal surface by filling it with black."""
        if self._surface:
            self._surface.fill((0, 0, 0))

    def show(self):
        """Present the internal surface to the PyGame window (scaled)."""
        if not self._pg or not self._screen or not self._surface:
            return
        scaled = self._pg.transform.scale(self._surface, (self.w * self.scale, self.h * self.scale))
        self._screen.blit(scaled, (0, 0))
        self._pg.display.flip()

    def present(self, frame):
        """Draw the dot raster of `frame` scaled into the window."""
        if frame.resolution != (self.w, self.h):
            raise ValueError(
                f"Frame resolution {frame.resolution} does not match window {(self.w, self.h)}"
            )
        self.clear()
        for x, y, color in frame.pixels:
            self.set_pixel(x, y, *color)
        self._pg.display.set_caption(frame.title)
        self.show()

    def translate_event(self, event):
        """Map a pygame event to a key name, or None for anything else."""
        pg = self._pg
        if event.type == pg.QUIT:
            return QUIT_KEY
        if event.type != pg.KEYDOWN:
            return None
        if event.key in self._keymap:
            return self._keymap[event.key]
        return event.unicode or None

    def poll(self, timeout):
        """Wait up to `timeout` seconds for one event and return its key name."""
        ms = int(timeout * 1000)
        # wait(0) blocks forever, so an expired tick only peeks at the queue
        event = self._pg.event.wait(ms) if ms > 0 else self._pg.event.poll()
        key = self.translate_event(event)
        check_restart(key)
        return key


def create_display(backend):
    """Return an unstarted display for the named backend."""
    if backend == arcade_env.BACKEND_TERMINAL:
        return TerminalDisplay()
    if backend == arcade_env.BACKEND_PYGAME:
        return PyGameDisplay()
    raise ValueError(f"Unknown display backend: {backend!r}")


# ---------- Snake ----------
class SnakeGame(BaseGame):
    """
    Snake sketch: the head moves one unit per key press.

    Eating the food grows the body by one segment and moves the food.
    """

    title = "Clisnake"
    playground_rect = (0, 0, 200, 100)
    moves = {
        "w": (0.0, 1.0),
        "s": (0.0, -1.0),
        "d": (1.0, 0.0),
        "a": (-1.0, 0.0),
    }

    def reset(self):
        """Reset head, body, food and score."""
        super().reset()
        self.head = Points([(100.0, 50.0)], WHITE)
        self.body = Points([], GRAY)
        self.food = Points([(10.0, 10.0)], RED)
        # segments including the head
        self.snake_length = 1
        self.score = 0

    def handle_key(self, key):
        move = self.moves.get(key)
        if move:
            self.move_head(*move)

    def move_head(self, dx, dy):
        """Move the head, clamped to the playground, dragging the body along."""
        pg = self.playground
        hx, hy = self.head.coords[0]
        nx = clamp(hx + dx, float(pg.left), float(pg.right))
        ny = clamp(hy + dy, float(pg.top), float(pg.bottom))
        if (nx, ny) == (hx, hy):
            return

        self.body.coords.insert(0, (hx, hy))
        self.head.coords[0] = (nx, ny)
        if (nx, ny) == self.food.coords[0]:
            self.snake_length += 1
            self.score += 1
            self.place_food()
        del self.body.coords[self.snake_length - 1:]

    def place_food(self):
        """Place the food on a random free integer point of the playground."""
        pg = self.playground
        occupied = set(self.head.coords) | set(self.body.coords)
        while True:
            point = (
                float(random.randint(pg.left, pg.right)),
                float(random.randint(pg.top, pg.bottom)),
            )
            if point not in occupied:
                self.food.coords[0] = point
                return

    def shapes(self):
        return [self.food, self.body, self.head]


# ---------- Pong ----------
class PongGame(BaseGame):
    """
    Bouncing-ball demo between two static paddles.

    Every tick the velocity is reflected against the playground walls and the
    ball position is integrated by the velocity.
    """

    title = "Clipong"
    playground_rect = (10, 10, 200, 100)
    ball_radius = 10.0
    paddle_width = 2.0
    paddle_height = 20.0
    paddle_margin = 5.0

    def reset(self):
        """Place the ball and the paddles at their starting positions."""
        super().reset()
        pg = self.playground
        self.ball = Circle(20.0, 40.0, self.ball_radius, YELLOW)
        self.vx = 1.0
        self.vy = 1.0
        paddle_y = (pg.top + pg.bottom) / 2 - self.paddle_height / 2
        self.left_player = self._paddle(pg.left + self.paddle_margin, paddle_y)
        self.right_player = self._paddle(
            pg.right - self.paddle_margin - self.paddle_width, paddle_y
        )

    def _paddle(self, x, y):
        return Rectangle(x, y, self.paddle_width, self.paddle_height, WHITE)

    def on_tick(self):
        super().on_tick()
        self.update_ball()

    def update_ball(self):
        ball = self.ball
        self.vx, self.vy = reflect_velocity(
            ball.x, ball.y, ball.radius, self.vx, self.vy, self.playground
        )
        ball.x += self.vx
        ball.y += self.vy

    def shapes(self):
        return [self.left_player, self.right_player, self.ball]


class PongDuelGame(PongGame):
    """
    Two-player Pong: paddles move, side walls are goals.

    Left player: w / s. Right player: arrow up / down (or i / k).
    """

    title = "Clipong Duel"
    ball_radius = 3.0
    paddle_speed = 3.0
    serve_speed = 1.0
    left_keys = {"w": 1.0, "s": -1.0}
    right_keys = {KEY_UP: 1.0, KEY_DOWN: -1.0, "i": 1.0, "k": -1.0}

    def reset(self):
        super().reset()
        self.left_score = 0
        self.right_score = 0
        self.serve(1)

    def serve(self, direction):
        """Put the ball back in the centre heading towards `direction` (+1 right)."""
        pg = self.playground
        self.ball.x = (pg.left + pg.right) / 2
        self.ball.y = (pg.top + pg.bottom) / 2
        self.vx = self.serve_speed * direction
        self.vy = self.serve_speed

    def handle_key(self, key):
        if key in self.left_keys:
            self.move_paddle(self.left_player, self.left_keys[key])
        elif key in self.right_keys:
            self.move_paddle(self.right_player, self.right_keys[key])

    def move_paddle(self, paddle, direction):
        pg = self.playground
        paddle.y = clamp(
            paddle.y + direction * self.paddle_speed, pg.top, pg.bottom - paddle.height
        )

    def update_ball(self):
        """Bounce off top/bottom walls and paddles, then score on the side walls."""
        ball = self.ball
        pg = self.playground
        r = ball.radius

        # only the vertical walls reflect; the side walls are goals
        _, self.vy = reflect_velocity(ball.x, ball.y, r, self.vx, self.vy, pg)

        box = ball.bbox()
        if self.vx < 0 and aabb_overlap(box, self.left_player.bbox()):
            self.vx = -self.vx
        elif self.vx > 0 and aabb_overlap(box, self.right_player.bbox()):
            self.vx = -self.vx

        ball.x += self.vx
        ball.y += self.vy

        if ball.x - r <= pg.left:
            self.right_score += 1
            logger.debug("right player scores (%d:%d)", self.left_score, self.right_score)
            self.serve(-1)
        elif ball.x + r >= pg.right:
            self.left_score += 1
            logger.debug("left player scores (%d:%d)", self.left_score, self.right_score)
            self.serve(1)

    def frame_title(self):
        return f"{self.title} {self.left_score}:{self.right_score}"


GAMES = {
    "snake": SnakeGame,
    "pong": PongGame,
    "duel": PongDuelGame,
}


# ---------- Main ----------
def main(game="snake", backend=None, tick_ms=None):
    """
    Application entry point for one prototype.

    Resolves the backend and tick length, starts the display, and runs the
    game loop until the quit key. The display is always restored before
    returning; any error is reported on stderr.

    Returns:
        int: 0 on a normal quit, 1 on any rendering, input or setup error.
    """
    try:
        if game not in GAMES:
            raise ValueError(f"Unknown game {game!r}; expected one of {', '.join(GAMES)}")
        name = arcade_env.get_backend_name(backend)
        app = GAMES[game]()
        app.frame_ms = arcade_env.get_tick_ms(tick_ms)
        _boot_log(f"{app.title} on {name} ({arcade_env.get_platform_name()})")
        with create_display(name) as display:
            app.main_loop(display)
    except KeyboardInterrupt:
        logger.info("interrupted")
    except Exception as e:
        logger.debug("fatal error", exc_info=True)
        print("Error:", e, file=sys.stderr)
        return 1
    return 0


class ArcadeArgumentParser(argparse.ArgumentParser):
    """Argument parser whose usage errors exit with status 1 like every other failure."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser():
    """Return the argument parser for the `arcade` command."""
    parser = ArcadeArgumentParser(
        prog="arcade", description="Terminal arcade prototypes"
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--snake", action="store_true", help="Play Clisnake (default)")
    group.add_argument("--pong", action="store_true", help="Watch the Clipong demo")
    group.add_argument("--duel", action="store_true", help="Play Clipong Duel")
    parser.add_argument(
        "--backend", choices=arcade_env.BACKENDS, help="Display backend (default: terminal)"
    )
    parser.add_argument("--tick-ms", type=int, help="Tick length in milliseconds")
    parser.add_argument("--log-file", help="Write a log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def cli(argv=None):
    """Parse command-line arguments and run the selected prototype."""
    args = build_parser().parse_args(argv)

    if args.pong:
        game = "pong"
    elif args.duel:
        game = "duel"
    else:
        game = "snake"

    try:
        setup_logging(
            arcade_env.get_log_level(args.verbose), arcade_env.get_log_file(args.log_file)
        )
    except (OSError, ValueError) as e:
        print("Error:", e, file=sys.stderr)
        return 1

    return main(game, args.backend, args.tick_ms)


def run_snake():
    return cli(["--snake"])


def run_pong():
    return cli(["--pong"])


def run_duel():
    return cli(["--duel"])


if __name__ == "__main__":
    sys.exit(cli())
