"""Runtime detection and environment configuration for the CLI arcade.

This module provides a centralized location for runtime detection and for
the environment variables that tune the arcade, isolating terminal-specific
concerns from the game logic.

Runtime Support
---------------
The arcade can present its canvas on two backends:

1. **Terminal (blessed)**:
   - Default backend
   - Requires standard output to be an interactive terminal
   - Renders the canvas with braille/block characters

2. **Window (PyGame)**:
   - Optional desktop window emulating the canvas raster
   - Requires the ``pygame`` extra to be installed

Module Variables
----------------
is_windows : bool
    True when running on Windows.

is_posix : bool
    True on every other platform.

Environment Variables
---------------------
ARCADE_BACKEND
    ``terminal`` (default) or ``pygame``.
ARCADE_TICK_MS
    Tick length in milliseconds (default 16).
ARCADE_LOG_FILE
    Optional path of a log file.
ARCADE_LOG_LEVEL
    Logging level name for the log file (default ``INFO``).

Command-line flags take precedence over these variables.

Example Usage
-------------
Backend selection::

    from arcade_env import get_backend_name, require_terminal

    if get_backend_name() == "terminal":
        require_terminal()  # Raises RuntimeError without a TTY
"""

import logging
import os
import sys

BACKEND_TERMINAL = "terminal"
BACKEND_PYGAME = "pygame"
BACKENDS = (BACKEND_TERMINAL, BACKEND_PYGAME)

DEFAULT_TICK_MS = 16

is_windows = sys.platform.startswith("win")
is_posix = not is_windows


def stdout_is_tty():
    """Return True when standard output is attached to an interactive terminal."""
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        # detached or closed stream
        return False


def get_platform_name():
    """Return a human-readable runtime name.

    Returns
    -------
    str
        ``"windows"`` or ``"posix"``, always lowercase.
    """
    if is_windows:
        return "windows"
    return "posix"


def get_backend_name(override=None):
    """Return the display backend to use.

    Parameters
    ----------
    override : str, optional
        Explicit choice (from the command line); wins over ``ARCADE_BACKEND``.

    Raises
    ------
    ValueError
        If the chosen backend is not one of ``BACKENDS``.
    """
    name = override or os.environ.get("ARCADE_BACKEND") or BACKEND_TERMINAL
    name = name.strip().lower()
    if name not in BACKENDS:
        raise ValueError(
            f"Unknown display backend {name!r}; expected one of {', '.join(BACKENDS)}"
        )
    return name


def get_tick_ms(override=None):
    """Return the tick length in milliseconds.

    Raises
    ------
    ValueError
        If the value is not a positive integer.
    """
    raw = override if override is not None else os.environ.get("ARCADE_TICK_MS")
    if raw is None or raw == "":
        return DEFAULT_TICK_MS
    try:
        tick_ms = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid tick length {raw!r}: expected milliseconds") from None
    if tick_ms <= 0:
        raise ValueError(f"Invalid tick length {tick_ms}: must be positive")
    return tick_ms


def get_log_file(override=None):
    """Return the log file path, or None when file logging is off."""
    return override or os.environ.get("ARCADE_LOG_FILE") or None


def get_log_level(verbose=False):
    """Return the numeric level for the log file."""
    if verbose:
        return logging.DEBUG
    name = os.environ.get("ARCADE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Invalid ARCADE_LOG_LEVEL {name!r}")
    return level


def require_terminal():
    """Raise an error if standard output is not an interactive terminal.

    Use at the start of the terminal backend to fail fast with a clear error
    message instead of writing escape sequences into a pipe or file.

    Raises
    ------
    RuntimeError
        If ``stdout`` is not a TTY.
    """
    if not stdout_is_tty():
        raise RuntimeError(
            "The terminal backend requires an interactive terminal "
            f"(platform: {get_platform_name()}); try --backend pygame"
        )
