"""Pytest configuration and shared fixtures."""

import pytest

from game_utils import RESTART_KEY, RestartProgram


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeDisplay:
    """
    Scripted display: poll() returns the next queued key and advances the
    clock by the requested timeout, then answers the quit key forever.
    """

    def __init__(self, keys=(), clock=None, size=(40, 12), present_ms=0):
        self.keys = list(keys)
        self.clock = clock
        self._size = size
        self.present_ms = present_ms
        self.frames = []
        self.timeouts = []
        self.started = False
        self.stopped = False

    def __enter__(self):
        self.started = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stopped = True
        return False

    def size(self):
        return self._size

    def present(self, frame):
        self.frames.append(frame)
        if self.clock is not None:
            self.clock.advance(self.present_ms)

    def poll(self, timeout):
        self.timeouts.append(timeout)
        if self.clock is not None:
            self.clock.advance(round(timeout * 1000))
        key = self.keys.pop(0) if self.keys else "q"
        if key == RESTART_KEY:
            raise RestartProgram()
        return key


@pytest.fixture
def clock():
    """Provide a fake millisecond clock starting at 0."""
    return FakeClock()


@pytest.fixture
def make_display(clock):
    """Provide a factory for scripted displays bound to the fake clock."""

    def factory(keys=(), **kwargs):
        kwargs.setdefault("clock", clock)
        return FakeDisplay(keys, **kwargs)

    return factory
