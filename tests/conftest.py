"""Shared fixtures: a scripted byte channel and controllers built on top of it."""

from collections import deque

import pytest
from serial import SerialException

from astrostep_alpaca.config.models import FocuserConfig
from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.protocol.logger import ProtocolLogger
from astrostep_alpaca.protocol.session import DeviceSession
from astrostep_alpaca.protocol.transport import TransportChannel


class ScriptedTransport(TransportChannel):
    """
    In-memory channel that answers reads from a queue of canned replies.

    A queued Exception instance is raised by the read that would consume it;
    an exhausted queue behaves like a timeout and returns b"".
    """

    def __init__(self):
        self.opened = False
        self.replies = deque()
        self.writes = []
        self.events = []
        self.fail_writes = False

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    @property
    def frames(self):
        return [w.decode("ascii") for w in self.writes]

    def clear(self) -> None:
        self.writes.clear()
        self.events.clear()

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.opened = False

    def is_open(self) -> bool:
        return self.opened

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise SerialException("write failed")
        self.writes.append(bytes(data))
        self.events.append(("write", bytes(data)))
        return len(data)

    def _next_reply(self) -> bytes:
        if not self.replies:
            return b""
        reply = self.replies.popleft()
        if isinstance(reply, Exception):
            raise reply
        return reply

    def read_until(self, terminator: bytes, max_bytes: int, timeout: float) -> bytes:
        self.events.append(("read_until", timeout))
        return self._next_reply()[:max_bytes]

    def read(self, size: int, timeout: float) -> bytes:
        self.events.append(("read", size))
        return self._next_reply()[:size]

    def reset_input_buffer(self) -> None:
        self.events.append(("flush", None))


class FakeTimer:
    """Stand-in for threading.Timer that fires only when told to."""

    def __init__(self, interval, function, args=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


# Replies to GV and the parameter reads done right after connecting
CONNECT_REPLIES = (
    b"1.02",   # GV
    b"100#",   # GP
    b"20.5#",  # GT
    b"100#",   # GD
    b"1#",     # GE
    b"0.0#",   # GO
    b"0.0#",   # GC
    b"0#",     # GR
)


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def session(transport):
    return DeviceSession(transport, protocol_logger=ProtocolLogger())


@pytest.fixture
def timers():
    """Every FakeTimer created by the controller, in creation order."""
    return []


@pytest.fixture
def controller(session, transport, timers):
    """A connected controller at position 100, 20.5 C, speed 100."""

    def timer_factory(interval, function, args=None):
        timer = FakeTimer(interval, function, args)
        timers.append(timer)
        return timer

    ctrl = FocuserController(
        session,
        FocuserConfig(min_position=0, max_position=1000000),
        timer_factory=timer_factory,
    )
    transport.queue(*CONNECT_REPLIES)
    ctrl.connect()
    transport.clear()
    return ctrl
