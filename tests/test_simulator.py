"""Tests for the simulated AstroStep firmware, driven through a real DeviceSession."""

import pytest

from astrostep_alpaca.config.models import SimulatorConfig
from astrostep_alpaca.protocol.encoder import Command, QueryKind, decode_reply
from astrostep_alpaca.protocol.logger import ProtocolLogger
from astrostep_alpaca.protocol.session import DeviceSession
from astrostep_alpaca.simulator.mock_device import SimulatedFocuser
from astrostep_alpaca.utils.exceptions import MalformedReplyError, SerialTimeoutError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def make_session(clock, speed=1000, **overrides):
    config = SimulatorConfig(movement_speed_steps_per_sec=speed, **overrides)
    device = SimulatedFocuser(config, clock=clock)
    session = DeviceSession(device, protocol_logger=ProtocolLogger())
    session.open()
    return device, session


def ask(session, kind):
    return decode_reply(kind, session.send(Command.query(kind)))


class TestQueries:
    def test_version(self, clock):
        _, session = make_session(clock)
        assert ask(session, QueryKind.VERSION) == "1.02"

    def test_temperature(self, clock):
        _, session = make_session(clock, temperature_celsius=12.3)
        assert ask(session, QueryKind.TEMPERATURE) == pytest.approx(12.3)

    def test_initial_position(self, clock):
        _, session = make_session(clock, initial_position=4200)
        assert ask(session, QueryKind.POSITION) == 4200
        assert ask(session, QueryKind.IS_MOVING) is False


class TestMotion:
    def test_move_progresses_with_clock(self, clock):
        device, session = make_session(clock)
        session.send(Command.set_position(500))
        session.send(Command.start_motion())

        clock.now += 0.25
        assert ask(session, QueryKind.POSITION) == 250
        assert ask(session, QueryKind.IS_MOVING) is True

        clock.now += 1.0
        assert ask(session, QueryKind.POSITION) == 500
        assert ask(session, QueryKind.IS_MOVING) is False

    def test_set_position_alone_does_not_move(self, clock):
        device, session = make_session(clock)
        session.send(Command.set_position(500))

        clock.now += 1.0
        assert device.position == 0
        assert device.target_position == 500

    def test_abort_stops_in_place(self, clock):
        device, session = make_session(clock)
        session.send(Command.set_position(1000))
        session.send(Command.start_motion())

        clock.now += 0.125
        session.send(Command.abort())
        clock.now += 1.0

        assert device.position == 125
        assert ask(session, QueryKind.IS_MOVING) is False

    def test_go_home(self, clock):
        device, session = make_session(clock, initial_position=300)
        session.send(Command.go_home())

        clock.now += 1.0
        assert device.position == 0

    def test_sync_relabels(self, clock):
        device, session = make_session(clock, initial_position=300)
        session.send(Command.sync_position(7000))

        assert ask(session, QueryKind.POSITION) == 7000

    def test_fractional_steps_are_kept(self, clock):
        device, session = make_session(clock, speed=2)
        session.send(Command.set_position(100))
        session.send(Command.start_motion())

        # 1.5 steps per update
        for _ in range(10):
            clock.now += 0.75
            device.position

        assert device.position == 15


class TestSettings:
    def test_switches_and_speed(self, clock):
        _, session = make_session(clock)
        session.send(Command.set_reverse(True))
        session.send(Command.set_coil_power(False))
        session.send(Command.set_speed(321))

        assert ask(session, QueryKind.REVERSE) is True
        assert ask(session, QueryKind.COIL_POWER) is False
        assert ask(session, QueryKind.SPEED) == 321

    def test_temperature_settings(self, clock):
        device, session = make_session(clock, temperature_celsius=10.0)
        session.send(Command.set_temperature_calibration(2))
        session.send(Command.set_temperature_coefficient(-4))
        session.send(Command.set_temperature_compensation(True))

        assert ask(session, QueryKind.TEMPERATURE_CALIBRATION) == pytest.approx(2.0)
        assert ask(session, QueryKind.TEMPERATURE_COEFFICIENT) == pytest.approx(-4.0)
        assert ask(session, QueryKind.TEMPERATURE) == pytest.approx(12.0)
        assert device._temperature_compensation is True


class TestFaultInjection:
    def test_timeout(self, clock):
        _, session = make_session(clock, inject_timeout=True)
        with pytest.raises(SerialTimeoutError):
            session.send(Command.query(QueryKind.POSITION))

    def test_malformed(self, clock):
        _, session = make_session(clock, inject_malformed_rate=1.0)
        with pytest.raises(MalformedReplyError):
            ask(session, QueryKind.POSITION)
