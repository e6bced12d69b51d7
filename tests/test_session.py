"""Tests for DeviceSession request/reply discipline."""

import pytest
from serial import SerialException

from astrostep_alpaca.protocol.encoder import Command, QueryKind
from astrostep_alpaca.utils.exceptions import (
    NotConnectedError,
    ReadFailedError,
    SerialTimeoutError,
    WriteFailedError,
)


@pytest.fixture
def open_session(session, transport):
    session.open()
    return session


class TestExecute:
    def test_not_open(self, session):
        with pytest.raises(NotConnectedError):
            session.send(Command.abort())

    def test_fire_and_forget_flushes_then_writes(self, open_session, transport):
        result = open_session.send(Command.start_motion())

        assert result is None
        assert transport.events == [("flush", None), ("write", b":FG#")]

    def test_terminated_reply(self, open_session, transport):
        transport.queue(b"5000#")

        result = open_session.send(Command.query(QueryKind.POSITION))

        assert result == b"5000#"
        assert transport.events == [
            ("flush", None),
            ("write", b":GP#"),
            ("read_until", open_session.TIMEOUT_SECONDS),
            ("flush", None),
        ]

    def test_version_reply_is_fixed_length(self, open_session, transport):
        transport.queue(b"1.02")

        result = open_session.send(Command.query(QueryKind.VERSION))

        assert result == b"1.02"
        assert ("read", 4) in transport.events

    def test_missing_terminator_times_out(self, open_session, transport):
        transport.queue(b"50")

        with pytest.raises(SerialTimeoutError):
            open_session.send(Command.query(QueryKind.POSITION))

    def test_no_reply_times_out(self, open_session):
        with pytest.raises(SerialTimeoutError):
            open_session.send(Command.query(QueryKind.TEMPERATURE))

    def test_short_version_reply_times_out(self, open_session, transport):
        transport.queue(b"1.")

        with pytest.raises(SerialTimeoutError):
            open_session.send(Command.query(QueryKind.VERSION))

    def test_write_failure(self, open_session, transport):
        transport.fail_writes = True

        with pytest.raises(WriteFailedError):
            open_session.send(Command.abort())

    def test_read_failure(self, open_session, transport):
        transport.queue(SerialException("device reports readiness to read but returned no data"))

        with pytest.raises(ReadFailedError):
            open_session.send(Command.query(QueryKind.POSITION))

    def test_late_reply_is_flushed_before_next_request(self, open_session, transport):
        transport.queue(b"12")
        with pytest.raises(SerialTimeoutError):
            open_session.send(Command.query(QueryKind.POSITION))

        transport.clear()
        transport.queue(b"20.5#")
        open_session.send(Command.query(QueryKind.TEMPERATURE))

        assert transport.events[0] == ("flush", None)


class TestProtocolLogging:
    def test_exchange_is_recorded(self, open_session, transport):
        transport.queue(b"5000#")
        open_session.send(Command.query(QueryKind.POSITION))

        messages = open_session._protocol_logger.get_messages()
        assert [m["direction"] for m in messages] == ["TX", "RX"]
        assert messages[0]["decoded"]["cmd"] == "GP"
        assert messages[1]["text"] == "5000#"

    def test_timeout_is_recorded_as_error(self, open_session):
        with pytest.raises(SerialTimeoutError):
            open_session.send(Command.query(QueryKind.POSITION), silent=True)

        stats = open_session._protocol_logger.get_stats()
        assert stats["tx_count"] == 1
        assert stats["error_count"] == 1
