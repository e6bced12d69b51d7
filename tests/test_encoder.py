"""Tests for AstroStep command frames and reply decoding."""

import pytest

from astrostep_alpaca.protocol.encoder import (
    Command,
    QueryKind,
    VERSION_REPLY_LENGTH,
    decode_reply,
    encode_command,
)
from astrostep_alpaca.utils.exceptions import MalformedReplyError


class TestEncodeCommand:
    @pytest.mark.parametrize(
        "command, frame",
        [
            (Command.set_position(5000), b":SN000005000#"),
            (Command.set_position(0), b":SN000000000#"),
            (Command.set_position(999999999), b":SN999999999#"),
            (Command.sync_position(1234), b":SP000001234#"),
            (Command.start_motion(), b":FG#"),
            (Command.abort(), b":FQ#"),
            (Command.go_home(), b":HO#"),
            (Command.set_speed(250), b":SD250#"),
            (Command.set_step_mode(4), b":SM4#"),
            (Command.set_temperature_coefficient(-3), b":SC-3#"),
            (Command.set_temperature_calibration(2), b":SO2#"),
            (Command.set_coil_power(True), b":SE1#"),
            (Command.set_coil_power(False), b":SE0#"),
            (Command.set_reverse(True), b":SR1#"),
            (Command.set_temperature_compensation(True), b":+#"),
            (Command.set_temperature_compensation(False), b":-#"),
            (Command.query(QueryKind.POSITION), b":GP#"),
            (Command.query(QueryKind.IS_MOVING), b":GI#"),
            (Command.query(QueryKind.VERSION), b":GV#"),
        ],
    )
    def test_frames(self, command, frame):
        assert encode_command(command) == frame

    def test_position_out_of_range(self):
        with pytest.raises(ValueError):
            Command.set_position(-1)
        with pytest.raises(ValueError):
            Command.set_position(1000000000)

    def test_negative_speed_rejected(self):
        with pytest.raises(ValueError):
            Command.set_speed(-1)

    def test_reply_shapes(self):
        assert Command.start_motion().reply_shape is None
        assert Command.set_position(1).reply_shape is None

        version = Command.query(QueryKind.VERSION).reply_shape
        assert version.fixed
        assert version.length == VERSION_REPLY_LENGTH

        position = Command.query(QueryKind.POSITION).reply_shape
        assert not position.fixed


class TestDecodeReply:
    @pytest.mark.parametrize("value", [0, 1, 5000, 999999999])
    def test_position(self, value):
        frame = encode_command(Command.set_position(value))
        reply = frame[3:]  # same 9-digit field, echoed as a reply
        assert decode_reply(QueryKind.POSITION, reply) == value

    def test_position_unpadded(self):
        assert decode_reply(QueryKind.POSITION, b"4995#") == 4995

    @pytest.mark.parametrize("kind", [QueryKind.POSITION, QueryKind.SPEED])
    def test_negative_unsigned_values_rejected(self, kind):
        with pytest.raises(MalformedReplyError):
            decode_reply(kind, b"-5#")

    def test_temperature_keeps_fraction(self):
        assert decode_reply(QueryKind.TEMPERATURE, b"21.7#") == pytest.approx(21.7)
        assert decode_reply(QueryKind.TEMPERATURE, b"-3.5#") == pytest.approx(-3.5)
        assert decode_reply(QueryKind.TEMPERATURE, b"18#") == pytest.approx(18.0)

    def test_speed(self):
        assert decode_reply(QueryKind.SPEED, b"200#") == 200

    @pytest.mark.parametrize("reply, expected", [(b"1#", True), (b"01#", True), (b"0#", False), (b"00#", False)])
    def test_is_moving(self, reply, expected):
        assert decode_reply(QueryKind.IS_MOVING, reply) is expected

    def test_is_moving_garbage(self):
        with pytest.raises(MalformedReplyError):
            decode_reply(QueryKind.IS_MOVING, b"x#")

    def test_switches(self):
        assert decode_reply(QueryKind.COIL_POWER, b"1#") is True
        assert decode_reply(QueryKind.REVERSE, b"0#") is False
        with pytest.raises(MalformedReplyError):
            decode_reply(QueryKind.REVERSE, b"2#")

    def test_version(self):
        assert decode_reply(QueryKind.VERSION, b"1.02") == "1.02"
        with pytest.raises(MalformedReplyError):
            decode_reply(QueryKind.VERSION, b"\x00\x00")

    def test_malformed_numeric(self):
        with pytest.raises(MalformedReplyError):
            decode_reply(QueryKind.POSITION, b"abc#")

    def test_non_ascii(self):
        with pytest.raises(MalformedReplyError):
            decode_reply(QueryKind.POSITION, b"\xff\xfe#")
