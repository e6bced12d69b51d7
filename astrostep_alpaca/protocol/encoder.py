"""
Command encoding and reply decoding for the AstroStep protocol.

Requests are ASCII frames: ':' + two-letter opcode + optional argument + '#'.
Replies are ASCII terminated by '#', except the GV version reply which is a
fixed number of bytes with no terminator.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from astrostep_alpaca.utils.exceptions import MalformedReplyError


FRAME_START = ":"
TERMINATOR = b"#"

# Position fields (SN, SP) are always 9 digits wide
POSITION_WIDTH = 9
MAX_POSITION = 999999999

# GV reply carries no terminator, the firmware sends exactly this many bytes
VERSION_REPLY_LENGTH = 4

# Leading "%d" or "%d.%d" token, like sscanf on the firmware side
_NUMBER_RE = re.compile(r"\s*([+-]?\d+)(?:\.(\d+))?")

ReplyValue = Union[int, float, bool, str]


class QueryKind(Enum):
    """Query opcodes and the value each one reports."""
    POSITION = "GP"
    SPEED = "GD"
    TEMPERATURE = "GT"
    TEMPERATURE_COEFFICIENT = "GC"
    TEMPERATURE_CALIBRATION = "GO"
    COIL_POWER = "GE"
    REVERSE = "GR"
    IS_MOVING = "GI"
    VERSION = "GV"


@dataclass(frozen=True)
class ReplyShape:
    """How a reply is delimited: to the terminator (length 0) or by byte count."""
    length: int = 0

    @property
    def fixed(self) -> bool:
        return self.length > 0


TERMINATED = ReplyShape()
VERSION_REPLY = ReplyShape(length=VERSION_REPLY_LENGTH)


@dataclass(frozen=True)
class Command:
    """
    A single typed request to the focuser.

    Use the classmethod constructors; each one maps to exactly one frame shape.
    """
    opcode: str
    argument: str = ""
    query_kind: Optional[QueryKind] = None

    @classmethod
    def set_position(cls, position: int) -> "Command":
        return cls("SN", _position_argument(position))

    @classmethod
    def start_motion(cls) -> "Command":
        return cls("FG")

    @classmethod
    def abort(cls) -> "Command":
        return cls("FQ")

    @classmethod
    def sync_position(cls, position: int) -> "Command":
        return cls("SP", _position_argument(position))

    @classmethod
    def set_speed(cls, speed: int) -> "Command":
        return cls("SD", _unsigned_argument(speed, "Speed"))

    @classmethod
    def set_step_mode(cls, mode: int) -> "Command":
        return cls("SM", _unsigned_argument(mode, "Step mode"))

    @classmethod
    def set_temperature_coefficient(cls, coefficient: int) -> "Command":
        return cls("SC", f"{int(coefficient):d}")

    @classmethod
    def set_temperature_calibration(cls, calibration: int) -> "Command":
        return cls("SO", f"{int(calibration):d}")

    @classmethod
    def set_temperature_compensation(cls, enabled: bool) -> "Command":
        # Firmware uses bare ':+#' / ':-#' frames for this switch
        return cls("+" if enabled else "-")

    @classmethod
    def set_coil_power(cls, enabled: bool) -> "Command":
        return cls("SE", "1" if enabled else "0")

    @classmethod
    def set_reverse(cls, enabled: bool) -> "Command":
        return cls("SR", "1" if enabled else "0")

    @classmethod
    def go_home(cls) -> "Command":
        return cls("HO")

    @classmethod
    def query(cls, kind: QueryKind) -> "Command":
        return cls(kind.value, query_kind=kind)

    @property
    def reply_shape(self) -> Optional[ReplyShape]:
        """Expected reply shape, or None for fire-and-forget commands."""
        if self.query_kind is None:
            return None
        if self.query_kind is QueryKind.VERSION:
            return VERSION_REPLY
        return TERMINATED


def _position_argument(position: int) -> str:
    if position < 0 or position > MAX_POSITION:
        raise ValueError(f"Position must be 0-{MAX_POSITION}, got: {position}")
    return f"{position:0{POSITION_WIDTH}d}"


def _unsigned_argument(value: int, name: str) -> str:
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got: {value}")
    return f"{int(value):d}"


def encode_command(command: Command) -> bytes:
    """
    Encode command as an ASCII request frame.

    Args:
        command: Command to encode.

    Returns:
        Frame bytes, e.g. b":SN000005000#".

    Example:
        >>> encode_command(Command.set_position(5000))
        b':SN000005000#'
    """
    return f"{FRAME_START}{command.opcode}{command.argument}#".encode("ascii")


def decode_reply(kind: QueryKind, data: bytes) -> ReplyValue:
    """
    Decode a reply to a query.

    Args:
        kind: Query the reply belongs to.
        data: Raw reply bytes.

    Returns:
        int for position/speed, float for temperature values, bool for
        coil power/reverse/moving, str for the firmware version.

    Raises:
        MalformedReplyError: If the reply does not match the expected pattern.
    """
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedReplyError(f"Invalid ASCII in {kind.value} reply: {data!r}") from e

    if kind is QueryKind.VERSION:
        version = text.strip("#\x00 \r\n")
        if not version:
            raise MalformedReplyError(f"Empty firmware version reply: {data!r}")
        return version

    if kind is QueryKind.IS_MOVING:
        # Firmware revisions answer either "1#" or "01#"
        if "1#" in text:
            return True
        if "0#" in text:
            return False
        raise MalformedReplyError(f"Invalid moving state reply: {data!r}")

    match = _NUMBER_RE.match(text)
    if match is None:
        raise MalformedReplyError(f"Invalid numeric value in {kind.value} reply: {data!r}")

    whole, fraction = match.groups()

    if kind in (QueryKind.TEMPERATURE,
                QueryKind.TEMPERATURE_COEFFICIENT,
                QueryKind.TEMPERATURE_CALIBRATION):
        return float(f"{whole}.{fraction or 0}")

    value = int(whole)

    if kind in (QueryKind.POSITION, QueryKind.SPEED) and value < 0:
        raise MalformedReplyError(f"Negative {kind.value} value: {data!r}")

    if kind in (QueryKind.COIL_POWER, QueryKind.REVERSE):
        if value not in (0, 1):
            raise MalformedReplyError(f"Invalid {kind.value} switch value: {data!r}")
        return value == 1

    return value
