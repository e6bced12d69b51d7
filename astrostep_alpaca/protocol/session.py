"""
Device session: one request/reply exchange at a time over a transport channel.

The AstroStep protocol carries no request IDs, so replies can only be matched
to requests by strict ordering:
- NEVER start a new exchange while a reply is pending (serial lock)
- Flush stale input BEFORE every write (a previous timed-out reply may arrive late)
- Flush again AFTER every complete reply
"""

import logging
import threading
from typing import Optional

from serial import SerialException

from astrostep_alpaca.protocol.encoder import Command, ReplyShape, TERMINATOR, encode_command
from astrostep_alpaca.protocol.logger import ProtocolLogger, get_protocol_logger
from astrostep_alpaca.protocol.transport import TransportChannel
from astrostep_alpaca.utils.exceptions import (
    NotConnectedError,
    WriteFailedError,
    ReadFailedError,
    SerialTimeoutError,
)


logger = logging.getLogger(__name__)


class DeviceSession:
    """
    Owns the transport channel and executes one command at a time.

    Timeouts are fixed by the firmware and apply per read, not per logical
    operation.
    """

    TIMEOUT_SECONDS = 3
    MAX_REPLY_BYTES = 32

    def __init__(self, transport: TransportChannel, protocol_logger: Optional[ProtocolLogger] = None):
        """
        Initialize device session.

        Args:
            transport: Byte channel to the focuser (serial, TCP or simulator).
            protocol_logger: Traffic recorder; defaults to the global one.
        """
        self.transport = transport
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._serial_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.transport.is_open()

    def open(self) -> None:
        """Open the underlying channel."""
        with self._serial_lock:
            self.transport.open()

    def close(self) -> None:
        """Close the underlying channel."""
        with self._serial_lock:
            self.transport.close()

    def send(self, command: Command, silent: bool = False) -> Optional[bytes]:
        """Encode and execute a command, reading the reply its opcode expects."""
        return self.execute(encode_command(command), command.reply_shape, silent=silent)

    def execute(self, frame: bytes, reply: Optional[ReplyShape] = None, silent: bool = False) -> Optional[bytes]:
        """
        Write a request frame and optionally read its reply.

        Args:
            frame: Encoded request frame.
            reply: Expected reply shape, or None for fire-and-forget.
            silent: If True, do not log failures at ERROR level.

        Returns:
            Raw reply bytes, or None when no reply is expected.

        Raises:
            NotConnectedError: If the channel is not open.
            WriteFailedError: If the write fails.
            ReadFailedError: If the read fails.
            SerialTimeoutError: If the reply is incomplete within the timeout.
        """
        with self._serial_lock:
            if not self.transport.is_open():
                raise NotConnectedError("Serial port not open")

            logger.debug(f"CMD <{frame.decode('ascii', errors='replace')}>")

            try:
                self.transport.reset_input_buffer()
                self.transport.write(frame)
            except (SerialException, OSError) as e:
                self._report(silent, f"Serial write error: {e}")
                raise WriteFailedError(f"Failed to write {frame!r}: {e}") from e

            self._protocol_logger.log_tx(frame)

            if reply is None:
                return None

            try:
                if reply.fixed:
                    response = self.transport.read(reply.length, self.TIMEOUT_SECONDS)
                else:
                    response = self.transport.read_until(
                        TERMINATOR, self.MAX_REPLY_BYTES, self.TIMEOUT_SECONDS
                    )
            except (SerialException, OSError) as e:
                self._report(silent, f"{frame!r} Serial read error: {e}")
                raise ReadFailedError(f"Failed to read reply to {frame!r}: {e}") from e

            response = bytes(response)
            complete = len(response) >= reply.length if reply.fixed else response.endswith(TERMINATOR)
            if not complete:
                self._report(silent, f"Timeout: incomplete reply to {frame!r}", response)
                raise SerialTimeoutError(f"No complete reply to {frame!r} (got {response!r})")

            self._protocol_logger.log_rx(response)
            logger.debug(f"RES <{response.decode('ascii', errors='replace')}>")

            try:
                self.transport.reset_input_buffer()
            except (SerialException, OSError) as e:
                raise ReadFailedError(f"Failed to flush after reply to {frame!r}: {e}") from e
            return response

    def _report(self, silent: bool, message: str, data: bytes = b"") -> None:
        self._protocol_logger.log_error(message, data)
        if silent:
            logger.debug(message)
        else:
            logger.error(message)
