"""
Byte-oriented transport channels for the AstroStep focuser.

The device session only needs a byte pipe with a per-call timeout. The
abstract interface allows transparent substitution between real hardware
(serial port or TCP-tunneled serial) and the simulator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import serial

from astrostep_alpaca.config.models import SerialConfig
from astrostep_alpaca.utils.exceptions import PortNotFoundError, PortInUseError


logger = logging.getLogger(__name__)


class TransportChannel(ABC):
    """
    Abstract base class for byte channels.

    Read and write failures are reported as serial.SerialException (or
    OSError); a read that times out returns whatever arrived, possibly b"".
    """

    @abstractmethod
    def open(self) -> None:
        """
        Open the channel.

        Raises:
            PortNotFoundError: If the port or endpoint does not exist.
            PortInUseError: If the port is already open elsewhere.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the channel."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the channel is open."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Write bytes and drain the output buffer.

        Returns:
            Number of bytes written.
        """
        pass

    @abstractmethod
    def read_until(self, terminator: bytes, max_bytes: int, timeout: float) -> bytes:
        """
        Read until the terminator, max_bytes, or the timeout, whichever comes first.

        Returns:
            Bytes read, including the terminator if it arrived.
        """
        pass

    @abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """
        Read up to size bytes within the timeout.

        Returns:
            Bytes read (fewer than size on timeout).
        """
        pass

    @abstractmethod
    def reset_input_buffer(self) -> None:
        """Discard any unread bytes."""
        pass


class SerialTransport(TransportChannel):
    """
    pyserial-backed channel.

    The port name may be a device path (/dev/ttyUSB0, COM3) or any pyserial
    URL, e.g. socket://192.168.1.50:4030 for a TCP serial bridge.
    """

    # Serial port settings (fixed by AstroStep firmware)
    DATA_BITS = serial.EIGHTBITS
    PARITY = serial.PARITY_NONE
    STOP_BITS = serial.STOPBITS_ONE

    def __init__(self, config: SerialConfig):
        """
        Initialize serial transport.

        Args:
            config: Serial port configuration.
        """
        self._config = config
        self._port: Optional[serial.SerialBase] = None

    @property
    def port_name(self) -> str:
        """Get configured port name or URL."""
        return self._config.port

    def open(self) -> None:
        if self.is_open():
            logger.warning("Already open")
            return

        port_name = self._config.port
        logger.info(f"Opening serial port {port_name}")

        try:
            self._port = serial.serial_for_url(
                port_name,
                baudrate=self._config.baud,
                bytesize=self.DATA_BITS,
                parity=self.PARITY,
                stopbits=self.STOP_BITS,
                timeout=1,
                write_timeout=1,
            )
        except serial.SerialException as e:
            error_msg = str(e).lower()
            if "access" in error_msg or "permission" in error_msg or "in use" in error_msg:
                raise PortInUseError(f"{port_name} is already in use by another application") from e
            raise PortNotFoundError(f"Failed to open {port_name}: {e}") from e

        self._port.reset_input_buffer()
        self._port.reset_output_buffer()

    def close(self) -> None:
        if self._port and self._port.is_open:
            self._port.close()
            logger.info("Serial port closed")
        self._port = None

    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def write(self, data: bytes) -> int:
        written = self._port.write(data)
        self._port.flush()
        return written or 0

    def read_until(self, terminator: bytes, max_bytes: int, timeout: float) -> bytes:
        self._port.timeout = timeout
        return self._port.read_until(terminator, max_bytes)

    def read(self, size: int, timeout: float) -> bytes:
        self._port.timeout = timeout
        return self._port.read(size)

    def reset_input_buffer(self) -> None:
        self._port.reset_input_buffer()
