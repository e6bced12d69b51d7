"""
Custom exception classes for the AstroStep Alpaca driver.
"""


class AstroStepException(Exception):
    """Base exception for all AstroStep driver errors."""
    pass


class NotConnectedError(AstroStepException):
    """Raised when operation requires connection but focuser is disconnected."""
    pass


class DriverError(AstroStepException):
    """General driver error (maps to Alpaca ErrorNumber 1280)."""
    pass


class InvalidValueError(AstroStepException):
    """Invalid parameter value (maps to Alpaca ErrorNumber 1026)."""
    pass


class ProtocolError(AstroStepException):
    """Serial protocol error (unexpected or undecodable reply)."""
    pass


class MalformedReplyError(ProtocolError):
    """Reply did not match the numeric/boolean pattern expected for the query."""
    pass


class TransportError(DriverError):
    """I/O failure at the transport boundary."""
    pass


class WriteFailedError(TransportError):
    """Writing a command frame to the channel failed."""
    pass


class ReadFailedError(TransportError):
    """Reading a reply from the channel failed."""
    pass


class SerialTimeoutError(TransportError):
    """No complete reply within the fixed read timeout."""
    pass


class PortNotFoundError(DriverError):
    """Serial port (or socket endpoint) does not exist."""
    pass


class PortInUseError(DriverError):
    """Serial port is already open by another application."""
    pass


class HandshakeError(DriverError):
    """Device never answered the GV version query within the retry budget."""
    pass


class DeviceUnreachableError(DriverError):
    """An I/O error occurred while issuing a motion command."""
    pass
