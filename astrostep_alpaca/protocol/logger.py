"""
Protocol message logger for debugging serial communication.

Captures TX/RX frames with timestamps for debugging purposes.
"""

import threading
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import List, Optional, Dict, Any


@dataclass
class ProtocolMessage:
    """A single protocol message (TX, RX or ERR)."""
    timestamp: str
    direction: str  # "TX", "RX" or "ERR"
    raw_hex: str
    text: str
    decoded: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


_COMMAND_DESCRIPTIONS = {
    "SN": "Set Target Position",
    "FG": "Start Motion",
    "FQ": "Abort Motion",
    "SP": "Sync Position",
    "SD": "Set Speed",
    "SM": "Set Step Mode",
    "SC": "Set Temperature Coefficient",
    "SO": "Set Temperature Calibration",
    "SE": "Set Coil Power",
    "SR": "Set Reverse",
    "HO": "Go Home",
    "+": "Enable Temperature Compensation",
    "-": "Disable Temperature Compensation",
    "GP": "Query Position",
    "GD": "Query Speed",
    "GT": "Query Temperature",
    "GC": "Query Temperature Coefficient",
    "GO": "Query Temperature Calibration",
    "GE": "Query Coil Power",
    "GR": "Query Reverse",
    "GI": "Query Moving",
    "GV": "Query Version",
}


def _printable(data: bytes) -> str:
    return "".join(chr(b) if 32 <= b < 127 else f"[{b:02X}]" for b in data)


class ProtocolLogger:
    """
    Thread-safe logger for protocol messages.

    Maintains a circular buffer of messages with configurable max size.
    """

    DEFAULT_MAX_MESSAGES = 500

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        self._messages: deque = deque(maxlen=max_messages)
        self._lock = threading.Lock()
        self._enabled = True
        self._tx_count = 0
        self._rx_count = 0
        self._error_count = 0

    @property
    def enabled(self) -> bool:
        """Check if logging is enabled."""
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        """Enable or disable logging."""
        self._enabled = value

    def log_tx(self, frame: bytes) -> None:
        """
        Log a transmitted request frame.

        Args:
            frame: Raw frame bytes sent.
        """
        if not self._enabled:
            return

        with self._lock:
            self._tx_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=datetime.now().isoformat(timespec='milliseconds'),
                direction="TX",
                raw_hex=frame.hex().upper(),
                text=_printable(frame),
                decoded=self._decode_request(frame),
            ))

    def log_rx(self, data: bytes) -> None:
        """
        Log a received reply.

        Args:
            data: Raw bytes received.
        """
        if not self._enabled:
            return

        with self._lock:
            self._rx_count += 1
            error = None
            if not data:
                error = "Empty response (timeout?)"
                self._error_count += 1

            self._messages.append(ProtocolMessage(
                timestamp=datetime.now().isoformat(timespec='milliseconds'),
                direction="RX",
                raw_hex=data.hex().upper(),
                text=_printable(data),
                error=error,
            ))

    def log_error(self, error_msg: str, data: bytes = b"") -> None:
        """
        Log an error message.

        Args:
            error_msg: Error description.
            data: Optional raw bytes associated with error.
        """
        if not self._enabled:
            return

        with self._lock:
            self._error_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=datetime.now().isoformat(timespec='milliseconds'),
                direction="ERR",
                raw_hex=data.hex().upper(),
                text=_printable(data),
                error=error_msg,
            ))

    def _decode_request(self, frame: bytes) -> Dict[str, Any]:
        """Split a request frame into opcode and argument."""
        body = frame.decode("ascii", errors="replace").strip(":#")
        if body in ("+", "-"):
            opcode, argument = body, ""
        else:
            opcode, argument = body[:2], body[2:]
        return {
            "cmd": opcode,
            "argument": argument,
            "description": _COMMAND_DESCRIPTIONS.get(opcode, "Unknown command"),
        }

    def get_messages(self, limit: int = 100) -> List[dict]:
        """
        Get recent messages.

        Args:
            limit: Maximum number of messages to return.

        Returns:
            List of message dictionaries, oldest first (chronological order).
        """
        with self._lock:
            messages = list(self._messages)
            if len(messages) > limit:
                messages = messages[-limit:]
            return [m.to_dict() for m in messages]

    def get_stats(self) -> dict:
        """Get logging statistics."""
        with self._lock:
            return {
                "total_messages": len(self._messages),
                "tx_count": self._tx_count,
                "rx_count": self._rx_count,
                "error_count": self._error_count,
                "max_messages": self._messages.maxlen,
                "enabled": self._enabled,
            }

    def clear(self) -> None:
        """Clear all logged messages."""
        with self._lock:
            self._messages.clear()
            self._tx_count = 0
            self._rx_count = 0
            self._error_count = 0


# Global instance
_logger: Optional[ProtocolLogger] = None


def get_protocol_logger() -> ProtocolLogger:
    """Get or create the global protocol logger."""
    global _logger
    if _logger is None:
        _logger = ProtocolLogger()
    return _logger
