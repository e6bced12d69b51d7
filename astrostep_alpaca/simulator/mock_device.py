"""
Simulated AstroStep firmware.

Implements TransportChannel so the real DeviceSession and FocuserController
can run without physical hardware. Request frames written to the channel are
answered the way the reference firmware answers them.
"""

import logging
import random
import threading
import time
from typing import Callable, Optional

from astrostep_alpaca.config.models import SimulatorConfig
from astrostep_alpaca.protocol.transport import TransportChannel


logger = logging.getLogger(__name__)


class SimulatedFocuser(TransportChannel):
    """
    Virtual focuser answering the AstroStep command set.

    Motion is computed lazily from the clock whenever a frame arrives, so no
    background thread is needed.
    """

    MAX_POSITION = 999999999

    def __init__(self, config: SimulatorConfig, clock: Callable[[], float] = time.monotonic):
        """
        Initialize simulator.

        Args:
            config: Simulator configuration.
            clock: Monotonic time source in seconds (injectable for tests).
        """
        self.config = config
        self._clock = clock
        self._open = False
        self._lock = threading.Lock()
        self._output = bytearray()

        # Virtual hardware state
        self._position = config.initial_position
        self._target_position = config.initial_position
        self._is_moving = False
        self._last_update = clock()

        self._speed = 200000
        self._step_mode = 1
        self._coil_power = True
        self._reverse = False
        self._temperature_calibration = 0
        self._temperature_coefficient = 0
        self._temperature_compensation = False

        logger.info("SimulatedFocuser initialized")

    # ------------------------------------------------------------------
    # TransportChannel
    # ------------------------------------------------------------------

    def open(self) -> None:
        with self._lock:
            self._open = True
            self._output.clear()
        logger.info(f"Simulator connected (firmware version: {self.config.firmware_version})")

    def close(self) -> None:
        with self._lock:
            self._open = False
            self._output.clear()
        logger.info("Simulator disconnected")

    def is_open(self) -> bool:
        return self._open

    def write(self, data: bytes) -> int:
        text = data.decode("ascii", errors="replace")
        with self._lock:
            for frame in text.split("#"):
                frame = frame.strip()
                if not frame:
                    continue
                if not frame.startswith(":"):
                    logger.warning(f"[SIMULATOR] Ignoring unframed data: {frame!r}")
                    continue
                reply = self._handle(frame[1:])
                if reply is not None:
                    self._queue_reply(reply)
        return len(data)

    def read_until(self, terminator: bytes, max_bytes: int, timeout: float) -> bytes:
        with self._lock:
            index = self._output.find(terminator)
            end = len(self._output) if index < 0 else index + len(terminator)
            end = min(end, max_bytes)
            data = bytes(self._output[:end])
            del self._output[:end]
            return data

    def read(self, size: int, timeout: float) -> bytes:
        with self._lock:
            data = bytes(self._output[:size])
            del self._output[:size]
            return data

    def reset_input_buffer(self) -> None:
        with self._lock:
            self._output.clear()

    # ------------------------------------------------------------------
    # Firmware emulation
    # ------------------------------------------------------------------

    @property
    def position(self) -> int:
        with self._lock:
            self._advance()
            return self._position

    @property
    def target_position(self) -> int:
        return self._target_position

    def _queue_reply(self, reply: bytes) -> None:
        if self.config.inject_timeout:
            logger.warning("[SIMULATOR] Injected timeout for testing")
            return
        if random.random() < self.config.inject_malformed_rate:
            logger.warning("[SIMULATOR] Injected malformed reply for testing")
            reply = b"?x#"
        self._output.extend(reply)

    def _handle(self, body: str) -> Optional[bytes]:
        """Execute one frame body (opcode + argument); return reply bytes or None."""
        self._advance()

        if body in ("+", "-"):
            self._temperature_compensation = body == "+"
            return None

        opcode, argument = body[:2], body[2:]

        if opcode == "GV":
            return self.config.firmware_version.encode("ascii")
        if opcode == "GP":
            return f"{self._position}#".encode("ascii")
        if opcode == "GD":
            return f"{self._speed}#".encode("ascii")
        if opcode == "GT":
            return f"{self._temperature():.1f}#".encode("ascii")
        if opcode == "GC":
            return f"{self._temperature_coefficient}.0#".encode("ascii")
        if opcode == "GO":
            return f"{self._temperature_calibration}.0#".encode("ascii")
        if opcode == "GE":
            return b"1#" if self._coil_power else b"0#"
        if opcode == "GR":
            return b"1#" if self._reverse else b"0#"
        if opcode == "GI":
            return b"01#" if self._is_moving else b"00#"

        if opcode == "FG":
            self._start_movement(self._target_position)
        elif opcode == "FQ":
            if self._is_moving:
                logger.info(f"[SIMULATOR] Halting movement at position {self._position}")
            self._target_position = self._position
            self._is_moving = False
        elif opcode == "HO":
            self._target_position = 0
            self._start_movement(0)
        elif opcode in ("SN", "SP", "SD", "SM", "SC", "SO", "SE", "SR"):
            try:
                value = int(argument)
            except ValueError:
                logger.warning(f"[SIMULATOR] Invalid argument for {opcode}: {argument!r}")
                return None
            self._apply_setting(opcode, value)
        else:
            logger.warning(f"[SIMULATOR] Unknown command: {body}")

        return None

    def _apply_setting(self, opcode: str, value: int) -> None:
        if opcode == "SN":
            self._target_position = max(0, min(value, self.MAX_POSITION))
        elif opcode == "SP":
            self._position = value
            self._target_position = value
            self._is_moving = False
            logger.info(f"[SIMULATOR] Position synced to: {value}")
        elif opcode == "SD":
            self._speed = value
        elif opcode == "SM":
            self._step_mode = value
        elif opcode == "SC":
            self._temperature_coefficient = value
        elif opcode == "SO":
            self._temperature_calibration = value
        elif opcode == "SE":
            self._coil_power = value == 1
        elif opcode == "SR":
            self._reverse = value == 1

    def _start_movement(self, target: int) -> None:
        self._last_update = self._clock()
        self._is_moving = self._position != target
        if self._is_moving:
            logger.info(f"[SIMULATOR] Movement started: {self._position} -> {target}")

    def _advance(self) -> None:
        """Move the virtual motor according to elapsed time."""
        now = self._clock()
        if not self._is_moving:
            self._last_update = now
            return

        speed = self.config.movement_speed_steps_per_sec
        steps = int((now - self._last_update) * speed)
        if steps <= 0:
            return

        remaining = self._target_position - self._position
        if abs(remaining) <= steps:
            self._position = self._target_position
            self._is_moving = False
            self._last_update = now
            logger.info(f"[SIMULATOR] Movement completed at position: {self._position}")
        else:
            self._position += steps if remaining > 0 else -steps
            # Keep the fractional step for the next update
            self._last_update += steps / speed

    def _temperature(self) -> float:
        temperature = self.config.temperature_celsius + self._temperature_calibration
        if self.config.temperature_noise_celsius > 0:
            noise = self.config.temperature_noise_celsius
            temperature += random.uniform(-noise, noise)
        return temperature
