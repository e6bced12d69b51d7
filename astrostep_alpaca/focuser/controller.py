"""
Focuser controller (Layer 2 - State Machine).

Holds the authoritative focuser state, drives the move lifecycle and
coordinates between API/poller and the device session.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from astrostep_alpaca.config.models import FocuserConfig
from astrostep_alpaca.focuser.state import (
    CoilPower,
    FocusDirection,
    FocuserState,
    MotionPhase,
    PollResult,
)
from astrostep_alpaca.protocol.encoder import MAX_POSITION, Command, QueryKind, ReplyValue, decode_reply
from astrostep_alpaca.protocol.session import DeviceSession
from astrostep_alpaca.utils.exceptions import (
    DeviceUnreachableError,
    HandshakeError,
    InvalidValueError,
    NotConnectedError,
    ProtocolError,
    TransportError,
)


logger = logging.getLogger(__name__)


# Read order used right after connecting
_FOCUS_PARAMS = (
    QueryKind.POSITION,
    QueryKind.TEMPERATURE,
    QueryKind.SPEED,
    QueryKind.COIL_POWER,
    QueryKind.TEMPERATURE_CALIBRATION,
    QueryKind.TEMPERATURE_COEFFICIENT,
    QueryKind.REVERSE,
)


def _build(factory: Callable[..., Command], *args) -> Command:
    try:
        return factory(*args)
    except ValueError as e:
        raise InvalidValueError(str(e)) from e


class FocuserController:
    """
    Focuser state machine.

    All public operations, the poll tick and the timed-move callback run under
    one reentrant lock, so polling and caller commands never interleave on the
    channel.
    """

    HANDSHAKE_ATTEMPTS = 3
    HANDSHAKE_RETRY_DELAY_MS = 1000

    # Change-event thresholds (noise filter, not a precision limit)
    POSITION_HYSTERESIS = 5
    TEMPERATURE_HYSTERESIS = 0.5

    def __init__(
        self,
        session: DeviceSession,
        config: FocuserConfig,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """
        Initialize focuser controller.

        Args:
            session: Device session (real hardware or simulator transport).
            config: Focuser configuration (travel limits, polling period).
            timer_factory: One-shot timer constructor used by timed moves.
        """
        self.session = session
        self.config = config
        self._timer_factory = timer_factory

        self._state = FocuserState()
        self._lock = threading.RLock()
        self._connected = False

        self._timed_move_timer: Optional[threading.Timer] = None
        self._timed_move_token: Optional[object] = None

        logger.info("FocuserController initialized")

    @property
    def connected(self) -> bool:
        """Check if focuser is connected."""
        return self._connected and self.session.is_open

    @property
    def state(self) -> FocuserState:
        """Snapshot of the current focuser state."""
        with self._lock:
            return replace(self._state)

    @property
    def phase(self) -> MotionPhase:
        return self._state.phase

    def _check_connected(self) -> None:
        if not self.connected:
            raise NotConnectedError("Focuser not connected")

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open the session, verify the device answers and read its parameters.

        Raises:
            HandshakeError: If the device never answers the version query.
            PortNotFoundError / PortInUseError: If the channel cannot be opened.
        """
        if self._connected:
            logger.warning("Already connected")
            return

        self.session.open()
        try:
            self.handshake()
        except HandshakeError:
            self.session.close()
            raise

        self._connected = True
        self.get_focus_params()
        logger.info("AstroStep parameters updated, focuser ready for use.")

    def disconnect(self) -> None:
        """Disconnect from focuser hardware."""
        with self._lock:
            self._cancel_timed_move()
            if not self._connected:
                return

            self.session.close()
            self._connected = False
            self._state.is_moving = False
            self._state.phase = MotionPhase.IDLE

        logger.info("Focuser disconnected")

    def handshake(self) -> None:
        """
        Query the firmware version until the device answers.

        The controller may be powered but not ready right after the port
        opens, so the query is retried with a pause between attempts.

        Raises:
            HandshakeError: After HANDSHAKE_ATTEMPTS failed queries.
        """
        with self._lock:
            for attempt in range(1, self.HANDSHAKE_ATTEMPTS + 1):
                try:
                    version = self._query(QueryKind.VERSION, silent=True)
                except (TransportError, ProtocolError) as e:
                    logger.debug(f"Version query failed (attempt {attempt}/{self.HANDSHAKE_ATTEMPTS}): {e}")
                    if attempt < self.HANDSHAKE_ATTEMPTS:
                        time.sleep(self.HANDSHAKE_RETRY_DELAY_MS / 1000.0)
                    continue

                self._state.firmware_version = version
                logger.info(f"Detected firmware version {version}")
                logger.info("AstroStep is online. Getting focus parameters...")
                return

        logger.info(
            "Error retrieving data from AstroStep, please ensure AstroStep "
            "controller is powered and the port is correct."
        )
        raise HandshakeError(
            f"No reply to GV after {self.HANDSHAKE_ATTEMPTS} attempts"
        )

    def get_focus_params(self) -> None:
        """Read all device settings; a failed read leaves its field unchanged."""
        with self._lock:
            for kind in _FOCUS_PARAMS:
                value = self._try_query(kind)
                if value is not None:
                    self._store(kind, value)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, kind: QueryKind) -> ReplyValue:
        """
        Query one value from the device and store it.

        Raises:
            NotConnectedError: If not connected.
            TransportError: On I/O failure.
            MalformedReplyError: If the reply cannot be decoded.
        """
        self._check_connected()
        with self._lock:
            value = self._query(kind)
            self._store(kind, value)
            return value

    def _query(self, kind: QueryKind, silent: bool = False) -> ReplyValue:
        response = self.session.send(Command.query(kind), silent=silent)
        return decode_reply(kind, response)

    def _try_query(self, kind: QueryKind) -> Optional[ReplyValue]:
        """Query for polling: failures are logged, not raised."""
        try:
            return self._query(kind)
        except (TransportError, ProtocolError) as e:
            logger.warning(f"Failed to read {kind.name.lower()}: {e}")
            return None

    def _store(self, kind: QueryKind, value: ReplyValue) -> None:
        state = self._state
        if kind is QueryKind.POSITION:
            state.current_position = value
        elif kind is QueryKind.SPEED:
            state.speed = value
        elif kind is QueryKind.TEMPERATURE:
            state.temperature = value
        elif kind is QueryKind.TEMPERATURE_CALIBRATION:
            state.temperature_calibration = value
        elif kind is QueryKind.TEMPERATURE_COEFFICIENT:
            state.temperature_coefficient = value
        elif kind is QueryKind.COIL_POWER:
            state.coil_power = CoilPower.ON if value else CoilPower.OFF
        elif kind is QueryKind.REVERSE:
            state.reversed = value
        elif kind is QueryKind.IS_MOVING:
            state.is_moving = value
        elif kind is QueryKind.VERSION:
            state.firmware_version = value

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def move_absolute(self, target: int) -> MotionPhase:
        """
        Start movement to an absolute position (non-blocking).

        No clamping is done here; callers validate against the travel limits.

        Returns:
            MotionPhase.BUSY once the move is issued.

        Raises:
            NotConnectedError: If not connected.
            InvalidValueError: If target is outside the protocol range.
            DeviceUnreachableError: If the move could not be issued (phase ALERT).
        """
        self._check_connected()
        if target < 0 or target > MAX_POSITION:
            raise InvalidValueError(f"Position {target} out of range [0, {MAX_POSITION}]")

        with self._lock:
            self._cancel_timed_move()
            return self._issue_move(target)

    def move_relative(self, direction: FocusDirection, ticks: int) -> MotionPhase:
        """
        Move a number of ticks inward or outward, clamped to the travel limits.

        Raises:
            InvalidValueError: If ticks is negative.
        """
        self._check_connected()
        if ticks < 0:
            raise InvalidValueError(f"Relative move must be non-negative, got {ticks}")

        with self._lock:
            offset = -ticks if direction == FocusDirection.INWARD else ticks
            new_position = self._state.current_position + offset
            new_position = max(self.config.min_position, min(self.config.max_position, new_position))
            return self.move_absolute(new_position)

    def move_timed(self, direction: FocusDirection, speed: int, duration_ms: int) -> MotionPhase:
        """
        Move in a direction at a given speed for a period of time.

        The firmware only knows absolute moves, so this heads for the travel
        extreme and a one-shot timer aborts the motion when the time is up.

        Raises:
            InvalidValueError: If speed or duration is invalid.
            DeviceUnreachableError: If speed change or move issuance failed.
        """
        self._check_connected()
        if duration_ms <= 0:
            raise InvalidValueError(f"Duration must be positive, got {duration_ms}")
        speed_command = _build(Command.set_speed, speed)

        with self._lock:
            self._cancel_timed_move()

            if speed != self._state.speed:
                try:
                    self.session.send(speed_command)
                except TransportError as e:
                    self._state.phase = MotionPhase.ALERT
                    raise DeviceUnreachableError(f"Failed to set speed {speed}: {e}") from e
                self._state.speed = speed

            target = 0 if direction == FocusDirection.INWARD else self.config.max_position
            phase = self._issue_move(target)

            token = object()
            timer = self._timer_factory(duration_ms / 1000.0, self._timed_move_expired, args=(token,))
            timer.daemon = True
            self._timed_move_token = token
            self._timed_move_timer = timer
            timer.start()

            logger.info(f"Timed move {direction.value} at speed {speed} for {duration_ms} ms")
            return phase

    def _issue_move(self, target: int) -> MotionPhase:
        """Send target position then start motion. Caller holds the lock."""
        self._state.target_position = target
        try:
            self.session.send(Command.set_position(target))
            self.session.send(Command.start_motion())
        except TransportError as e:
            self._state.phase = MotionPhase.ALERT
            raise DeviceUnreachableError(f"Failed to start move to {target}: {e}") from e

        self._state.phase = MotionPhase.BUSY
        logger.info(f"Movement started: {self._state.current_position} -> {target}")
        return MotionPhase.BUSY

    def _timed_move_expired(self, token: object) -> None:
        with self._lock:
            if token is not self._timed_move_token:
                logger.debug("Ignoring stale timed move timer")
                return
            self._timed_move_token = None
            self._timed_move_timer = None

            try:
                self.session.send(Command.abort())
            except (TransportError, NotConnectedError) as e:
                logger.error(f"Failed to stop timed move: {e}")

            self._state.is_moving = False
            self._state.phase = MotionPhase.IDLE

        logger.info("Timed move finished")

    def _cancel_timed_move(self) -> None:
        if self._timed_move_timer is not None:
            self._timed_move_timer.cancel()
            logger.debug("Pending timed move cancelled")
        self._timed_move_timer = None
        self._timed_move_token = None

    def sync(self, position: int) -> None:
        """
        Relabel the current physical position without moving.

        SP has no reply, so local state is set as soon as the write succeeds;
        the next poll re-reads the real position.

        Raises:
            InvalidValueError: If position is outside the protocol range.
            DeviceUnreachableError: If the command could not be sent.
        """
        self._check_connected()
        command = _build(Command.sync_position, position)

        with self._lock:
            try:
                self.session.send(command)
            except TransportError as e:
                raise DeviceUnreachableError(f"Failed to sync position to {position}: {e}") from e

            self._state.current_position = position
            self._state.target_position = position

        logger.info(f"Position synced to {position}")

    def abort(self) -> None:
        """
        Stop movement immediately. Safe to call when idle.

        Raises:
            NotConnectedError: If not connected.
            DeviceUnreachableError: If the abort could not be sent.
        """
        self._check_connected()

        with self._lock:
            self._cancel_timed_move()
            try:
                self.session.send(Command.abort())
            except TransportError as e:
                raise DeviceUnreachableError(f"Failed to abort motion: {e}") from e

            self._state.is_moving = False
            self._state.phase = MotionPhase.IDLE

        logger.info("Halt command sent")

    def go_home(self) -> MotionPhase:
        """
        Send the focuser to its home position, aborting any motion first.

        Raises:
            DeviceUnreachableError: If the command could not be sent.
        """
        self._check_connected()

        with self._lock:
            if self._try_query(QueryKind.IS_MOVING):
                self.abort()
            self._cancel_timed_move()

            self._state.target_position = 0
            try:
                self.session.send(Command.go_home())
            except TransportError as e:
                self._state.phase = MotionPhase.ALERT
                raise DeviceUnreachableError(f"Failed to go home: {e}") from e

            self._state.phase = MotionPhase.BUSY

        logger.info("Going to home position")
        return MotionPhase.BUSY

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_speed(self, speed: int) -> None:
        self._check_connected()
        command = _build(Command.set_speed, speed)
        with self._lock:
            self.session.send(command)
            self._state.speed = speed
        logger.info(f"Speed set to {speed}")

    def set_step_mode(self, mode: int) -> None:
        """Set microstepping mode (reference firmware only, not read back)."""
        self._check_connected()
        command = _build(Command.set_step_mode, mode)
        with self._lock:
            self.session.send(command)
        logger.info(f"Step mode set to {mode}")

    def set_reverse(self, enabled: bool) -> None:
        self._check_connected()
        with self._lock:
            self.session.send(Command.set_reverse(enabled))
            self._state.reversed = enabled
        logger.info(f"Reverse direction {'enabled' if enabled else 'disabled'}")

    def set_coil_power(self, power: CoilPower) -> None:
        self._check_connected()
        with self._lock:
            self.session.send(Command.set_coil_power(power == CoilPower.ON))
            self._state.coil_power = power
        logger.info(f"Coil power {power.name}")

    def set_temperature_calibration(self, calibration: int) -> None:
        self._check_connected()
        with self._lock:
            self.session.send(Command.set_temperature_calibration(calibration))
            self._state.temperature_calibration = float(calibration)
        logger.info(f"Temperature calibration set to {calibration}")

    def set_temperature_coefficient(self, coefficient: int) -> None:
        self._check_connected()
        with self._lock:
            self.session.send(Command.set_temperature_coefficient(coefficient))
            self._state.temperature_coefficient = float(coefficient)
        logger.info(f"Temperature coefficient set to {coefficient}")

    def set_temperature_compensation(self, enabled: bool) -> None:
        self._check_connected()
        with self._lock:
            self.session.send(Command.set_temperature_compensation(enabled))
            self._state.temperature_compensation_enabled = enabled
        logger.info(f"Temperature compensation {'enabled' if enabled else 'disabled'}")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll_tick(self, previous_position: int, previous_temperature: float) -> PollResult:
        """
        Refresh position and temperature and detect move completion.

        Args:
            previous_position: Last published position.
            previous_temperature: Last published temperature.

        Returns:
            PollResult with change events and the baselines for the next tick.

        Raises:
            NotConnectedError: If not connected.
        """
        self._check_connected()

        with self._lock:
            state = self._state

            position = self._try_query(QueryKind.POSITION)
            if position is not None:
                state.current_position = position

            temperature = self._try_query(QueryKind.TEMPERATURE)
            if temperature is not None:
                state.temperature = temperature

            reported_position = previous_position
            position_changed = False
            if position is not None and abs(position - previous_position) > self.POSITION_HYSTERESIS:
                position_changed = True
                reported_position = position

            reported_temperature = previous_temperature
            temperature_changed = False
            if temperature is not None and abs(temperature - previous_temperature) >= self.TEMPERATURE_HYSTERESIS:
                temperature_changed = True
                reported_temperature = temperature

            move_completed = False
            if state.phase == MotionPhase.BUSY:
                moving = self._try_query(QueryKind.IS_MOVING)
                if moving is not None:
                    state.is_moving = moving
                    if not moving:
                        state.phase = MotionPhase.IDLE
                        move_completed = True
                        reported_position = state.current_position
                        logger.info("Focuser reached requested position.")

            return PollResult(
                position=state.current_position,
                temperature=state.temperature,
                is_moving=state.is_moving,
                phase=state.phase,
                position_changed=position_changed,
                temperature_changed=temperature_changed,
                move_completed=move_completed,
                reported_position=reported_position,
                reported_temperature=reported_temperature,
            )
