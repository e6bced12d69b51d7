"""
Focuser state model shared by the controller, the poller and the API.
"""

from dataclasses import dataclass
from enum import Enum


class MotionPhase(Enum):
    """Motion status of the focuser (mirrors INDI property states)."""
    IDLE = "idle"
    BUSY = "busy"    # Move issued, waiting for the device to report not-moving
    ALERT = "alert"  # Move issuance failed


class CoilPower(Enum):
    OFF = 0
    ON = 1


class FocusDirection(Enum):
    INWARD = "inward"
    OUTWARD = "outward"


@dataclass
class FocuserState:
    """
    Authoritative software view of the device.

    current_position and is_moving come from decoded device replies;
    target_position is set as soon as a move is issued.
    """
    current_position: int = 0
    target_position: int = 0
    is_moving: bool = False
    speed: int = 0
    temperature: float = 0.0
    temperature_calibration: float = 0.0
    temperature_coefficient: float = 0.0
    temperature_compensation_enabled: bool = False
    coil_power: CoilPower = CoilPower.ON
    reversed: bool = False
    firmware_version: str = ""
    phase: MotionPhase = MotionPhase.IDLE

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "current_position": self.current_position,
            "target_position": self.target_position,
            "is_moving": self.is_moving,
            "speed": self.speed,
            "temperature": self.temperature,
            "temperature_calibration": self.temperature_calibration,
            "temperature_coefficient": self.temperature_coefficient,
            "temperature_compensation_enabled": self.temperature_compensation_enabled,
            "coil_power": self.coil_power.name,
            "reversed": self.reversed,
            "firmware_version": self.firmware_version,
            "phase": self.phase.value,
        }


@dataclass(frozen=True)
class PollResult:
    """
    Outcome of one poll tick.

    reported_position / reported_temperature are the last values published
    as change events; feed them back as the baselines of the next tick.
    """
    position: int
    temperature: float
    is_moving: bool
    phase: MotionPhase
    position_changed: bool = False
    temperature_changed: bool = False
    move_completed: bool = False
    reported_position: int = 0
    reported_temperature: float = 0.0

    @property
    def has_events(self) -> bool:
        return self.position_changed or self.temperature_changed or self.move_completed
