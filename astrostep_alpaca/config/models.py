"""
Configuration models using Pydantic for validation.

All configuration is loaded from config.json and validated at startup.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    ip: str = Field(default="0.0.0.0", description="IP address to bind to")
    port: int = Field(default=5000, ge=1, le=65535, description="HTTP port")


class SerialConfig(BaseModel):
    """Serial port configuration."""

    port: str = Field(
        default="/dev/ttyUSB0",
        description="Serial device (e.g., /dev/ttyUSB0, COM3) or pyserial URL (socket://host:port)"
    )
    baud: int = Field(default=9600, description="Baud rate")


class FocuserConfig(BaseModel):
    """Focuser travel and polling configuration."""

    step_size_microns: float = Field(
        default=1.0, gt=0, description="Step size in microns"
    )
    min_position: int = Field(
        default=0, ge=0, description="Minimum position limit"
    )
    max_position: int = Field(
        default=1000000, ge=0, le=999999999, description="Maximum position limit"
    )
    polling_period_ms: int = Field(
        default=500, ge=50, le=10000, description="Status polling period (ms)"
    )

    @field_validator("max_position")
    @classmethod
    def validate_max_greater_than_min(cls, v, info):
        """Ensure max_position > min_position."""
        if "min_position" in info.data and v <= info.data["min_position"]:
            raise ValueError(
                f"max_position ({v}) must be greater than min_position ({info.data['min_position']})"
            )
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    file: Optional[str] = Field(
        default="astrostep_alpaca.log",
        description="Log file path (None for console only)"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SimulatorConfig(BaseModel):
    """Simulated AstroStep firmware configuration."""

    enabled: bool = Field(default=False, description="Use simulator instead of real hardware")
    initial_position: int = Field(default=0, ge=0, description="Starting position")
    movement_speed_steps_per_sec: int = Field(
        default=2000, ge=1, description="Simulated movement speed"
    )
    firmware_version: str = Field(default="1.02", description="Firmware version (4 characters)")
    temperature_celsius: float = Field(default=16.5, description="Simulated temperature")
    temperature_noise_celsius: float = Field(
        default=0.0, ge=0, description="Temperature noise amplitude"
    )
    inject_timeout: bool = Field(default=False, description="Drop every reply")
    inject_malformed_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Fraction of replies replaced by garbage (0.0-1.0)"
    )

    @field_validator("firmware_version")
    @classmethod
    def validate_firmware_version(cls, v):
        """GV replies are read by fixed byte count, so the version is exactly 4 characters."""
        if len(v) != 4 or "#" in v:
            raise ValueError("Firmware version must be 4 characters without '#' (e.g., '1.02')")
        return v


class AppConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    server: ServerConfig = Field(default_factory=ServerConfig)
    serial: SerialConfig = Field(default_factory=SerialConfig)
    focuser: FocuserConfig = Field(default_factory=FocuserConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
