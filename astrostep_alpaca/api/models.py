"""
Pydantic models for the API: Alpaca envelope and AstroStep control requests.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from astrostep_alpaca.api.error_mapper import map_exception_to_alpaca
from astrostep_alpaca.focuser.state import CoilPower, FocusDirection


class AlpacaResponse(BaseModel):
    """
    Standard ASCOM Alpaca response envelope.

    All Alpaca device endpoints return this format.
    """
    Value: Any = Field(None, description="Response value (type varies by endpoint)")
    ClientTransactionID: int = Field(0, description="Client transaction ID (echo from request)")
    ServerTransactionID: int = Field(description="Server transaction ID (auto-incremented)")
    ErrorNumber: int = Field(0, description="Error code (0 = success, non-zero = error)")
    ErrorMessage: str = Field("", description="Error message (empty string if no error)")


def make_response(
    value: Any,
    client_id: int = 0,
    server_id: int = 0,
    error: Optional[Exception] = None
) -> AlpacaResponse:
    """
    Helper to create Alpaca response.

    Args:
        value: Response value (ignored if error).
        client_id: Client transaction ID.
        server_id: Server transaction ID.
        error: Exception (if any).
    """
    if error is None:
        return AlpacaResponse(
            Value=value,
            ClientTransactionID=client_id,
            ServerTransactionID=server_id,
        )

    error_number, error_message = map_exception_to_alpaca(error)
    return AlpacaResponse(
        Value=None,
        ClientTransactionID=client_id,
        ServerTransactionID=server_id,
        ErrorNumber=error_number,
        ErrorMessage=error_message
    )


class RelativeMoveRequest(BaseModel):
    direction: FocusDirection
    ticks: int = Field(..., ge=0, description="Steps to move")


class TimedMoveRequest(BaseModel):
    direction: FocusDirection
    speed: int = Field(..., ge=1, description="Motor speed")
    duration_ms: int = Field(..., ge=1, le=65535, description="Move duration (ms)")


class SyncRequest(BaseModel):
    position: int = Field(..., ge=0, description="New label for the current position")


class SpeedRequest(BaseModel):
    speed: int = Field(..., ge=1)


class ReverseRequest(BaseModel):
    enabled: bool


class CoilPowerRequest(BaseModel):
    power: CoilPower = Field(..., description="0 = off, 1 = on")


class TemperatureSettingsRequest(BaseModel):
    """Temperature calibration offset and compensation coefficient."""
    calibration: Optional[int] = Field(None, ge=-100, le=100)
    coefficient: Optional[int] = Field(None, ge=-100, le=100)
    compensation: Optional[bool] = None
