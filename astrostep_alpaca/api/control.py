"""
AstroStep-specific control endpoints (beyond the Alpaca IFocuser surface).
"""

import logging
from typing import Callable

from fastapi import APIRouter, HTTPException, Query, Request

from astrostep_alpaca.api.models import (
    CoilPowerRequest,
    RelativeMoveRequest,
    ReverseRequest,
    SpeedRequest,
    SyncRequest,
    TemperatureSettingsRequest,
    TimedMoveRequest,
)
from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.protocol.logger import get_protocol_logger
from astrostep_alpaca.utils.exceptions import (
    AstroStepException,
    InvalidValueError,
    NotConnectedError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/astrostep", tags=["astrostep"])


def get_focuser(request: Request) -> FocuserController:
    """Get focuser controller from app.state."""
    focuser = getattr(request.app.state, 'focuser', None)
    if focuser is None:
        raise HTTPException(status_code=503, detail="Focuser not available")
    return focuser


def _run(action: Callable[[], object], description: str):
    """Run a controller call, translating driver errors to HTTP errors."""
    try:
        return action()
    except (NotConnectedError, InvalidValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AstroStepException as e:
        logger.error(f"Error during {description}: {e}")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}")


@router.get("/status")
async def get_status(request: Request):
    """Get focuser state snapshot and the latest poll events."""
    focuser = get_focuser(request)
    poller = getattr(request.app.state, 'poller', None)
    last = poller.last_result if poller else None

    return {
        "connected": focuser.connected,
        "port": getattr(focuser.session.transport, 'port_name', None),
        "min_position": focuser.config.min_position,
        "max_position": focuser.config.max_position,
        "state": focuser.state.to_dict(),
        "last_poll": None if last is None else {
            "position_changed": last.position_changed,
            "temperature_changed": last.temperature_changed,
            "move_completed": last.move_completed,
        },
    }


@router.post("/move/relative")
async def move_relative(request: Request, body: RelativeMoveRequest):
    """Move inward/outward by a number of ticks (clamped to travel limits)."""
    focuser = get_focuser(request)
    phase = _run(lambda: focuser.move_relative(body.direction, body.ticks), "relative move")
    return {"status": "ok", "phase": phase.value, "target": focuser.state.target_position}


@router.post("/move/timed")
async def move_timed(request: Request, body: TimedMoveRequest):
    """Move in a direction for a fixed time."""
    focuser = get_focuser(request)
    phase = _run(lambda: focuser.move_timed(body.direction, body.speed, body.duration_ms), "timed move")
    return {"status": "ok", "phase": phase.value}


@router.post("/home")
async def go_home(request: Request):
    """Send the focuser to its home position."""
    focuser = get_focuser(request)
    phase = _run(focuser.go_home, "go home")
    return {"status": "ok", "phase": phase.value}


@router.post("/sync")
async def sync_position(request: Request, body: SyncRequest):
    """Relabel the current position without moving."""
    focuser = get_focuser(request)
    _run(lambda: focuser.sync(body.position), "sync")
    logger.info(f"[API] Position synced to {body.position}")
    return {"status": "ok", "position": body.position}


@router.put("/speed")
async def set_speed(request: Request, body: SpeedRequest):
    focuser = get_focuser(request)
    _run(lambda: focuser.set_speed(body.speed), "set speed")
    return {"status": "ok", "speed": body.speed}


@router.put("/reverse")
async def set_reverse(request: Request, body: ReverseRequest):
    focuser = get_focuser(request)
    _run(lambda: focuser.set_reverse(body.enabled), "set reverse")
    return {"status": "ok", "reversed": body.enabled}


@router.put("/coilpower")
async def set_coil_power(request: Request, body: CoilPowerRequest):
    focuser = get_focuser(request)
    _run(lambda: focuser.set_coil_power(body.power), "set coil power")
    return {"status": "ok", "coil_power": body.power.name}


@router.put("/temperature")
async def set_temperature_settings(request: Request, body: TemperatureSettingsRequest):
    """Update any of calibration, coefficient and compensation."""
    focuser = get_focuser(request)

    if body.calibration is not None:
        _run(lambda: focuser.set_temperature_calibration(body.calibration), "set temperature calibration")
    if body.coefficient is not None:
        _run(lambda: focuser.set_temperature_coefficient(body.coefficient), "set temperature coefficient")
    if body.compensation is not None:
        _run(lambda: focuser.set_temperature_compensation(body.compensation), "set temperature compensation")

    state = focuser.state
    return {
        "status": "ok",
        "calibration": state.temperature_calibration,
        "coefficient": state.temperature_coefficient,
        "compensation": state.temperature_compensation_enabled,
    }


@router.get("/protocol/log")
async def get_protocol_log(limit: int = Query(100, ge=1, le=500)):
    """Recent TX/RX frames and counters."""
    protocol_logger = get_protocol_logger()
    return {
        "messages": protocol_logger.get_messages(limit=limit),
        "stats": protocol_logger.get_stats(),
    }


@router.delete("/protocol/log")
async def clear_protocol_log():
    get_protocol_logger().clear()
    return {"status": "ok"}
