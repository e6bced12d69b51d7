"""
ASCOM Alpaca API endpoints for focuser.

Position, temperature and motion status are served from the controller
state, which the polling driver keeps fresh; only commands touch the device.
"""

import logging
from fastapi import APIRouter, Form, Query, Depends, Request

from astrostep_alpaca import __version__
from astrostep_alpaca.api.models import AlpacaResponse, make_response
from astrostep_alpaca.api.app import get_next_transaction_id
from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.focuser.state import MotionPhase
from astrostep_alpaca.utils.exceptions import InvalidValueError, NotConnectedError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/focuser/0", tags=["focuser"])


def get_focuser(request: Request) -> FocuserController:
    """Dependency to get focuser controller from app.state."""
    focuser = getattr(request.app.state, 'focuser', None)
    if focuser is None:
        raise RuntimeError("Focuser controller not initialized")
    return focuser


def get_client_id(ClientTransactionID: int = Query(0)) -> int:
    """Extract client transaction ID from query params."""
    return ClientTransactionID


def get_client_id_form(ClientTransactionID: int = Form(0)) -> int:
    """Extract client transaction ID from form data."""
    return ClientTransactionID


def _connected_state(focuser: FocuserController):
    if not focuser.connected:
        raise NotConnectedError("Focuser not connected")
    return focuser.state


@router.get("/health")
async def health_check():
    """Simple health check endpoint (no dependencies)."""
    return {"status": "ok", "message": "Server is running"}


# GET endpoints

@router.get("/connected", response_model=AlpacaResponse)
async def get_connected(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get connection status."""
    return make_response(focuser.connected, client_id, get_next_transaction_id())


@router.get("/position", response_model=AlpacaResponse)
async def get_position(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get current position (last value read from the device)."""
    try:
        value = _connected_state(focuser).current_position
        logger.debug(f"GET /position -> {value}")
        return make_response(value, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /position: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.get("/ismoving", response_model=AlpacaResponse)
async def get_ismoving(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Check if a move is in progress."""
    if not focuser.connected:
        return make_response(False, client_id, get_next_transaction_id())
    value = focuser.phase == MotionPhase.BUSY
    return make_response(value, client_id, get_next_transaction_id())


@router.get("/temperature", response_model=AlpacaResponse)
async def get_temperature(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get temperature in Celsius."""
    try:
        value = _connected_state(focuser).temperature
        logger.debug(f"GET /temperature -> {value:.2f}°C")
        return make_response(value, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /temperature: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.get("/tempcomp", response_model=AlpacaResponse)
async def get_tempcomp(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get temperature compensation status."""
    value = focuser.state.temperature_compensation_enabled
    return make_response(value, client_id, get_next_transaction_id())


@router.get("/tempcompavailable", response_model=AlpacaResponse)
async def get_tempcompavailable(
    client_id: int = Depends(get_client_id)
):
    """AstroStep firmware compensates temperature on the device."""
    return make_response(True, client_id, get_next_transaction_id())


@router.get("/absolute", response_model=AlpacaResponse)
async def get_absolute(
    client_id: int = Depends(get_client_id)
):
    """Return True (supports absolute positioning)."""
    return make_response(True, client_id, get_next_transaction_id())


@router.get("/maxstep", response_model=AlpacaResponse)
async def get_maxstep(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get maximum position."""
    return make_response(focuser.config.max_position, client_id, get_next_transaction_id())


@router.get("/maxincrement", response_model=AlpacaResponse)
async def get_maxincrement(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get maximum single move increment (full travel)."""
    value = focuser.config.max_position - focuser.config.min_position
    return make_response(value, client_id, get_next_transaction_id())


@router.get("/stepsize", response_model=AlpacaResponse)
async def get_stepsize(
    client_id: int = Depends(get_client_id),
    focuser: FocuserController = Depends(get_focuser)
):
    """Get step size in microns."""
    return make_response(focuser.config.step_size_microns, client_id, get_next_transaction_id())


@router.get("/interfaceversion", response_model=AlpacaResponse)
async def get_interfaceversion(
    client_id: int = Depends(get_client_id)
):
    """Get ASCOM interface version."""
    return make_response(3, client_id, get_next_transaction_id())  # IFocuserV3


@router.get("/driverversion", response_model=AlpacaResponse)
async def get_driverversion(
    client_id: int = Depends(get_client_id)
):
    """Get driver version."""
    return make_response(__version__, client_id, get_next_transaction_id())


@router.get("/driverinfo", response_model=AlpacaResponse)
async def get_driverinfo(
    client_id: int = Depends(get_client_id)
):
    """Get driver information."""
    info = "ASCOM Alpaca Driver for AstroStep Focuser"
    return make_response(info, client_id, get_next_transaction_id())


@router.get("/description", response_model=AlpacaResponse)
async def get_description(
    client_id: int = Depends(get_client_id)
):
    """Get device description."""
    return make_response("AstroStep Motorized Focuser", client_id, get_next_transaction_id())


@router.get("/name", response_model=AlpacaResponse)
async def get_name(
    client_id: int = Depends(get_client_id)
):
    """Get device name."""
    return make_response("AstroStep", client_id, get_next_transaction_id())


@router.get("/supportedactions", response_model=AlpacaResponse)
async def get_supportedactions(
    client_id: int = Depends(get_client_id)
):
    """Get list of supported actions (empty)."""
    return make_response([], client_id, get_next_transaction_id())


# PUT endpoints

@router.put("/connected", response_model=AlpacaResponse)
async def put_connected(
    Connected: bool = Form(...),
    client_id: int = Depends(get_client_id_form),
    focuser: FocuserController = Depends(get_focuser)
):
    """Connect or disconnect focuser."""
    try:
        if Connected:
            focuser.connect()
            logger.info("Focuser connected via API")
        else:
            focuser.disconnect()
            logger.info("Focuser disconnected via API")
        return make_response(None, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /connected PUT: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.put("/move", response_model=AlpacaResponse)
async def put_move(
    Position: int = Form(...),
    client_id: int = Depends(get_client_id_form),
    focuser: FocuserController = Depends(get_focuser)
):
    """Move to absolute position (non-blocking)."""
    try:
        config = focuser.config
        if Position < config.min_position or Position > config.max_position:
            raise InvalidValueError(
                f"Position {Position} out of range [{config.min_position}, {config.max_position}]"
            )
        focuser.move_absolute(Position)
        logger.info(f"Move command: target={Position}")
        return make_response(None, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /move: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.put("/halt", response_model=AlpacaResponse)
async def put_halt(
    client_id: int = Depends(get_client_id_form),
    focuser: FocuserController = Depends(get_focuser)
):
    """Stop movement immediately."""
    try:
        focuser.abort()
        logger.info("Halt command executed")
        return make_response(None, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /halt: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)


@router.put("/tempcomp", response_model=AlpacaResponse)
async def put_tempcomp(
    TempComp: bool = Form(...),
    client_id: int = Depends(get_client_id_form),
    focuser: FocuserController = Depends(get_focuser)
):
    """Enable or disable on-device temperature compensation."""
    try:
        focuser.set_temperature_compensation(TempComp)
        return make_response(None, client_id, get_next_transaction_id())
    except Exception as e:
        logger.error(f"Error in /tempcomp PUT: {e}")
        return make_response(None, client_id, get_next_transaction_id(), e)
