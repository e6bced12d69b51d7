"""
FastAPI application factory.
"""

import itertools
import logging
import threading

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from astrostep_alpaca import __version__
from astrostep_alpaca.api.models import make_response
from astrostep_alpaca.utils.exceptions import AstroStepException


logger = logging.getLogger(__name__)

# Global server transaction ID counter (thread-safe)
_transaction_counter = itertools.count(1)
_transaction_lock = threading.Lock()


def get_next_transaction_id() -> int:
    """
    Get next server transaction ID (thread-safe).

    Returns:
        Incremented transaction ID.
    """
    with _transaction_lock:
        return next(_transaction_counter)


def create_app() -> FastAPI:
    """
    Create FastAPI application instance with the Alpaca and control routers.

    The caller stores the focuser controller and poller in app.state.

    Returns:
        Configured FastAPI app.
    """
    # Imported here: the routers import get_next_transaction_id from this module
    from astrostep_alpaca.api.control import router as control_router
    from astrostep_alpaca.api.routes import router as focuser_router

    app = FastAPI(
        title="AstroStep ASCOM Alpaca Driver",
        description="ASCOM Alpaca v1 driver for the AstroStep focuser",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware (allow all origins for Alpaca compatibility)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def global_exception_handler(request: Request, exc: Exception):
        """Catch all unhandled exceptions and return Alpaca error response."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)

        # ClientTransactionID travels in the query string (GET) or form body (PUT)
        client_id = 0
        try:
            if request.method == "PUT":
                form_data = await request.form()
                client_id = int(form_data.get("ClientTransactionID", 0))
            else:
                client_id = int(request.query_params.get("ClientTransactionID", 0))
        except (ValueError, TypeError, RuntimeError):
            # RuntimeError: body no longer readable outside the router
            pass

        response = make_response(
            value=None,
            client_id=client_id,
            server_id=get_next_transaction_id(),
            error=exc
        )

        return JSONResponse(
            status_code=200,  # Alpaca always returns 200
            content=response.model_dump()
        )

    # Driver errors are handled inside the router, where the parsed form is
    # still attached to the request; anything else falls through to Exception
    app.add_exception_handler(AstroStepException, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/management/apiversions")
    async def get_api_versions():
        """Return supported Alpaca API versions."""
        return {"Value": [1]}

    @app.get("/management/v1/configureddevices")
    async def get_configured_devices():
        """Return list of configured devices."""
        return {
            "Value": [
                {
                    "DeviceName": "AstroStep",
                    "DeviceType": "Focuser",
                    "DeviceNumber": 0,
                    "UniqueID": "astrostep-alpaca-0"
                }
            ]
        }

    @app.get("/management/v1/description")
    async def get_server_description():
        """Return server description."""
        return {
            "Value": {
                "ServerName": "AstroStep Alpaca Driver",
                "Manufacturer": "Custom",
                "ManufacturerVersion": __version__,
                "Location": "localhost"
            }
        }

    app.include_router(focuser_router)
    app.include_router(control_router)

    logger.info("FastAPI application created")
    return app
