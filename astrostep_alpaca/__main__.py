"""
Main entry point for AstroStep ASCOM Alpaca Driver.

Usage:
    python -m astrostep_alpaca [--config CONFIG_PATH] [--simulator]
"""

import argparse
import logging
import signal
import sys

import uvicorn

from astrostep_alpaca import __version__
from astrostep_alpaca.api.app import create_app
from astrostep_alpaca.config.loader import load_config, ConfigurationError
from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.focuser.poller import PollingDriver
from astrostep_alpaca.focuser.state import PollResult
from astrostep_alpaca.protocol.session import DeviceSession
from astrostep_alpaca.protocol.transport import SerialTransport
from astrostep_alpaca.simulator.mock_device import SimulatedFocuser
from astrostep_alpaca.utils.logging_setup import setup_logging


logger = logging.getLogger(__name__)


# Global resources for cleanup
poller = None
focuser_controller = None


def shutdown() -> None:
    """Stop polling and disconnect the focuser."""
    if poller:
        poller.stop()
    if focuser_controller:
        focuser_controller.disconnect()


def signal_handler(signum, frame):
    """Handle shutdown signals (SIGINT, SIGTERM)."""
    logger.info(f"Received signal {signum}, shutting down...")
    shutdown()
    sys.exit(0)


def log_poll_events(result: PollResult) -> None:
    """Default poll listener: report change events in the log."""
    if result.position_changed:
        logger.info(f"Position: {result.position}")
    if result.temperature_changed:
        logger.info(f"Temperature: {result.temperature:.2f}°C")
    if result.move_completed:
        logger.info(f"Move completed at position {result.position}")


def main():
    """Main application entry point."""
    global poller, focuser_controller

    parser = argparse.ArgumentParser(description="AstroStep ASCOM Alpaca Driver")
    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to configuration file (default: config.json)"
    )
    parser.add_argument(
        "--simulator",
        action="store_true",
        help="Use the simulated focuser instead of real hardware"
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    logger.info("=" * 60)
    logger.info(f"AstroStep ASCOM Alpaca Driver v{__version__}")
    logger.info("=" * 60)

    use_simulator = args.simulator or config.simulator.enabled
    if use_simulator:
        logger.info("Using SIMULATOR mode")
        transport = SimulatedFocuser(config.simulator)
    else:
        logger.info(f"Using REAL HARDWARE mode on {config.serial.port}")
        transport = SerialTransport(config.serial)

    session = DeviceSession(transport)
    focuser_controller = FocuserController(session, config.focuser)

    # Poller runs from boot and stays idle until a client connects
    poller = PollingDriver(
        focuser_controller,
        config.focuser.polling_period_ms,
        listeners=[log_poll_events],
    )
    poller.start()

    app = create_app()
    app.state.focuser = focuser_controller
    app.state.poller = poller

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting Alpaca API server on {config.server.ip}:{config.server.port}")
    logger.info("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=config.server.ip,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=False  # Disable noisy HTTP access logs
        )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
