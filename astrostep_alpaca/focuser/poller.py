"""
Periodic status polling.

The poller is only a timing source: every period it asks the controller for a
poll tick, keeps the hysteresis baselines between ticks and republishes
change events to listeners.
"""

import logging
import threading
from typing import Callable, List, Optional

from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.focuser.state import PollResult


logger = logging.getLogger(__name__)

PollListener = Callable[[PollResult], None]


class PollingDriver:
    """Background thread calling FocuserController.poll_tick every period."""

    def __init__(
        self,
        controller: FocuserController,
        period_ms: int,
        listeners: Optional[List[PollListener]] = None,
    ):
        """
        Initialize polling driver.

        Args:
            controller: Focuser state machine to poll.
            period_ms: Polling period in milliseconds.
            listeners: Callbacks invoked with each PollResult carrying events.
        """
        self.controller = controller
        self.period_ms = period_ms
        self._listeners: List[PollListener] = list(listeners or [])

        self._last_position: Optional[int] = None
        self._last_temperature: Optional[float] = None
        self.last_result: Optional[PollResult] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_polling = threading.Event()

    def add_listener(self, listener: PollListener) -> None:
        self._listeners.append(listener)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the polling thread (no-op if already running)."""
        if self.is_running:
            return

        self._stop_polling.clear()
        self._thread = threading.Thread(target=self._run, name="astrostep-poller", daemon=True)
        self._thread.start()
        logger.debug(f"Polling started ({self.period_ms} ms)")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the polling thread and wait for it to exit."""
        self._stop_polling.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.debug("Polling stopped")

    def _run(self) -> None:
        while not self._stop_polling.wait(self.period_ms / 1000.0):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in polling thread: {e}")

    def tick(self) -> Optional[PollResult]:
        """
        Run one poll cycle.

        Returns:
            The PollResult, or None when the focuser is not connected.
        """
        if not self.controller.connected:
            # Re-seed baselines on the next connection
            self._last_position = None
            self._last_temperature = None
            return None

        if self._last_position is None or self._last_temperature is None:
            state = self.controller.state
            self._last_position = state.current_position
            self._last_temperature = state.temperature

        result = self.controller.poll_tick(self._last_position, self._last_temperature)
        self._last_position = result.reported_position
        self._last_temperature = result.reported_temperature
        self.last_result = result

        if result.has_events:
            self._publish(result)
        return result

    def _publish(self, result: PollResult) -> None:
        for listener in self._listeners:
            try:
                listener(result)
            except Exception as e:
                logger.error(f"Poll listener failed: {e}")
