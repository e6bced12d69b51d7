"""Tests for PollingDriver."""

import time
from unittest.mock import MagicMock

from astrostep_alpaca.config.models import FocuserConfig
from astrostep_alpaca.focuser.controller import FocuserController
from astrostep_alpaca.focuser.poller import PollingDriver
from astrostep_alpaca.focuser.state import MotionPhase


class TestTick:
    def test_disconnected_tick_does_nothing(self, session, transport):
        ctrl = FocuserController(session, FocuserConfig())
        poller = PollingDriver(ctrl, 100)

        assert poller.tick() is None
        assert transport.writes == []

    def test_single_event_for_small_steps(self, controller, transport):
        listener = MagicMock()
        poller = PollingDriver(controller, 100, listeners=[listener])

        for position in (100, 102, 104, 106):
            transport.queue(f"{position}#".encode(), b"20.5#")
            poller.tick()

        listener.assert_called_once()
        assert listener.call_args.args[0].position == 106

    def test_small_changes_accumulate_against_last_event(self, controller, transport):
        listener = MagicMock()
        poller = PollingDriver(controller, 100, listeners=[listener])

        for position in (103, 106, 109, 112):
            transport.queue(f"{position}#".encode(), b"20.5#")
            poller.tick()

        # 106 fires against 100, then 112 fires against 106
        assert [c.args[0].position for c in listener.call_args_list] == [106, 112]

    def test_move_completion_is_published(self, controller, transport):
        listener = MagicMock()
        poller = PollingDriver(controller, 100, listeners=[listener])
        controller.move_absolute(5000)

        transport.queue(b"4995#", b"20.5#", b"1#")
        poller.tick()
        transport.queue(b"5000#", b"20.5#", b"0#")
        result = poller.tick()

        assert result.move_completed
        assert poller.last_result is result
        assert listener.call_args.args[0].move_completed
        assert controller.phase == MotionPhase.IDLE

    def test_listener_failure_does_not_stop_others(self, controller, transport):
        broken = MagicMock(side_effect=RuntimeError("boom"))
        listener = MagicMock()
        poller = PollingDriver(controller, 100, listeners=[broken])
        poller.add_listener(listener)

        transport.queue(b"500#", b"20.5#")
        poller.tick()

        broken.assert_called_once()
        listener.assert_called_once()

    def test_baseline_reseeded_after_reconnect(self, controller, transport):
        listener = MagicMock()
        poller = PollingDriver(controller, 100, listeners=[listener])

        transport.queue(b"500#", b"20.5#")
        poller.tick()
        assert listener.call_count == 1

        controller.disconnect()
        assert poller.tick() is None

        transport.queue(*_reconnect_replies(position=800))
        controller.connect()
        transport.queue(b"800#", b"20.5#")
        poller.tick()

        # Baseline comes from the fresh connection, so no event
        assert listener.call_count == 1


class TestThread:
    def test_start_stop(self, session):
        ctrl = FocuserController(session, FocuserConfig())
        poller = PollingDriver(ctrl, 50)

        poller.start()
        assert poller.is_running
        time.sleep(0.12)
        poller.stop()

        assert not poller.is_running


def _reconnect_replies(position):
    return (b"1.02", f"{position}#".encode(), b"20.5#", b"100#", b"1#", b"0.0#", b"0.0#", b"0#")
