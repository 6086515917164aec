"""Tests for UpdatePoller."""

import sys
import os
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from bot.polling import BotState, UpdatePoller
from sdk.exceptions import APIException
from sdk.models import Update


def _updates(*ids: int) -> list:
    return [Update(update_id=i) for i in ids]


class TestPollOnce:
    """Validate batch submission and offset tracking."""

    def test_submits_batch_and_advances_offset(self) -> None:
        client = MagicMock()
        client.get_updates.return_value = _updates(5, 6, 7)
        executor = MagicMock()
        poller = UpdatePoller(client, MagicMock(), polling_timeout=10)

        assert poller.poll_once(executor) == 3

        assert poller.offset == 8
        assert executor.submit.call_count == 3
        client.get_updates.assert_called_once_with(offset=None, timeout=10)

    def test_next_poll_acknowledges_previous_batch(self) -> None:
        client = MagicMock()
        client.get_updates.side_effect = [_updates(5), []]
        poller = UpdatePoller(client, MagicMock())

        poller.poll_once(MagicMock())
        assert poller.poll_once(MagicMock()) == 0

        assert client.get_updates.call_args.kwargs["offset"] == 6
        assert poller.offset == 6

    def test_handler_errors_are_contained(self) -> None:
        dispatch = MagicMock(side_effect=RuntimeError("boom"))
        poller = UpdatePoller(MagicMock(), dispatch)

        poller._handle(Update(update_id=1))  # must not raise
        dispatch.assert_called_once()


class TestPollerLifecycle:
    """Validate state transitions of the polling loop."""

    def test_stop_when_idle_fails(self) -> None:
        poller = UpdatePoller(MagicMock(), MagicMock())
        assert poller.state is BotState.IDLE
        with pytest.raises(RuntimeError):
            poller.stop()

    def test_start_async_then_stop(self) -> None:
        delivered = threading.Event()
        client = MagicMock()

        def get_updates(offset=None, timeout=None):
            time.sleep(0.01)
            return _updates(1) if offset is None else []

        client.get_updates.side_effect = get_updates
        poller = UpdatePoller(client, lambda update: delivered.set(), workers=1)

        thread = poller.start_async()
        assert delivered.wait(timeout=5)
        with pytest.raises(RuntimeError):
            poller.start_async()

        poller.stop()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert poller.state is BotState.IDLE
        assert poller.offset == 2

    @pytest.mark.parametrize("error", [
        APIException(409, '{"ok":false,"error_code":409,"description":"Conflict"}'),
        requests.ConnectionError("offline"),
    ])
    def test_failed_poll_is_reported_and_retried(self, error) -> None:
        client = MagicMock()
        client.get_updates.side_effect = error
        failures = []

        def on_failure(exc: Exception) -> None:
            failures.append(exc)
            if len(failures) == 2:
                poller.stop()

        poller = UpdatePoller(client, MagicMock(), failure_delay=0.01, on_failure=on_failure)
        poller.start()

        assert failures == [error, error]
        assert client.get_updates.call_count == 2
        assert poller.state is BotState.IDLE
