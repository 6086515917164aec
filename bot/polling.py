"""Long-polling alternative to the webhook server.

:class:`UpdatePoller` repeatedly calls ``getUpdates`` and submits every
update to a worker pool, so a slow handler never delays the next poll.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

import requests
from pydantic import ValidationError

from core.logger import TelewireLogger
from sdk.client import TelewireClient
from sdk.exceptions import APIException
from sdk.models import Update

logger = TelewireLogger.get_logger()


class BotState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class UpdatePoller:
    """Poll for updates and hand each one to *dispatch* on a worker thread.

    Args:
        client: API client used for ``getUpdates``.
        dispatch: Called with every :class:`Update`; must be thread-safe.
        workers: Size of the worker pool.
        polling_timeout: Long-poll timeout in seconds sent to the API.
        failure_delay: Seconds to wait after a failed poll.
        on_failure: Optional callback receiving the exception of a failed poll.
    """

    def __init__(
        self,
        client: TelewireClient,
        dispatch: Callable[[Update], object],
        workers: int = 4,
        polling_timeout: int = 30,
        failure_delay: float = 5.0,
        on_failure: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self._client = client
        self._dispatch = dispatch
        self._workers = workers
        self._polling_timeout = polling_timeout
        self._failure_delay = failure_delay
        self._on_failure = on_failure

        self._lock = threading.Lock()
        self._state = BotState.IDLE
        self._wake = threading.Event()
        self.offset: Optional[int] = None

    @property
    def state(self) -> BotState:
        return self._state

    def start(self) -> None:
        """Poll on the calling thread until :meth:`stop` is called."""
        self._claim()
        self._run()

    def start_async(self) -> threading.Thread:
        self._claim()
        thread = threading.Thread(target=self._run, name="telewire-poller", daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Ask the loop to exit after the current poll returns."""
        with self._lock:
            if self._state is not BotState.RUNNING:
                raise RuntimeError("You cannot stop the poller while it is not running.")
            self._state = BotState.STOPPING
        self._wake.set()

    def _claim(self) -> None:
        with self._lock:
            if self._state is not BotState.IDLE:
                raise RuntimeError("You cannot start the poller while it is not idle.")
            self._state = BotState.RUNNING
        self._wake.clear()

    def poll_once(self, executor: ThreadPoolExecutor) -> int:
        """Fetch one batch, submit it, and advance the offset. Returns the batch size."""
        updates = self._client.get_updates(offset=self.offset, timeout=self._polling_timeout)
        for update in updates:
            executor.submit(self._handle, update)
        if updates:
            self.offset = updates[-1].update_id + 1
            logger.debug("Received updates", extra={"count": len(updates), "offset": self.offset})
        return len(updates)

    def _handle(self, update: Update) -> None:
        try:
            self._dispatch(update)
        except Exception:
            logger.exception("Update handler failed", extra={"update_id": update.update_id})

    def _run(self) -> None:
        logger.info("Polling for updates", extra={"workers": self._workers})
        executor = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="telewire-update")
        try:
            while self._state is BotState.RUNNING:
                try:
                    self.poll_once(executor)
                except (APIException, requests.RequestException, ValidationError) as exc:
                    logger.error("getUpdates failed", extra={"api_endpoint": "getUpdates", "error": str(exc)})
                    if self._on_failure is not None:
                        self._on_failure(exc)
                    self._wake.wait(self._failure_delay)
        finally:
            executor.shutdown(wait=False)
            with self._lock:
                self._state = BotState.IDLE
            logger.info("Polling stopped")
