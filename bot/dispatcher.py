"""Update dispatcher: routes each decoded update to the handlers of its variant.

Handlers are registered per payload variant with a decorator::

    dispatcher = UpdateDispatcher()

    @dispatcher.on("message")
    def echo(update_id: int, message: Message) -> None:
        client.send_message(message.chat.id, message.text or "")

A dispatcher instance is itself callable with an :class:`~sdk.models.Update`,
so it plugs directly into :class:`~bot.webhook.WebhookServer` and
:class:`~bot.polling.UpdatePoller`.  Dispatch may run on several threads at
once; registration is guarded by a lock and dispatch works on a snapshot.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List

from core.logger import TelewireLogger
from sdk.models import UPDATE_VARIANTS, Update

logger = TelewireLogger.get_logger()

UpdateHandler = Callable[[int, Any], Any]


class UpdateDispatcher:
    """Registry of update handlers keyed by payload variant."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: Dict[str, List[UpdateHandler]] = {}

    def on(self, variant: str) -> Callable[[UpdateHandler], UpdateHandler]:
        """Decorator registering a handler for *variant* (e.g. ``"callback_query"``)."""
        if variant not in UPDATE_VARIANTS:
            raise ValueError(f"Unknown update variant: {variant!r}")

        def decorator(func: UpdateHandler) -> UpdateHandler:
            self.add_handler(variant, func)
            return func
        return decorator

    def add_handler(self, variant: str, handler: UpdateHandler) -> None:
        if variant not in UPDATE_VARIANTS:
            raise ValueError(f"Unknown update variant: {variant!r}")
        with self._lock:
            self._handlers.setdefault(variant, []).append(handler)

    def handlers(self, variant: str) -> List[UpdateHandler]:
        with self._lock:
            return list(self._handlers.get(variant, ()))

    def dispatch(self, update: Update) -> bool:
        """Invoke the handlers registered for the update's payload.

        Returns ``True`` if at least one handler ran.  Handler exceptions
        propagate to the caller.
        """
        variant = update.variant
        if variant is None:
            logger.debug("Update has no payload, skipping", extra={"update_id": update.update_id})
            return False

        handlers = self.handlers(variant)
        if not handlers:
            logger.debug("No handler for update variant", extra={"update_id": update.update_id, "variant": variant})
            return False

        payload = update.payload
        for handler in handlers:
            handler(update.update_id, payload)
        return True

    __call__ = dispatch
