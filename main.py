"""Run a bot that logs every update it receives.

Usage::

    python main.py webhook   # HTTPS webhook on WEBHOOK_HOST:WEBHOOK_PORT/WEBHOOK_PATH
    python main.py polling   # long polling via getUpdates
"""

import argparse
import signal
import threading

from bot.dispatcher import UpdateDispatcher
from bot.polling import UpdatePoller
from bot.webhook import WebhookServer
from config import (
    API_URL,
    BOT_TOKEN,
    REQUEST_TIMEOUT,
    WEBHOOK_CERT_PATH,
    WEBHOOK_HOST,
    WEBHOOK_KEY_PATH,
    WEBHOOK_PATH,
    WEBHOOK_PORT,
)
from core.logger import TelewireLogger
from sdk.client import TelewireClient
from sdk.models import UPDATE_VARIANTS

logger = TelewireLogger.get_logger()


def build_dispatcher() -> UpdateDispatcher:
    """Dispatcher that logs every payload variant."""
    dispatcher = UpdateDispatcher()

    def log_update(update_id: int, payload: object) -> None:
        logger.info("Update dispatched", extra={"update_id": update_id, "payload_type": type(payload).__name__})

    for variant in UPDATE_VARIANTS:
        dispatcher.add_handler(variant, log_update)
    return dispatcher


def run_webhook(client: TelewireClient, dispatcher: UpdateDispatcher) -> None:
    if not WEBHOOK_HOST:
        raise EnvironmentError("WEBHOOK_HOST environment variable is not set or is empty.")

    server = WebhookServer(dispatcher, WEBHOOK_HOST, WEBHOOK_PORT, WEBHOOK_PATH)
    if WEBHOOK_CERT_PATH and WEBHOOK_KEY_PATH:
        server.use_certificate(WEBHOOK_CERT_PATH, WEBHOOK_KEY_PATH)
    else:
        server.use_generated_self_signed_certificate()

    server.register_webhook(client)
    signal.signal(signal.SIGTERM, lambda *_: threading.Thread(target=server.stop).start())
    try:
        server.start()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down webhook server")
    finally:
        server.unregister_webhook(client)


def run_polling(client: TelewireClient, dispatcher: UpdateDispatcher) -> None:
    client.delete_webhook()
    poller = UpdatePoller(client, dispatcher)
    try:
        poller.start()
    except KeyboardInterrupt:
        logger.info("Interrupted, polling stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a Telewire bot.")
    parser.add_argument("mode", choices=("webhook", "polling"), help="How updates are received.")
    args = parser.parse_args()

    if not BOT_TOKEN:
        raise EnvironmentError("BOT_TOKEN environment variable is not set or is empty.")

    client = TelewireClient(BOT_TOKEN, api_url=API_URL, timeout=REQUEST_TIMEOUT)
    me = client.get_me()
    logger.info("Bot authenticated", extra={"bot_username": me.username, "mode": args.mode})

    dispatcher = build_dispatcher()
    if args.mode == "webhook":
        run_webhook(client, dispatcher)
    else:
        run_polling(client, dispatcher)


if __name__ == "__main__":
    main()
