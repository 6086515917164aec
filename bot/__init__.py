"""Update ingestion layer: webhook server, long polling and dispatch.

This package may import from ``core/`` and ``sdk/`` only.
"""

from bot.certificates import CertificatePair, generate_self_signed_certificate
from bot.dispatcher import UpdateDispatcher
from bot.polling import BotState, UpdatePoller
from bot.webhook import ServerState, WebhookPort, WebhookServer

__all__ = [
    # Webhook
    "WebhookServer",
    "WebhookPort",
    "ServerState",
    "CertificatePair",
    "generate_self_signed_certificate",
    # Polling
    "UpdatePoller",
    "BotState",
    # Dispatch
    "UpdateDispatcher",
]
