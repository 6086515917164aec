"""Telegram Bot API transport SDK: Pydantic models, HTTP transport, client and exceptions.

Usage::

    from sdk import TelewireClient, APIException
    from sdk.transport import FileField

    client = TelewireClient(token)
    with open("report.pdf", "rb") as fh:
        client.send_document(chat_id, FileField("report.pdf", fh))
"""

from sdk.client import ChatAction, TelewireClient
from sdk.exceptions import APIException, WebhookConfigError
from sdk.models import EditResult, ResultEnvelope, Update
from sdk.transport import FileField, HttpResponse

__all__ = [
    "TelewireClient",
    "ChatAction",
    "APIException",
    "WebhookConfigError",
    "EditResult",
    "ResultEnvelope",
    "Update",
    "FileField",
    "HttpResponse",
]
