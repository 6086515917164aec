"""TelewireClient -- service layer over the Telegram Bot API transport.

Every public method corresponds to a Bot API endpoint.  Arguments are
flattened into form fields, sent through :func:`sdk.transport.send_http_post`
(multipart when a :class:`~sdk.transport.FileField` is attached), and the
response envelope is validated with Pydantic.

Failures are never swallowed here: a negative response raises
:class:`~sdk.exceptions.APIException`, a network problem raises
:class:`requests.RequestException`.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import IO, Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel

from core.logger import TelewireLogger
from sdk import transport
from sdk.exceptions import APIException
from sdk.models import (
    Chat,
    ChatMember,
    EditResult,
    File,
    Message,
    ResultEnvelope,
    Update,
    User,
    UserProfilePhotos,
    WebhookInfo,
)
from sdk.transport import FileField

logger = TelewireLogger.get_logger()

ChatId = Union[int, str]
Media = Union[str, FileField]


class ChatAction(str, Enum):
    TYPING = "typing"
    UPLOAD_PHOTO = "upload_photo"
    RECORD_VIDEO = "record_video"
    UPLOAD_VIDEO = "upload_video"
    RECORD_VOICE = "record_voice"
    UPLOAD_VOICE = "upload_voice"
    UPLOAD_DOCUMENT = "upload_document"
    FIND_LOCATION = "find_location"


def _to_field(value: Any) -> str:
    """Render a parameter value the way the Bot API expects it in a form body."""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True, exclude_none=True)
    if isinstance(value, (list, tuple)):
        return json.dumps(
            [item.model_dump(by_alias=True, exclude_none=True) if isinstance(item, BaseModel) else item for item in value],
            separators=(",", ":"),
        )
    return json.dumps(value, separators=(",", ":"))


class TelewireClient:
    """Client-side service layer for the Telegram Bot API.

    Args:
        bot_token: Token issued by BotFather.
        api_url: Bot API server root, without trailing slash.
        timeout: Optional per-request timeout in seconds; ``None`` waits
            indefinitely.
    """

    DEFAULT_API_URL: str = "https://api.telegram.org"

    def __init__(self, bot_token: str, api_url: str = DEFAULT_API_URL, timeout: Optional[float] = None) -> None:
        if not bot_token:
            raise ValueError("bot_token cannot be empty.")
        api_url = api_url.rstrip("/")
        self._bot_token = bot_token
        self._base_url = f"{api_url}/bot{bot_token}"
        self._file_base_url = f"{api_url}/file/bot{bot_token}"
        self._timeout = timeout

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _send(self, method: str, params: Dict[str, Any]) -> transport.HttpResponse:
        fields: List[Tuple[str, str]] = []
        files: List[Tuple[str, FileField]] = []
        for name, value in params.items():
            if value is None:
                continue
            if isinstance(value, FileField):
                files.append((name, value))
            else:
                fields.append((name, _to_field(value)))

        logger.debug("Calling Bot API", extra={"api_endpoint": method, "multipart": bool(files)})
        return transport.send_http_post(f"{self._base_url}/{method}", fields, files or None, timeout=self._timeout)

    def _call(self, method: str, params: Optional[Dict[str, Any]] = None, result_type: Type[Any] = Any) -> Any:
        """Send *method* and return the envelope's ``result``.

        Raises:
            APIException: On a non-2xx/3xx status or an ``ok: false`` envelope.
            requests.RequestException: On transport-level failures.
            pydantic.ValidationError: If a success body is not a valid envelope.
        """
        response = self._send(method, params or {})
        envelope = ResultEnvelope[result_type].model_validate_json(response.body)
        if not envelope.ok:
            logger.warning(
                "Bot API reported failure",
                extra={"api_endpoint": method, "status_code": response.status_code, "error_code": envelope.error_code},
            )
            raise APIException.from_envelope(response.status_code, envelope)
        return envelope.result

    def _edit(self, method: str, params: Dict[str, Any]) -> EditResult:
        result = self._call(method, params, Union[bool, Message])
        return EditResult.from_result(result)

    # ------------------------------------------------------------------
    #  Updates and webhooks
    # ------------------------------------------------------------------

    def get_updates(self, offset: Optional[int] = None, limit: Optional[int] = None, timeout: Optional[int] = None, allowed_updates: Optional[List[str]] = None) -> List[Update]:
        """Receive incoming updates using long polling."""
        return self._call(
            "getUpdates",
            {"offset": offset, "limit": limit, "timeout": timeout, "allowed_updates": allowed_updates},
            List[Update],
        ) or []

    def set_webhook(self, url: str, certificate: Optional[FileField] = None, max_connections: Optional[int] = None, allowed_updates: Optional[List[str]] = None) -> bool:
        """Specify a URL to receive incoming updates via an outgoing webhook.

        When *certificate* is given the public key is uploaded so the
        platform trusts a self-signed server.
        """
        return self._call(
            "setWebhook",
            {"url": url, "certificate": certificate, "max_connections": max_connections, "allowed_updates": allowed_updates},
            bool,
        )

    def delete_webhook(self, drop_pending_updates: Optional[bool] = None) -> bool:
        """Remove webhook integration and switch back to getUpdates."""
        return self._call("deleteWebhook", {"drop_pending_updates": drop_pending_updates}, bool)

    def get_webhook_info(self) -> WebhookInfo:
        return self._call("getWebhookInfo", None, WebhookInfo)

    # ------------------------------------------------------------------
    #  Bot and chat information
    # ------------------------------------------------------------------

    def get_me(self) -> User:
        """Test the bot's auth token; returns the bot as a :class:`User`."""
        return self._call("getMe", None, User)

    def get_chat(self, chat_id: ChatId) -> Chat:
        return self._call("getChat", {"chat_id": chat_id}, Chat)

    def kick_chat_member(self, chat_id: ChatId, user_id: int) -> bool:
        return self._call("kickChatMember", {"chat_id": chat_id, "user_id": user_id}, bool)

    def unban_chat_member(self, chat_id: ChatId, user_id: int) -> bool:
        return self._call("unbanChatMember", {"chat_id": chat_id, "user_id": user_id}, bool)

    def leave_chat(self, chat_id: ChatId) -> bool:
        return self._call("leaveChat", {"chat_id": chat_id}, bool)

    def get_chat_administrators(self, chat_id: ChatId) -> List[ChatMember]:
        return self._call("getChatAdministrators", {"chat_id": chat_id}, List[ChatMember]) or []

    def get_chat_members_count(self, chat_id: ChatId) -> int:
        return self._call("getChatMembersCount", {"chat_id": chat_id}, int)

    def get_chat_member(self, chat_id: ChatId, user_id: int) -> ChatMember:
        return self._call("getChatMember", {"chat_id": chat_id, "user_id": user_id}, ChatMember)

    def get_user_profile_photos(self, user_id: int, offset: Optional[int] = None, limit: Optional[int] = None) -> UserProfilePhotos:
        """List a user's profile pictures; *limit* accepts 1-100."""
        return self._call(
            "getUserProfilePhotos",
            {"user_id": user_id, "offset": offset, "limit": limit},
            UserProfilePhotos,
        )

    # ------------------------------------------------------------------
    #  Sending
    # ------------------------------------------------------------------

    def send_message(self, chat_id: ChatId, text: str, parse_mode: Optional[str] = None, disable_web_page_preview: Optional[bool] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        """Send a text message. On success, the sent :class:`Message` is returned."""
        return self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text,
                "parse_mode": parse_mode,
                "disable_web_page_preview": disable_web_page_preview,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def forward_message(self, chat_id: ChatId, from_chat_id: ChatId, message_id: int, disable_notification: Optional[bool] = None) -> Message:
        return self._call(
            "forwardMessage",
            {
                "chat_id": chat_id,
                "from_chat_id": from_chat_id,
                "disable_notification": disable_notification,
                "message_id": message_id,
            },
            Message,
        )

    def send_photo(self, chat_id: ChatId, photo: Media, caption: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        """Send a photo by file id / URL, or upload one from a :class:`FileField`."""
        return self._call(
            "sendPhoto",
            {
                "chat_id": chat_id,
                "photo": photo,
                "caption": caption,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_document(self, chat_id: ChatId, document: Media, caption: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        """Send a general file by file id / URL, or upload one from a :class:`FileField`."""
        return self._call(
            "sendDocument",
            {
                "chat_id": chat_id,
                "document": document,
                "caption": caption,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_audio(self, chat_id: ChatId, audio: Media, duration: Optional[int] = None, performer: Optional[str] = None, title: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        """Send an audio file (mp3) to be shown in the music player."""
        return self._call(
            "sendAudio",
            {
                "chat_id": chat_id,
                "audio": audio,
                "duration": duration,
                "performer": performer,
                "title": title,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_sticker(self, chat_id: ChatId, sticker: Media, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        return self._call(
            "sendSticker",
            {
                "chat_id": chat_id,
                "sticker": sticker,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_video(self, chat_id: ChatId, video: Media, duration: Optional[int] = None, width: Optional[int] = None, height: Optional[int] = None, caption: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        return self._call(
            "sendVideo",
            {
                "chat_id": chat_id,
                "video": video,
                "duration": duration,
                "width": width,
                "height": height,
                "caption": caption,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_voice(self, chat_id: ChatId, voice: Media, duration: Optional[int] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        """Send an OGG/OPUS audio file to be shown as a playable voice message."""
        return self._call(
            "sendVoice",
            {
                "chat_id": chat_id,
                "voice": voice,
                "duration": duration,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_location(self, chat_id: ChatId, latitude: float, longitude: float, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        return self._call(
            "sendLocation",
            {
                "chat_id": chat_id,
                "latitude": latitude,
                "longitude": longitude,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_venue(self, chat_id: ChatId, latitude: float, longitude: float, title: str, address: str, foursquare_id: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        return self._call(
            "sendVenue",
            {
                "chat_id": chat_id,
                "latitude": latitude,
                "longitude": longitude,
                "title": title,
                "address": address,
                "foursquare_id": foursquare_id,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_contact(self, chat_id: ChatId, phone_number: str, first_name: str, last_name: Optional[str] = None, disable_notification: Optional[bool] = None, reply_to_message_id: Optional[int] = None, reply_markup: Optional[Any] = None) -> Message:
        return self._call(
            "sendContact",
            {
                "chat_id": chat_id,
                "phone_number": phone_number,
                "first_name": first_name,
                "last_name": last_name,
                "disable_notification": disable_notification,
                "reply_to_message_id": reply_to_message_id,
                "reply_markup": reply_markup,
            },
            Message,
        )

    def send_chat_action(self, chat_id: ChatId, action: ChatAction) -> bool:
        return self._call("sendChatAction", {"chat_id": chat_id, "action": action}, bool)

    # ------------------------------------------------------------------
    #  Queries
    # ------------------------------------------------------------------

    def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None, show_alert: Optional[bool] = None) -> bool:
        """Acknowledge a callback query so the spinner disappears for the user."""
        return self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_query_id, "text": text, "show_alert": show_alert},
            bool,
        )

    def answer_inline_query(self, inline_query_id: str, results: Sequence[Any], cache_time: Optional[int] = None, is_personal: Optional[bool] = None, next_offset: Optional[str] = None, switch_pm_text: Optional[str] = None, switch_pm_parameter: Optional[str] = None) -> bool:
        """Send answers to an inline query; *results* is serialized to JSON."""
        return self._call(
            "answerInlineQuery",
            {
                "inline_query_id": inline_query_id,
                "results": list(results),
                "cache_time": cache_time,
                "is_personal": is_personal,
                "next_offset": next_offset,
                "switch_pm_text": switch_pm_text,
                "switch_pm_parameter": switch_pm_parameter,
            },
            bool,
        )

    # ------------------------------------------------------------------
    #  Editing
    # ------------------------------------------------------------------

    def edit_message_text(self, text: str, chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None, parse_mode: Optional[str] = None, disable_web_page_preview: Optional[bool] = None, reply_markup: Optional[Any] = None) -> EditResult:
        """Edit a text message; see :class:`~sdk.models.EditResult` for the result shapes."""
        return self._edit(
            "editMessageText",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "inline_message_id": inline_message_id,
                "text": text,
                "parse_mode": parse_mode,
                "disable_web_page_preview": disable_web_page_preview,
                "reply_markup": reply_markup,
            },
        )

    def edit_message_caption(self, chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None, caption: Optional[str] = None, reply_markup: Optional[Any] = None) -> EditResult:
        return self._edit(
            "editMessageCaption",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "inline_message_id": inline_message_id,
                "caption": caption,
                "reply_markup": reply_markup,
            },
        )

    def edit_message_reply_markup(self, chat_id: Optional[ChatId] = None, message_id: Optional[int] = None, inline_message_id: Optional[str] = None, reply_markup: Optional[Any] = None) -> EditResult:
        return self._edit(
            "editMessageReplyMarkup",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "inline_message_id": inline_message_id,
                "reply_markup": reply_markup,
            },
        )

    # ------------------------------------------------------------------
    #  Files
    # ------------------------------------------------------------------

    def get_file(self, file_id: str) -> File:
        """Resolve a ``file_id`` to a downloadable :class:`File`."""
        return self._call("getFile", {"file_id": file_id}, File)

    def file_url(self, file_path: str) -> str:
        return f"{self._file_base_url}/{file_path.lstrip('/')}"

    def download_file(self, file_path: str, sink: Optional[IO[bytes]] = None) -> Union[int, IO[bytes]]:
        """Download a file previously resolved with :meth:`get_file`.

        Args:
            file_path: The ``file_path`` field of a :class:`File`.
            sink: Writable binary stream; when omitted the open byte
                stream is returned instead.

        Raises:
            requests.HTTPError: If the HTTP response status is not 2xx.
            requests.RequestException: On transport-level failures.
        """
        logger.debug("Downloading file", extra={"file_path": file_path})
        return transport.download_file(self.file_url(file_path), sink, timeout=self._timeout)
