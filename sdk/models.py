"""Pydantic data models for the Telegram Bot API transport.

Only the schemas the transport itself needs are modelled here: the generic
response envelope, the two-shaped result of the ``editMessage*`` family,
the inbound :class:`Update` with the payloads it can carry, and the small
objects returned by file and webhook endpoints.  Unknown keys in API
payloads are ignored, so newer API versions still decode.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field, model_validator

R = TypeVar("R")


# ── Response envelope ────────────────────────────────────────────────────────


class ResultEnvelope(BaseModel, Generic[R]):
    """Success/failure wrapper returned by every Bot API method.

    ``result`` is set when ``ok`` is true; ``error_code`` and ``description``
    accompany ``ok == false``.  Parametrize with the expected result type::

        ResultEnvelope[User].model_validate_json(body)
    """

    ok: bool
    error_code: Optional[int] = None
    result: Optional[R] = None
    description: Optional[str] = None

    model_config = {"populate_by_name": True}


# ── Payload models ───────────────────────────────────────────────────────────


class User(BaseModel):
    """This object represents a Telegram user or bot."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None

    model_config = {"populate_by_name": True}


class Chat(BaseModel):
    """This object represents a chat."""

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class PhotoSize(BaseModel):
    """One size of a photo or a file / sticker thumbnail."""

    file_id: str
    file_unique_id: Optional[str] = None
    width: int
    height: int
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Document(BaseModel):
    """A general file (as opposed to photos, voice messages and audio files)."""

    file_id: str
    file_unique_id: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Audio(BaseModel):
    """An audio file to be treated as music by the Telegram clients."""

    file_id: str
    duration: int
    performer: Optional[str] = None
    title: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Video(BaseModel):
    file_id: str
    width: int
    height: int
    duration: int
    thumb: Optional[PhotoSize] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Voice(BaseModel):
    file_id: str
    duration: int
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Sticker(BaseModel):
    file_id: str
    width: int
    height: int
    thumb: Optional[PhotoSize] = None
    emoji: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Contact(BaseModel):
    phone_number: str
    first_name: str
    last_name: Optional[str] = None
    user_id: Optional[int] = None

    model_config = {"populate_by_name": True}


class Location(BaseModel):
    longitude: float
    latitude: float

    model_config = {"populate_by_name": True}


class Venue(BaseModel):
    location: Location
    title: str
    address: str
    foursquare_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """This object represents a message."""

    message_id: int
    date: int
    chat: Chat
    from_field: Optional[User] = Field(None, alias="from")
    sender_chat: Optional[Chat] = None
    reply_to_message: Optional[Message] = None
    edit_date: Optional[int] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: Optional[List[PhotoSize]] = None
    document: Optional[Document] = None
    audio: Optional[Audio] = None
    video: Optional[Video] = None
    voice: Optional[Voice] = None
    sticker: Optional[Sticker] = None
    contact: Optional[Contact] = None
    location: Optional[Location] = None
    venue: Optional[Venue] = None

    model_config = {"populate_by_name": True}


class InlineQuery(BaseModel):
    """An incoming inline query."""

    id: str
    from_field: User = Field(..., alias="from")
    query: str
    offset: str
    location: Optional[Location] = None

    model_config = {"populate_by_name": True}


class ChosenInlineResult(BaseModel):
    """An inline query result that was chosen by the user and sent to their chat partner."""

    result_id: str
    from_field: User = Field(..., alias="from")
    query: str
    location: Optional[Location] = None
    inline_message_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class CallbackQuery(BaseModel):
    """An incoming callback query from a callback button in an inline keyboard."""

    id: str
    from_field: User = Field(..., alias="from")
    chat_instance: str
    message: Optional[Message] = None
    inline_message_id: Optional[str] = None
    data: Optional[str] = None

    model_config = {"populate_by_name": True}


class UserProfilePhotos(BaseModel):
    """A user's profile pictures, each one in up to four sizes."""

    total_count: int
    photos: List[List[PhotoSize]]

    model_config = {"populate_by_name": True}


class ChatMemberStatus(str, Enum):
    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    LEFT = "left"
    KICKED = "kicked"


class ChatMember(BaseModel):
    """Information about one member of a chat."""

    user: User
    status: ChatMemberStatus

    model_config = {"populate_by_name": True}


class File(BaseModel):
    """A file ready to be downloaded via ``<api_url>/file/bot<token>/<file_path>``."""

    file_id: str
    file_unique_id: Optional[str] = None
    file_size: Optional[int] = None
    file_path: Optional[str] = None

    model_config = {"populate_by_name": True}


class WebhookInfo(BaseModel):
    """Current status of a webhook."""

    url: str
    has_custom_certificate: bool
    pending_update_count: int
    ip_address: Optional[str] = None
    last_error_date: Optional[int] = None
    last_error_message: Optional[str] = None
    max_connections: Optional[int] = None
    allowed_updates: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


# ── Inbound event ────────────────────────────────────────────────────────────

UPDATE_VARIANTS: tuple[str, ...] = (
    "message",
    "edited_message",
    "channel_post",
    "edited_channel_post",
    "inline_query",
    "chosen_inline_result",
    "callback_query",
)


class Update(BaseModel):
    """An incoming update.

    Carries a monotonically increasing ``update_id`` and at most **one** of
    the optional payloads.  An envelope with several payloads fails
    validation and is treated like any other undecodable event.
    """

    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    channel_post: Optional[Message] = None
    edited_channel_post: Optional[Message] = None
    inline_query: Optional[InlineQuery] = None
    chosen_inline_result: Optional[ChosenInlineResult] = None
    callback_query: Optional[CallbackQuery] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _at_most_one_variant(self) -> Update:
        present = [name for name in UPDATE_VARIANTS if getattr(self, name) is not None]
        if len(present) > 1:
            raise ValueError(f"update carries more than one payload: {', '.join(present)}")
        return self

    @property
    def variant(self) -> Optional[str]:
        """Name of the populated payload field, or ``None`` for an empty update."""
        for name in UPDATE_VARIANTS:
            if getattr(self, name) is not None:
                return name
        return None

    @property
    def payload(self) -> Any:
        name = self.variant
        return getattr(self, name) if name else None


# ── Edit results ─────────────────────────────────────────────────────────────


class EditResultKind(str, Enum):
    BOOLEAN = "boolean"
    MESSAGE = "message"
    EMPTY = "empty"


class EditResult(BaseModel):
    """Result of ``editMessageText`` / ``editMessageCaption`` / ``editMessageReplyMarkup``.

    The API answers with ``True`` when an inline message was edited and with
    the edited :class:`Message` otherwise.  The result is a tagged variant:
    ``kind`` says which branch ``value`` holds, and ``EMPTY`` marks a call
    that produced no body at all (distinct from a parsed ``False``).
    """

    kind: EditResultKind
    value: Union[bool, Message, None] = None

    @model_validator(mode="after")
    def _value_matches_kind(self) -> EditResult:
        if self.kind is EditResultKind.BOOLEAN and not isinstance(self.value, bool):
            raise ValueError("boolean edit result requires a bool value")
        if self.kind is EditResultKind.MESSAGE and not isinstance(self.value, Message):
            raise ValueError("message edit result requires a Message value")
        if self.kind is EditResultKind.EMPTY and self.value is not None:
            raise ValueError("empty edit result cannot carry a value")
        return self

    @classmethod
    def of_boolean(cls, flag: bool) -> EditResult:
        return cls(kind=EditResultKind.BOOLEAN, value=flag)

    @classmethod
    def of_message(cls, message: Message) -> EditResult:
        return cls(kind=EditResultKind.MESSAGE, value=message)

    @classmethod
    def empty(cls) -> EditResult:
        return cls(kind=EditResultKind.EMPTY)

    @classmethod
    def from_result(cls, result: Union[bool, Message, None]) -> EditResult:
        """Wrap an already-decoded envelope ``result``."""
        if result is None:
            return cls.empty()
        if isinstance(result, bool):
            return cls.of_boolean(result)
        return cls.of_message(result)

    @classmethod
    def parse(cls, raw_text: Optional[str]) -> EditResult:
        """Build an edit result from raw success text.

        A bare ``true``/``false`` (any case) short-circuits to the boolean
        branch without touching the JSON decoder.  Anything else must be a
        full response envelope; its ``result`` selects the branch.

        Raises:
            pydantic.ValidationError: If the text is not a valid envelope.
        """
        text = (raw_text or "").strip()
        if not text:
            return cls.empty()

        lowered = text.lower()
        if lowered in ("true", "false"):
            return cls.of_boolean(lowered == "true")

        envelope = ResultEnvelope[Union[bool, Message]].model_validate_json(text)
        return cls.from_result(envelope.result)

    @property
    def boolean_result(self) -> Optional[bool]:
        return self.value if self.kind is EditResultKind.BOOLEAN else None

    @property
    def message_result(self) -> Optional[Message]:
        return self.value if self.kind is EditResultKind.MESSAGE else None
