"""Tests for TelewireClient and APIException."""

import io
import json
import sys
import os
from unittest.mock import patch, MagicMock

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sdk.client import ChatAction, TelewireClient
from sdk.exceptions import APIException
from sdk.models import ChatMember, ChatMemberStatus, EditResultKind, Message, ResultEnvelope, User
from sdk.transport import FileField

TOKEN = "123:ABC"

MESSAGE_JSON = {
    "message_id": 5,
    "date": 1700000000,
    "chat": {"id": 42, "type": "private"},
    "text": "hi",
}


def _response(status: int, body: object) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = body if isinstance(body, str) else json.dumps(body)
    resp.encoding = "utf-8"
    return resp


def _sent_fields(mock_post: MagicMock) -> dict:
    """Decode the URL-encoded body of the last request."""
    from urllib.parse import parse_qsl

    return dict(parse_qsl(mock_post.call_args.kwargs["data"].decode("utf-8")))


# ── APIException ─────────────────────────────────────────────────────────────


class TestAPIException:
    """Validate the error classifier."""

    def test_decodes_error_envelope(self) -> None:
        exc = APIException(400, '{"ok":false,"error_code":400,"description":"Bad Request: chat not found"}')
        assert exc.status_code == 400
        assert exc.error_code == 400
        assert exc.description == "Bad Request: chat not found"
        assert str(exc) == "Error Code = 400 | Description = Bad Request: chat not found"

    def test_undecodable_body_is_not_fatal(self) -> None:
        exc = APIException(502, "<html>Bad Gateway</html>")
        assert exc.status_code == 502
        assert exc.error_code is None
        assert exc.description is None
        assert str(exc) == "Error Code = None | Description = None"

    def test_missing_body(self) -> None:
        exc = APIException(500)
        assert exc.error_code is None
        assert exc.description is None

    def test_status_and_error_code_may_differ(self) -> None:
        exc = APIException(200, '{"ok":false,"error_code":409,"description":"Conflict"}')
        assert exc.status_code == 200
        assert exc.error_code == 409

    def test_from_envelope(self) -> None:
        envelope = ResultEnvelope(ok=False, error_code=403, description="Forbidden")
        exc = APIException.from_envelope(200, envelope)
        assert exc == APIException(200, '{"ok":false,"error_code":403,"description":"Forbidden"}')
        assert "403" in repr(exc)

    def test_is_exception(self) -> None:
        assert issubclass(APIException, Exception)


# ── TelewireClient construction ──────────────────────────────────────────────


class TestClientInit:
    """Validate client initialisation."""

    def test_urls(self) -> None:
        c = TelewireClient(TOKEN, api_url="https://api.example.com/")
        assert c._base_url == f"https://api.example.com/bot{TOKEN}"
        assert c.file_url("/documents/file_1.pdf") == f"https://api.example.com/file/bot{TOKEN}/documents/file_1.pdf"

    def test_default_timeout(self) -> None:
        assert TelewireClient(TOKEN)._timeout is None

    def test_empty_token_rejected(self) -> None:
        with pytest.raises(ValueError):
            TelewireClient("")


# ── Envelope handling ────────────────────────────────────────────────────────


class TestCall:
    """Validate the request/envelope round trip."""

    @patch("sdk.transport.requests.post")
    def test_get_me(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": {"id": 1, "is_bot": True, "first_name": "Bot", "username": "tw_bot"}})

        me = TelewireClient(TOKEN).get_me()

        assert isinstance(me, User)
        assert me.username == "tw_bot"
        assert mock_post.call_args.args[0] == f"https://api.telegram.org/bot{TOKEN}/getMe"

    @patch("sdk.transport.requests.post")
    def test_ok_false_raises(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": False, "error_code": 400, "description": "Bad Request"})

        with pytest.raises(APIException) as exc_info:
            TelewireClient(TOKEN).leave_chat(42)
        assert exc_info.value.status_code == 200
        assert exc_info.value.error_code == 400

    @patch("sdk.transport.requests.post")
    def test_http_error_raises(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(404, {"ok": False, "error_code": 404, "description": "Not Found"})

        with pytest.raises(APIException) as exc_info:
            TelewireClient(TOKEN).get_chat(42)
        assert exc_info.value == APIException(404, '{"ok":false,"error_code":404,"description":"Not Found"}')

    @patch("sdk.transport.requests.post")
    def test_malformed_success_body_raises(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, "not json")

        with pytest.raises(ValidationError):
            TelewireClient(TOKEN).get_me()

    @patch("sdk.transport.requests.post")
    def test_get_updates_empty(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": []})

        assert TelewireClient(TOKEN).get_updates(offset=10, timeout=30) == []
        assert _sent_fields(mock_post) == {"offset": "10", "timeout": "30"}


# ── Field conversion ─────────────────────────────────────────────────────────


class TestFields:
    """Validate how parameters become form fields."""

    @patch("sdk.transport.requests.post")
    def test_scalars_and_none(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": MESSAGE_JSON})

        message = TelewireClient(TOKEN).send_message(
            42, "hello & bye", disable_notification=True, reply_markup={"inline_keyboard": [[{"text": "A", "callback_data": "a"}]]},
        )

        assert isinstance(message, Message)
        fields = _sent_fields(mock_post)
        assert fields["chat_id"] == "42"
        assert fields["text"] == "hello & bye"
        assert fields["disable_notification"] == "true"
        assert json.loads(fields["reply_markup"]) == {"inline_keyboard": [[{"text": "A", "callback_data": "a"}]]}
        assert "parse_mode" not in fields
        assert "reply_to_message_id" not in fields

    @patch("sdk.transport.requests.post")
    def test_enum_value(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": True})

        assert TelewireClient(TOKEN).send_chat_action(42, ChatAction.TYPING) is True
        assert _sent_fields(mock_post)["action"] == "typing"

    @patch("sdk.transport.requests.post")
    def test_file_field_switches_to_multipart(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": MESSAGE_JSON})

        TelewireClient(TOKEN).send_photo(42, FileField("cat.jpg", io.BytesIO(b"JPEGDATA")), caption="cat")

        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Content-Type"].startswith("multipart/form-data; boundary=")
        body = b"".join(kwargs["data"])
        assert b'name="photo"; filename="cat.jpg"' in body
        assert b"Content-Type: image/jpeg" in body
        assert b"JPEGDATA" in body
        assert b'name="caption"' in body

    @patch("sdk.transport.requests.post")
    def test_file_id_stays_urlencoded(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": MESSAGE_JSON})

        TelewireClient(TOKEN).send_document(42, "BQACAgIAAxkB")

        assert _sent_fields(mock_post)["document"] == "BQACAgIAAxkB"


# ── Media and chat members ───────────────────────────────────────────────────


class TestMediaAndMembers:
    """Validate the media senders and chat-member queries."""

    @patch("sdk.transport.requests.post")
    def test_send_audio_uploads_file(self, mock_post: MagicMock) -> None:
        reply = dict(MESSAGE_JSON, audio={"file_id": "aud1", "duration": 3, "performer": "Band"})
        mock_post.return_value = _response(200, {"ok": True, "result": reply})

        message = TelewireClient(TOKEN).send_audio(
            42, FileField("song.mp3", io.BytesIO(b"ID3AUDIO")), duration=3, performer="Band", title="Song",
        )

        assert message.audio.performer == "Band"
        assert mock_post.call_args.args[0].endswith("/sendAudio")
        body = b"".join(mock_post.call_args.kwargs["data"])
        assert b'name="audio"; filename="song.mp3"' in body
        assert b"Content-Type: audio/mpeg" in body
        assert b"ID3AUDIO" in body
        assert b'name="duration"' in body

    @patch("sdk.transport.requests.post")
    def test_send_voice_by_file_id(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": MESSAGE_JSON})

        TelewireClient(TOKEN).send_voice(42, "AwADBAAD", duration=7)

        assert _sent_fields(mock_post) == {"chat_id": "42", "voice": "AwADBAAD", "duration": "7"}

    @patch("sdk.transport.requests.post")
    def test_send_location(self, mock_post: MagicMock) -> None:
        reply = dict(MESSAGE_JSON, location={"latitude": 51.5, "longitude": -0.12})
        mock_post.return_value = _response(200, {"ok": True, "result": reply})

        message = TelewireClient(TOKEN).send_location(42, 51.5, -0.12)

        assert message.location.latitude == 51.5
        assert _sent_fields(mock_post) == {"chat_id": "42", "latitude": "51.5", "longitude": "-0.12"}

    @patch("sdk.transport.requests.post")
    def test_get_chat_member(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {
            "ok": True,
            "result": {"user": {"id": 7, "is_bot": False, "first_name": "Ada"}, "status": "administrator"},
        })

        member = TelewireClient(TOKEN).get_chat_member(-100123, 7)

        assert isinstance(member, ChatMember)
        assert member.status is ChatMemberStatus.ADMINISTRATOR
        assert member.user.first_name == "Ada"
        assert _sent_fields(mock_post) == {"chat_id": "-100123", "user_id": "7"}

    @patch("sdk.transport.requests.post")
    def test_get_chat_members_count(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": 12})

        assert TelewireClient(TOKEN).get_chat_members_count("@channel") == 12

    @patch("sdk.transport.requests.post")
    def test_get_user_profile_photos(self, mock_post: MagicMock) -> None:
        size = {"file_id": "p1", "width": 160, "height": 160}
        mock_post.return_value = _response(200, {"ok": True, "result": {"total_count": 1, "photos": [[size]]}})

        photos = TelewireClient(TOKEN).get_user_profile_photos(7, limit=1)

        assert photos.total_count == 1
        assert photos.photos[0][0].file_id == "p1"
        assert _sent_fields(mock_post) == {"user_id": "7", "limit": "1"}


# ── Editing ──────────────────────────────────────────────────────────────────


class TestEdit:
    """Edit endpoints return a boolean-or-message union."""

    @patch("sdk.transport.requests.post")
    def test_inline_edit_returns_boolean(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": True})

        result = TelewireClient(TOKEN).edit_message_text("new", inline_message_id="abc")

        assert result.kind is EditResultKind.BOOLEAN
        assert result.boolean_result is True

    @patch("sdk.transport.requests.post")
    def test_chat_edit_returns_message(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": MESSAGE_JSON})

        result = TelewireClient(TOKEN).edit_message_caption(chat_id=42, message_id=5, caption="c")

        assert result.kind is EditResultKind.MESSAGE
        assert result.message_result.message_id == 5


# ── Webhooks and files ───────────────────────────────────────────────────────


class TestWebhookAndFiles:
    """Validate webhook registration and file download plumbing."""

    @patch("sdk.transport.requests.post")
    def test_set_webhook_uploads_certificate(self, mock_post: MagicMock) -> None:
        mock_post.return_value = _response(200, {"ok": True, "result": True})

        cert = FileField("webhook_cert.pem", io.BytesIO(b"-----BEGIN CERTIFICATE-----"))
        assert TelewireClient(TOKEN).set_webhook("https://example.com:8443/hook", certificate=cert) is True

        body = b"".join(mock_post.call_args.kwargs["data"])
        assert b'name="certificate"; filename="webhook_cert.pem"' in body
        assert b"https://example.com:8443/hook" in body

    @patch("sdk.transport.requests.get")
    def test_download_file(self, mock_get: MagicMock) -> None:
        resp = MagicMock()
        resp.raw = io.BytesIO(b"content")
        mock_get.return_value = resp

        sink = io.BytesIO()
        written = TelewireClient(TOKEN).download_file("documents/file_1.txt", sink)

        assert written == 7
        assert sink.getvalue() == b"content"
        assert mock_get.call_args.args[0] == f"https://api.telegram.org/file/bot{TOKEN}/documents/file_1.txt"
