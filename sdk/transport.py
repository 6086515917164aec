"""Low-level HTTP transport for the Bot API.

Encodes outbound calls as either ``application/x-www-form-urlencoded`` or
``multipart/form-data`` (the latter whenever a file is attached), sends them
with :mod:`requests`, and classifies the response by status code.  Also
provides the streaming GET used to download files.

Network failures surface as :class:`requests.RequestException` (an
:class:`OSError`); a reachable endpoint reporting failure surfaces as
:class:`~sdk.exceptions.APIException`.
"""

from __future__ import annotations

import mimetypes
import os
import uuid
from dataclasses import dataclass
from typing import IO, Any, BinaryIO, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote_plus

import requests

from core.logger import TelewireLogger
from sdk.exceptions import APIException

logger = TelewireLogger.get_logger()

USER_AGENT = "Telewire Agent"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"
_CHUNK_SIZE = 8192

FormFields = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


@dataclass(frozen=True)
class FileField:
    """A file to upload: the name sent to the server and a binary stream."""

    filename: str
    stream: BinaryIO

    @classmethod
    def from_path(cls, path: str, filename: Optional[str] = None) -> FileField:
        """Open *path* for reading; the caller owns closing ``stream``."""
        return cls(filename or os.path.basename(path), open(path, "rb"))

    @property
    def content_type(self) -> str:
        """Best-effort MIME type from the file extension, empty when unknown."""
        return mimetypes.guess_type(self.filename)[0] or ""


@dataclass(frozen=True)
class HttpResponse:
    """Status code and body text of a successful (200–399) call."""

    status_code: int
    body: str


def _pairs(fields: Optional[Iterable[Any]]) -> list[Tuple[str, Any]]:
    if fields is None:
        return []
    if isinstance(fields, Mapping):
        return list(fields.items())
    return list(fields)


# ── Body encoders ────────────────────────────────────────────────────────────


def encode_form(form_fields: Optional[FormFields]) -> str:
    """Percent-encode *form_fields* as ``name=value`` pairs joined by ``&``."""
    return "&".join(
        f"{quote_plus(name, encoding='utf-8')}={quote_plus(value, encoding='utf-8')}"
        for name, value in _pairs(form_fields)
    )


def new_boundary() -> str:
    return uuid.uuid4().hex


def iter_multipart(
    form_fields: Optional[FormFields],
    files: Optional[Union[Mapping[str, FileField], Sequence[Tuple[str, FileField]]]],
    boundary: str,
    chunk_size: int = _CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield a ``multipart/form-data`` body piece by piece.

    File contents are read from each :class:`FileField` stream in
    *chunk_size* blocks, so a file is never held in memory as a whole.
    """
    delimiter = f"--{boundary}\r\n".encode("ascii")

    for name, value in _pairs(form_fields):
        yield delimiter
        yield (
            f'Content-Disposition: form-data; name="{name}"\r\n'
            "Content-Type: text/plain; charset=UTF-8\r\n"
            "\r\n"
        ).encode("utf-8")
        yield value.encode("utf-8")
        yield b"\r\n"

    for name, file_field in _pairs(files):
        yield delimiter
        yield (
            f'Content-Disposition: form-data; name="{name}"; filename="{file_field.filename}"\r\n'
            f"Content-Type: {file_field.content_type}\r\n"
            "Content-Transfer-Encoding: binary\r\n"
            "\r\n"
        ).encode("utf-8")
        while True:
            chunk = file_field.stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
        yield b"\r\n"

    yield f"--{boundary}--\r\n".encode("ascii")


# ── Sending ──────────────────────────────────────────────────────────────────


def _base_headers(content_type: str) -> dict[str, str]:
    return {
        "Content-Type": content_type,
        "User-Agent": USER_AGENT,
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


def _read_response(response: requests.Response) -> HttpResponse:
    """Return the body of a 200–399 response; raise :class:`APIException` otherwise."""
    if response.encoding is None:
        response.encoding = "utf-8"
    body = response.text
    status = response.status_code
    response.close()

    if 200 <= status < 400:
        return HttpResponse(status, body)

    logger.debug("Negative HTTP response", extra={"status_code": status})
    raise APIException(status, body)


def send_http_post(
    url: str,
    form_fields: Optional[FormFields] = None,
    files: Optional[Union[Mapping[str, FileField], Sequence[Tuple[str, FileField]]]] = None,
    timeout: Optional[float] = None,
) -> HttpResponse:
    """POST *form_fields* (and *files*, if any) to *url*.

    Without files the body is URL-encoded; with at least one file it is
    streamed as multipart with a fresh boundary.

    Raises:
        APIException: If the response status is outside 200–399.
        requests.RequestException: On transport-level failures.
    """
    file_pairs = _pairs(files)
    if file_pairs:
        boundary = new_boundary()
        headers = _base_headers(f"multipart/form-data; boundary={boundary}")
        body: Any = iter_multipart(form_fields, file_pairs, boundary)
    else:
        headers = _base_headers(FORM_CONTENT_TYPE)
        body = encode_form(form_fields).encode("utf-8")

    response = requests.post(url, data=body, headers=headers, timeout=timeout)
    return _read_response(response)


# ── File transfer ────────────────────────────────────────────────────────────


def open_file_stream(file_url: str, timeout: Optional[float] = None) -> IO[bytes]:
    """Open a streaming GET to *file_url* and return the raw byte stream.

    Raises:
        requests.HTTPError: If the HTTP response status is not 2xx.
        requests.RequestException: On transport-level failures.
    """
    response = requests.get(
        file_url,
        headers={"User-Agent": USER_AGENT, "Cache-Control": "no-cache"},
        stream=True,
        timeout=timeout,
    )
    try:
        response.raise_for_status()
    except requests.HTTPError:
        response.close()
        raise
    response.raw.decode_content = True
    return response.raw


def download_file(
    file_url: str,
    sink: Optional[IO[bytes]] = None,
    chunk_size: int = _CHUNK_SIZE,
    timeout: Optional[float] = None,
) -> Union[int, IO[bytes]]:
    """Download *file_url*.

    With a *sink*, bytes are copied into it until the stream is exhausted and
    the number of bytes written is returned.  Bytes already written before an
    error are left in the sink.  Without a sink the open byte stream is
    returned and the caller reads (and closes) it.
    """
    stream = open_file_stream(file_url, timeout=timeout)
    if sink is None:
        return stream

    written = 0
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            sink.write(chunk)
            written += len(chunk)
    finally:
        stream.close()
    sink.flush()
    return written
