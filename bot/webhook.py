"""HTTPS webhook server receiving pushed updates.

The platform POSTs every update as JSON to one URL.  :class:`WebhookServer`
terminates TLS itself, accepts requests only on the configured path, decodes
the body into an :class:`~sdk.models.Update` and hands it to a dispatch
callback before answering ``{}``.

Lifecycle::

    UNCONFIGURED -> CERTIFICATE_READY -> LISTENING -> STOPPED

Each connection is served on its own thread, so the dispatch callback must
be safe to call concurrently.
"""

from __future__ import annotations

import os
import ssl
import threading
from enum import Enum, IntEnum
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional, Tuple

from pydantic import ValidationError

from bot.certificates import CertificatePair, generate_self_signed_certificate
from core.logger import TelewireLogger
from sdk.client import TelewireClient
from sdk.exceptions import WebhookConfigError
from sdk.models import Update
from sdk.transport import FileField

logger = TelewireLogger.get_logger()

Dispatch = Callable[[Update], Any]

# Bytes of a rejected request body read before closing, and for how long.
_DISCARD_LIMIT = 64 * 1024
_DISCARD_TIMEOUT = 1.0


class WebhookPort(IntEnum):
    """Ports the platform is willing to deliver webhooks to."""

    PORT_443 = 443
    PORT_80 = 80
    PORT_88 = 88
    PORT_8443 = 8443


class ServerState(Enum):
    UNCONFIGURED = "unconfigured"
    CERTIFICATE_READY = "certificate_ready"
    LISTENING = "listening"
    STOPPED = "stopped"


def normalize_path(path: Optional[str]) -> str:
    if not path:
        return "/"
    return path if path.startswith("/") else f"/{path}"


# ── HTTP plumbing ────────────────────────────────────────────────────────────


class _WebhookRequestHandler(BaseHTTPRequestHandler):
    """Serves exactly one request per connection."""

    protocol_version = "HTTP/1.1"
    server_version = "Telewire"
    server: _TLSHTTPServer

    def _handle_webhook(self) -> None:
        self.close_connection = True
        client = self.client_address[0]

        # Only the platform knows the secret path.
        if self.path != self.server.expected_path:
            logger.warning("Rejected request on unexpected path", extra={"path": self.path, "client": client})
            self._reply(HTTPStatus.FORBIDDEN)
            self._discard_body()
            return

        try:
            update = Update.model_validate_json(self._read_body().decode("utf-8"))
        except (ValidationError, UnicodeDecodeError) as exc:
            logger.warning("Dropping undecodable update", extra={"path": self.path, "client": client, "error": str(exc)})
            return

        logger.debug("Update received", extra={"update_id": update.update_id, "variant": update.variant})
        self.server.dispatch(update)
        self._reply(HTTPStatus.OK, b"{}", "application/json")

    do_POST = _handle_webhook
    do_GET = _handle_webhook
    do_PUT = _handle_webhook
    do_DELETE = _handle_webhook

    def _content_length(self) -> int:
        try:
            return max(int(self.headers.get("Content-Length") or 0), 0)
        except ValueError:
            return 0

    def _read_body(self) -> bytes:
        length = self._content_length()
        return self.rfile.read(length) if length else b""

    def _discard_body(self) -> None:
        """Drain a small rejected body after replying; larger ones are left unread."""
        length = self._content_length()
        if not 0 < length <= _DISCARD_LIMIT:
            return
        self.connection.settimeout(_DISCARD_TIMEOUT)
        try:
            self.rfile.read(length)
        except OSError as exc:
            logger.debug("Rejected body not drained", extra={"client": self.client_address[0], "error": str(exc)})

    def _reply(self, status: HTTPStatus, body: bytes = b"", content_type: Optional[str] = None) -> None:
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if body:
            self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(format % args, extra={"client": self.client_address[0]})


class _TLSHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server that wraps every accepted socket in TLS.

    The handshake runs on the connection's worker thread, so a slow client
    never blocks the accept loop.
    """

    daemon_threads = True

    def __init__(self, address: Tuple[str, int], ssl_context: ssl.SSLContext, expected_path: str, dispatch: Dispatch) -> None:
        self.ssl_context = ssl_context
        self.expected_path = expected_path
        self.dispatch = dispatch
        super().__init__(address, _WebhookRequestHandler)

    def get_request(self):
        sock, client_address = super().get_request()
        return self.ssl_context.wrap_socket(sock, server_side=True, do_handshake_on_connect=False), client_address

    def finish_request(self, request, client_address) -> None:
        request.do_handshake()
        super().finish_request(request, client_address)

    def handle_error(self, request, client_address) -> None:
        logger.exception("Webhook connection failed", extra={"client": client_address[0]})


# ── Public server ────────────────────────────────────────────────────────────


class WebhookServer:
    """TLS webhook listener bound to a single path.

    Args:
        dispatch: Called with every decoded :class:`Update`, possibly from
            several threads at once.
        hostname: Public hostname (or IP) the platform connects to; also the
            subject of a generated self-signed certificate.
        port: Port to listen on; the platform only delivers to
            :class:`WebhookPort` values, ``0`` picks a free port.
        path: Secret path updates are posted to.
        bind_address: Local interface to bind, all interfaces by default.
    """

    def __init__(
        self,
        dispatch: Dispatch,
        hostname: str,
        port: int = WebhookPort.PORT_8443,
        path: str = "/webhook",
        bind_address: str = "",
    ) -> None:
        self._dispatch = dispatch
        self.hostname = hostname
        self.port = int(port)
        self.path = normalize_path(path)
        self.bind_address = bind_address

        self._lock = threading.Lock()
        self._state = ServerState.UNCONFIGURED
        self._certificate: Optional[CertificatePair] = None
        self._ssl_context: Optional[ssl.SSLContext] = None
        self._httpd: Optional[_TLSHTTPServer] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def certificate(self) -> Optional[CertificatePair]:
        return self._certificate

    @property
    def listen_url(self) -> str:
        return f"https://{self.hostname}:{self.port}{self.path}"

    @property
    def server_address(self) -> Optional[Tuple[str, int]]:
        """Address the listener is bound to, once listening."""
        httpd = self._httpd
        return httpd.server_address[:2] if httpd is not None else None

    def use_certificate(self, cert_path: str, key_path: str) -> None:
        """Use an existing PEM certificate and private key."""
        pair = CertificatePair(cert_path, key_path)
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(certfile=pair.cert_path, keyfile=pair.key_path)

        with self._lock:
            if self._state is ServerState.LISTENING:
                raise WebhookConfigError("Cannot change the certificate while listening.")
            self._certificate = pair
            self._ssl_context = context
            self._state = ServerState.CERTIFICATE_READY
        logger.info("Webhook certificate configured", extra={"cert_path": pair.cert_path})

    def use_generated_self_signed_certificate(self, directory: Optional[str] = None) -> CertificatePair:
        pair = generate_self_signed_certificate(self.hostname, directory)
        self.use_certificate(pair.cert_path, pair.key_path)
        return pair

    # ------------------------------------------------------------------
    # Registration with the platform
    # ------------------------------------------------------------------

    def register_webhook(self, client: TelewireClient) -> bool:
        """Point the bot's webhook at :attr:`listen_url`, uploading the certificate."""
        if self._certificate is None:
            raise WebhookConfigError("SSL certificate is not set up.")

        cert_path = self._certificate.cert_path
        with open(cert_path, "rb") as fh:
            registered = client.set_webhook(self.listen_url, certificate=FileField(os.path.basename(cert_path), fh))
        logger.info("Webhook registered", extra={"listen_url": self.listen_url, "registered": registered})
        return registered

    def unregister_webhook(self, client: TelewireClient) -> bool:
        return client.delete_webhook()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Listen and serve on the calling thread until :meth:`stop` is called.

        Raises:
            WebhookConfigError: If no certificate is configured or the
                server is already listening.
        """
        self._bind()
        self._serve()

    def start_async(self) -> threading.Thread:
        """Bind on the calling thread, then serve on a daemon thread."""
        self._bind()
        thread = threading.Thread(target=self._serve, name="telewire-webhook", daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Stop accepting connections and release the listener.

        Requests already being handled are not waited for.
        """
        with self._lock:
            httpd = self._httpd
            if self._state is not ServerState.LISTENING or httpd is None:
                logger.debug("Webhook server is not listening; nothing to stop")
                return

        httpd.shutdown()
        self._close(httpd)

    def _bind(self) -> None:
        with self._lock:
            if self._state is ServerState.UNCONFIGURED or self._ssl_context is None:
                raise WebhookConfigError("SSL certificate is not set up; refusing to listen without TLS.")
            if self._state is ServerState.LISTENING:
                raise WebhookConfigError("Webhook server is already listening.")

            self._httpd = _TLSHTTPServer(
                (self.bind_address, self.port), self._ssl_context, self.path, self._dispatch
            )
            self._state = ServerState.LISTENING

        logger.info("Webhook server listening", extra={"address": self.server_address, "path": self.path})

    def _serve(self) -> None:
        httpd = self._httpd
        assert httpd is not None  # set by _bind
        try:
            httpd.serve_forever()
        finally:
            self._close(httpd)

    def _close(self, httpd: _TLSHTTPServer) -> None:
        with self._lock:
            if self._state is not ServerState.LISTENING or self._httpd is not httpd:
                return
            httpd.server_close()
            self._state = ServerState.STOPPED
        logger.info("Webhook server stopped", extra={"path": self.path})
