"""Exception hierarchy for the Telewire SDK."""

from typing import Any, Optional

from pydantic import ValidationError

from core.logger import TelewireLogger
from sdk.models import ResultEnvelope

logger = TelewireLogger.get_logger()


class APIException(Exception):
    """Negative response from the Telegram Bot API.

    Raised when the endpoint was reached but answered with an HTTP status
    outside 200–399, or with an envelope whose ``ok`` flag is false.

    Attributes:
        status_code: HTTP status code returned by the API.
        error_code: Application error code from the envelope, if any.
        description: Human-readable description from the envelope, if any.
    """

    def __init__(self, status_code: int, response_text: Optional[str] = None) -> None:
        """Build the error from an HTTP status and the raw response body.

        A body that cannot be decoded is logged and otherwise ignored, so the
        negative response itself is never masked by a parse failure.
        """
        envelope: Optional[ResultEnvelope[Any]] = None
        if response_text:
            try:
                envelope = ResultEnvelope[Any].model_validate_json(response_text)
            except ValidationError as exc:
                logger.warning(
                    "Could not decode error response body",
                    extra={"status_code": status_code, "error": str(exc)},
                )
        self._init(status_code, envelope)

    @classmethod
    def from_envelope(cls, status_code: int, envelope: ResultEnvelope[Any]) -> "APIException":
        """Build the error from an already-decoded, failing envelope."""
        exc = cls.__new__(cls)
        exc._init(status_code, envelope)
        return exc

    def _init(self, status_code: int, envelope: Optional[ResultEnvelope[Any]]) -> None:
        self.status_code = status_code
        self.error_code: Optional[int] = envelope.error_code if envelope is not None else None
        self.description: Optional[str] = envelope.description if envelope is not None else None
        super().__init__(f"Error Code = {self.error_code} | Description = {self.description}")

    def __repr__(self) -> str:
        return (
            f"APIException(status_code={self.status_code!r}, "
            f"error_code={self.error_code!r}, description={self.description!r})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, APIException):
            return NotImplemented
        return (self.status_code, self.error_code, self.description) == (
            other.status_code, other.error_code, other.description,
        )

    __hash__ = Exception.__hash__


class WebhookConfigError(RuntimeError):
    """The webhook server was asked to do something its configuration does not allow."""
