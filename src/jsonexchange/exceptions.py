"""Exceptions raised by the codec.

Every failure is returned to the calling handler as one of these; the codec
never answers a request on its own. ``status_code`` is the status a handler
would typically answer with (see ``ReadRespond.write_error``).
"""

from typing import Any


class ExchangeError(Exception):
    """Base class for all codec exceptions."""

    status_code: int = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class DecodeError(ExchangeError):
    """Raised when a request body cannot be decoded into the target."""


class MalformedJSONError(DecodeError):
    """Raised when the body is not valid JSON (including an empty body)."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)


class SchemaMismatchError(DecodeError):
    """Raised when the JSON value does not fit the target's field types."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class UnknownFieldError(DecodeError):
    """Raised when the JSON object has a field the target does not declare."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f'json: unknown field "{field}"')


class BodyTooLargeError(DecodeError):
    """Raised when the body exceeds the configured ``max_bytes``."""

    status_code = 413

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__("http: request body too large")


class TrailingDataError(DecodeError):
    """Raised when anything but whitespace follows the first JSON value."""

    def __init__(self) -> None:
        super().__init__("body must contain a single JSON object")


class EncodeError(ExchangeError):
    """Raised when a response payload cannot be written."""

    status_code = 500


class SerializationError(EncodeError):
    """Raised when the payload holds a value JSON cannot represent."""


class ResponseWriteError(EncodeError):
    """Raised when the underlying transport rejects a write."""
