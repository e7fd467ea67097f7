"""Response sink over an ASGI ``send`` callable.

``ResponseWriter`` mirrors the response half of an exchange: a mutable header
collection, a one-shot commit of status + headers, and a body stream that can
only be written after the commit. It is what ``ReadRespond.write_json`` writes to.

Usage inside a raw ASGI app or a Response subclass::

    w = ResponseWriter(send)
    w.headers["X-Trace"] = "abc"
    await codec.write_json(w, 201, {"id": 7})
    await w.close()
"""

from starlette.datastructures import MutableHeaders
from starlette.types import Send

from jsonexchange.exceptions import ResponseWriteError
from jsonexchange.logging import get_logger

logger = get_logger(__name__)


class ResponseWriter:
    """Write status, headers and body of one response through ASGI messages."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self._headers = MutableHeaders()
        self._status_code: int | None = None
        self._closed = False
        self._bytes_written = 0

    @property
    def headers(self) -> MutableHeaders:
        """Header collection; changes after ``write_header`` are not sent."""
        return self._headers

    @property
    def committed(self) -> bool:
        return self._status_code is not None

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write_header(self, status_code: int) -> None:
        """Commit the status line and headers. Only the first call has effect."""
        if self.committed:
            logger.warning(
                "superfluous_write_header",
                status_code=status_code,
                committed_status_code=self._status_code,
            )
            return
        self._status_code = status_code
        await self._emit(
            {
                "type": "http.response.start",
                "status": status_code,
                "headers": list(self._headers.raw),
            }
        )

    async def write(self, data: bytes) -> int:
        """Write body bytes, committing status 200 first if nothing was committed."""
        if self._closed:
            raise ResponseWriteError("write after close")
        if not self.committed:
            await self.write_header(200)
        if not data:
            return 0
        await self._emit({"type": "http.response.body", "body": data, "more_body": True})
        self._bytes_written += len(data)
        return len(data)

    async def close(self) -> None:
        """Finish the body. Safe to call more than once."""
        if self._closed:
            return
        if not self.committed:
            await self.write_header(200)
        self._closed = True
        await self._emit({"type": "http.response.body", "body": b"", "more_body": False})

    async def _emit(self, message: dict) -> None:
        try:
            await self._send(message)
        except OSError as exc:
            raise ResponseWriteError(f"write failed: {exc}") from exc
