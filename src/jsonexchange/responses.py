"""Starlette response whose body is written by the codec.

Lets FastAPI endpoints return codec output instead of driving a ResponseWriter
by hand::

    @app.post("/users")
    async def create_user(request: Request) -> Response:
        user = await codec.read_json(request, CreateUser)
        return codec.respond(201, JSONResponse.success(user))
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from starlette.background import BackgroundTask
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from jsonexchange.writer import ResponseWriter

if TYPE_CHECKING:
    from jsonexchange.codec import ReadRespond


class CodecResponse(Response):
    """Defers serialization to ``ReadRespond.write_json`` at send time.

    Headers the framework adds to ``raw_headers`` (cookies, sub-response
    headers) are carried over; the codec's own headers and Content-Type are
    applied on top of them.
    """

    media_type = "application/json;charset=utf-8"

    def __init__(
        self,
        codec: "ReadRespond",
        status_code: int,
        content: Any,
        headers: Mapping[str, str | Sequence[str]] | None = None,
        background: BackgroundTask | None = None,
    ) -> None:
        self.codec = codec
        self.status_code = status_code
        self.content = content
        self.extra_headers = headers
        self.background = background
        self.body = b""
        self.raw_headers: list[tuple[bytes, bytes]] = []

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        w = ResponseWriter(send)
        for key, value in self.raw_headers:
            w.headers.append(key.decode("latin-1"), value.decode("latin-1"))
        await self.codec.write_json(w, self.status_code, self.content, self.extra_headers)
        await w.close()

        if self.background is not None:
            await self.background()
