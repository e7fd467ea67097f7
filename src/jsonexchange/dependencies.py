"""FastAPI dependencies for decoding request bodies with the codec.

Usage in endpoints::

    Payload = Annotated[CreateUser, json_body(CreateUser, codec)]

    @app.post("/users")
    async def create_user(payload: Payload) -> Response:
        ...

Decode failures propagate as ``DecodeError`` subclasses; the application's
exception handlers decide how to answer them.
"""

from typing import Any, TypeVar

from fastapi import Depends, Request

from jsonexchange.codec import ReadRespond

T = TypeVar("T")


def json_body(target: type[T], codec: ReadRespond | None = None) -> Any:
    """Return a ``Depends`` marker that decodes the body into ``target``."""
    reader = codec if codec is not None else ReadRespond()

    async def decode(request: Request) -> Any:
        return await reader.read_json(request, target)

    decode.__name__ = f"json_body_{getattr(target, '__name__', 'value')}"
    return Depends(decode)
