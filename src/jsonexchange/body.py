"""Request body reading with an optional byte ceiling."""

from collections.abc import AsyncIterator
from contextlib import aclosing

from starlette.requests import Request

from jsonexchange.exceptions import BodyTooLargeError


async def limited_chunks(stream: AsyncIterator[bytes], limit: int) -> AsyncIterator[bytes]:
    """Yield chunks from ``stream``, raising once more than ``limit`` bytes arrive.

    A limit of 0 disables the check. The chunk that crosses the ceiling is
    never yielded.
    """
    received = 0
    async for chunk in stream:
        received += len(chunk)
        if limit > 0 and received > limit:
            raise BodyTooLargeError(limit)
        yield chunk


async def read_body(request: Request, limit: int = 0) -> bytes:
    """Read the whole request body, enforcing ``limit`` when it is positive.

    The underlying stream is closed on every exit path, including when the
    ceiling is crossed part way through.
    """
    buffer = bytearray()
    async with aclosing(request.stream()) as stream:
        async with aclosing(limited_chunks(stream, limit)) as chunks:
            async for chunk in chunks:
                buffer.extend(chunk)
    return bytes(buffer)
