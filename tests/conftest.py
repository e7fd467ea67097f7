from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from jsonexchange.codec import ReadRespond
from jsonexchange.main import app
from jsonexchange.writer import ResponseWriter
from tests.factories import RecordingSend


@pytest.fixture
def codec() -> ReadRespond:
    """Codec without a body limit."""
    return ReadRespond(max_bytes=0)


@pytest.fixture
def sent() -> RecordingSend:
    return RecordingSend()


@pytest.fixture
def writer(sent: RecordingSend) -> ResponseWriter:
    """Response sink whose ASGI messages land in the ``sent`` fixture."""
    return ResponseWriter(sent)


@pytest_asyncio.fixture
async def client() -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the reference service."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
