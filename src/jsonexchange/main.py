"""Reference service wiring the codec into FastAPI.

Run with any ASGI server, e.g. ``uvicorn jsonexchange.main:app``.
"""

from typing import Annotated, Any

from fastapi import FastAPI, Request
from starlette.responses import Response

from jsonexchange.codec import ReadRespond
from jsonexchange.config import CodecSettings
from jsonexchange.dependencies import json_body
from jsonexchange.exceptions import DecodeError, ExchangeError
from jsonexchange.logging import configure_logging, get_logger
from jsonexchange.middleware import RequestIDMiddleware
from jsonexchange.schemas.echo import EchoRequest
from jsonexchange.schemas.envelope import JSONResponse

configure_logging()
logger = get_logger(__name__)

codec = ReadRespond(CodecSettings())

app = FastAPI()
app.add_middleware(RequestIDMiddleware)

EchoBody = Annotated[EchoRequest, json_body(EchoRequest, codec)]


@app.exception_handler(ExchangeError)
async def exchange_error_handler(request: Request, exc: ExchangeError) -> Response:
    """Answer codec failures with the error envelope and the error's status."""
    if isinstance(exc, DecodeError):
        logger.info("decode_error", error=exc.message, error_type=type(exc).__name__)
    else:
        logger.warning("encode_error", error=exc.message, error_type=type(exc).__name__)
    return codec.respond_error(exc, exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Log unhandled exceptions and return a safe error envelope.

    - Logs full exception with traceback (includes request_id from context)
    - Returns a generic message to the client (no stack traces leaked)
    """
    logger.exception("unhandled_exception")
    return codec.respond(500, JSONResponse.failure("Internal server error"))


@app.post("/echo")
async def echo(payload: EchoBody) -> Response:
    """Decode an EchoRequest strictly and send it back as a success envelope."""
    return codec.respond(
        200, JSONResponse.success(payload), headers={"Cache-Control": "no-store"}
    )


@app.get("/health")
async def health() -> dict[str, Any]:
    """Liveness check with the active body limit."""
    return {"status": "ok", "max_bytes": codec.max_bytes}
