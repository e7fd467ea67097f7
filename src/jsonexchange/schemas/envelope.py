"""Response envelope schema.

All codec responses share one shape: {"error": bool, "message"?: str, "data"?: any}.
``message`` is dropped from the output when empty and ``data`` when None, so an
error envelope reads {"error": true, "message": "..."} and a success envelope
reads {"error": false, "data": ...}.
"""

from typing import Any, Self

from pydantic import BaseModel, SerializationInfo, SerializerFunctionWrapHandler, model_serializer


class JSONResponse(BaseModel):
    """Envelope written by ``ReadRespond.write_error`` and built ad hoc for successes."""

    model_config = {"frozen": True}

    error: bool
    message: str = ""
    data: Any = None

    @model_serializer(mode="wrap")
    def _omit_empty(
        self, handler: SerializerFunctionWrapHandler, info: SerializationInfo
    ) -> dict[str, Any]:
        payload: dict[str, Any] = handler(self)
        if not self.message:
            payload.pop("message", None)
        if self.data is None:
            payload.pop("data", None)
        return payload

    @classmethod
    def failure(cls, message: str) -> Self:
        return cls(error=True, message=message)

    @classmethod
    def success(cls, data: Any) -> Self:
        return cls(error=False, data=data)
