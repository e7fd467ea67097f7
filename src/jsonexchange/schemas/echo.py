"""Request schema for the reference service's POST /echo endpoint."""

from pydantic import BaseModel


class EchoRequest(BaseModel):
    """Message to echo back; unknown keys are rejected by the codec."""

    name: str
    message: str = ""
    tags: list[str] = []
