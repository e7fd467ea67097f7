from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CodecSettings(BaseSettings):
    """Codec settings loaded from environment variables.

    Pydantic Settings reads env vars prefixed with ``JSONEXCHANGE_`` (case-insensitive),
    e.g. ``JSONEXCHANGE_MAX_BYTES=1048576``. In development it also reads a .env file.
    Instances are frozen: a codec built from them never changes after construction.
    """

    # Maximum request body size in bytes; 0 means unlimited
    max_bytes: int = Field(default=0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="JSONEXCHANGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
        frozen=True,
    )
