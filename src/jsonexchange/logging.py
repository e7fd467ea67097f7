"""structlog setup for services that host the codec.

Codec modules never configure logging; they fetch loggers with get_logger() and
emit events such as superfluous_write_header. An application opts in by calling
configure_logging() at startup, which sends structlog events and stdlib records
through one stdout handler, rendered as JSON lines or for the console.
"""

import logging
import logging.config
import sys
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from structlog.stdlib import BoundLogger


def _utc_timestamp(
    _logger: object,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp each event with the current UTC time in ISO 8601."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


class LoggingSettings(BaseSettings):
    """Level and renderer for the hosting service, read from LOG_LEVEL and LOG_JSON."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # JSON lines for production; False switches to structlog's console renderer
    log_json: bool = Field(default=True, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install the processor chain and the stdout handler.

    Loggers fetched at import time by codec modules are lazy proxies, so they
    pick this configuration up on their first event.
    """
    settings = settings or LoggingSettings()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _utc_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": renderer,
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": sys.stdout,
                },
            },
            "loggers": {
                "": {
                    "handlers": ["default"],
                    "level": settings.log_level,
                    "propagate": True,
                },
            },
        }
    )


def get_logger(name: str) -> BoundLogger:
    """Return a lazy structlog logger named ``name``.

    Safe to call at import time, before configure_logging() runs.

    Example:
        logger = get_logger(__name__)
        logger.warning("superfluous_write_header", status_code=500)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
