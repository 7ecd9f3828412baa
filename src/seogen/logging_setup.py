"""structlog/stdlib logging bootstrap shared by the CLI and the web server."""

from __future__ import annotations

import logging
import logging.config

import structlog
from structlog.dev import ConsoleRenderer

_CONFIGURED = False


def _is_local_environment(environment: str) -> bool:
    return environment.lower() in ("", "local", "development", "dev")


def configure_logging(log_level: str = "INFO", environment: str = "local") -> None:
    """Configure structured logging.

    Local runs get coloured console output, anything else gets one JSON
    object per line.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if _is_local_environment(environment):
        renderer = ConsoleRenderer(colors=True, pad_event=32)
    else:
        renderer = structlog.processors.JSONRenderer()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {"handlers": ["default"], "level": log_level},
            "loggers": {
                "urllib3": {"level": "WARNING"},
                "werkzeug": {"level": "INFO"},
            },
        }
    )

    _CONFIGURED = True
