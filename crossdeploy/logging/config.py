"""
Logging configuration.

Configuration is read from arguments or environment variables:
- CROSSDEPLOY_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- CROSSDEPLOY_LOG_FORMAT: json | console (default: console)

Usage:
    from crossdeploy.logging import configure_logging
    configure_logging(level="DEBUG", format="json")
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging.

    Called once by the CLI. Later calls are no-ops unless ``force`` is set.
    Logs go to stderr so manifests written to stdout stay clean.
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("CROSSDEPLOY_LOG_LEVEL", "WARNING")).upper()
    log_format = (format or os.environ.get("CROSSDEPLOY_LOG_FORMAT", "console")).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.WARNING),
        force=True,
    )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
