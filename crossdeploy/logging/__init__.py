"""
Structured logging for crossdeploy.

Modules log key/value events through structlog; the CLI configures output
format and level once at startup.
"""

from crossdeploy.logging.config import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
