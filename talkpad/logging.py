"""Structured logging for talkpad.

structlog over stdlib logging. talkpad runs inside a host application, so
only the ``talkpad`` logger namespace is configured. talkpad loggers carry
their own processor chain, so the host's root logger, its handlers and its
global structlog configuration are left alone.

Formats (``TALKPAD_LOG_FORMAT``):
- console: human-readable for development (default)
- json: one JSON object per line

Level via ``TALKPAD_LOG_LEVEL`` (default INFO). These two variables are read
here rather than through pydantic-settings so logging works before settings
are loaded.
"""

from __future__ import annotations

import logging
import os

import structlog

from talkpad.exceptions import ConfigError

LOGGER_NAMESPACE = "talkpad"

_FORMATS = ("console", "json")

_configured = False

# Private chain for talkpad loggers. structlog's global configuration
# belongs to the host and is never touched.
_PROCESSORS: list[structlog.types.Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.format_exc_info,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(
    log_format: str | None = None,
    level: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure the ``talkpad`` logger namespace.

    Idempotent unless ``force`` is set.

    Args:
        log_format: "json" or "console". Default via TALKPAD_LOG_FORMAT or "console".
        level: DEBUG, INFO, WARNING or ERROR. Default via TALKPAD_LOG_LEVEL or "INFO".
        force: Reconfigure even if already configured.

    Raises:
        ConfigError: If the format is unknown.
    """
    global _configured
    if _configured and not force:
        return

    resolved_format = (log_format or os.environ.get("TALKPAD_LOG_FORMAT", "console")).lower()
    resolved_level = (level or os.environ.get("TALKPAD_LOG_LEVEL", "INFO")).upper()
    if resolved_format not in _FORMATS:
        msg = f"Unknown log format '{resolved_format}' (expected one of: {', '.join(_FORMATS)})"
        raise ConfigError(msg)

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(resolved_format),
            ],
        )
    )

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.addHandler(handler)
    namespace.setLevel(getattr(logging, resolved_level, logging.INFO))
    namespace.propagate = False

    _configured = True


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger for one talkpad component.

    The stdlib logger is ``talkpad.<component>`` and every event carries a
    ``component`` field.

    Args:
        component: Dotted component name (e.g. "playback.sync").
    """
    configure_logging()
    logger = structlog.wrap_logger(
        logging.getLogger(f"{LOGGER_NAMESPACE}.{component}"),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    return logger.bind(component=component)  # type: ignore[no-any-return]
