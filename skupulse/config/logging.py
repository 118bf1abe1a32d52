"""
Logging Configuration for SKU Pulse

structlog events are rendered by one stdlib handler on the root logger, so
uvicorn, Prefect and sync logs come out in the same format. Calling
configure_logging again swaps that handler rather than stacking another.
"""

import logging
import sys
from typing import List, Optional

import structlog
from structlog.typing import Processor

from skupulse.config.settings import MonitoringSettings

HANDLER_NAME = "skupulse"

# Per-request chatter from the HTTP stack; the Shopify client logs its own calls
QUIET_LOGGERS = ("httpx", "httpcore", "hpack")

# Servers that attach their own handlers unless told otherwise
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format.lower() == "text":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def _install_handler(formatter: logging.Formatter, level: int) -> logging.Handler:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)
    return handler


def configure_logging(monitoring: Optional[MonitoringSettings] = None, environment: str = "development") -> None:
    """
    Route structlog and stdlib logging through a single stdout handler.

    Args:
        monitoring: LOG_LEVEL and LOG_FORMAT; read from the environment when omitted
        environment: APP_ENV, attached to the startup event
    """
    monitoring = monitoring or MonitoringSettings()
    level = logging.getLevelName(monitoring.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = _shared_processors()
    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_renderer(monitoring.log_format),
        foreign_pre_chain=processors,
    )
    _install_handler(formatter, level)

    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
        server_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=logging.getLevelName(level),
        format=monitoring.log_format,
        environment=environment,
    )
