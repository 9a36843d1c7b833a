# src/tracecheck/core/logging.py
"""structlog setup for the CLI.

Records from tracecheck's structlog loggers and from stdlib loggers
(httpx, sqlalchemy) pass through the same processors and one stderr
handler, so a run log is uniformly console text or JSON lines. Bearer
tokens bound to a logger are masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter
from structlog.typing import Processor

from tracecheck.core.config import SECRET_FIELD_NAMES

# Per-request chatter from the node and provider clients and the checkpoint engine.
_QUIET_AT_DEBUG = ("httpx", "httpcore", "sqlalchemy.engine", "sqlalchemy.pool")


def _mask_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in SECRET_FIELD_NAMES & event_dict.keys():
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def _drop_formatter_fields(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Always set by ProcessorFormatter.
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _renderers(json_output: bool) -> list[Processor]:
    if json_output:
        return [_drop_formatter_fields, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [_drop_formatter_fields, structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route structlog and stdlib logging to stderr.

    Args:
        json_output: Render JSON lines instead of console text
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
    """
    root_level: int = getattr(logging, level.upper())
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        _mask_secrets,
    ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # configure_logging runs once per CLI invocation, several per test session
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_renderers(json_output), foreign_pre_chain=pre_chain))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    for name in _QUIET_AT_DEBUG:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
