"""Structured logging for audit scopes and audited requests.

Audit scopes and storage providers log lifecycle events (scope created,
event inserted/replaced, write failed) through structlog. Log lines written
while an audited request is handled carry its correlation ID and the event
type and id of its audit scope.

Usage:
    setup_logging_from_settings(get_audit_settings())
    logger = get_logger(__name__)
    logger.info("note_archived", note_id=3)
"""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from packages.audit_http.middleware import get_correlation_id
from packages.audit_http.route import get_current_scope

if TYPE_CHECKING:
    from packages.audit_settings import AuditSettings


def add_correlation_id(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the request correlation ID to log entries if available."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_audit_scope(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add the event type and id of the current request's audit scope.

    Values passed explicitly to the log call win.

    Args:
        logger: The wrapped logger instance
        method_name: The name of the method being called
        event_dict: The event dictionary to modify

    Returns:
        Event dictionary with event_type and, once persisted, event_id
    """
    scope = get_current_scope()
    if scope is None:
        return event_dict
    event_dict.setdefault("event_type", scope.event.event_type)
    if scope.event_id is not None:
        event_dict.setdefault("event_id", scope.event_id)
    return event_dict


def build_processors(json_output: bool = True) -> list[Processor]:
    """Processor chain shared by console and file output."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        add_correlation_id,
        add_audit_scope,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


class _AuditFileHandler(logging.FileHandler):
    """Marks the file handler installed by setup_logging so it can be replaced."""


def _install_file_handler(log_file: str, level: int) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, _AuditFileHandler):
            root_logger.removeHandler(handler)
            handler.close()

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = _AuditFileHandler(log_path)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output (in addition to stdout)
        json_output: If True, output JSON format; if False, use human-readable format
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", level=numeric_level, stream=sys.stdout)
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        _install_file_handler(log_file, numeric_level)


def setup_logging_from_settings(settings: "AuditSettings") -> None:
    """Configure logging from AUDIT_LOG_LEVEL, AUDIT_LOG_JSON and AUDIT_LOG_FILE."""
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        json_output=settings.log_json,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = [
    "add_audit_scope",
    "add_correlation_id",
    "build_processors",
    "get_logger",
    "setup_logging",
    "setup_logging_from_settings",
]
