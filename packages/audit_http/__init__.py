"""
HTTP audit adapter for FastAPI.

Audits endpoint calls through a custom route class and tracks request
correlation IDs.
"""

from .middleware import (
    CORRELATION_ID_HEADER,
    CorrelationIdMiddleware,
    get_correlation_id,
    set_correlation_id,
)
from .models import AuditAction
from .route import (
    DEFAULT_EVENT_TYPE_NAME,
    audit_route_class,
    audit_scope_ctx,
    build_action,
    format_event_type,
    get_current_action,
    get_current_scope,
    get_exception_info,
    get_model_state_errors,
)

__all__ = [
    "AuditAction",
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "DEFAULT_EVENT_TYPE_NAME",
    "audit_route_class",
    "audit_scope_ctx",
    "build_action",
    "format_event_type",
    "get_correlation_id",
    "get_current_action",
    "get_current_scope",
    "get_exception_info",
    "get_model_state_errors",
    "set_correlation_id",
]
