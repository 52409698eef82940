"""Audited FastAPI routes.

Routes built with the class returned by audit_route_class() open an audit
scope before the endpoint runs and save and dispose it once the response (or
the exception) is known.

Usage:
    router = APIRouter(
        tags=["orders"],
        route_class=audit_route_class(include_headers=True),
    )
"""

import json
from contextvars import ContextVar
from typing import Any, Callable, Coroutine, Mapping, Optional, Sequence

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException

from packages.audit_core import AuditScope, EventCreationPolicy, create_scope
from packages.audit_store.provider import StorageProvider

from .middleware import get_correlation_id
from .models import AuditAction

DEFAULT_EVENT_TYPE_NAME = "{verb} {controller}/{action}"
ACTION_FIELD = "Action"

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# Scope of the audited request handled in the current context
audit_scope_ctx: ContextVar[Optional[AuditScope]] = ContextVar("audit_scope", default=None)


def format_event_type(template: str, action: AuditAction) -> str:
    """Resolve the {verb}, {controller} and {action} placeholders."""
    return (
        template.replace("{verb}", action.http_method)
        .replace("{controller}", action.controller_name or "")
        .replace("{action}", action.action_name or "")
    )


def _inner_exception(exc: BaseException) -> Optional[BaseException]:
    if exc.__cause__ is not None:
        return exc.__cause__
    # raise ... from None hides the context
    if exc.__suppress_context__:
        return None
    return exc.__context__


def get_exception_info(exc: Optional[BaseException]) -> Optional[str]:
    """Summarize an exception and its causes as "(Type) message -> cause -> ..."."""
    if exc is None:
        return None
    info = f"({type(exc).__name__}) {exc}"
    seen = {id(exc)}
    inner = _inner_exception(exc)
    while inner is not None and id(inner) not in seen:
        seen.add(id(inner))
        info += f" -> {inner}"
        inner = _inner_exception(inner)
    return info


def get_model_state_errors(errors: Sequence[Mapping[str, Any]]) -> Optional[dict[str, str]]:
    """Group validation error messages by field location."""
    grouped: dict[str, list[str]] = {}
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        grouped.setdefault(location, []).append(str(error.get("msg", "")))
    if not grouped:
        return None
    return {location: ", ".join(messages) for location, messages in grouped.items()}


def get_current_scope(request: Optional[Request] = None) -> Optional[AuditScope]:
    """Get the audit scope of an audited request, if any.

    Without a request, returns the scope of the audited request being handled
    in the current context.
    """
    if request is None:
        return audit_scope_ctx.get()
    return getattr(request.state, "audit_scope", None)


def get_current_action(request: Request) -> Optional[AuditAction]:
    return getattr(request.state, "audit_action", None)


def _multi_dict(items: Any) -> dict[str, str]:
    result = {}
    for key in items.keys():
        values = items.getlist(key)
        result[key] = ", ".join(
            value if isinstance(value, str) else str(getattr(value, "filename", value))
            for value in values
        )
    return result


def _user_name(request: Request) -> Optional[str]:
    # request.user asserts when no authentication middleware is installed
    user = request.scope.get("user")
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return getattr(user, "display_name", None) or None


def _controller_name(route: APIRoute) -> str:
    if route.tags:
        tag = route.tags[0]
        return str(getattr(tag, "value", tag))
    return route.endpoint.__module__.rsplit(".", 1)[-1]


def _response_model(response: Response) -> Any:
    body = getattr(response, "body", None)
    if not body or response.media_type != "application/json":
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


async def build_action(
    request: Request,
    route: APIRoute,
    include_headers: bool = False,
) -> AuditAction:
    """Collect the request-side fields of an audit action."""
    url = request.url
    form_variables = None
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form_variables = _multi_dict(await request.form())

    return AuditAction(
        trace_id=get_correlation_id() or None,
        user_name=_user_name(request),
        ip_address=request.client.host if request.client else None,
        request_url=f"{url.scheme}://{url.netloc}{url.path}",
        http_method=request.method,
        form_variables=form_variables,
        headers=_multi_dict(request.headers) if include_headers else None,
        action_name=route.name,
        controller_name=_controller_name(route),
        action_parameters={**dict(request.query_params), **request.path_params},
    )


def _set_status(action: AuditAction, status_code: int) -> None:
    action.response_status_code = status_code
    action.response_status = str(status_code)


def _complete(scope: AuditScope, action: AuditAction) -> None:
    scope.set_custom_field(ACTION_FIELD, action)
    scope.save()
    scope.dispose()


def audit_route_class(
    *,
    include_headers: bool = False,
    include_model: bool = False,
    event_type_name: Optional[str] = None,
    creation_policy: EventCreationPolicy = EventCreationPolicy.MANUAL,
    data_provider: Optional[StorageProvider] = None,
) -> type[APIRoute]:
    """
    Build an APIRoute subclass that audits every call to its endpoints.

    Args:
        include_headers: Record request headers
        include_model: Record validation errors and the JSON response body
        event_type_name: Event type template; may contain {verb}, {controller}, {action}
        creation_policy: Creation policy of the per-request scope
        data_provider: Storage provider (process-wide configuration if None)

    Returns:
        Route class for APIRouter(route_class=...)
    """
    template = event_type_name or DEFAULT_EVENT_TYPE_NAME

    class AuditRoute(APIRoute):
        def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
            original_handler = super().get_route_handler()
            route = self

            async def audited_handler(request: Request) -> Response:
                action = await build_action(request, route, include_headers)
                scope = create_scope(
                    format_event_type(template, action),
                    {ACTION_FIELD: action},
                    policy=creation_policy,
                    provider=data_provider,
                    calling_method_name=f"{route.endpoint.__module__}.{route.endpoint.__qualname__}",
                )
                request.state.audit_action = action
                request.state.audit_scope = scope
                token = audit_scope_ctx.set(scope)
                try:
                    return await _handle(request, action, scope)
                finally:
                    audit_scope_ctx.reset(token)

            async def _handle(request: Request, action: AuditAction, scope: AuditScope) -> Response:
                try:
                    response = await original_handler(request)
                except RequestValidationError as exc:
                    _set_status(action, 422)
                    if include_model:
                        action.model_state_valid = False
                        action.model_state_errors = get_model_state_errors(exc.errors())
                    action.exception = get_exception_info(exc)
                    _complete(scope, action)
                    raise
                except HTTPException as exc:
                    _set_status(action, exc.status_code)
                    action.exception = get_exception_info(exc)
                    _complete(scope, action)
                    raise
                except Exception as exc:
                    _set_status(action, 500)
                    action.exception = get_exception_info(exc)
                    _complete(scope, action)
                    raise

                _set_status(action, response.status_code)
                action.redirect_location = response.headers.get("location")
                if include_model:
                    action.model_state_valid = True
                    action.model = _response_model(response)
                _complete(scope, action)
                return response

            return audited_handler

    return AuditRoute
