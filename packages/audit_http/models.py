"""Audit payload describing one HTTP action."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditAction(BaseModel):
    """
    Request and response details of an audited endpoint call.

    Stored under the "Action" custom field of the audit event and updated as
    the request progresses.
    """

    model_config = {"protected_namespaces": ()}

    trace_id: Optional[str] = Field(default=None, description="Request correlation ID")
    user_name: Optional[str] = Field(default=None, description="Authenticated user")
    ip_address: Optional[str] = Field(default=None, description="Client address")
    request_url: str = Field(..., description="scheme://host/path of the request")
    http_method: str = Field(..., description="HTTP verb")
    form_variables: Optional[dict[str, str]] = Field(default=None, description="Form fields")
    headers: Optional[dict[str, str]] = Field(default=None, description="Request headers")
    action_name: Optional[str] = Field(default=None, description="Route name")
    controller_name: Optional[str] = Field(default=None, description="Route tag or module")
    action_parameters: dict[str, Any] = Field(
        default_factory=dict, description="Path and query parameters"
    )
    model_state_valid: Optional[bool] = Field(default=None, description="Request validation outcome")
    model_state_errors: Optional[dict[str, str]] = Field(
        default=None, description="Validation errors by field location"
    )
    model: Optional[Any] = Field(default=None, description="JSON response body")
    redirect_location: Optional[str] = Field(default=None, description="Location header")
    response_status: Optional[str] = Field(default=None, description="Status code as text")
    response_status_code: Optional[int] = Field(default=None, description="Status code")
    exception: Optional[str] = Field(default=None, description="Exception chain summary")
