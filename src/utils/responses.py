"""
HTTP response builders for API Gateway proxy integrations.

Provides the JSON envelope used by every API route and the payload shapes
returned to the web frontend.
"""

import json
from decimal import Decimal
from typing import Any, Dict, Optional, TypedDict

from .errors import handle_error, http_status_for

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-store",
}


class InvitationResponse(TypedDict, total=False):
    """Invitation as exposed to the invite-accept page (never includes tokenHash)."""

    id: str
    owner: str
    email: str
    role: str
    status: str
    expiresAt: Optional[str]
    lastSentAt: Optional[str]
    createdAt: str
    updatedAt: str


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_response(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Build an API Gateway proxy response with a JSON body."""
    return {
        "statusCode": status_code,
        "headers": {**DEFAULT_HEADERS, **(headers or {})},
        "body": json.dumps(body, default=_json_default),
    }


def ok_response(**fields: Any) -> Dict[str, Any]:
    """200 response with {"ok": true, ...fields}; None fields are dropped."""
    return json_response(200, {"ok": True, **{k: v for k, v in fields.items() if v is not None}})


def error_response(error: Exception) -> Dict[str, Any]:
    """
    Convert an exception into an error response.

    AppError keeps its code, message and details; anything else becomes a
    generic 500.
    """
    payload = handle_error(error)
    message = payload.pop("message")
    return json_response(http_status_for(error), {"ok": False, "error": message, **payload})


def build_invitation_response(item: Dict[str, Any]) -> InvitationResponse:
    """Strip storage-only attributes from an Invitation item."""
    response: Dict[str, Any] = {
        key: item.get(key)
        for key in InvitationResponse.__annotations__
        if item.get(key) is not None
    }
    return response  # type: ignore[return-value]
