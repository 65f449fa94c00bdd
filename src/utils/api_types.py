"""
Type definitions and accessors for the Lambda events this service receives.

Covers DynamoDB stream records and SES inbound-mail metadata, plus accessors
for API Gateway proxy events that hide the differences between the REST (v1)
and HTTP API (v2) payload versions.
"""

import base64
import json
from typing import Any, Dict, List, Optional, TypedDict

from .errors import AppError, ErrorCode


class StreamChange(TypedDict, total=False):
    Keys: Dict[str, Any]
    NewImage: Dict[str, Any]
    OldImage: Dict[str, Any]
    StreamViewType: str


class StreamRecord(TypedDict, total=False):
    """Single DynamoDB stream record."""

    eventID: str
    eventName: str  # INSERT | MODIFY | REMOVE
    eventSource: str
    dynamodb: StreamChange


class SesMail(TypedDict, total=False):
    """The ses.mail block of an SES receipt notification."""

    messageId: str
    source: str
    destination: List[str]
    timestamp: str


# Helper functions for safe extraction


def get_http_method(event: Dict[str, Any]) -> str:
    """Upper-case HTTP method for either payload version ('' if absent)."""
    method = event.get("httpMethod") or (event.get("requestContext") or {}).get("http", {}).get("method")
    return str(method or "").upper()


def get_header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def get_query_param(event: Dict[str, Any], name: str) -> Optional[str]:
    params: Dict[str, str] = event.get("queryStringParameters") or {}
    return params.get(name)


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the request body into a dict.

    Args:
        event: API Gateway event

    Returns:
        Parsed JSON object, or an empty dict when there is no body

    Raises:
        AppError: INVALID_INPUT if the body is not a JSON object
    """
    raw = event.get("body")
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    # binascii.Error and UnicodeDecodeError are ValueErrors too
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw)
    except ValueError:
        raise AppError(ErrorCode.INVALID_INPUT, "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise AppError(ErrorCode.INVALID_INPUT, "Request body must be a JSON object")
    return body


def get_claims(event: Dict[str, Any]) -> Dict[str, Any]:
    """JWT claims placed on the event by an API Gateway Cognito/JWT authorizer."""
    authorizer: Dict[str, Any] = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = (authorizer.get("jwt") or {}).get("claims") or authorizer.get("claims") or {}
    return dict(claims)


def get_source_ip(event: Dict[str, Any]) -> str:
    forwarded = get_header(event, "x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    context = event.get("requestContext") or {}
    return str(context.get("http", {}).get("sourceIp") or context.get("identity", {}).get("sourceIp") or "")
