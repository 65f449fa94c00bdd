"""
Input validation utilities.

Validates request methods, required body fields, and normalizes emails and
free-text inputs coming from the public forms.
"""

import re
from typing import Any, Dict, Iterable, Optional

from .api_types import get_http_method
from .errors import AppError, ErrorCode

# Deliberately loose: SES rejects anything it cannot deliver
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_method(event: Dict[str, Any], *allowed: str) -> str:
    """
    Ensure the request uses one of the allowed HTTP methods.

    Returns:
        The request method

    Raises:
        AppError: METHOD_NOT_ALLOWED otherwise
    """
    method = get_http_method(event)
    if method not in allowed:
        raise AppError(ErrorCode.METHOD_NOT_ALLOWED, "Method not allowed", {"allowed": list(allowed)})
    return method


def clean_string(value: Any) -> str:
    """Trim a value to a string; None becomes ''."""
    if value is None:
        return ""
    return str(value).strip()


def optional_string(value: Any) -> Optional[str]:
    cleaned = clean_string(value)
    return cleaned or None


def optional_bool(value: Any) -> Optional[bool]:
    """Only real booleans count; anything else means 'not provided'."""
    return value if isinstance(value, bool) else None


def require_fields(body: Dict[str, Any], fields: Iterable[str], message: Optional[str] = None) -> Dict[str, str]:
    """
    Validate that all fields are present and non-blank.

    Args:
        body: Parsed request body
        fields: Required field names
        message: Error message override

    Returns:
        Mapping of field name to trimmed value

    Raises:
        AppError: INVALID_INPUT listing the missing fields
    """
    fields = list(fields)
    values = {field: clean_string(body.get(field)) for field in fields}
    missing = [field for field in fields if not values[field]]

    if missing:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            message or f"Missing required fields: {', '.join(missing)}",
            {"missingFields": missing},
        )
    return values


def normalize_email(email: Any) -> str:
    """
    Normalize an email address to trimmed lower case.

    Raises:
        AppError: If the address is not plausibly an email
    """
    normalized = clean_string(email).lower()
    if not EMAIL_PATTERN.match(normalized):
        raise AppError(ErrorCode.INVALID_INPUT, "Invalid email address", {"email": clean_string(email)})
    return normalized
