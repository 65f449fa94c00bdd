"""
Authorization utilities for API routes.

Routes sit behind an API Gateway Cognito authorizer; group membership from the
token claims decides admin access, and the raw ID token is forwarded to
AppSync for user-pool authorized mutations.
"""

from typing import Any, Dict, List, Optional

from .api_types import get_claims, get_header
from .errors import AppError, ErrorCode
from .logging import get_logger

logger = get_logger(__name__)

ADMIN_GROUP = "ADMIN"


def get_bearer_token(event: Dict[str, Any]) -> Optional[str]:
    """Return the token from an Authorization header, with any 'Bearer ' prefix removed."""
    parts = (get_header(event, "authorization") or "").split(None, 1)
    if parts and parts[0].lower() == "bearer":
        parts = parts[1:]
    token = " ".join(parts).strip()
    return token or None


def _groups(claims: Dict[str, Any]) -> List[str]:
    raw = claims.get("cognito:groups")
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(g) for g in raw]
    # HTTP API authorizers flatten lists to "[a b]" or "a,b"
    text = str(raw).strip("[]")
    return [g for g in text.replace(",", " ").split() if g]


def is_admin(event: Dict[str, Any]) -> bool:
    """Check whether the caller belongs to the ADMIN Cognito group."""
    return ADMIN_GROUP in _groups(get_claims(event))


def require_admin(event: Dict[str, Any]) -> str:
    """
    Ensure the caller is an administrator.

    Returns:
        The caller's Cognito sub (or '' if the authorizer omitted it)

    Raises:
        AppError: FORBIDDEN if the caller is not in the ADMIN group
    """
    claims = get_claims(event)
    if not is_admin(event):
        logger.warning("Admin route called without admin group", caller=claims.get("sub"))
        raise AppError(ErrorCode.FORBIDDEN, "Admin access required")
    return str(claims.get("sub") or "")
