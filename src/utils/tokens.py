"""
Invitation token utilities.

Invitations store only a SHA-256 hash of the token sent by email. The optional
signed link token lets the accept page check link freshness without a
database read.
"""

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest of a raw invitation token.

    Examples:
        >>> hash_token("abc")[:12]
        'ba7816bf8f01'
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(stored_hash: Optional[str], submitted_hash: Optional[str]) -> bool:
    """Constant-time comparison; blank values never match."""
    if not stored_hash or not submitted_hash:
        return False
    return hmac.compare_digest(str(stored_hash), str(submitted_hash))


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def make_signed_invite_token(payload: Dict[str, Any], secret: str) -> str:
    """
    Build ``base64url(json payload).hex(hmac_sha256(payload))``.

    Returns '' when no secret is configured.
    """
    if not secret:
        return ""
    raw = json.dumps(payload, separators=(",", ":"))
    signature = hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{_b64url(raw.encode('utf-8'))}.{signature}"


def verify_signed_invite_token(token: str, secret: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Verify a signed invite token.

    Returns:
        The payload when the signature matches and ``exp`` (ISO timestamp, if
        present) is in the future, otherwise None
    """
    if not token or not secret or "." not in token:
        return None
    encoded, signature = token.rsplit(".", 1)
    try:
        raw = _b64url_decode(encoded).decode("utf-8")
        payload: Dict[str, Any] = json.loads(raw)
    except ValueError:
        return None

    expected = hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature):
        return None

    exp = payload.get("exp")
    if exp:
        try:
            expires_at = datetime.fromisoformat(str(exp).replace("Z", "+00:00"))
        except ValueError:
            return None
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= (now or datetime.now(timezone.utc)):
            return None
    return payload
