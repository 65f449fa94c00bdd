"""API routes for cleaner invitations: lookup, token hashing, email and acceptance."""

import os
import re
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.api_types import parse_json_body  # type: ignore[import-not-found]
    from utils.auth import get_bearer_token  # type: ignore[import-not-found]
    from utils.config import get_sender_address  # type: ignore[import-not-found]
    from utils.dynamodb import is_configured, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.graphql import AppSyncClient, first_error_message, user_pool_client  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.mailer import send_email  # type: ignore[import-not-found]
    from utils.responses import build_invitation_response, error_response, json_response, ok_response  # type: ignore[import-not-found]
    from utils.tokens import hash_token, tokens_match, verify_signed_invite_token  # type: ignore[import-not-found]
    from utils.validation import clean_string, require_fields, require_method  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.api_types import parse_json_body
    from ..utils.auth import get_bearer_token
    from ..utils.config import get_sender_address
    from ..utils.dynamodb import is_configured, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.graphql import AppSyncClient, first_error_message, user_pool_client
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.mailer import send_email
    from ..utils.responses import build_invitation_response, error_response, json_response, ok_response
    from ..utils.tokens import hash_token, tokens_match, verify_signed_invite_token
    from ..utils.validation import clean_string, require_fields, require_method

PENDING = "PENDING"
ACCEPTED = "ACCEPTED"

OWNER_FIELDS = ("owner", "ownerSub")

CREATE_AFFILIATION_MUTATION = """
mutation CreateCleanerAffiliation($input: CreateCleanerAffiliationInput!) {
  createCleanerAffiliation(input: $input) { id __typename }
}
"""

UNDEFINED_FIELD_PATTERN = re.compile(r"Field .* is undefined .* createCleanerAffiliation", re.IGNORECASE)

INVITATION_ATTRIBUTES = (
    "id",
    "owner",
    "email",
    "role",
    "status",
    "tokenHash",
    "expiresAt",
    "lastSentAt",
    "createdAt",
    "updatedAt",
)


def _require_invitation_table() -> None:
    if not is_configured("invitations"):
        raise AppError(ErrorCode.CONFIGURATION_ERROR, "Server missing INVITATIONS_TABLE_NAME")


def get_invitation(invitation_id: str) -> Optional[Dict[str, Any]]:
    """Strongly consistent read of an invitation."""
    names = {f"#{attr}": attr for attr in INVITATION_ATTRIBUTES}
    response = tables.invitations.get_item(
        Key={"id": str(invitation_id)},
        ConsistentRead=True,
        ProjectionExpression=", ".join(names),
        ExpressionAttributeNames=names,
    )
    return response.get("Item")


def is_expired(expires_at: Any, now: Optional[datetime] = None) -> bool:
    """No expiry means the invite never expires; an unparsable value counts as expired."""
    if not expires_at:
        return False
    try:
        expiry = datetime.fromisoformat(str(expires_at).replace("Z", "+00:00"))
    except ValueError:
        return True
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry <= (now or datetime.now(timezone.utc))


def invitation_rejection_reason(invitation: Dict[str, Any], token_hash: str, now: Optional[datetime] = None) -> Optional[str]:
    """
    Why an invitation cannot be accepted, or None if it can.

    Checks status, then expiry, then the token hash, and reports the first
    failure as ``status=<STATUS>``, ``expired`` or ``token mismatch``.
    """
    status = str(invitation.get("status") or "")
    if status != PENDING:
        return f"status={status}"
    if is_expired(invitation.get("expiresAt"), now):
        return "expired"
    if not tokens_match(invitation.get("tokenHash"), token_hash):
        return "token mismatch"
    return None


def link_rejection_reason(
    invitation: Dict[str, Any], link_token: Optional[str], secret: str, now: Optional[datetime] = None
) -> Optional[str]:
    """
    Check the signed token from the invitation email link.

    Only enforced when both a link token and INVITE_TOKEN_SECRET are present.
    Returns ``link expired`` for a bad signature or past expiry and
    ``link mismatch`` when the link was issued for another invitation.
    """
    if not link_token or not secret:
        return None
    payload = verify_signed_invite_token(link_token, secret, now)
    if payload is None:
        return "link expired"
    if str(payload.get("id") or "") != str(invitation.get("id") or ""):
        return "link mismatch"
    return None


def create_affiliation(
    client: AppSyncClient,
    owner_sub: str,
    cleaner_username: str,
    cleaner_display: str,
    primary_field: str,
    logger: StructuredLogger,
) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    """
    Create the CleanerAffiliation, retrying once with the alternate owner field.

    Returns:
        (affiliation or None, warnings)
    """
    alternate_field = OWNER_FIELDS[1] if primary_field == OWNER_FIELDS[0] else OWNER_FIELDS[0]

    def attempt(owner_field: str) -> Dict[str, Any]:
        logger.info("Creating cleaner affiliation", owner_field=owner_field)
        variables = {
            "input": {
                owner_field: owner_sub,
                "cleanerUsername": cleaner_username,
                "cleanerDisplay": cleaner_display,
            }
        }
        return dict(client.post(CREATE_AFFILIATION_MUTATION, variables))

    try:
        result = attempt(primary_field)
        if result["statusCode"] < 400 and not result["errors"]:
            return (result["data"] or {}).get("createCleanerAffiliation"), []

        field_undefined = any(UNDEFINED_FIELD_PATTERN.search(str(err.get("message", ""))) for err in result["errors"])
        if field_undefined:
            logger.info("Retrying affiliation with alternate owner field", owner_field=alternate_field)
            result = attempt(alternate_field)
            if result["statusCode"] < 400 and not result["errors"]:
                return (result["data"] or {}).get("createCleanerAffiliation"), []
    except AppError as e:
        logger.warning("Affiliation create failed", error=e.message)
        return None, [f"Affiliation create failed: {e.message}"]

    logger.warning("Affiliation create failed", status=result["statusCode"], errors=result["errors"])
    return None, [f"Affiliation create failed: {first_error_message(result['errors'])}"]


def accept_invitation(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Accept an invitation on behalf of the signed-in cleaner.

    Body: { id, tokenHash | token, ownerSub, cleanerUsername, cleanerDisplay?, linkToken? }

    ``linkToken`` is the signed token from the invitation email; when present
    it must verify against INVITE_TOKEN_SECRET.

    The invitation is marked ACCEPTED even when the affiliation could not be
    created; that failure is reported in ``warnings``.
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        _require_invitation_table()

        id_token = get_bearer_token(event)
        if not id_token:
            raise AppError(ErrorCode.UNAUTHORIZED, "Valid authorization header not provided.")

        body = parse_json_body(event)
        if not body.get("tokenHash") and body.get("token"):
            body["tokenHash"] = hash_token(clean_string(body["token"]))
        fields = require_fields(
            body,
            ("id", "tokenHash", "ownerSub", "cleanerUsername"),
            "Missing required fields (id, tokenHash, ownerSub, cleanerUsername)",
        )
        cleaner_display = clean_string(body.get("cleanerDisplay")) or fields["cleanerUsername"]

        invitation = get_invitation(fields["id"])
        if not invitation:
            raise AppError(ErrorCode.NOT_FOUND, "Invite not found.")

        reason = invitation_rejection_reason(invitation, fields["tokenHash"]) or link_rejection_reason(
            invitation, clean_string(body.get("linkToken")), os.getenv("INVITE_TOKEN_SECRET", "")
        )
        if reason:
            raise AppError(ErrorCode.INVITE_INVALID, f"Invite not valid ({reason}).", {"reason": reason})

        primary_field = (os.getenv("AFFILIATION_OWNER_FIELD") or "").strip() or OWNER_FIELDS[0]
        affiliation, warnings = create_affiliation(
            user_pool_client(id_token),
            fields["ownerSub"],
            fields["cleanerUsername"],
            cleaner_display,
            primary_field,
            logger,
        )

        tables.invitations.update_item(
            Key={"id": str(invitation["id"])},
            UpdateExpression="SET #s = :accepted, #ts = :now",
            ExpressionAttributeNames={"#s": "status", "#ts": "updatedAt"},
            ExpressionAttributeValues={":accepted": ACCEPTED, ":now": datetime.now(timezone.utc).isoformat()},
        )
        logger.info("Invitation accepted", invitation_id=invitation["id"], warnings=len(warnings))

        return ok_response(
            result={"affiliation": affiliation, "invitation": {"id": invitation["id"], "status": ACCEPTED}},
            warnings=warnings or None,
            debug={"affiliationErrors": warnings, "ownerFieldTried": primary_field} if warnings else None,
        )
    except AppError as e:
        logger.warning("Invitation accept rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Invitation accept failed", error=str(e))
        return error_response(e)


def lookup_invitation(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Return the invitation for the accept page, or null when it does not exist."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        _require_invitation_table()
        invitation_id = require_fields(parse_json_body(event), ("id",), "Missing id")["id"]

        item = get_invitation(invitation_id)
        logger.info("Invitation lookup", invitation_id=invitation_id, found=bool(item))

        invitation = build_invitation_response(item) if item else None
        return json_response(200, {"ok": True, "invitation": invitation})
    except AppError as e:
        logger.warning("Invitation lookup rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Invitation lookup failed", error=str(e))
        return error_response(e)


def complete_invitation(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Hash the raw token from the invite link so the client can submit tokenHash."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        token = require_fields(parse_json_body(event), ("token",), "Missing token")["token"]
        return ok_response(tokenHash=hash_token(token), serverTime=datetime.now(timezone.utc).isoformat())
    except AppError as e:
        logger.warning("Invitation complete rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Invitation complete failed", error=str(e))
        return error_response(e)


def build_invite_link_email(link: str) -> Dict[str, str]:
    safe_link = escape(link)
    return {
        "subject": "Your Latimere Host OS invite",
        "text": (
            "You've been invited to Latimere Host OS as a cleaner.\n"
            f"Open this link to accept: {link}\n"
            "If you didn't expect this, ignore this email."
        ),
        "html": (
            "<p>You've been invited to <b>Latimere Host OS</b> as a cleaner.</p>"
            "<p>Click the link below to accept your invite:</p>"
            f'<p><a href="{safe_link}">{safe_link}</a></p>'
            "<p>This link will expire soon. If you weren't expecting this, you can ignore this email.</p>"
        ),
    }


def send_invitation(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Email an invite link carrying the raw token. Body: { email, token }."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        app_url = (os.getenv("APP_URL") or "").strip().rstrip("/")
        missing = [name for name, value in (("SES_FROM", get_sender_address()), ("APP_URL", app_url)) if not value]
        if missing:
            raise AppError(ErrorCode.CONFIGURATION_ERROR, f"Missing required env vars: {', '.join(missing)}")

        fields = require_fields(parse_json_body(event), ("email", "token"), "email and token are required")
        link = f"{app_url}/invite/accept?token={quote(fields['token'], safe='')}"
        message = build_invite_link_email(link)

        message_id = send_email([fields["email"]], message["subject"], message["text"], message["html"])
        logger.info("Invite link sent", message_id=message_id)
        return ok_response(messageId=message_id)
    except AppError as e:
        logger.warning("Invite link not sent", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Invite link send failed", error=str(e))
        return error_response(e)
