"""DynamoDB stream trigger on the Invitation table that emails the invite link.

Sends on INSERT and on a resend (MODIFY that changes lastSentAt). Raises after
the batch when any send failed so the stream redelivers it.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.config import env_int, get_env  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.mailer import send_email  # type: ignore[import-not-found]
    from utils.streams import read_stream_images  # type: ignore[import-not-found]
    from utils.tokens import make_signed_invite_token  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.config import env_int, get_env
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.mailer import send_email
    from ..utils.streams import read_stream_images
    from ..utils.tokens import make_signed_invite_token

DEFAULT_ROLE = "cleaner"
DEFAULT_TTL_MINUTES = 1440
DEFAULT_APP_URL = "http://localhost:3000"


def should_send(event_name: Optional[str], new_image: Dict[str, Any], old_image: Optional[Dict[str, Any]]) -> bool:
    """INSERT always sends; MODIFY sends only when lastSentAt moved."""
    if event_name == "INSERT":
        return True
    if event_name == "MODIFY":
        last_sent = new_image.get("lastSentAt")
        return bool(last_sent) and (old_image is None or old_image.get("lastSentAt") != last_sent)
    return False


def build_accept_url(app_url: str, invitation_id: str, email: str, role: str, token: str = "") -> str:
    params = {"id": invitation_id, "email": email, "role": role}
    if token:
        params["token"] = token
    return f"{app_url.rstrip('/')}/invite/accept?{urlencode(params)}"


def build_invitation_email(role: str, accept_url: str, expires_at: str) -> Dict[str, str]:
    return {
        "subject": f"You're invited to join as a {role}",
        "text": "\n".join(
            [
                f"You've been invited to Latimere Host OS as a {role}.",
                "",
                f"Accept your invite: {accept_url}",
                f"This link expires at: {expires_at}",
            ]
        ),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Send invitation emails for a batch of Invitation stream records.

    Returns:
        { ok: bool, sent: int }

    Raises:
        RuntimeError: If any record failed to send
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))
    sender = get_env("SENDER_EMAIL")
    app_url = (os.getenv("APP_URL") or DEFAULT_APP_URL).rstrip("/")
    secret = os.getenv("INVITE_TOKEN_SECRET", "")
    ttl_minutes = env_int("INVITE_TTL_MINUTES", DEFAULT_TTL_MINUTES)
    records = event.get("Records") or []

    logger.info(
        "Invitation email trigger invoked",
        records=len(records),
        app_url=app_url,
        signed_links=bool(secret),
        ttl_minutes=ttl_minutes,
    )

    if not sender:
        logger.error("SENDER_EMAIL is not set; aborting send")
        return {"ok": False, "sent": 0}

    failures = 0
    sent = 0
    for index, record in enumerate(records):
        try:
            new_image, old_image = read_stream_images(record)
            if not new_image:
                logger.warning("Missing NewImage; skipping", index=index)
                continue

            typename = new_image.get("__typename")
            if typename != "Invitation":
                logger.info("Skipping non-Invitation item", index=index, typename=typename)
                continue

            event_name = record.get("eventName")
            if not should_send(event_name, new_image, old_image):
                logger.info("No send needed", index=index, event_name=event_name)
                continue

            invitation_id = str(new_image.get("id") or "")
            email = new_image.get("email")
            role = new_image.get("role") or DEFAULT_ROLE
            if not email:
                logger.warning("Invitation missing email", index=index, invitation_id=invitation_id)
                continue

            expires_at = (datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)).isoformat()
            token = make_signed_invite_token(
                {"id": invitation_id, "email": email, "role": role, "exp": expires_at}, secret
            )
            accept_url = build_accept_url(app_url, invitation_id, email, role, token)
            message = build_invitation_email(role, accept_url, expires_at)

            send_email([email], message["subject"], message["text"], source=sender)
            sent += 1
            logger.info("Invitation email sent", index=index, invitation_id=invitation_id, token_attached=bool(token))
        except Exception as e:
            failures += 1
            logger.error("Invitation email failed", index=index, error=str(e))

    if failures:
        raise RuntimeError(f"Invitation email failures: {failures}")

    return {"ok": True, "sent": sent}
