"""SES inbound-mail Lambda that files guest email into the support inbox.

The SES receipt rule stores the raw message in S3 before invoking this
function; the message is parsed and recorded as an InboxThread plus its first
InboxMessage through an IAM-signed GraphQL call.
"""

import os
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Any, Dict, Optional, Tuple

import boto3

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.api_types import SesMail  # type: ignore[import-not-found]
    from utils.graphql import iam_client  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.api_types import SesMail
    from ..utils.graphql import iam_client
    from ..utils.logging import StructuredLogger, get_correlation_id

DEFAULT_BUCKET = "latimere-inbound-mail"
DEFAULT_PREFIX = "inbound/"
MAX_BODY_CHARS = 5000

UPSERT_INBOX_MUTATION = """
mutation Upsert($thread: CreateInboxThreadInput!, $msg: CreateInboxMessageInput!) {
  createInboxThread(input: $thread) { id }
  createInboxMessage(input: $msg) { id }
}
"""


def get_s3_client() -> Any:
    return boto3.client("s3")


def parse_message(raw: bytes) -> Tuple[str, str]:
    """
    Extract (subject, body text) from a raw RFC 822 message.

    The first text/plain part wins; otherwise the first text/html part.
    """
    message: EmailMessage = BytesParser(policy=policy.default).parsebytes(raw)  # type: ignore[assignment]
    subject = str(message.get("subject") or "").strip() or "(no subject)"

    part = message.get_body(preferencelist=("plain",)) or message.get_body(preferencelist=("html",))
    text = ""
    if part is not None:
        try:
            text = part.get_content()
        except (LookupError, UnicodeDecodeError):
            payload = part.get_payload(decode=True) or b""
            text = payload.decode("utf-8", errors="replace")
    return subject, str(text)


def build_inbox_variables(sender: str, recipient: str, subject: str, text: str, now: str) -> Dict[str, Any]:
    return {
        "thread": {
            "owner": "system",
            "maskedEmail": recipient,
            "aiStatus": "active",
            "lastMessageAt": now,
        },
        "msg": {
            "owner": "system",
            "threadId": "",
            "from": "guest",
            "createdAt": now,
            "body": f"[{sender}] {subject}\n\n{text[:MAX_BODY_CHARS]}",
        },
    }


def _mail_metadata(event: Dict[str, Any]) -> Optional[SesMail]:
    records = event.get("Records") or []
    if not records:
        return None
    return (records[0].get("ses") or {}).get("mail")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Ingest one inbound email.

    Returns:
        { ok: True } on success, { ok: True, skip: True } without a message id,
        { ok: False } on any failure
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))
    mail: SesMail = _mail_metadata(event) or {}
    message_id = mail.get("messageId")
    if not message_id:
        logger.warning("Inbound mail event without messageId; skipping")
        return {"ok": True, "skip": True}

    recipient = (mail.get("destination") or [""])[0]
    sender = mail.get("source") or ""
    bucket = os.getenv("INBOUND_BUCKET", DEFAULT_BUCKET)
    key = f"{os.getenv('INBOUND_PREFIX', DEFAULT_PREFIX)}{message_id}"

    try:
        obj = get_s3_client().get_object(Bucket=bucket, Key=key)
        subject, text = parse_message(obj["Body"].read())

        now = datetime.now(timezone.utc).isoformat()
        iam_client().execute(UPSERT_INBOX_MUTATION, build_inbox_variables(sender, recipient, subject, text, now))

        logger.info("Inbound email ingested", message_id=message_id, recipient=recipient, subject=subject)
        return {"ok": True}
    except Exception as e:
        logger.error("Inbound email ingest failed", message_id=message_id, bucket=bucket, key=key, error=str(e))
        return {"ok": False}
