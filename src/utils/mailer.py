"""
Outbound email through Amazon SES.

``send_email`` always sends and raises on failure. ``send_notification`` is
for workflow side effects (referral updates, internal alerts): it honours the
CONTACT_MODE / EMAIL_FEATURE_ENABLED switches and only logs failures.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import get_sender_address, get_ses_region, notifications_enabled
from .errors import AppError, ErrorCode
from .logging import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from mypy_boto3_ses import SESClient

logger = get_logger(__name__)

SENDER_DISPLAY_NAME = "Latimere Hosting"


def get_ses_client() -> "SESClient":
    return boto3.client("ses", region_name=get_ses_region())


def format_sender(address: str) -> str:
    """Wrap a bare address with the display name; formatted addresses pass through."""
    address = address.strip()
    if not address or "<" in address:
        return address
    return f"{SENDER_DISPLAY_NAME} <{address}>"


def send_email(
    to: List[str],
    subject: str,
    text: str,
    html: Optional[str] = None,
    reply_to: Optional[List[str]] = None,
    source: Optional[str] = None,
    cc: Optional[List[str]] = None,
    bcc: Optional[List[str]] = None,
    configuration_set: Optional[str] = None,
) -> str:
    """
    Send a plain-text (and optionally HTML) email.

    Args:
        to: Recipient addresses
        subject: Subject line
        text: Plain-text body
        html: Optional HTML body
        reply_to: Optional Reply-To addresses
        source: Sender; defaults to SES_FROM / EMAIL_FROM
        cc: Optional Cc addresses
        bcc: Optional Bcc addresses
        configuration_set: Optional SES configuration set name

    Returns:
        SES MessageId

    Raises:
        AppError: CONFIGURATION_ERROR without sender or recipients,
            EMAIL_ERROR when SES rejects the request
    """
    recipients = [address for address in to if address]
    sender = format_sender(source or get_sender_address())
    if not sender:
        raise AppError(ErrorCode.CONFIGURATION_ERROR, "Sender email address is not configured")
    if not recipients:
        raise AppError(ErrorCode.INVALID_INPUT, "At least one recipient is required", {"subject": subject})

    body: Dict[str, Any] = {"Text": {"Data": text, "Charset": "UTF-8"}}
    if html:
        body["Html"] = {"Data": html, "Charset": "UTF-8"}

    destination: Dict[str, List[str]] = {"ToAddresses": recipients}
    if cc:
        destination["CcAddresses"] = cc
    if bcc:
        destination["BccAddresses"] = bcc

    request: Dict[str, Any] = {
        "Source": sender,
        "Destination": destination,
        "Message": {"Subject": {"Data": subject, "Charset": "UTF-8"}, "Body": body},
    }
    if reply_to:
        request["ReplyToAddresses"] = reply_to
    if configuration_set:
        request["ConfigurationSetName"] = configuration_set

    try:
        response = get_ses_client().send_email(**request)
    except (ClientError, BotoCoreError) as e:
        logger.error("SES send failed", subject=subject, recipients=len(recipients), error=str(e))
        raise AppError(ErrorCode.EMAIL_ERROR, "Email failed to send.") from e

    message_id = str(response.get("MessageId", ""))
    logger.info("SES accepted email", subject=subject, recipients=len(recipients), message_id=message_id)
    return message_id


def send_notification(to: List[str], subject: str, text: str, html: Optional[str] = None) -> Optional[str]:
    """
    Send a workflow notification if email notifications are enabled.

    Returns:
        SES MessageId, or None when disabled or the send failed
    """
    if not notifications_enabled():
        logger.info("Email notifications disabled; skipping", subject=subject)
        return None
    try:
        return send_email(to, subject, text, html)
    except AppError as e:
        logger.error("Notification email not sent", subject=subject, error=e.message)
        return None
