"""Public contact form route: stores the lead and emails the team."""

import json
import time
import uuid
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.api_types import get_header, get_source_ip, parse_json_body  # type: ignore[import-not-found]
    from utils.config import email_feature_enabled, env_list, get_env, get_sender_address, is_production  # type: ignore[import-not-found]
    from utils.dynamodb import is_configured, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.mailer import send_email  # type: ignore[import-not-found]
    from utils.responses import error_response, ok_response  # type: ignore[import-not-found]
    from utils.validation import clean_string, require_fields, require_method  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.api_types import get_header, get_source_ip, parse_json_body
    from ..utils.config import email_feature_enabled, env_list, get_env, get_sender_address, is_production
    from ..utils.dynamodb import is_configured, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.mailer import send_email
    from ..utils.responses import error_response, ok_response
    from ..utils.validation import clean_string, require_fields, require_method

MODE_MOCK = "mock"
MODE_SES = "ses"

DEFAULT_SERVICE = "airbnb"
MAX_PAYLOAD_CHARS = 64_000

# Nested form answers copied into the email details block, as (section, field, label)
DETAIL_FIELDS = (
    ("airbnb", "address", "address"),
    ("airbnb", "sleeps", "sleeps"),
    ("airbnb", "listedBefore", "listedBefore"),
    ("airbnb", "squareFootage", "squareFootage"),
    ("turo", "make", "vehicle.make"),
    ("turo", "model", "vehicle.model"),
    ("turo", "year", "vehicle.year"),
    ("turo", "location", "vehicle.location"),
)


def get_recipient() -> str:
    return get_env("SES_TO", "EMAIL_TO")


def resolve_delivery_mode() -> str:
    """
    CONTACT_DELIVERY_MODE wins when it is 'mock' or 'ses'. Otherwise
    production uses SES only if email is enabled and sender and recipient
    are configured; everything else is mocked.
    """
    explicit = get_env("CONTACT_DELIVERY_MODE").lower()
    if explicit in (MODE_MOCK, MODE_SES):
        return explicit
    if is_production() and email_feature_enabled() and get_sender_address() and get_recipient():
        return MODE_SES
    return MODE_MOCK


def default_topic(service: str) -> str:
    return "Turo Management Lead" if service == "turo" else "Airbnb Management Lead"


def build_details(body: Dict[str, Any]) -> str:
    lines: List[str] = []
    if body.get("service"):
        lines.append(f"service: {body['service']}")
    for section, field, label in DETAIL_FIELDS:
        value = (body.get(section) or {}).get(field) if isinstance(body.get(section), dict) else None
        if value:
            lines.append(f"{label}: {value}")
    if body.get("message"):
        lines.append(f"message: {body['message']}")
    return "\n".join(lines)


def build_contact_email(
    topic: str, name: str, email: str, phone: str, details: str, meta: Dict[str, str]
) -> Dict[str, str]:
    subject = f"Latimere: {topic}"
    footer = (
        f"IP: {meta['ip']}\nUA: {meta['ua']}\nRef: {meta['referer']}\n"
        f"Path: {meta['path']}\nRequestId: {meta['requestId']}"
    )
    text = f"{subject}\n\nName: {name}\nEmail: {email}\nPhone: {phone or '(none)'}\n"
    if details:
        text += f"\nDetails\n-------\n{details}\n"
    text += f"\n{footer}\n\nSent from Latimere website.\n"

    html = (
        f"<h2>{escape(subject)}</h2>"
        f"<p><strong>Name:</strong> {escape(name)}</p>"
        f"<p><strong>Email:</strong> {escape(email)}</p>"
        f"<p><strong>Phone:</strong> {escape(phone or '(none)')}</p>"
    )
    if details:
        html += f'<h3>Details</h3><pre style="white-space:pre-wrap">{escape(details)}</pre>'
    html += f"<hr/><p><small>{escape(footer).replace(chr(10), '<br/>')}</small></p><p>Sent from Latimere website.</p>"
    return {"subject": subject, "text": text, "html": html}


def store_lead(
    body: Dict[str, Any], fields: Dict[str, str], meta: Dict[str, str], logger: StructuredLogger
) -> Optional[str]:
    """Write the lead to the leads table; failures are logged and the lead id is dropped."""
    if not is_configured("leads"):
        return None

    lead_id = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
    item = {
        "id": lead_id,
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "topic": fields["topic"],
        "service": fields["service"],
        "name": fields["name"],
        "email": fields["email"],
        "phone": fields["phone"],
        "source": "latimere-web",
        "meta_ip": meta["ip"],
        "meta_ua": meta["ua"],
        "meta_ref": meta["referer"],
        "payload": json.dumps(body, default=str)[:MAX_PAYLOAD_CHARS],
    }
    try:
        tables.leads.put_item(Item=item)
    except (ClientError, BotoCoreError) as e:
        logger.warning("Lead write failed (non-fatal)", error=str(e))
        return None

    logger.info("Lead stored", lead_id=lead_id)
    return lead_id


def submit_contact(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Handle the website contact form.

    Body: { name, email, phone?, topic?, service?, airbnb?: {...}, turo?: {...}, message? }
    """
    correlation_id = get_correlation_id(event)
    logger = StructuredLogger(__name__, correlation_id)

    try:
        require_method(event, "POST")
        body = parse_json_body(event)
        required = require_fields(body, ("name", "email"), "Name and email are required.")

        service = clean_string(body.get("service")).lower() or DEFAULT_SERVICE
        fields = {
            **required,
            "phone": clean_string(body.get("phone")),
            "service": service,
            "topic": clean_string(body.get("topic")) or default_topic(service),
        }
        meta = {
            "ip": get_source_ip(event),
            "ua": get_header(event, "user-agent") or "",
            "referer": get_header(event, "referer") or "",
            "path": str(event.get("rawPath") or event.get("path") or ""),
            "requestId": correlation_id,
        }

        mode = resolve_delivery_mode()
        logger.info("Contact submission", mode=mode, service=service, topic=fields["topic"])

        lead_id = store_lead(body, fields, meta, logger)

        if mode == MODE_MOCK:
            logger.info("Mock delivery; no email sent", lead_id=lead_id)
            return ok_response(mocked=True, leadId=lead_id, requestId=correlation_id)

        sender = get_sender_address()
        recipient = get_recipient()
        if not (sender and recipient):
            logger.error("SES configuration missing in ses mode", has_sender=bool(sender), has_recipient=bool(recipient))
            if is_production():
                raise AppError(ErrorCode.CONFIGURATION_ERROR, "Server email configuration is incomplete.")
            return ok_response(mocked=True, leadId=lead_id, requestId=correlation_id, dev={"reason": "missing ses config"})

        message = build_contact_email(
            fields["topic"], fields["name"], fields["email"], fields["phone"], build_details(body), meta
        )
        try:
            message_id = send_email(
                [recipient],
                message["subject"],
                message["text"],
                message["html"],
                reply_to=[fields["email"]],
                source=sender,
                cc=env_list("SES_CC"),
                bcc=env_list("SES_BCC"),
                configuration_set=get_env("SES_CONFIGURATION_SET") or None,
            )
        except AppError as e:
            if is_production():
                raise
            logger.warning("SES send failed outside production; returning mocked success", error=e.message)
            return ok_response(mocked=True, leadId=lead_id, requestId=correlation_id, dev={"reason": e.message})

        logger.info("Contact email sent", message_id=message_id, lead_id=lead_id)
        return ok_response(leadId=lead_id, requestId=correlation_id)
    except AppError as e:
        logger.warning("Contact submission rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Contact submission failed", error=str(e))
        return error_response(e)
