"""Public API routes for the realtor referral program."""

import time
import uuid
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional
from urllib.parse import quote

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.api_types import get_query_param, parse_json_body  # type: ignore[import-not-found]
    from utils.config import get_contact_email, get_site_url, is_local_mock  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.graphql import AppSyncClient, api_key_client  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.mailer import send_notification  # type: ignore[import-not-found]
    from utils import queries  # type: ignore[import-not-found]
    from utils.responses import error_response, ok_response  # type: ignore[import-not-found]
    from utils.validation import clean_string, normalize_email, require_fields, require_method  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils import queries
    from ..utils.api_types import get_query_param, parse_json_body
    from ..utils.config import get_contact_email, get_site_url, is_local_mock
    from ..utils.errors import AppError, ErrorCode
    from ..utils.graphql import AppSyncClient, api_key_client
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.mailer import send_notification
    from ..utils.responses import error_response, ok_response
    from ..utils.validation import clean_string, normalize_email, require_fields, require_method

INVITED = "INVITED"
STARTED = "STARTED"
DETAILS_PROVIDED = "DETAILS_PROVIDED"

MODE_LOCAL = "local-mock"
MODE_APPSYNC = "appsync"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_referral_code(event: Dict[str, Any], body: Dict[str, Any]) -> Optional[str]:
    """Referral code from body.referralCode / body.code or the ?code= / ?ref= query, upper-cased."""
    raw = (
        body.get("referralCode")
        or body.get("code")
        or get_query_param(event, "code")
        or get_query_param(event, "ref")
    )
    code = clean_string(raw).upper()
    return code or None


def lookup_partner_id(client: AppSyncClient, referral_code: str, logger: StructuredLogger) -> Optional[str]:
    """First active partner for the code; lookup failures are logged and ignored."""
    try:
        data = client.execute(queries.REFERRAL_PARTNER_BY_CODE, {"referralCode": referral_code})
    except AppError as e:
        logger.error("Referral partner lookup failed", referral_code=referral_code, error=e.message)
        return None

    partners: List[Dict[str, Any]] = [p for p in (data.get("referralPartnerByCode") or {}).get("items") or [] if p]
    if not partners:
        logger.info("No referral partner for code", referral_code=referral_code)
        return None

    partner = next((p for p in partners if p.get("active") is not False), partners[0])
    logger.info("Resolved referral partner", referral_code=referral_code, partner_id=partner.get("id"))
    return partner.get("id")


def status_url_for(site_url: str, realtor_email: Optional[str]) -> str:
    base = f"{site_url}/refer/status"
    return f"{base}?email={quote(realtor_email, safe='')}" if realtor_email else base


def build_client_email(client_name: str, realtor_name: str, onboarding_url: str) -> Dict[str, str]:
    text = (
        f"Hi {client_name},\n\n"
        f"You were referred to Latimere Hosting by {realtor_name}.\n\n"
        "We specialize in high-performance short-term rental management in the Smoky Mountains, "
        "and we'd love to help you maximize your property's earnings.\n\n"
        "To get started, click the link below to complete a quick onboarding:\n"
        f"{onboarding_url}\n\n"
        "If you have any questions before getting started, just reply to this email.\n\n"
        "The Latimere Hosting Team"
    )
    html = (
        f"<p>Hi {escape(client_name)},</p>"
        f"<p>You were referred to <strong>Latimere Hosting</strong> by {escape(realtor_name)}.</p>"
        "<p>We specialize in high-performance short-term rental management in the Smoky Mountains, "
        "and we'd love to help you maximize your property's earnings.</p>"
        f'<p><a href="{escape(onboarding_url)}">Start your Latimere onboarding</a></p>'
        "<p>If you have any questions before getting started, just reply to this email.</p>"
        "<p>The Latimere Hosting Team</p>"
    )
    return {"subject": f"You've been referred to Latimere Hosting by {realtor_name}", "text": text, "html": html}


def build_realtor_email(realtor_name: str, client_name: str, status_url: str, notes: str) -> Dict[str, str]:
    notes_block = f"Notes you shared:\n{notes}\n\n" if notes else ""
    text = (
        f"Hi {realtor_name},\n\n"
        f"Thanks for referring {client_name} to Latimere Hosting.\n\n"
        "We've sent them an invite to start onboarding and will reach out to walk through pricing, "
        "setup, and go-live timing.\n\n"
        "You can always check high-level progress for your referrals here:\n"
        f"{status_url}\n\n"
        f"{notes_block}Thanks again for trusting us with your clients.\n\n"
        "Latimere Hosting"
    )
    notes_html = f"<p><strong>Notes you shared:</strong><br/>{escape(notes).replace(chr(10), '<br/>')}</p>" if notes else ""
    html = (
        f"<p>Hi {escape(realtor_name)},</p>"
        f"<p>Thanks for referring <strong>{escape(client_name)}</strong> to Latimere Hosting.</p>"
        "<p>We've sent them an invite to start onboarding and will reach out to walk through pricing, "
        "setup, and go-live timing.</p>"
        f'<p>You can always check high-level progress for your referrals here:<br/><a href="{escape(status_url)}">'
        f"{escape(status_url)}</a></p>"
        f"{notes_html}"
        "<p>Thanks again for trusting us with your clients.</p>"
    )
    return {"subject": f"We've received your referral: {client_name}", "text": text, "html": html}


def build_internal_email(referral: Dict[str, Any], onboarding_url: str, status_url: str) -> Dict[str, str]:
    text = (
        "New referral created.\n\n"
        f"Client: {referral.get('clientName')} ({referral.get('clientEmail')})\n"
        f"Realtor: {referral.get('realtorName')} ({referral.get('realtorEmail')})\n"
        f"Source: {referral.get('source')}\n"
        f"ReferralCode: {referral.get('referralCode') or '(none)'}\n\n"
        f"Onboarding link: {onboarding_url}\n"
        f"Realtor status page: {status_url}\n\n"
        f"Notes:\n{referral.get('notes') or '(none provided)'}\n\n"
        f"Referral id: {referral.get('id')}\n"
    )
    return {
        "subject": f"New referral from {referral.get('realtorName')}: {referral.get('clientName')}",
        "text": text,
    }


def create_referral(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create a referral from the realtor form and send the three notification emails.

    Body: { realtorName, realtorEmail, clientName, clientEmail, notes?, source?,
            referralCode? | code? }
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        body = parse_json_body(event)
        fields = require_fields(body, ("realtorName", "realtorEmail", "clientName", "clientEmail"))

        realtor_email = normalize_email(fields["realtorEmail"])
        client_email = normalize_email(fields["clientEmail"])
        notes = clean_string(body.get("notes"))
        source = clean_string(body.get("source")) or "realtor"
        referral_code = resolve_referral_code(event, body)
        invite_token = str(uuid.uuid4())

        site_url = get_site_url()
        onboarding_url = f"{site_url}/onboarding/{invite_token}"
        status_url = status_url_for(site_url, realtor_email)

        local = is_local_mock()
        client = None if local else api_key_client()
        partner_id = lookup_partner_id(client, referral_code, logger) if client and referral_code else None

        now = _now()
        referral_input: Dict[str, Any] = {
            "clientName": fields["clientName"],
            "clientEmail": client_email,
            "realtorName": fields["realtorName"],
            "realtorEmail": realtor_email,
            "source": source,
            "onboardingStatus": INVITED,
            "inviteToken": invite_token,
            "payoutEligible": False,
            "payoutSent": False,
            "payoutMethod": None,
            "notes": notes,
            "referralCode": referral_code,
            "partnerId": partner_id,
            "lastStatusChangedAt": now,
            "lastStatusChangedBy": "api:referrals/create",
            "lastStatusChangeReason": "Initial referral created in INVITED status",
        }

        if client is None:
            referral = {"id": f"local-{int(time.time() * 1000)}", **referral_input}
            logger.info("Local mock mode: referral not sent to AppSync", referral_id=referral["id"])
        else:
            referral = client.execute(queries.CREATE_REFERRAL, {"input": referral_input}).get("createReferral")
            if not referral:
                raise AppError(ErrorCode.UPSTREAM_ERROR, "Referral create returned no data")

        logger.info(
            "Referral created",
            referral_id=referral.get("id"),
            referral_code=referral_code,
            partner_id=partner_id,
            mode=MODE_LOCAL if local else MODE_APPSYNC,
        )

        client_message = build_client_email(fields["clientName"], fields["realtorName"], onboarding_url)
        send_notification([client_email], **client_message)
        realtor_message = build_realtor_email(fields["realtorName"], fields["clientName"], status_url, notes)
        send_notification([realtor_email], **realtor_message)
        send_notification([get_contact_email()], **build_internal_email(referral, onboarding_url, status_url))

        return ok_response(referral=referral, onboardingUrl=onboarding_url, mode=MODE_LOCAL if local else MODE_APPSYNC)
    except AppError as e:
        logger.warning("Referral create rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral create failed", error=str(e))
        return error_response(e)


def _referral_id(body: Dict[str, Any]) -> str:
    referral_id = clean_string(body.get("referralId") or body.get("id"))
    if not referral_id:
        raise AppError(ErrorCode.INVALID_INPUT, "Missing referral identifier: expected referralId or id")
    return referral_id


def _update_status(referral_id: str, status: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    update: Dict[str, Any] = {
        "id": referral_id,
        "onboardingStatus": status,
        "lastStatusChangedAt": _now(),
        **(extra or {}),
    }
    if is_local_mock():
        return {**update, "updatedAt": update["lastStatusChangedAt"], "_localMock": True}

    referral = api_key_client().execute(queries.UPDATE_REFERRAL, {"input": update}).get("updateReferral")
    if not referral:
        raise AppError(ErrorCode.UPSTREAM_ERROR, "updateReferral returned no data")
    return referral


def start_referral(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Mark a referral STARTED when the client opens the onboarding page."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        referral_id = _referral_id(parse_json_body(event))
        referral = _update_status(referral_id, STARTED, {"lastStatusChangedBy": "api:referrals/start"})
        logger.info("Referral started", referral_id=referral_id)
        return ok_response(referral=referral, mode=MODE_LOCAL if is_local_mock() else MODE_APPSYNC)
    except AppError as e:
        logger.warning("Referral start rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral start failed", error=str(e))
        return error_response(e)


def complete_referral(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Record onboarding details (DETAILS_PROVIDED) and tell the internal contact."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        body = parse_json_body(event)
        referral_id = _referral_id(body)
        notes = clean_string(body.get("notes"))

        extra: Dict[str, Any] = {"lastStatusChangedBy": "api:referrals/complete"}
        if notes:
            extra["notes"] = notes
        referral = _update_status(referral_id, DETAILS_PROVIDED, extra)
        logger.info("Referral details provided", referral_id=referral_id)

        text = (
            "Referral details have been submitted.\n\n"
            f"Referral id: {referral.get('id')}\n"
            f"Client: {referral.get('clientName')} ({referral.get('clientEmail')})\n"
            f"Realtor: {referral.get('realtorName')} ({referral.get('realtorEmail')})\n"
            f"Status: {referral.get('onboardingStatus')}\n"
            f"Notes: {referral.get('notes') or '(none)'}\n"
        )
        send_notification(
            [get_contact_email()], f"Referral details submitted: {referral.get('clientName') or ''}".strip(), text
        )
        return ok_response(referral=referral, mode=MODE_LOCAL if is_local_mock() else MODE_APPSYNC)
    except AppError as e:
        logger.warning("Referral complete rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral complete failed", error=str(e))
        return error_response(e)


def get_referral_by_token(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Load the referral behind an onboarding link (?token= or ?inviteToken=)."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "GET")
        token = clean_string(get_query_param(event, "token") or get_query_param(event, "inviteToken"))
        if not token:
            raise AppError(ErrorCode.INVALID_INPUT, "Missing invite token")

        if is_local_mock():
            referral: Optional[Dict[str, Any]] = {
                "id": "local-referral",
                "inviteToken": token,
                "clientName": "Local Test Host",
                "realtorName": "Local Test Realtor",
                "onboardingStatus": INVITED,
            }
        else:
            data = api_key_client().execute(queries.REFERRAL_BY_INVITE_TOKEN, {"inviteToken": token, "limit": 1})
            items = (data.get("referralByInviteToken") or {}).get("items") or []
            referral = items[0] if items else None

        if not referral:
            raise AppError(ErrorCode.NOT_FOUND, "Referral not found")

        logger.info("Referral loaded by token", referral_id=referral.get("id"))
        return ok_response(referral=referral)
    except AppError as e:
        logger.warning("Referral lookup rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral lookup failed", error=str(e))
        return error_response(e)


def list_referrals_by_realtor(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Referrals submitted by one realtor (?email=), newest first."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "GET")
        realtor_email = normalize_email(get_query_param(event, "email"))

        items = api_key_client().paginate(
            queries.LIST_REFERRALS, "listReferrals", {"filter": {"realtorEmail": {"eq": realtor_email}}}
        )
        items.sort(key=lambda item: str(item.get("createdAt") or ""), reverse=True)

        logger.info("Listed referrals for realtor", count=len(items))
        return ok_response(items=items)
    except AppError as e:
        logger.warning("Realtor referral list rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Realtor referral list failed", error=str(e))
        return error_response(e)
