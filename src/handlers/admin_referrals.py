"""Admin API routes for managing referrals and referral partners."""

from html import escape
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils import queries  # type: ignore[import-not-found]
    from utils.api_types import parse_json_body  # type: ignore[import-not-found]
    from utils.auth import require_admin  # type: ignore[import-not-found]
    from utils.config import get_site_url  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.graphql import AppSyncClient, api_key_client  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.mailer import send_notification  # type: ignore[import-not-found]
    from utils.referral_codes import generate_referral_code  # type: ignore[import-not-found]
    from utils.responses import error_response, ok_response  # type: ignore[import-not-found]
    from utils.validation import clean_string, optional_bool, optional_string, require_fields, require_method  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils import queries
    from ..utils.api_types import parse_json_body
    from ..utils.auth import require_admin
    from ..utils.config import get_site_url
    from ..utils.errors import AppError, ErrorCode
    from ..utils.graphql import AppSyncClient, api_key_client
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.mailer import send_notification
    from ..utils.referral_codes import generate_referral_code
    from ..utils.responses import error_response, ok_response
    from ..utils.validation import clean_string, optional_bool, optional_string, require_fields, require_method

COMPLETED = "COMPLETED"
PAGE_SIZE = 100
REFERRAL_REWARD = "$500"
DEFAULT_PARTNER_TYPE = "business"


def list_referrals(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Every referral, newest first."""
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "GET")
        require_admin(event)

        items = api_key_client().paginate(queries.LIST_REFERRALS, "listReferrals", page_size=PAGE_SIZE)
        items.sort(key=lambda item: str(item.get("createdAt") or ""), reverse=True)

        logger.info("Listed referrals", count=len(items))
        return ok_response(items=items)
    except AppError as e:
        logger.warning("Referral list rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral list failed", error=str(e))
        return error_response(e)


def build_update_input(referral_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy only correctly typed fields into the update input.

    >>> build_update_input("r1", {"payoutSent": "yes", "payoutEligible": True})
    {'id': 'r1', 'payoutEligible': True}
    """
    update: Dict[str, Any] = {"id": referral_id}
    if isinstance(body.get("onboardingStatus"), str):
        update["onboardingStatus"] = body["onboardingStatus"]
    for flag in ("payoutEligible", "payoutSent"):
        value = optional_bool(body.get(flag))
        if value is not None:
            update[flag] = value
    if isinstance(body.get("payoutMethod"), str):
        update["payoutMethod"] = body["payoutMethod"]
    return update


def _status_url(realtor_email: str) -> str:
    base = f"{get_site_url()}/refer/status"
    return f"{base}?email={quote(realtor_email, safe='')}" if realtor_email else base


def build_completed_email(realtor_name: str, client_name: str, status_url: str) -> Dict[str, str]:
    text = (
        f"Hi {realtor_name},\n\n"
        f"Great news: your referral {client_name} is now fully onboarded with Latimere Hosting.\n\n"
        f"We'll coordinate go-live timing and payouts with them. Your {REFERRAL_REWARD} referral reward will be "
        "sent after their first payout is processed, according to our agreement.\n\n"
        "You can always check high-level progress and bonus status here:\n"
        f"{status_url}\n\n"
        "Thanks again for trusting us with your clients.\n\n"
        "Latimere Hosting"
    )
    html = (
        f"<p>Hi {escape(realtor_name)},</p>"
        f"<p>Great news: your referral <strong>{escape(client_name)}</strong> is now fully onboarded "
        "with Latimere Hosting.</p>"
        f"<p>We'll coordinate go-live timing and payouts with them. Your {REFERRAL_REWARD} referral reward "
        "will be sent after their first payout is processed, according to our agreement.</p>"
        "<p>You can always check high-level progress and bonus status here:<br/>"
        f'<a href="{escape(status_url)}">{escape(status_url)}</a></p>'
        "<p>Thanks again for trusting us with your clients.</p>"
    )
    return {"subject": f"{client_name} is fully onboarded with Latimere", "text": text, "html": html}


def build_payout_email(realtor_name: str, client_name: str) -> Dict[str, str]:
    text = (
        f"Hi {realtor_name},\n\n"
        f"We've just sent your referral bonus for {client_name}. "
        "Thank you again for trusting us with your clients.\n\n"
        "If you don't see the funds within a reasonable timeframe, reply to this email and we'll look into it.\n\n"
        "Latimere Hosting"
    )
    html = (
        f"<p>Hi {escape(realtor_name)},</p>"
        f"<p>We've just sent your referral bonus for <strong>{escape(client_name)}</strong>. "
        "Thank you again for trusting us with your clients.</p>"
        "<p>If you don't see the funds within a reasonable timeframe, reply to this email "
        "and we'll look into it.</p>"
    )
    return {"subject": f"Your Latimere referral bonus for {client_name} has been sent", "text": text, "html": html}


def notify_realtor_of_changes(
    before: Dict[str, Any], after: Dict[str, Any], logger: StructuredLogger
) -> int:
    """Email the realtor about completion and payout transitions; returns how many emails were attempted."""
    realtor_email = clean_string(after.get("realtorEmail")).lower()
    if not realtor_email:
        return 0

    client_name = after.get("clientName") or "your client"
    realtor_name = after.get("realtorName") or "your realtor"
    sent = 0

    before_status = str(before.get("onboardingStatus") or "").upper()
    after_status = str(after.get("onboardingStatus") or "").upper()
    if before_status != COMPLETED and after_status == COMPLETED:
        logger.info("Referral completed; notifying realtor", referral_id=after.get("id"))
        send_notification([realtor_email], **build_completed_email(realtor_name, client_name, _status_url(realtor_email)))
        sent += 1

    if not before.get("payoutSent") and after.get("payoutSent"):
        logger.info("Referral payout sent; notifying realtor", referral_id=after.get("id"))
        send_notification([realtor_email], **build_payout_email(realtor_name, client_name))
        sent += 1

    return sent


def update_referral(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Update onboarding and payout state of a referral.

    Body: { id, onboardingStatus?, payoutEligible?, payoutSent?, payoutMethod? }
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        require_admin(event)
        body = parse_json_body(event)
        referral_id = require_fields(body, ("id",), "Missing referral id")["id"]

        client = api_key_client()
        before = client.execute(queries.GET_REFERRAL, {"id": referral_id}).get("getReferral")
        if not before:
            raise AppError(ErrorCode.NOT_FOUND, "Referral not found")

        update = build_update_input(referral_id, body)
        after = client.execute(queries.UPDATE_REFERRAL, {"input": update}).get("updateReferral")
        if not after:
            raise AppError(ErrorCode.UPSTREAM_ERROR, "Update returned no referral")

        logger.info(
            "Updated referral",
            referral_id=referral_id,
            onboarding_status=after.get("onboardingStatus"),
            payout_eligible=after.get("payoutEligible"),
            payout_sent=after.get("payoutSent"),
        )
        notify_realtor_of_changes(before, after, logger)

        return ok_response(referral=after)
    except AppError as e:
        logger.warning("Referral update rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Referral update failed", error=str(e))
        return error_response(e)


def referral_code_checker(client: AppSyncClient, logger: StructuredLogger) -> Callable[[str], bool]:
    """Existence check for generate_referral_code; lookup failures count as 'unused'."""

    def code_exists(code: str) -> bool:
        try:
            data = client.execute(queries.REFERRAL_PARTNER_BY_CODE, {"referralCode": code})
        except AppError as e:
            logger.warning("Referral code lookup failed", referral_code=code, error=e.message)
            return False
        return bool((data.get("referralPartnerByCode") or {}).get("items"))

    return code_exists


def create_referral_partner(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create a referral partner with a unique referral code.

    Body: { name, type?, referralCode? | code?, email?, phone?, notes? }
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        require_admin(event)
        body = parse_json_body(event)
        name = require_fields(body, ("name",), "Partner name is required")["name"]
        partner_type = clean_string(body.get("type")).lower() or DEFAULT_PARTNER_TYPE

        client = api_key_client()
        referral_code = generate_referral_code(
            optional_string(body.get("referralCode") or body.get("code")),
            name,
            referral_code_checker(client, logger),
        )

        partner_input: Dict[str, Any] = {
            "name": name,
            "type": partner_type,
            "referralCode": referral_code,
            "email": optional_string(body.get("email")),
            "phone": optional_string(body.get("phone")),
            "notes": optional_string(body.get("notes")),
            "active": True,
            "totalReferrals": 0,
            "totalPayouts": 0,
        }
        partner: Optional[Dict[str, Any]] = client.execute(
            queries.CREATE_REFERRAL_PARTNER, {"input": partner_input}
        ).get("createReferralPartner")
        if not partner:
            raise AppError(ErrorCode.UPSTREAM_ERROR, "Partner create returned no data")

        referral_link = f"{get_site_url()}/refer?code={quote(referral_code, safe='')}"
        logger.info("Referral partner created", partner_id=partner.get("id"), referral_code=referral_code)
        return ok_response(partner=partner, referralCode=referral_code, referralLink=referral_link)
    except AppError as e:
        logger.warning("Partner create rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Partner create failed", error=str(e))
        return error_response(e)
