"""API routes for revenue audit intake and conversion into managed properties."""

from typing import Any, Dict, List, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils import queries  # type: ignore[import-not-found]
    from utils.api_types import parse_json_body  # type: ignore[import-not-found]
    from utils.auth import require_admin  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.graphql import api_key_client  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.responses import error_response, ok_response  # type: ignore[import-not-found]
    from utils.validation import clean_string, require_fields, require_method  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils import queries
    from ..utils.api_types import parse_json_body
    from ..utils.auth import require_admin
    from ..utils.errors import AppError, ErrorCode
    from ..utils.graphql import api_key_client
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.responses import error_response, ok_response
    from ..utils.validation import clean_string, require_fields, require_method

INTAKE_OWNER = "latimere-intake"
PLACEHOLDER_ADDRESS = "TBD - created from revenue audit"

# (body field, label, suffix)
INTAKE_LINES = (
    ("phone", "Phone", ""),
    ("market", "Market", ""),
    ("bedrooms", "Bedrooms", ""),
    ("sleeps", "Sleeps", ""),
    ("currentNightlyRate", "Typical nightly rate", ""),
    ("currentOccupancy", "Approx occupancy", "%"),
    ("notes", "Notes", ""),
)

DEFAULT_PROFILE = {
    "tier": "PRO",
    "pricingCadence": "DAILY",
    "isActive": True,
    "baseNightlyRate": None,
    "targetOccupancyPct": 70,
}


def build_intake_details(body: Dict[str, Any]) -> Optional[str]:
    """
    Summarise the optional intake answers, one ``Label: value`` per line.

    >>> build_intake_details({"market": "Gatlinburg", "currentOccupancy": "65"})
    'Market: Gatlinburg\\nApprox occupancy: 65%'
    """
    lines: List[str] = []
    for field, label, suffix in INTAKE_LINES:
        value = clean_string(body.get(field))
        if value:
            lines.append(f"{label}: {value}{suffix}")
    return "\n".join(lines) or None


def create_revenue_audit(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Record a public revenue audit request.

    Body: { name, email, listingUrl, phone?, market?, bedrooms?, sleeps?,
            currentNightlyRate?, currentOccupancy?, notes? }

    The intake answers are stored in ``recommendations`` until the audit is
    actually performed; the estimate fields stay empty.
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        client = api_key_client()
        body = parse_json_body(event)
        fields = require_fields(
            body,
            ("name", "email", "listingUrl"),
            "Missing required fields: name, email, and listingUrl are required.",
        )

        audit_input = {
            "owner": INTAKE_OWNER,
            "ownerName": fields["name"],
            "ownerEmail": fields["email"],
            "listingUrl": fields["listingUrl"],
            "marketName": clean_string(body.get("market")) or None,
            "recommendations": build_intake_details(body),
        }
        created = client.execute(queries.CREATE_REVENUE_AUDIT, {"input": audit_input}).get("createRevenueAudit")
        if not created:
            raise AppError(ErrorCode.INTERNAL_ERROR, "RevenueAudit creation returned no record.")

        logger.info("Revenue audit created", audit_id=created["id"], market=audit_input["marketName"])
        return ok_response(id=created["id"])
    except AppError as e:
        logger.warning("Revenue audit rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Revenue audit failed", error=str(e))
        return error_response(e)


def build_property_input(audit: Dict[str, Any]) -> Dict[str, Any]:
    market = clean_string(audit.get("marketName"))
    if market:
        name = market
    elif audit.get("listingUrl"):
        name = "New STR from audit"
    else:
        name = "New STR property"
    return {
        "name": name,
        "address": PLACEHOLDER_ADDRESS,
        "sleeps": 0,
        "owner": audit.get("owner") or INTAKE_OWNER,
    }


def build_revenue_profile_input(audit: Dict[str, Any], property_id: str, owner: str) -> Dict[str, Any]:
    owner_name = clean_string(audit.get("ownerName"))
    return {
        **DEFAULT_PROFILE,
        "propertyId": property_id,
        "owner": owner,
        "marketName": audit.get("marketName") or None,
        "internalLabel": f"Audit - {owner_name}" if owner_name else "Audit conversion",
    }


def convert_audit_to_property(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Turn a revenue audit into a Property with a default RevenueProfile.

    Body: { auditId }

    Idempotent: an audit that already carries a propertyId is returned with
    ``alreadyLinked: true`` and nothing is created.
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))

    try:
        require_method(event, "POST")
        require_admin(event)
        client = api_key_client()
        audit_id = require_fields(parse_json_body(event), ("auditId",), "Missing required field: auditId")["auditId"]

        audit = client.execute(queries.GET_REVENUE_AUDIT, {"id": audit_id}).get("getRevenueAudit")
        if not audit:
            raise AppError(ErrorCode.NOT_FOUND, "RevenueAudit not found")

        if audit.get("propertyId"):
            logger.info("Audit already linked", audit_id=audit_id, property_id=audit["propertyId"])
            return ok_response(auditId=audit["id"], propertyId=audit["propertyId"], alreadyLinked=True)

        property_input = build_property_input(audit)
        created_property = client.execute(queries.CREATE_PROPERTY, {"input": property_input}).get("createProperty")
        if not created_property:
            raise AppError(ErrorCode.INTERNAL_ERROR, "Property creation returned no record.")
        property_id = created_property["id"]
        logger.info("Property created from audit", audit_id=audit_id, property_id=property_id)

        profile_input = build_revenue_profile_input(audit, property_id, property_input["owner"])
        profile = client.execute(queries.CREATE_REVENUE_PROFILE, {"input": profile_input}).get("createRevenueProfile")
        if profile:
            logger.info("Revenue profile created", property_id=property_id, profile_id=profile.get("id"))
        else:
            logger.warning("createRevenueProfile returned no record", property_id=property_id)

        client.execute(queries.UPDATE_REVENUE_AUDIT, {"input": {"id": audit["id"], "propertyId": property_id}})
        logger.info("Audit linked to property", audit_id=audit_id, property_id=property_id)

        return ok_response(
            auditId=audit["id"],
            propertyId=property_id,
            revenueProfileId=(profile or {}).get("id"),
            alreadyLinked=False,
        )
    except AppError as e:
        logger.warning("Audit conversion rejected", error_code=e.error_code, reason=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Audit conversion failed", error=str(e))
        return error_response(e)
