"""DynamoDB stream trigger on the Vote table.

Turns vote inserts, changes and removals into a signed delta applied to the
target's score, the target owner's reputation and received-vote counter, and
the voter's given-vote counter.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, TypedDict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.dynamodb import tables  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.streams import read_stream_images, to_number  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.dynamodb import tables
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.streams import read_stream_images, to_number

TARGET_TABLES = {"POST": "posts", "ANSWER": "answers"}


class VoteDelta(TypedDict):
    delta: Decimal
    targetType: str
    targetId: Optional[str]
    voterId: Optional[str]
    targetOwnerId: Optional[str]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def derive_vote_delta(record: Dict[str, Any]) -> VoteDelta:
    """
    Compute the score delta of a Vote stream record.

    INSERT contributes +new value, REMOVE -old value, MODIFY new - old.
    Target fields come from the new image, falling back to the old one.
    """
    event_name = record.get("eventName")
    new_image, old_image = read_stream_images(record)

    new_value = to_number((new_image or {}).get("value"))
    old_value = to_number((old_image or {}).get("value"))

    delta = Decimal(0)
    if event_name == "INSERT":
        delta = new_value
    elif event_name == "REMOVE":
        delta = -old_value
    elif event_name == "MODIFY":
        delta = new_value - old_value

    base = new_image or old_image or {}
    return {
        "delta": delta,
        "targetType": str(base.get("targetType") or "").upper(),
        "targetId": base.get("targetId"),
        "voterId": base.get("voterId"),
        "targetOwnerId": base.get("targetOwnerId"),
    }


def bump_target_score(target_type: str, target_id: str, delta: Decimal, logger: StructuredLogger) -> None:
    table_name = TARGET_TABLES.get(target_type)
    if not table_name:
        logger.warning("Unknown targetType; score not updated", target_type=target_type, target_id=target_id)
        return
    try:
        getattr(tables, table_name).update_item(
            Key={"id": str(target_id)},
            UpdateExpression="ADD #score :d",
            ExpressionAttributeNames={"#score": "score"},
            ExpressionAttributeValues={":d": delta},
        )
        logger.info("Target score updated", target_type=target_type, target_id=target_id, delta=delta)
    except Exception as e:
        logger.error("Target score update failed", target_type=target_type, target_id=target_id, error=str(e))


def fetch_target_owner(target_type: str, target_id: str, logger: StructuredLogger) -> Optional[str]:
    table_name = TARGET_TABLES.get(target_type)
    if not table_name or not target_id:
        return None
    try:
        response = getattr(tables, table_name).get_item(
            Key={"id": str(target_id)},
            ProjectionExpression="#owner",
            ExpressionAttributeNames={"#owner": "owner"},
        )
        owner = (response.get("Item") or {}).get("owner")
        return str(owner) if owner else None
    except Exception as e:
        logger.error("Target owner lookup failed", target_type=target_type, target_id=target_id, error=str(e))
        return None


def bump_user_reputation(
    voter_id: Optional[str], owner_id: Optional[str], delta: Decimal, logger: StructuredLogger
) -> None:
    """Update owner reputation + received counter and voter given counter, independently."""
    if not delta:
        return

    is_up = delta > 0
    given_field = "votesGivenUp" if is_up else "votesGivenDown"
    received_field = "votesRecvUp" if is_up else "votesRecvDown"
    now = _now()

    updates = []
    if owner_id:
        updates.append(
            (
                "owner",
                owner_id,
                {
                    "UpdateExpression": "ADD #rep :d, #r :one SET #ts = :now",
                    "ExpressionAttributeNames": {"#rep": "reputation", "#r": received_field, "#ts": "updatedAt"},
                    "ExpressionAttributeValues": {":d": delta, ":one": 1, ":now": now},
                },
            )
        )
    if voter_id:
        updates.append(
            (
                "voter",
                voter_id,
                {
                    "UpdateExpression": "ADD #g :one SET #ts = :now",
                    "ExpressionAttributeNames": {"#g": given_field, "#ts": "updatedAt"},
                    "ExpressionAttributeValues": {":one": 1, ":now": now},
                },
            )
        )

    for role, user_id, expression in updates:
        try:
            tables.user_profiles.update_item(Key={"id": str(user_id)}, **expression)
            logger.info("Reputation updated", role=role, user_id=user_id, delta=delta)
        except Exception as e:
            logger.error("Reputation update failed", role=role, user_id=user_id, error=str(e))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, int]:
    """Process a batch of Vote stream records.

    Returns:
        { processed: int, skipped: int, noops: int }
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))
    records = event.get("Records") or []
    results = {"processed": 0, "skipped": 0, "noops": 0}

    logger.info("Vote reputation trigger invoked", records=len(records))

    for record in records:
        event_name = record.get("eventName")
        try:
            vote = derive_vote_delta(record)
            target_type = vote["targetType"]
            target_id = vote["targetId"]
            delta = vote["delta"]

            if not target_type or not target_id:
                logger.warning("Missing target info", event_name=event_name)
                results["skipped"] += 1
                continue

            if not delta:
                logger.info("No-op delta", event_name=event_name, target_type=target_type, target_id=target_id)
                results["noops"] += 1
                continue

            logger.info(
                "Processing vote",
                event_name=event_name,
                target_type=target_type,
                target_id=target_id,
                delta=delta,
                voter_id=vote["voterId"],
            )

            bump_target_score(target_type, target_id, delta, logger)
            owner_id = vote["targetOwnerId"] or fetch_target_owner(target_type, target_id, logger)
            bump_user_reputation(vote["voterId"], owner_id, delta, logger)

            results["processed"] += 1
        except Exception as e:
            logger.error("Error processing stream record", event_name=event_name, error=str(e))

    logger.info("Vote reputation trigger complete", **results)
    return results
