"""DynamoDB stream trigger on the Answer table.

Keeps Post.acceptedAnswerId in step with Answer.isAccepted and moves the
answer owner's reputation by ACCEPT_POINTS on accept/unaccept.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TypedDict

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.config import env_int  # type: ignore[import-not-found]
    from utils.dynamodb import is_configured, tables  # type: ignore[import-not-found]
    from utils.logging import StructuredLogger, get_correlation_id  # type: ignore[import-not-found]
    from utils.streams import first_present, read_stream_images  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.config import env_int
    from ..utils.dynamodb import is_configured, tables
    from ..utils.logging import StructuredLogger, get_correlation_id
    from ..utils.streams import first_present, read_stream_images

ACCEPT = "accept"
UNACCEPT = "unaccept"
NOOP = "noop"

DEFAULT_ACCEPT_POINTS = 15


class Acceptance(TypedDict):
    action: str
    answerId: Optional[str]
    postId: Optional[str]
    ownerId: Optional[str]
    eventName: str


def get_accept_points() -> int:
    return env_int("ACCEPT_POINTS", DEFAULT_ACCEPT_POINTS)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_transition(event_name: str, was_accepted: bool, is_accepted: bool) -> str:
    """
    Map a stream event and the before/after isAccepted flags to an action.

    INSERT accepts when the new row is accepted, REMOVE unaccepts when the old
    row was accepted, MODIFY acts only on a flag change.
    """
    if event_name == "INSERT":
        return ACCEPT if is_accepted else NOOP
    if event_name == "REMOVE":
        return UNACCEPT if was_accepted else NOOP
    if event_name == "MODIFY":
        if is_accepted and not was_accepted:
            return ACCEPT
        if was_accepted and not is_accepted:
            return UNACCEPT
    return NOOP


def derive_acceptance(record: Dict[str, Any]) -> Acceptance:
    """Classify a stream record and pull the ids it refers to."""
    event_name = record.get("eventName", "")
    new_image, old_image = read_stream_images(record)

    action = classify_transition(
        event_name,
        bool(old_image and old_image.get("isAccepted")),
        bool(new_image and new_image.get("isAccepted")),
    )
    return {
        "action": action,
        "answerId": first_present("id", new_image, old_image),
        "postId": first_present("postId", new_image, old_image),
        "ownerId": first_present("owner", new_image, old_image),
        "eventName": event_name,
    }


def fetch_answer(answer_id: Optional[str], logger: StructuredLogger) -> Optional[Dict[str, Any]]:
    """Point read of the answer for ids missing from the stream image."""
    if not answer_id:
        return None
    try:
        response = tables.answers.get_item(
            Key={"id": str(answer_id)},
            ProjectionExpression="#id, #pid, #own, #acc",
            ExpressionAttributeNames={"#id": "id", "#pid": "postId", "#own": "owner", "#acc": "isAccepted"},
        )
        return response.get("Item")
    except Exception as e:
        logger.error("Answer lookup failed", answer_id=answer_id, error=str(e))
        return None


def set_accepted_answer(post_id: str, answer_id: str, logger: StructuredLogger) -> None:
    """Point the post at this answer, whatever it pointed at before."""
    try:
        tables.posts.update_item(
            Key={"id": str(post_id)},
            UpdateExpression="SET #aid = :answerId, #ts = :now",
            ExpressionAttributeNames={"#aid": "acceptedAnswerId", "#ts": "updatedAt"},
            ExpressionAttributeValues={":answerId": str(answer_id), ":now": _now()},
        )
        logger.info("Post.acceptedAnswerId set", post_id=post_id, answer_id=answer_id)
    except Exception as e:
        logger.error("Setting acceptedAnswerId failed", post_id=post_id, answer_id=answer_id, error=str(e))


def clear_accepted_answer_if_matches(post_id: str, answer_id: str, logger: StructuredLogger) -> bool:
    """
    Remove Post.acceptedAnswerId only while it still names this answer.

    Returns:
        True if the pointer was cleared
    """
    try:
        tables.posts.update_item(
            Key={"id": str(post_id)},
            ConditionExpression="attribute_exists(#aid) AND #aid = :answerId",
            UpdateExpression="REMOVE #aid SET #ts = :now",
            ExpressionAttributeNames={"#aid": "acceptedAnswerId", "#ts": "updatedAt"},
            ExpressionAttributeValues={":answerId": str(answer_id), ":now": _now()},
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
            # Another answer is accepted now; its pointer stays
            logger.info("acceptedAnswerId did not match; left unchanged", post_id=post_id, answer_id=answer_id)
        else:
            logger.error("Clearing acceptedAnswerId failed", post_id=post_id, answer_id=answer_id, error=str(e))
        return False
    except Exception as e:
        logger.error("Clearing acceptedAnswerId failed", post_id=post_id, answer_id=answer_id, error=str(e))
        return False

    logger.info("Post.acceptedAnswerId cleared", post_id=post_id, answer_id=answer_id)
    return True


def bump_owner_reputation(owner_id: str, delta: int, logger: StructuredLogger) -> None:
    if not owner_id or not delta:
        return
    try:
        tables.user_profiles.update_item(
            Key={"id": str(owner_id)},
            UpdateExpression="ADD #rep :d SET #ts = :now",
            ExpressionAttributeNames={"#rep": "reputation", "#ts": "updatedAt"},
            ExpressionAttributeValues={":d": delta, ":now": _now()},
        )
        logger.info("Owner reputation updated", owner_id=owner_id, delta=delta)
    except Exception as e:
        logger.error("Owner reputation update failed", owner_id=owner_id, delta=delta, error=str(e))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, int]:
    """Process a batch of Answer stream records.

    Args:
        event: DynamoDB stream event
        context: Lambda context

    Returns:
        { processed: int, skipped: int, noops: int }
    """
    logger = StructuredLogger(__name__, get_correlation_id(event))
    records = event.get("Records") or []
    delta = get_accept_points()
    results = {"processed": 0, "skipped": 0, "noops": 0}

    logger.info("Accept answer trigger invoked", records=len(records), accept_points=delta)

    missing = [name for name in ("posts", "answers", "user_profiles") if not is_configured(name)]
    if missing:
        logger.error("Required table configuration missing; exiting", missing=missing)
        return results

    for record in records:
        try:
            acceptance = derive_acceptance(record)
            action = acceptance["action"]
            if action == NOOP:
                results["noops"] += 1
                continue

            answer_id = acceptance["answerId"]
            post_id = acceptance["postId"]
            owner_id = acceptance["ownerId"]

            if not post_id or not owner_id:
                fetched = fetch_answer(answer_id, logger) or {}
                post_id = post_id or fetched.get("postId")
                owner_id = owner_id or fetched.get("owner")

            if not answer_id or not post_id or not owner_id:
                logger.warning(
                    "Missing critical fields; skipping record",
                    action=action,
                    answer_id=answer_id,
                    post_id=post_id,
                    owner_id=owner_id,
                )
                results["skipped"] += 1
                continue

            logger.info(
                "Processing acceptance",
                event_name=acceptance["eventName"],
                action=action,
                answer_id=answer_id,
                post_id=post_id,
            )

            if action == ACCEPT:
                set_accepted_answer(post_id, answer_id, logger)
                bump_owner_reputation(owner_id, delta, logger)
            else:
                clear_accepted_answer_if_matches(post_id, answer_id, logger)
                bump_owner_reputation(owner_id, -delta, logger)

            results["processed"] += 1
        except Exception as e:
            logger.error("Error processing stream record", event_id=record.get("eventID"), error=str(e))

    logger.info("Accept answer trigger complete", **results)
    return results
