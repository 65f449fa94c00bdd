"""EventBridge-scheduled Lambda entry points."""

from datetime import datetime, timezone
from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.logging import get_logger  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.logging import get_logger

logger = get_logger(__name__)


def _heartbeat(task: str, event: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc).isoformat()
    logger.info(f"{task} start", source=event.get("source"), detail_type=event.get("detail-type"))
    logger.info(f"{task} ok", time=now)
    return {"ok": True, "time": now}


def scheduler_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Periodic scheduler tick."""
    return _heartbeat("scheduler", event)


def ical_import_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Periodic calendar import tick."""
    return _heartbeat("icalimport", event)
