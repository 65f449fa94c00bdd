"""
Logging utilities for Lambda functions.

Provides structured JSON logging with correlation IDs so a stream batch or an
API request can be followed through CloudWatch.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredLogger:
    """
    JSON logger for Lambda functions with correlation ID support.

    Example:
        logger = StructuredLogger(__name__)
        logger.info("Answer accepted", answer_id="a-1", post_id="p-9")
    """

    def __init__(self, name: str, correlation_id: Optional[str] = None) -> None:
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Emit a single JSON log line."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
            "correlationId": self.correlation_id,
            **kwargs,
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        print(json.dumps(log_entry, default=str))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info level message."""
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning level message."""
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error level message."""
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug level message."""
        self._log("DEBUG", message, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Module-level logger; handlers that serve requests build their own with a correlation ID."""
    return StructuredLogger(name)


def get_correlation_id(event: Dict[str, Any]) -> str:
    """
    Extract or generate a correlation ID from a Lambda event.

    Checks, in order:
    1. event['requestContext']['requestId'] (API Gateway, AppSync)
    2. an x-correlation-id header (top-level or event['request']['headers'])
    3. the first stream record's eventID
    4. the SES message id of an inbound mail event
    5. Generates a new UUID if nothing matched
    """
    request_context = event.get("requestContext") or {}
    if "requestId" in request_context:
        return str(request_context["requestId"])

    for headers in (event.get("headers") or {}, (event.get("request") or {}).get("headers") or {}):
        for key, value in headers.items():
            if key.lower() == "x-correlation-id" and value:
                return str(value)

    records = event.get("Records") or []
    if records:
        first = records[0]
        if first.get("eventID"):
            return str(first["eventID"])
        message_id = (first.get("ses") or {}).get("mail", {}).get("messageId")
        if message_id:
            return str(message_id)

    return str(uuid.uuid4())
