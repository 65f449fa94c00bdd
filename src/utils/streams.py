"""
DynamoDB Streams record helpers.

Stream images arrive in the low-level attribute-value format; these helpers turn
them into plain dicts the way the boto3 Table resource would return them.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from boto3.dynamodb.types import TypeDeserializer

from .api_types import StreamRecord

_deserializer = TypeDeserializer()

StreamImage = Dict[str, Any]


def unmarshall(image: Optional[Dict[str, Any]]) -> Optional[StreamImage]:
    """Deserialize a stream image, e.g. {"id": {"S": "a"}} -> {"id": "a"}."""
    if not image:
        return None
    return {key: _deserializer.deserialize(value) for key, value in image.items()}


def read_stream_images(record: StreamRecord) -> Tuple[Optional[StreamImage], Optional[StreamImage]]:
    """Return (new_image, old_image) for a stream record; either may be None."""
    change = record.get("dynamodb") or {}
    return unmarshall(change.get("NewImage")), unmarshall(change.get("OldImage"))


def first_present(field: str, *images: Optional[StreamImage]) -> Any:
    """First truthy value of ``field`` across the images, else None."""
    for image in images:
        if image and image.get(field):
            return image[field]
    return None


def to_number(value: Any) -> Decimal:
    """Numeric attribute as Decimal; missing or malformed values count as 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal(0)
