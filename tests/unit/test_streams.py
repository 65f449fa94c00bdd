"""Tests for DynamoDB stream record helpers."""

from decimal import Decimal
from typing import Any, Callable, Dict

from src.utils.streams import first_present, read_stream_images, to_number, unmarshall


class TestUnmarshall:
    """Tests for unmarshall."""

    def test_converts_attribute_values(self) -> None:
        """Test typed attribute values become plain Python values."""
        image = {"id": {"S": "a-1"}, "score": {"N": "3"}, "isAccepted": {"BOOL": True}, "gone": {"NULL": True}}

        assert unmarshall(image) == {"id": "a-1", "score": Decimal(3), "isAccepted": True, "gone": None}

    def test_empty_image(self) -> None:
        """Test missing images are None."""
        assert unmarshall(None) is None
        assert unmarshall({}) is None


class TestReadStreamImages:
    """Tests for read_stream_images."""

    def test_both_images(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test new and old images are returned in that order."""
        record = stream_record("MODIFY", new={"id": "x", "value": 1}, old={"id": "x", "value": -1})

        new, old = read_stream_images(record)

        assert new == {"id": "x", "value": Decimal(1)}
        assert old == {"id": "x", "value": Decimal(-1)}

    def test_remove_has_no_new_image(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test REMOVE records only carry the old image."""
        new, old = read_stream_images(stream_record("REMOVE", old={"id": "x"}))

        assert new is None
        assert old == {"id": "x"}


class TestFirstPresent:
    """Tests for first_present."""

    def test_prefers_earlier_images(self) -> None:
        """Test the first truthy value wins."""
        assert first_present("postId", {"postId": ""}, {"postId": "p-1"}) == "p-1"
        assert first_present("postId", None, {"postId": "p-2"}) == "p-2"
        assert first_present("postId", {}, None) is None


class TestToNumber:
    """Tests for to_number."""

    def test_values(self) -> None:
        """Test numbers, strings and junk."""
        assert to_number(Decimal("-1")) == Decimal(-1)
        assert to_number("2") == Decimal(2)
        assert to_number(None) == Decimal(0)
        assert to_number(True) == Decimal(0)
        assert to_number("abc") == Decimal(0)
