"""Tests for the vote-to-reputation stream trigger."""

from decimal import Decimal
from typing import Any, Callable, Dict
from unittest.mock import MagicMock, patch

from src.handlers.vote_reputation_trigger import bump_user_reputation, derive_vote_delta, lambda_handler
from src.utils.logging import StructuredLogger

VOTE = {"id": "v-1", "targetType": "post", "targetId": "p-1", "voterId": "voter-1", "value": 1}


def _vote(**overrides: Any) -> Dict[str, Any]:
    return {**VOTE, **overrides}


class TestDeriveVoteDelta:
    """Tests for derive_vote_delta."""

    def test_insert(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test an insert contributes its value."""
        vote = derive_vote_delta(stream_record("INSERT", new=_vote()))

        assert vote["delta"] == Decimal(1)
        assert vote["targetType"] == "POST"
        assert vote["targetId"] == "p-1"
        assert vote["voterId"] == "voter-1"

    def test_remove(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test a removal takes the old value back."""
        vote = derive_vote_delta(stream_record("REMOVE", old=_vote(value=-1)))

        assert vote["delta"] == Decimal(1)
        assert vote["targetId"] == "p-1"

    def test_modify_flip(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test flipping a downvote to an upvote moves the score by two."""
        vote = derive_vote_delta(stream_record("MODIFY", new=_vote(value=1), old=_vote(value=-1)))

        assert vote["delta"] == Decimal(2)

    def test_missing_values_count_as_zero(self, stream_record: Callable[..., Dict[str, Any]]) -> None:
        """Test absent vote values are treated as zero."""
        vote = derive_vote_delta(stream_record("MODIFY", new={"targetType": "ANSWER", "targetId": "a-1"}))

        assert vote["delta"] == Decimal(0)
        assert vote["targetOwnerId"] is None


class TestLambdaHandler:
    """Tests for lambda_handler against mocked DynamoDB."""

    def test_upvote_on_post(
        self, dynamodb_tables: Dict[str, Any], stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test score, owner reputation and both vote counters move."""
        dynamodb_tables["posts"].put_item(Item={"id": "p-1", "owner": "author-1", "score": 4})

        result = lambda_handler({"Records": [stream_record("INSERT", new=_vote())]}, lambda_context)

        assert result == {"processed": 1, "skipped": 0, "noops": 0}
        assert dynamodb_tables["posts"].get_item(Key={"id": "p-1"})["Item"]["score"] == 5
        author = dynamodb_tables["user_profiles"].get_item(Key={"id": "author-1"})["Item"]
        assert author["reputation"] == 1
        assert author["votesRecvUp"] == 1
        voter = dynamodb_tables["user_profiles"].get_item(Key={"id": "voter-1"})["Item"]
        assert voter["votesGivenUp"] == 1

    def test_downvote_uses_image_owner(
        self, dynamodb_tables: Dict[str, Any], stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test targetOwnerId on the vote avoids the owner lookup."""
        dynamodb_tables["answers"].put_item(Item={"id": "a-1", "owner": "someone-else"})
        record = stream_record(
            "INSERT", new=_vote(targetType="ANSWER", targetId="a-1", value=-1, targetOwnerId="author-2")
        )

        lambda_handler({"Records": [record]}, lambda_context)

        assert dynamodb_tables["answers"].get_item(Key={"id": "a-1"})["Item"]["score"] == -1
        author = dynamodb_tables["user_profiles"].get_item(Key={"id": "author-2"})["Item"]
        assert author["reputation"] == -1
        assert author["votesRecvDown"] == 1
        assert "Item" not in dynamodb_tables["user_profiles"].get_item(Key={"id": "someone-else"})
        voter = dynamodb_tables["user_profiles"].get_item(Key={"id": "voter-1"})["Item"]
        assert voter["votesGivenDown"] == 1

    def test_zero_delta_short_circuits(
        self, dynamodb_tables: Dict[str, Any], stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test an unchanged vote writes nothing."""
        with patch("src.handlers.vote_reputation_trigger.bump_target_score") as mock_bump:
            result = lambda_handler({"Records": [stream_record("MODIFY", new=_vote(), old=_vote())]}, lambda_context)

        assert result == {"processed": 0, "skipped": 0, "noops": 1}
        mock_bump.assert_not_called()

    def test_missing_target_skipped(
        self, dynamodb_tables: Dict[str, Any], stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test votes without a target are skipped."""
        result = lambda_handler({"Records": [stream_record("INSERT", new={"value": 1})]}, lambda_context)

        assert result == {"processed": 0, "skipped": 1, "noops": 0}

    def test_unknown_target_type_still_counts_votes(
        self, dynamodb_tables: Dict[str, Any], stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test an unknown target type skips the score but keeps the voter counter."""
        record = stream_record("INSERT", new=_vote(targetType="COMMENT", targetId="c-1"))

        result = lambda_handler({"Records": [record]}, lambda_context)

        assert result["processed"] == 1
        assert dynamodb_tables["user_profiles"].get_item(Key={"id": "voter-1"})["Item"]["votesGivenUp"] == 1


class TestBumpUserReputation:
    """Tests for bump_user_reputation."""

    def test_owner_failure_does_not_block_voter(self) -> None:
        """Test the two profile updates are independent."""
        table = MagicMock()
        table.update_item.side_effect = [RuntimeError("throttled"), {}]

        with patch("src.handlers.vote_reputation_trigger.tables") as mock_tables:
            mock_tables.user_profiles = table
            bump_user_reputation("voter-1", "owner-1", Decimal(1), StructuredLogger("test"))

        assert table.update_item.call_count == 2
        assert table.update_item.call_args_list[1].kwargs["Key"] == {"id": "voter-1"}

    def test_zero_delta(self) -> None:
        """Test nothing is written for a zero delta."""
        with patch("src.handlers.vote_reputation_trigger.tables") as mock_tables:
            bump_user_reputation("voter-1", "owner-1", Decimal(0), StructuredLogger("test"))

        mock_tables.user_profiles.update_item.assert_not_called()
