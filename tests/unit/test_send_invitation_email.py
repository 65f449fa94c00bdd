"""Tests for the invitation email stream trigger."""

from typing import Any, Callable, Dict
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from src.handlers.send_invitation_email import build_accept_url, lambda_handler, should_send
from src.utils.errors import AppError, ErrorCode
from src.utils.tokens import verify_signed_invite_token

INVITATION = {"__typename": "Invitation", "id": "inv-1", "email": "cleaner@example.com", "role": "cleaner"}


@pytest.fixture
def sender(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SENDER_EMAIL", "invites@latimere.com")
    monkeypatch.setenv("APP_URL", "https://app.latimere.com/")


class TestShouldSend:
    """Tests for should_send."""

    def test_insert(self) -> None:
        """Test inserts always send."""
        assert should_send("INSERT", {"id": "x"}, None) is True

    def test_resend_on_last_sent_change(self) -> None:
        """Test a MODIFY sends only when lastSentAt moved."""
        assert should_send("MODIFY", {"lastSentAt": "t2"}, {"lastSentAt": "t1"}) is True
        assert should_send("MODIFY", {"lastSentAt": "t1"}, {"lastSentAt": "t1"}) is False
        assert should_send("MODIFY", {"status": "ACCEPTED"}, {}) is False

    def test_remove(self) -> None:
        """Test removals never send."""
        assert should_send("REMOVE", {"id": "x"}, None) is False


class TestBuildAcceptUrl:
    """Tests for build_accept_url."""

    def test_query_encoding(self) -> None:
        """Test parameters are URL encoded and the token is optional."""
        url = build_accept_url("https://app/", "inv 1", "a+b@example.com", "cleaner")

        parsed = urlparse(url)
        assert parsed.path == "/invite/accept"
        assert parse_qs(parsed.query) == {"id": ["inv 1"], "email": ["a+b@example.com"], "role": ["cleaner"]}


class TestLambdaHandler:
    """Tests for lambda_handler."""

    def test_no_sender(self, stream_record: Callable[..., Dict[str, Any]], lambda_context: Any) -> None:
        """Test nothing is sent without SENDER_EMAIL."""
        with patch("src.handlers.send_invitation_email.send_email") as mock_send:
            result = lambda_handler({"Records": [stream_record("INSERT", new=INVITATION)]}, lambda_context)

        assert result == {"ok": False, "sent": 0}
        mock_send.assert_not_called()

    def test_sends_insert(
        self, sender: None, stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test an inserted invitation is emailed from SENDER_EMAIL."""
        with patch("src.handlers.send_invitation_email.send_email", return_value="msg-1") as mock_send:
            result = lambda_handler({"Records": [stream_record("INSERT", new=INVITATION)]}, lambda_context)

        assert result == {"ok": True, "sent": 1}
        args, kwargs = mock_send.call_args
        assert args[0] == ["cleaner@example.com"]
        assert args[1] == "You're invited to join as a cleaner"
        assert "https://app.latimere.com/invite/accept?id=inv-1" in args[2]
        assert "token=" not in args[2]
        assert kwargs["source"] == "invites@latimere.com"

    def test_signed_token_attached(
        self,
        sender: None,
        stream_record: Callable[..., Dict[str, Any]],
        lambda_context: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test links carry a verifiable token when a secret is configured."""
        monkeypatch.setenv("INVITE_TOKEN_SECRET", "s3cret")

        with patch("src.handlers.send_invitation_email.send_email") as mock_send:
            lambda_handler({"Records": [stream_record("INSERT", new=INVITATION)]}, lambda_context)

        text = mock_send.call_args.args[2]
        url = next(line for line in text.splitlines() if line.startswith("Accept your invite: "))
        token = parse_qs(urlparse(url.split(": ", 1)[1]).query)["token"][0]
        payload = verify_signed_invite_token(token, "s3cret")
        assert payload is not None
        assert payload["id"] == "inv-1"
        assert payload["email"] == "cleaner@example.com"

    def test_skips_irrelevant_records(
        self, sender: None, stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test removals, other or missing types, unchanged modifies and missing emails are skipped."""
        untyped = {key: value for key, value in INVITATION.items() if key != "__typename"}
        records = [
            stream_record("REMOVE", old=INVITATION),
            stream_record("INSERT", new={**INVITATION, "__typename": "Property"}),
            stream_record("INSERT", new=untyped),
            stream_record("MODIFY", new={**INVITATION, "status": "ACCEPTED"}, old=INVITATION),
            stream_record("INSERT", new={**INVITATION, "email": ""}),
        ]
        with patch("src.handlers.send_invitation_email.send_email") as mock_send:
            result = lambda_handler({"Records": records}, lambda_context)

        assert result == {"ok": True, "sent": 0}
        mock_send.assert_not_called()

    def test_default_role(
        self, sender: None, stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test invitations without a role are sent as cleaner invites."""
        new = {"__typename": "Invitation", "id": "inv-2", "email": "x@example.com"}
        with patch("src.handlers.send_invitation_email.send_email") as mock_send:
            lambda_handler({"Records": [stream_record("INSERT", new=new)]}, lambda_context)

        assert "role=cleaner" in mock_send.call_args.args[2]

    def test_failures_raise_after_batch(
        self, sender: None, stream_record: Callable[..., Dict[str, Any]], lambda_context: Any
    ) -> None:
        """Test a failed send does not stop the batch but fails the invocation."""
        records = [
            stream_record("INSERT", new=INVITATION, event_id="e1"),
            stream_record("INSERT", new={**INVITATION, "id": "inv-2"}, event_id="e2"),
        ]
        side_effect = [AppError(ErrorCode.EMAIL_ERROR, "Email failed to send."), "msg-2"]
        with patch("src.handlers.send_invitation_email.send_email", side_effect=side_effect) as mock_send:
            with pytest.raises(RuntimeError, match="Invitation email failures: 1"):
                lambda_handler({"Records": records}, lambda_context)

        assert mock_send.call_count == 2
