"""Tests for invitation token utilities."""

from datetime import datetime, timedelta, timezone

from src.utils.tokens import (
    hash_token,
    make_signed_invite_token,
    tokens_match,
    verify_signed_invite_token,
)

SECRET = "test-secret"


class TestHashToken:
    """Tests for hash_token."""

    def test_sha256_hex(self) -> None:
        """Test the digest is the SHA-256 hex of the token."""
        assert hash_token("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestTokensMatch:
    """Tests for tokens_match."""

    def test_match(self) -> None:
        """Test equal hashes match and different ones do not."""
        assert tokens_match("abc", "abc") is True
        assert tokens_match("abc", "abd") is False

    def test_blank_never_matches(self) -> None:
        """Test empty values never match, even each other."""
        assert tokens_match("", "") is False
        assert tokens_match(None, "abc") is False


class TestSignedInviteToken:
    """Tests for signed link tokens."""

    def test_no_secret_means_no_token(self) -> None:
        """Test tokens are only produced with a secret."""
        assert make_signed_invite_token({"id": "inv-1"}, "") == ""

    def test_valid_token(self) -> None:
        """Test a fresh token verifies and returns its payload."""
        exp = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
        token = make_signed_invite_token({"id": "inv-1", "exp": exp}, SECRET)

        assert "=" not in token.split(".")[0]
        assert verify_signed_invite_token(token, SECRET) == {"id": "inv-1", "exp": exp}

    def test_expired_token(self) -> None:
        """Test tokens past exp are rejected."""
        token = make_signed_invite_token({"id": "inv-1", "exp": "2020-01-01T00:00:00"}, SECRET)

        assert verify_signed_invite_token(token, SECRET) is None

    def test_tampered_or_wrong_secret(self) -> None:
        """Test signature checks."""
        token = make_signed_invite_token({"id": "inv-1"}, SECRET)
        encoded, signature = token.split(".")

        assert verify_signed_invite_token(token, "other-secret") is None
        assert verify_signed_invite_token(f"{encoded}.{'0' * len(signature)}", SECRET) is None

    def test_malformed_tokens(self) -> None:
        """Test garbage input is rejected without raising."""
        assert verify_signed_invite_token("", SECRET) is None
        assert verify_signed_invite_token("no-dot", SECRET) is None
        assert verify_signed_invite_token("!!!.abc", SECRET) is None

    def test_bad_exp(self) -> None:
        """Test an unparsable exp is rejected."""
        token = make_signed_invite_token({"id": "inv-1", "exp": "tomorrow"}, SECRET)

        assert verify_signed_invite_token(token, SECRET) is None
