"""
Tests for the session token service

A token must be both present in the active store and cryptographically valid.
"""

import pytest
import jwt
from datetime import datetime, timedelta, timezone

from kodbank.accounts import AccountStore
from kodbank.errors import Forbidden, Unauthenticated
from kodbank.sessions import SessionService
from kodbank.storage import SQLiteStorage


SECRET = "test-secret"


class TestSessionService:

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.accounts = AccountStore(self.storage)
        self.sessions = SessionService(self.storage, secret=SECRET, expiry_minutes=60)
        self.account = self.accounts.create_account("Asha", "asha@example.com", "secret")

    def teardown_method(self):
        self.storage.close()

    def test_issue_and_validate(self):
        issued = self.sessions.issue(self.account)
        claims = self.sessions.validate(issued.token)

        assert claims.account_id == self.account.id
        assert claims.email == "asha@example.com"
        assert claims.account_number == self.account.account_number
        assert issued.expires_at > datetime.now(timezone.utc)

        row = self.storage.fetch_one(
            "SELECT * FROM session_tokens WHERE token = ?", (issued.token,)
        )
        assert row['account_id'] == self.account.id
        assert row['expires_at'] == int(issued.expires_at.timestamp() * 1000)

    def test_missing_token_is_unauthenticated(self):
        with pytest.raises(Unauthenticated):
            self.sessions.validate(None)
        with pytest.raises(Unauthenticated):
            self.sessions.validate("")

    def test_unknown_token_is_forbidden(self):
        # Correctly signed but never issued by the service
        forged = jwt.encode(
            {"sub": str(self.account.id),
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            SECRET, algorithm="HS256"
        )
        with pytest.raises(Forbidden):
            self.sessions.validate(forged)

    def test_revoked_token_is_forbidden(self):
        issued = self.sessions.issue(self.account)
        assert self.sessions.revoke(issued.token) is True
        with pytest.raises(Forbidden):
            self.sessions.validate(issued.token)

    def test_revoke_is_idempotent(self):
        issued = self.sessions.issue(self.account)
        assert self.sessions.revoke(issued.token) is True
        assert self.sessions.revoke(issued.token) is False
        assert self.sessions.revoke("never-issued") is False
        assert self.sessions.revoke(None) is False

    def test_stored_token_with_bad_signature_is_forbidden(self):
        other = SessionService(self.storage, secret="another-secret")
        issued = other.issue(self.account)
        with pytest.raises(Forbidden):
            self.sessions.validate(issued.token)

    def test_expired_token_is_forbidden_even_if_stored(self):
        expired = SessionService(self.storage, secret=SECRET, expiry_minutes=-1)
        issued = expired.issue(self.account)
        with pytest.raises(Forbidden) as exc_info:
            self.sessions.validate(issued.token)
        assert "expired" in exc_info.value.message.lower()

    def test_multiple_devices(self):
        first = self.sessions.issue(self.account)
        second = self.sessions.issue(self.account)
        assert first.token != second.token
        assert self.sessions.active_tokens(self.account.id) == 2

        self.sessions.revoke(first.token)
        assert self.sessions.validate(second.token).account_id == self.account.id
        with pytest.raises(Forbidden):
            self.sessions.validate(first.token)

    def test_revoke_all(self):
        tokens = [self.sessions.issue(self.account).token for _ in range(3)]
        assert self.sessions.revoke_all(self.account.id) == 3
        for token in tokens:
            with pytest.raises(Forbidden):
                self.sessions.validate(token)
