"""
Session Token Service

Issues, validates and revokes bearer tokens. A token is accepted only when
BOTH checks pass:

1. the raw token is present in the ``session_tokens`` table (the store is the
   authoritative revocation list; logout deletes the row), and
2. the JWT signature and expiry verify against the configured secret.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .accounts import Account
from .errors import Forbidden, Unauthenticated
from .logging_config import get_logger, log_action
from .storage import SQLiteStorage


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class AccountClaims:
    """Identity carried by a validated token"""
    account_id: int
    email: str
    account_number: str
    expires_at: datetime


class SessionService:
    """
    Bearer-token sessions backed by signed JWTs and a server-side store
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        secret: str,
        algorithm: str = "HS256",
        expiry_minutes: int = 60
    ):
        self.storage = storage
        self.secret = secret
        self.algorithm = algorithm
        self.expiry = timedelta(minutes=expiry_minutes)
        self.logger = get_logger("kodbank.sessions")

    def issue(self, account: Account) -> IssuedToken:
        """Sign a token for the account and record it as active"""
        now = datetime.now(timezone.utc)
        expires_at = now + self.expiry
        payload = {
            "sub": str(account.id),
            "email": account.email,
            "accountNumber": account.account_number,
            "iat": now,
            "exp": expires_at,
            # Distinguishes two logins issued within the same second
            "jti": secrets.token_hex(8),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)

        self.storage.execute(
            """
            INSERT INTO session_tokens (token, account_id, expires_at, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (token, account.id, int(expires_at.timestamp() * 1000), now.isoformat())
        )

        log_action(
            self.logger, "info", "Session issued",
            user_id=str(account.id), action="login",
            resource=f"account:{account.account_number}"
        )
        return IssuedToken(token=token, expires_at=expires_at)

    def validate(self, token: Optional[str]) -> AccountClaims:
        """
        Resolve a presented token to its account claims

        Raises:
            Unauthenticated: If no token was presented
            Forbidden: If the token is unknown, revoked, tampered with or expired
        """
        if not token:
            raise Unauthenticated()

        row = self.storage.fetch_one(
            "SELECT account_id FROM session_tokens WHERE token = ?", (token,)
        )
        if row is None:
            raise Forbidden()

        try:
            payload = jwt.decode(
                token, self.secret, algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            raise Forbidden("Session expired")
        except jwt.InvalidTokenError:
            raise Forbidden()

        account_id = int(payload["sub"])
        if account_id != row['account_id']:
            raise Forbidden()

        return AccountClaims(
            account_id=account_id,
            email=payload.get("email", ""),
            account_number=payload.get("accountNumber", ""),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def revoke(self, token: Optional[str]) -> bool:
        """Delete a token from the active store. Revoking an absent token is a no-op."""
        if not token:
            return False
        cursor = self.storage.execute(
            "DELETE FROM session_tokens WHERE token = ?", (token,)
        )
        revoked = cursor.rowcount > 0
        if revoked:
            log_action(self.logger, "info", "Session revoked", action="logout")
        return revoked

    def revoke_all(self, account_id: int) -> int:
        """Log an account out of every device; returns the number of tokens removed"""
        cursor = self.storage.execute(
            "DELETE FROM session_tokens WHERE account_id = ?", (account_id,)
        )
        log_action(
            self.logger, "info", "All sessions revoked",
            user_id=str(account_id), action="logout_all",
            extra={"revoked": cursor.rowcount}
        )
        return cursor.rowcount

    def active_tokens(self, account_id: int) -> int:
        row = self.storage.fetch_one(
            "SELECT COUNT(*) AS count FROM session_tokens WHERE account_id = ?",
            (account_id,)
        )
        return row['count']
