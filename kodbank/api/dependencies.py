"""
Service container and FastAPI dependencies
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..accounts import AccountStore
from ..config import KodBankConfig, get_config
from ..errors import Unauthenticated
from ..ledger import LedgerEngine
from ..locks import AccountLocks
from ..sessions import AccountClaims, SessionService
from ..storage import SQLiteStorage
from ..transactions import TransactionHistory


class BankingSystem:
    """Banking services wired around one explicitly owned storage handle"""

    def __init__(self, config: Optional[KodBankConfig] = None, storage: Optional[SQLiteStorage] = None):
        self.config = config or get_config()

        self.storage = storage or SQLiteStorage(
            self.config.database_path,
            lock_timeout=self.config.lock_timeout_seconds
        )
        self.accounts = AccountStore(
            self.storage,
            account_number_prefix=self.config.account_number_prefix,
            account_number_attempts=self.config.account_number_attempts
        )
        self.sessions = SessionService(
            self.storage,
            secret=self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            expiry_minutes=self.config.token_expiry_minutes
        )
        self.history = TransactionHistory(self.storage, max_limit=self.config.history_limit)
        self.locks = AccountLocks(timeout=self.config.lock_timeout_seconds)
        self.ledger = LedgerEngine(
            self.storage, self.accounts, self.history, self.locks,
            currency_symbol=self.config.currency_symbol
        )

    def close(self) -> None:
        self.storage.close()


security = HTTPBearer(auto_error=False)


def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.banking_system


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Raw bearer token from the Authorization header"""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return credentials.credentials


def get_current_claims(
    token: str = Depends(get_bearer_token),
    system: BankingSystem = Depends(get_banking_system)
) -> AccountClaims:
    """Dependency that validates the session token and returns its claims"""
    return system.sessions.validate(token)
