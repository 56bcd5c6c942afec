"""
Credential Store Module

Persists user accounts: identity, salted password hash, contact details,
public account number and balance. Balances only change through
``adjust_balance``, which refuses to take an account below zero.
"""

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .currency import MAX_BALANCE, Money
from .errors import (
    AccountNotFound, BalanceLimitExceeded, DuplicateEmail, InvalidCredentials,
    StorageError, ValidationError, WouldGoNegative
)
from .logging_config import get_logger, log_action
from .storage import ConstraintViolation, SQLiteStorage


ACCOUNT_NUMBER_DIGITS = 8

_ACCOUNT_COLUMNS = (
    "id, name, email, phone, account_number, balance, created_at, "
    "password_hash, password_salt"
)


def generate_account_number(prefix: str = "KODA") -> str:
    """Random account number: prefix followed by 8 digits, e.g. KODA12345678"""
    low = 10 ** (ACCOUNT_NUMBER_DIGITS - 1)
    return f"{prefix}{low + secrets.randbelow(9 * low)}"


def is_valid_account_number(value: str, prefix: str = "KODA") -> bool:
    """Check the prefix + fixed-width numeric suffix format"""
    if not isinstance(value, str):
        return False
    pattern = rf"{re.escape(prefix)}\d{{{ACCOUNT_NUMBER_DIGITS}}}"
    return re.fullmatch(pattern, value) is not None


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class Account:
    """A customer account. Password material is excluded from repr and output."""
    id: int
    name: str
    email: str
    account_number: str
    balance: Money
    created_at: datetime
    phone: Optional[str] = None
    password_hash: str = field(default="", repr=False)
    password_salt: str = field(default="", repr=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Account':
        return cls(
            id=row['id'],
            name=row['name'],
            email=row['email'],
            account_number=row['account_number'],
            balance=Money.from_minor_units(row['balance']),
            created_at=datetime.fromisoformat(row['created_at']),
            phone=row['phone'],
            password_hash=row['password_hash'],
            password_salt=row['password_salt'],
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Fields safe to return to the account owner"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "accountNumber": self.account_number,
            "balance": self.balance.format_plain(),
            "createdAt": self.created_at.isoformat(),
        }


class AccountStore:
    """
    Manages account records and balances
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        account_number_prefix: str = "KODA",
        account_number_attempts: int = 10,
        number_generator: Optional[Callable[[str], str]] = None
    ):
        self.storage = storage
        self.account_number_prefix = account_number_prefix
        self.account_number_attempts = account_number_attempts
        self._generate_number = number_generator or generate_account_number
        self.logger = get_logger("kodbank.accounts")

    def create_account(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None
    ) -> Account:
        """
        Register a new account with a zero balance

        Args:
            name: Display name
            email: Login email, unique across accounts (case-insensitive)
            password: Plaintext password; only its scrypt hash is stored
            phone: Optional phone number

        Returns:
            The created Account

        Raises:
            ValidationError: If name, email or password is missing
            DuplicateEmail: If the email is already registered
            StorageError: If no unique account number could be allocated
        """
        name = (name or "").strip()
        email = normalize_email(email or "")
        phone = (phone or "").strip() or None

        if not name or not email or not password:
            raise ValidationError("Name, email, and password are required")
        if "@" not in email:
            raise ValidationError("A valid email address is required")

        salt = self._generate_salt()
        password_hash = self._hash_password(password, salt)
        now = datetime.now(timezone.utc).isoformat()

        for attempt in range(1, self.account_number_attempts + 1):
            account_number = self._generate_number(self.account_number_prefix)
            if not is_valid_account_number(account_number, self.account_number_prefix):
                raise StorageError(f"Generated malformed account number {account_number!r}")

            try:
                cursor = self.storage.execute(
                    """
                    INSERT INTO accounts
                        (name, email, password_hash, password_salt, phone,
                         account_number, balance, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, 0, ?)
                    """,
                    (name, email, password_hash, salt, phone, account_number, now)
                )
            except ConstraintViolation as e:
                if e.column == "accounts.email":
                    raise DuplicateEmail() from e
                if e.column == "accounts.account_number":
                    self.logger.warning(
                        f"Account number collision on attempt {attempt}, retrying"
                    )
                    continue
                raise

            account = self.get(cursor.lastrowid)
            log_action(
                self.logger, "info", "Account created",
                user_id=str(account.id), action="create_account",
                resource=f"account:{account.account_number}"
            )
            return account

        raise StorageError(
            f"Could not allocate a unique account number after "
            f"{self.account_number_attempts} attempts"
        )

    def find_by_id(self, account_id: int) -> Optional[Account]:
        row = self.storage.fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?", (account_id,)
        )
        return Account.from_row(row) if row else None

    def find_by_email(self, email: str) -> Optional[Account]:
        row = self.storage.fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = ?",
            (normalize_email(email),)
        )
        return Account.from_row(row) if row else None

    def find_by_account_number(self, account_number: str) -> Optional[Account]:
        row = self.storage.fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE account_number = ?",
            (account_number.strip(),)
        )
        return Account.from_row(row) if row else None

    def get(self, account_id: int) -> Account:
        """Load an account or raise AccountNotFound"""
        account = self.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def adjust_balance(self, account_id: int, delta: Money) -> Money:
        """
        Add ``delta`` (may be negative) to an account balance.

        Joins the caller's transaction when called inside ``storage.atomic()``.

        Raises:
            AccountNotFound: If the account does not exist
            WouldGoNegative: If the resulting balance would be below zero
            BalanceLimitExceeded: If the resulting balance would exceed MAX_BALANCE
        """
        with self.storage.atomic():
            row = self.storage.fetch_one(
                "SELECT balance FROM accounts WHERE id = ?", (account_id,)
            )
            if row is None:
                raise AccountNotFound()

            new_balance = row['balance'] + delta.to_minor_units()
            if new_balance < 0:
                raise WouldGoNegative()
            if new_balance > Money(MAX_BALANCE).to_minor_units():
                raise BalanceLimitExceeded()

            self.storage.execute(
                "UPDATE accounts SET balance = ? WHERE id = ?",
                (new_balance, account_id)
            )
        return Money.from_minor_units(new_balance)

    def authenticate(self, email: str, password: str) -> Account:
        """
        Check login credentials

        Raises:
            InvalidCredentials: Unknown email or wrong password (same error for both)
        """
        account = self.find_by_email(email or "")
        if account is None or not self.verify_password(account, password or ""):
            log_action(
                self.logger, "warning", "Login rejected",
                action="login_failed", resource="account"
            )
            raise InvalidCredentials()
        return account

    def verify_password(self, account: Account, password: str) -> bool:
        """Constant-time comparison against the stored scrypt hash"""
        if not account.password_hash or not account.password_salt:
            return False
        expected = self._hash_password(password, account.password_salt)
        return hmac.compare_digest(expected, account.password_hash)

    def _generate_salt(self) -> str:
        """Generate random salt for password hashing"""
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()
