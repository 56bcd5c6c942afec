"""
Transaction Log Module

Append-only record of money movements plus the history reader. Records refer
to accounts only by their public account number; deposits and withdrawals use
sentinel counterparties for cash entering or leaving the bank.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .currency import Money
from .storage import SQLiteStorage


# Sentinel counterparties for cash-in / cash-out
EXTERNAL_DEPOSIT = "SELF_DEPOSIT"
EXTERNAL_WITHDRAWAL = "SELF_WITHDRAW"


class TransactionType(Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable transaction log entry"""
    id: int
    transaction_type: TransactionType
    from_account: str
    to_account: str
    amount: Money
    description: str
    from_name: Optional[str]
    to_name: Optional[str]
    created_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'TransactionRecord':
        return cls(
            id=row['id'],
            transaction_type=TransactionType(row['type']),
            from_account=row['from_account'],
            to_account=row['to_account'],
            amount=Money.from_minor_units(row['amount']),
            description=row['description'],
            from_name=row['from_name'],
            to_name=row['to_name'],
            created_at=datetime.fromisoformat(row['created_at']),
        )

    def involves(self, account_number: str) -> bool:
        return account_number in (self.from_account, self.to_account)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.transaction_type.value,
            "from_account": self.from_account,
            "to_account": self.to_account,
            "amount": self.amount.format_plain(),
            "description": self.description,
            "from_name": self.from_name,
            "to_name": self.to_name,
            "created_at": self.created_at.isoformat(),
        }


class TransactionHistory:
    """
    Appends to and reads from the transaction log
    """

    def __init__(self, storage: SQLiteStorage, max_limit: int = 50):
        self.storage = storage
        self.max_limit = max_limit

    def append(
        self,
        transaction_type: TransactionType,
        from_account: str,
        to_account: str,
        amount: Money,
        description: str,
        from_name: Optional[str] = None,
        to_name: Optional[str] = None
    ) -> TransactionRecord:
        """Write a new record. Joins the caller's transaction when inside ``atomic()``."""
        if not amount.is_positive():
            raise ValueError("Transaction amount must be positive")

        now = datetime.now(timezone.utc)
        cursor = self.storage.execute(
            """
            INSERT INTO transactions
                (type, from_account, to_account, amount, description,
                 from_name, to_name, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (transaction_type.value, from_account, to_account,
             amount.to_minor_units(), description, from_name, to_name,
             now.isoformat(timespec="microseconds"))
        )
        return TransactionRecord(
            id=cursor.lastrowid,
            transaction_type=transaction_type,
            from_account=from_account,
            to_account=to_account,
            amount=amount,
            description=description,
            from_name=from_name,
            to_name=to_name,
            created_at=now,
        )

    def for_account(self, account_number: str, limit: Optional[int] = None) -> List[TransactionRecord]:
        """
        Most recent records where the account is source or destination

        Args:
            account_number: Public account number
            limit: Maximum number of records, clamped to ``1..max_limit``

        Returns:
            Records ordered newest first
        """
        if limit is None:
            limit = self.max_limit
        limit = max(1, min(limit, self.max_limit))

        rows = self.storage.fetch_all(
            """
            SELECT * FROM transactions
            WHERE from_account = ? OR to_account = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (account_number, account_number, limit)
        )
        return [TransactionRecord.from_row(row) for row in rows]

    def count_for_account(self, account_number: str) -> int:
        row = self.storage.fetch_one(
            """
            SELECT COUNT(*) AS count FROM transactions
            WHERE from_account = ? OR to_account = ?
            """,
            (account_number, account_number)
        )
        return row['count']
