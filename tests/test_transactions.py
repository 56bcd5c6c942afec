"""
Tests for the transaction log and history reader
"""

import pytest
from decimal import Decimal

from kodbank.currency import Money
from kodbank.errors import StorageError
from kodbank.storage import SQLiteStorage
from kodbank.transactions import (
    EXTERNAL_DEPOSIT, TransactionHistory, TransactionRecord, TransactionType
)


class TestTransactionHistory:

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.history = TransactionHistory(self.storage, max_limit=50)

    def teardown_method(self):
        self.storage.close()

    def append(self, source, destination, amount="1.00", kind=TransactionType.TRANSFER):
        return self.history.append(
            kind, from_account=source, to_account=destination,
            amount=Money(Decimal(amount)), description="test",
            from_name="From", to_name="To"
        )

    def test_append_returns_record(self):
        record = self.append(EXTERNAL_DEPOSIT, "KODA10000001", "25.50", TransactionType.DEPOSIT)

        assert isinstance(record, TransactionRecord)
        assert record.id > 0
        assert record.amount.amount == Decimal('25.50')
        assert record.transaction_type == TransactionType.DEPOSIT

        row = self.storage.fetch_one("SELECT * FROM transactions WHERE id = ?", (record.id,))
        assert row['amount'] == 2550
        assert row['type'] == "DEPOSIT"

    def test_non_positive_amount_rejected(self):
        with pytest.raises(ValueError):
            self.append("KODA10000001", "KODA10000002", "0")

    def test_records_are_immutable(self):
        self.append("KODA10000001", "KODA10000002")
        with pytest.raises(StorageError):
            self.storage.execute("UPDATE transactions SET to_account = 'KODA99999999'")

    def test_for_account_filters_and_orders(self):
        first = self.append("KODA10000001", "KODA10000002")
        self.append("KODA10000003", "KODA10000004")
        second = self.append("KODA10000005", "KODA10000001")

        records = self.history.for_account("KODA10000001")

        assert [r.id for r in records] == [second.id, first.id]
        assert self.history.for_account("KODA77777777") == []

    def test_limit_is_clamped(self):
        for _ in range(60):
            self.append("KODA10000001", "KODA10000002")

        assert len(self.history.for_account("KODA10000001")) == 50
        assert len(self.history.for_account("KODA10000001", limit=1000)) == 50
        assert len(self.history.for_account("KODA10000001", limit=0)) == 1
        assert self.history.count_for_account("KODA10000002") == 60

    def test_to_dict(self):
        record = self.append("KODA10000001", "KODA10000002", "3.10")
        data = record.to_dict()
        assert data["type"] == "TRANSFER"
        assert data["amount"] == "3.10"
        assert data["from_name"] == "From"
        assert "created_at" in data
