"""
Test suite for the credential store

Covers registration, duplicate detection, account number allocation,
password verification and guarded balance adjustment.
"""

import pytest
from decimal import Decimal

from kodbank.accounts import (
    AccountStore, generate_account_number, is_valid_account_number
)
from kodbank.currency import MAX_BALANCE, Money
from kodbank.errors import (
    AccountNotFound, BalanceLimitExceeded, DuplicateEmail, InvalidCredentials, StorageError,
    ValidationError, WouldGoNegative
)
from kodbank.storage import SQLiteStorage


class TestAccountNumbers:

    def test_generated_numbers_have_prefix_and_eight_digits(self):
        for _ in range(100):
            number = generate_account_number()
            assert number.startswith("KODA")
            assert len(number) == 12
            assert is_valid_account_number(number)

    def test_custom_prefix(self):
        number = generate_account_number("TEST")
        assert is_valid_account_number(number, "TEST")
        assert not is_valid_account_number(number, "KODA")

    @pytest.mark.parametrize("value", [
        "KODA1234567", "KODA123456789", "koda12345678", "KODAabcdefgh", "", None,
    ])
    def test_invalid_formats(self, value):
        assert not is_valid_account_number(value)


class TestAccountStore:
    """Test account lifecycle"""

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.store = AccountStore(self.storage)

    def teardown_method(self):
        self.storage.close()

    def test_create_account(self):
        account = self.store.create_account(
            name="Asha Rao", email="Asha@Example.com ", password="secret", phone="9999999999"
        )
        assert account.id > 0
        assert account.name == "Asha Rao"
        assert account.email == "asha@example.com"
        assert account.phone == "9999999999"
        assert account.balance == Money.zero()
        assert is_valid_account_number(account.account_number)

    def test_password_is_never_stored_in_plaintext(self):
        account = self.store.create_account("Asha", "asha@example.com", "secret")
        row = self.storage.fetch_one("SELECT * FROM accounts WHERE id = ?", (account.id,))
        assert "secret" not in row.values()
        assert row['password_hash'] != "secret"
        assert "secret" not in repr(account)
        assert "password_hash" not in account.to_public_dict()

    def test_lookup_by_email_number_and_id(self):
        account = self.store.create_account("Asha", "asha@example.com", "secret")
        assert self.store.find_by_email("ASHA@example.com").id == account.id
        assert self.store.find_by_account_number(account.account_number).id == account.id
        assert self.store.find_by_id(account.id).email == "asha@example.com"
        assert self.store.find_by_email("nobody@example.com") is None
        with pytest.raises(AccountNotFound):
            self.store.get(12345)

    def test_duplicate_email_rejected(self):
        first = self.store.create_account("Asha", "asha@example.com", "secret")
        with pytest.raises(DuplicateEmail):
            self.store.create_account("Other", "ASHA@example.com", "different")

        # First account is unaffected
        reloaded = self.store.get(first.id)
        assert reloaded.name == "Asha"
        assert self.store.verify_password(reloaded, "secret")
        assert self.storage.fetch_one("SELECT COUNT(*) AS n FROM accounts")['n'] == 1

    @pytest.mark.parametrize("name,email,password", [
        ("", "a@example.com", "pw"),
        ("A", "", "pw"),
        ("A", "a@example.com", ""),
        ("A", "not-an-email", "pw"),
    ])
    def test_missing_fields_rejected(self, name, email, password):
        with pytest.raises(ValidationError):
            self.store.create_account(name, email, password)

    def test_account_number_collision_is_retried(self):
        numbers = iter(["KODA11111111", "KODA11111111", "KODA22222222"])
        store = AccountStore(self.storage, number_generator=lambda prefix: next(numbers))

        first = store.create_account("A", "a@example.com", "pw")
        second = store.create_account("B", "b@example.com", "pw")

        assert first.account_number == "KODA11111111"
        assert second.account_number == "KODA22222222"

    def test_account_number_exhaustion_is_storage_error(self):
        store = AccountStore(
            self.storage, account_number_attempts=3,
            number_generator=lambda prefix: "KODA11111111"
        )
        store.create_account("A", "a@example.com", "pw")
        with pytest.raises(StorageError):
            store.create_account("B", "b@example.com", "pw")
        assert store.find_by_email("b@example.com") is None

    def test_authenticate(self):
        account = self.store.create_account("Asha", "asha@example.com", "secret")
        assert self.store.authenticate("asha@example.com", "secret").id == account.id

        with pytest.raises(InvalidCredentials):
            self.store.authenticate("asha@example.com", "wrong")
        with pytest.raises(InvalidCredentials):
            self.store.authenticate("nobody@example.com", "secret")


class TestAdjustBalance:
    """Test guarded balance changes"""

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.store = AccountStore(self.storage)
        self.account = self.store.create_account("Asha", "asha@example.com", "secret")

    def teardown_method(self):
        self.storage.close()

    def test_credit_and_debit(self):
        assert self.store.adjust_balance(self.account.id, Money(Decimal('100.00'))).amount == Decimal('100.00')
        assert self.store.adjust_balance(self.account.id, Money(Decimal('-40.25'))).amount == Decimal('59.75')
        assert self.store.get(self.account.id).balance.amount == Decimal('59.75')

    def test_would_go_negative(self):
        self.store.adjust_balance(self.account.id, Money(Decimal('10.00')))
        with pytest.raises(WouldGoNegative):
            self.store.adjust_balance(self.account.id, Money(Decimal('-10.01')))
        assert self.store.get(self.account.id).balance.amount == Decimal('10.00')

    def test_unknown_account(self):
        with pytest.raises(AccountNotFound):
            self.store.adjust_balance(999, Money(Decimal('1.00')))

    def test_balance_ceiling(self):
        self.store.adjust_balance(self.account.id, Money(MAX_BALANCE - 1))
        with pytest.raises(BalanceLimitExceeded):
            self.store.adjust_balance(self.account.id, Money(Decimal('1.01')))
        assert self.store.get(self.account.id).balance.amount == MAX_BALANCE - 1

        assert self.store.adjust_balance(self.account.id, Money(Decimal('1.00'))).amount == MAX_BALANCE
