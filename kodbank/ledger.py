"""
Ledger Operations Engine

Executes deposits, withdrawals and transfers. Each operation walks the states

    REQUESTED -> VALIDATED -> APPLIED -> LOGGED -> ACKNOWLEDGED

or ends in REJECTED when validation fails. Balance changes and the log append
of one operation share a single storage transaction, so a failure at any point
after validation rolls everything back. Operations on the same account are
serialized through per-account locks.
"""

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from .accounts import Account, AccountStore
from .currency import CURRENCY_SYMBOL, Money, parse_amount
from .errors import (
    BankingError, InsufficientFunds, RecipientNotFound,
    SelfTransferNotAllowed, ValidationError
)
from .locks import AccountLocks
from .logging_config import get_logger, log_action
from .storage import SQLiteStorage
from .transactions import (
    EXTERNAL_DEPOSIT, EXTERNAL_WITHDRAWAL, TransactionHistory,
    TransactionRecord, TransactionType
)


class OperationState(Enum):
    """Lifecycle of a single ledger operation"""
    REQUESTED = "requested"
    VALIDATED = "validated"
    APPLIED = "applied"
    LOGGED = "logged"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"        # Failed validation, nothing was written
    ROLLED_BACK = "rolled_back"  # Failed after validation, transaction undone


@dataclass
class LedgerOperation:
    name: str
    account_id: int
    state: OperationState = OperationState.REQUESTED
    operation_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class LedgerResult:
    """Outcome of an acknowledged operation"""
    operation: LedgerOperation
    new_balance: Money
    record: TransactionRecord
    message: str
    recipient: Optional[Account] = None

    @property
    def state(self) -> OperationState:
        return self.operation.state


class LedgerEngine:
    """
    Money movement between customer accounts and the outside world
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        accounts: AccountStore,
        history: TransactionHistory,
        locks: AccountLocks,
        currency_symbol: str = CURRENCY_SYMBOL
    ):
        self.storage = storage
        self.accounts = accounts
        self.history_log = history
        self.locks = locks
        self.currency_symbol = currency_symbol
        self.logger = get_logger("kodbank.ledger")

    def _advance(self, operation: LedgerOperation, state: OperationState) -> None:
        self.logger.debug(
            f"{operation.name} {operation.operation_id} account={operation.account_id}: "
            f"{operation.state.value} -> {state.value}"
        )
        operation.state = state

    @contextmanager
    def _tracked(self, operation: LedgerOperation) -> Iterator[LedgerOperation]:
        try:
            yield operation
        except BankingError as e:
            if operation.state == OperationState.REQUESTED:
                self._advance(operation, OperationState.REJECTED)
                log_action(
                    self.logger, "warning", f"{operation.name} rejected: {e.message}",
                    user_id=str(operation.account_id),
                    action=f"{operation.name}_rejected",
                    operation_id=operation.operation_id,
                    extra={"reason": e.kind}
                )
            else:
                self._advance(operation, OperationState.ROLLED_BACK)
                log_action(
                    self.logger, "error", f"{operation.name} rolled back: {e.message}",
                    user_id=str(operation.account_id),
                    action=f"{operation.name}_rolled_back",
                    operation_id=operation.operation_id,
                    extra={"reason": e.kind}
                )
            raise
        except Exception:
            self._advance(operation, OperationState.ROLLED_BACK)
            self.logger.exception(f"{operation.name} {operation.operation_id} rolled back")
            raise

    def deposit(self, account_id: int, amount) -> LedgerResult:
        """
        Credit cash to an account

        Raises:
            InvalidAmount: If the amount is not a positive 2-place number
            AccountNotFound: If the account does not exist
        """
        operation = LedgerOperation("deposit", account_id)
        with self._tracked(operation):
            money = parse_amount(amount)

            with self.locks.hold(account_id), self.storage.atomic():
                account = self.accounts.get(account_id)
                self._advance(operation, OperationState.VALIDATED)

                new_balance = self.accounts.adjust_balance(account_id, money)
                self._advance(operation, OperationState.APPLIED)

                record = self.history_log.append(
                    TransactionType.DEPOSIT,
                    from_account=EXTERNAL_DEPOSIT,
                    to_account=account.account_number,
                    amount=money,
                    description="Cash deposit to account",
                    from_name=account.name,
                    to_name=account.name
                )
                self._advance(operation, OperationState.LOGGED)

            self._advance(operation, OperationState.ACKNOWLEDGED)

        log_action(
            self.logger, "info", "Deposit completed",
            user_id=str(account_id), action="deposit",
            operation_id=operation.operation_id,
            resource=f"account:{account.account_number}",
            extra={"amount": money.format_plain(), "transaction_id": record.id}
        )
        return LedgerResult(
            operation=operation,
            new_balance=new_balance,
            record=record,
            message=f"{money.to_string(self.currency_symbol)} deposited successfully"
        )

    def withdraw(self, account_id: int, amount) -> LedgerResult:
        """
        Pay cash out of an account

        Raises:
            InvalidAmount: If the amount is not a positive 2-place number
            InsufficientFunds: If the amount exceeds the current balance
            AccountNotFound: If the account does not exist
        """
        operation = LedgerOperation("withdraw", account_id)
        with self._tracked(operation):
            money = parse_amount(amount)

            with self.locks.hold(account_id), self.storage.atomic():
                account = self.accounts.get(account_id)
                if money > account.balance:
                    raise InsufficientFunds()
                self._advance(operation, OperationState.VALIDATED)

                new_balance = self.accounts.adjust_balance(account_id, -money)
                self._advance(operation, OperationState.APPLIED)

                record = self.history_log.append(
                    TransactionType.WITHDRAW,
                    from_account=account.account_number,
                    to_account=EXTERNAL_WITHDRAWAL,
                    amount=money,
                    description="Cash withdrawal from account",
                    from_name=account.name,
                    to_name=account.name
                )
                self._advance(operation, OperationState.LOGGED)

            self._advance(operation, OperationState.ACKNOWLEDGED)

        log_action(
            self.logger, "info", "Withdrawal completed",
            user_id=str(account_id), action="withdraw",
            operation_id=operation.operation_id,
            resource=f"account:{account.account_number}",
            extra={"amount": money.format_plain(), "transaction_id": record.id}
        )
        return LedgerResult(
            operation=operation,
            new_balance=new_balance,
            record=record,
            message=f"{money.to_string(self.currency_symbol)} withdrawn successfully"
        )

    def transfer(
        self,
        from_account_id: int,
        amount,
        to_account: Optional[str] = None,
        to_email: Optional[str] = None
    ) -> LedgerResult:
        """
        Move money between two customer accounts as one atomic unit

        The recipient is looked up by account number when given, otherwise by
        email. Debit, credit and the log entry commit together or not at all.

        Raises:
            InvalidAmount: If the amount is not a positive 2-place number
            ValidationError: If no recipient selector was given
            RecipientNotFound: If the selector matches no account
            SelfTransferNotAllowed: If the recipient is the sender
            InsufficientFunds: If the amount exceeds the sender's balance
        """
        operation = LedgerOperation("transfer", from_account_id)
        with self._tracked(operation):
            money = parse_amount(amount)
            recipient = self._resolve_recipient(to_account, to_email)
            if recipient.id == from_account_id:
                raise SelfTransferNotAllowed()

            with self.locks.hold(from_account_id, recipient.id), self.storage.atomic():
                sender = self.accounts.get(from_account_id)
                if money > sender.balance:
                    raise InsufficientFunds()
                self._advance(operation, OperationState.VALIDATED)

                new_balance = self.accounts.adjust_balance(sender.id, -money)
                self.accounts.adjust_balance(recipient.id, money)
                self._advance(operation, OperationState.APPLIED)

                record = self.history_log.append(
                    TransactionType.TRANSFER,
                    from_account=sender.account_number,
                    to_account=recipient.account_number,
                    amount=money,
                    description=f"Transfer from {sender.name} to {recipient.name}",
                    from_name=sender.name,
                    to_name=recipient.name
                )
                self._advance(operation, OperationState.LOGGED)

            self._advance(operation, OperationState.ACKNOWLEDGED)

        log_action(
            self.logger, "info", "Transfer completed",
            user_id=str(from_account_id), action="transfer",
            operation_id=operation.operation_id,
            resource=f"account:{sender.account_number}",
            extra={
                "amount": money.format_plain(),
                "to_account": recipient.account_number,
                "transaction_id": record.id
            }
        )
        return LedgerResult(
            operation=operation,
            new_balance=new_balance,
            record=record,
            message=f"{money.to_string(self.currency_symbol)} sent to {recipient.name} successfully",
            recipient=recipient
        )

    def _resolve_recipient(self, to_account: Optional[str], to_email: Optional[str]) -> Account:
        to_account = (to_account or "").strip()
        to_email = (to_email or "").strip()
        if not to_account and not to_email:
            raise ValidationError("Provide recipient account number or email")

        if to_account:
            recipient = self.accounts.find_by_account_number(to_account)
        else:
            recipient = self.accounts.find_by_email(to_email)

        if recipient is None:
            raise RecipientNotFound()
        return recipient

    def history(self, account_id: int, limit: Optional[int] = None) -> List[TransactionRecord]:
        """Up to ``limit`` (default 50) most recent records for the account, newest first"""
        account = self.accounts.get(account_id)
        return self.history_log.for_account(account.account_number, limit)
