"""
Account, balance and money-movement endpoints

Handlers are plain functions so FastAPI runs them in its worker threadpool;
a client disconnect never interrupts a mutation that is already applying.
"""

from fastapi import APIRouter, Depends

from .dependencies import BankingSystem, get_banking_system, get_current_claims
from .schemas import (
    BalanceResponse, DepositRequest, MutationResponse, TransactionModel,
    TransactionsResponse, TransferRequest, TransferResponse, UserModel,
    WithdrawRequest
)
from ..sessions import AccountClaims


router = APIRouter()


@router.get("/profile", response_model=UserModel)
def get_profile(
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    account = system.accounts.get(claims.account_id)
    return UserModel.from_account(account)


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    account = system.accounts.get(claims.account_id)
    return BalanceResponse(
        balance=account.balance.format_plain(),
        account_number=account.account_number
    )


@router.post("/deposit", response_model=MutationResponse)
def deposit(
    request: DepositRequest,
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    """Deposit cash into the caller's account"""
    result = system.ledger.deposit(claims.account_id, request.amount)
    return MutationResponse(
        message=result.message,
        new_balance=result.new_balance.format_plain()
    )


@router.post("/withdraw", response_model=MutationResponse)
def withdraw(
    request: WithdrawRequest,
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    """Withdraw cash from the caller's account"""
    result = system.ledger.withdraw(claims.account_id, request.amount)
    return MutationResponse(
        message=result.message,
        new_balance=result.new_balance.format_plain()
    )


@router.post("/transfer", response_model=TransferResponse)
def transfer(
    request: TransferRequest,
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    """Send money to another account by account number or email"""
    result = system.ledger.transfer(
        claims.account_id,
        request.amount,
        to_account=request.to_account,
        to_email=request.to_email
    )
    return TransferResponse(
        message=result.message,
        new_balance=result.new_balance.format_plain(),
        recipient_name=result.recipient.name,
        recipient_account=result.recipient.account_number
    )


@router.get("/transactions", response_model=TransactionsResponse)
def get_transactions(
    claims: AccountClaims = Depends(get_current_claims),
    system: BankingSystem = Depends(get_banking_system)
):
    """Most recent transactions touching the caller's account, newest first"""
    account = system.accounts.get(claims.account_id)
    records = system.history.for_account(account.account_number)
    return TransactionsResponse(
        transactions=[TransactionModel.from_record(r) for r in records],
        user_account=account.account_number
    )
