"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from ..accounts import Account
from ..transactions import TransactionRecord


# Amounts arrive as JSON numbers or strings; the ledger does the business checks
AmountInput = Union[StrictStr, int, float, Decimal]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Auth schemas
class RegisterRequest(BaseModel):
    name: StrictStr = Field(..., min_length=1)
    email: StrictStr = Field(..., min_length=3)
    password: StrictStr = Field(..., min_length=1)
    phone: Optional[StrictStr] = None

    @field_validator("name", "email")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class LoginRequest(BaseModel):
    email: StrictStr = Field(..., min_length=1)
    password: StrictStr = Field(..., min_length=1)


# Ledger schemas
class AmountRequest(BaseModel):
    amount: AmountInput

    @field_validator("amount", mode="before")
    @classmethod
    def reject_booleans(cls, value):
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return value


class DepositRequest(AmountRequest):
    pass


class WithdrawRequest(AmountRequest):
    pass


class TransferRequest(AmountRequest, CamelModel):
    to_account: Optional[StrictStr] = Field(None, alias="toAccount")
    to_email: Optional[StrictStr] = Field(None, alias="toEmail")


# Response schemas
class UserModel(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    account_number: str = Field(..., alias="accountNumber")
    balance: str
    created_at: str = Field(..., alias="createdAt")

    @classmethod
    def from_account(cls, account: Account) -> 'UserModel':
        return cls(**account.to_public_dict())


class RegisterResponse(CamelModel):
    id: int
    account_number: str = Field(..., alias="accountNumber")
    message: str


class LoginResponse(BaseModel):
    token: str
    user: UserModel


class BalanceResponse(CamelModel):
    balance: str
    account_number: str = Field(..., alias="accountNumber")


class MutationResponse(CamelModel):
    message: str
    new_balance: str = Field(..., alias="newBalance")


class TransferResponse(MutationResponse):
    recipient_name: str = Field(..., alias="recipientName")
    recipient_account: str = Field(..., alias="recipientAccount")


class TransactionModel(BaseModel):
    id: int
    type: str
    from_account: str
    to_account: str
    amount: str
    description: str
    from_name: Optional[str] = None
    to_name: Optional[str] = None
    created_at: str

    @classmethod
    def from_record(cls, record: TransactionRecord) -> 'TransactionModel':
        return cls(**record.to_dict())


class TransactionsResponse(CamelModel):
    transactions: List[TransactionModel]
    user_account: str = Field(..., alias="userAccount")


class MessageResponse(BaseModel):
    message: str
