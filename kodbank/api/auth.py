"""
Registration, login and logout endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import (
    BankingSystem, get_banking_system, get_bearer_token, get_current_claims
)
from .schemas import (
    LoginRequest, LoginResponse, MessageResponse, RegisterRequest,
    RegisterResponse, UserModel
)
from ..sessions import AccountClaims


router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a new account with a zero balance"""
    account = system.accounts.create_account(
        name=request.name,
        email=request.email,
        password=request.password,
        phone=request.phone
    )
    return RegisterResponse(
        id=account.id,
        account_number=account.account_number,
        message=f"Account created successfully! Your account number is: {account.account_number}"
    )


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Exchange email and password for a bearer token"""
    account = system.accounts.authenticate(request.email, request.password)
    issued = system.sessions.issue(account)
    return LoginResponse(token=issued.token, user=UserModel.from_account(account))


@router.post("/logout", response_model=MessageResponse)
def logout(
    claims: AccountClaims = Depends(get_current_claims),
    token: str = Depends(get_bearer_token),
    system: BankingSystem = Depends(get_banking_system)
):
    """Revoke the presented token"""
    system.sessions.revoke(token)
    return MessageResponse(message="Logged out successfully")
