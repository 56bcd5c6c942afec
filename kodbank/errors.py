"""
Banking Error Taxonomy

Domain-specific exceptions raised by the services and translated into HTTP
responses by the API layer. Every error carries a stable ``kind`` string that
is returned to clients alongside the human-readable message.
"""


class BankingError(Exception):
    """Base class for all errors surfaced to API clients"""

    kind = "BankingError"
    status_code = 400
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return cls.kind

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(BankingError):
    """Bad, missing or malformed input"""
    kind = "ValidationError"


class InvalidAmount(ValidationError):
    """Amount is non-numeric, non-positive or finer than the currency allows"""
    kind = "InvalidAmount"

    @classmethod
    def default_message(cls) -> str:
        return "Amount must be greater than 0"


class Unauthenticated(BankingError):
    """No credentials were presented"""
    kind = "Unauthenticated"
    status_code = 401

    @classmethod
    def default_message(cls) -> str:
        return "Not authenticated"


class Forbidden(BankingError):
    """Credentials were presented but are invalid, expired or revoked"""
    kind = "Forbidden"
    status_code = 403

    @classmethod
    def default_message(cls) -> str:
        return "Invalid or expired session"


class InvalidCredentials(BankingError):
    kind = "InvalidCredentials"

    @classmethod
    def default_message(cls) -> str:
        return "Invalid email or password"


class DuplicateEmail(BankingError):
    kind = "DuplicateEmail"

    @classmethod
    def default_message(cls) -> str:
        return "Email already registered"


class AccountNotFound(BankingError):
    kind = "AccountNotFound"
    status_code = 404

    @classmethod
    def default_message(cls) -> str:
        return "Account not found"


class InsufficientFunds(BankingError):
    kind = "InsufficientFunds"

    @classmethod
    def default_message(cls) -> str:
        return "Insufficient funds"


class WouldGoNegative(InsufficientFunds):
    """Raised by the credential store when a balance adjustment would underflow"""
    kind = "WouldGoNegative"


class BalanceLimitExceeded(BankingError):
    """Raised by the credential store when a credit would exceed the balance ceiling"""
    kind = "BalanceLimitExceeded"

    @classmethod
    def default_message(cls) -> str:
        return "Balance limit exceeded"


class RecipientNotFound(BankingError):
    kind = "RecipientNotFound"
    status_code = 404

    @classmethod
    def default_message(cls) -> str:
        return "Recipient not found"


class SelfTransferNotAllowed(BankingError):
    kind = "SelfTransferNotAllowed"

    @classmethod
    def default_message(cls) -> str:
        return "Cannot transfer to yourself"


class TransientLockTimeout(BankingError):
    """An account is busy; the caller may retry"""
    kind = "TransientLockTimeout"
    status_code = 503
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Account is busy, please retry"


class StorageError(BankingError):
    """Unexpected persistence failure. The message is never shown to clients."""
    kind = "StorageError"
    status_code = 500

    @classmethod
    def default_message(cls) -> str:
        return "Internal server error"

    def to_dict(self) -> dict:
        return {"error": "Internal server error", "kind": self.kind}
