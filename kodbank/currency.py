"""
Money Module

Fixed-point monetary values for the single account currency (Indian Rupee).
NEVER uses float for monetary values: balances are persisted as integer
minor units (paise) and handled in Python as 2-place Decimals.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from typing import Union

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

CURRENCY_CODE = "INR"
CURRENCY_SYMBOL = "₹"
PRECISION = 2
MINOR_UNITS = 10 ** PRECISION
QUANTUM = Decimal(1).scaleb(-PRECISION)  # Decimal('0.01')

# Largest single amount; keeps minor units well inside SQLite's 64-bit INTEGER
MAX_AMOUNT = Decimal('1000000000000')

# Largest balance an account may hold; 10**17 paise stays below 2**63
MAX_BALANCE = Decimal('1000000000000000')


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation rounded to currency precision.
    All monetary values MUST use this class.
    """
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        rounded = self.amount.quantize(QUANTUM, rounding=ROUND_HALF_UP)
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0'))

    @classmethod
    def from_minor_units(cls, minor: int) -> 'Money':
        """Build from an integer number of paise"""
        return cls(Decimal(int(minor)).scaleb(-PRECISION))

    def to_minor_units(self) -> int:
        """Exact integer number of paise"""
        return int(self.amount.scaleb(PRECISION))

    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.amount + other.amount)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.amount - other.amount)

    def __neg__(self) -> 'Money':
        return Money(-self.amount)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        return self.amount < Decimal('0')

    def format_plain(self) -> str:
        """Decimal string without grouping, e.g. ``1234.50``"""
        return f"{self.amount:.{PRECISION}f}"

    def to_string(self, symbol: str = CURRENCY_SYMBOL) -> str:
        """Format for display, e.g. ``₹1,234.50``"""
        return f"{symbol}{self.amount:,.{PRECISION}f}"

    def __str__(self) -> str:
        return self.format_plain()


def parse_amount(value: Union[Decimal, int, float, str, None]) -> Money:
    """
    Parse a client-supplied amount into a positive Money value.

    Floats are converted through their shortest ``repr`` so ``0.1`` becomes
    ``Decimal('0.1')`` rather than its binary expansion.

    Raises:
        InvalidAmount: If the value is missing, non-numeric, not finite,
            not positive, or has more than two decimal places
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount()

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmount("Amount must be a number")
    else:
        raise InvalidAmount("Amount must be a number")

    if not amount.is_finite():
        raise InvalidAmount("Amount must be a number")
    if amount <= 0:
        raise InvalidAmount()
    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"Amount cannot exceed {MAX_AMOUNT:,}")
    if amount != amount.quantize(QUANTUM, rounding=ROUND_HALF_UP):
        raise InvalidAmount(f"Amount cannot have more than {PRECISION} decimal places")

    return Money(amount)
