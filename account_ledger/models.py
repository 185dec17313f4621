"""
Ledger Domain Models

Persons, accounts and transactions as stored by the ledger. All monetary
values are Decimal with two fractional digits; floats never enter the
arithmetic.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from datetime import datetime, date
from dataclasses import dataclass
from typing import Any, Dict, Union


AMOUNT_PRECISION = Decimal('0.01')

# Largest value a NUMERIC(14, 2) column holds
MAX_AMOUNT = Decimal('999999999999.99')


def to_amount(value: Union[Decimal, int, str, float]) -> Decimal:
    """
    Normalize a monetary value to a two-place Decimal.
    
    Floats are converted through their string form so that 0.1 stays 0.10
    instead of picking up binary noise.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"Invalid monetary amount: {value!r}")
        return amount.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid monetary amount: {value!r}")


@dataclass
class Person:
    """Account owner"""
    person_id: int
    name: str
    document: str
    birth_date: date
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "personId": self.person_id,
            "name": self.name,
            "document": self.document,
            "birthDate": self.birth_date.isoformat(),
        }


@dataclass
class Account:
    """
    Bank account with a daily withdrawal ceiling and an active flag.
    A blocked account (active_flag False) stays blocked.
    """
    account_id: int
    person_id: int
    balance: Decimal
    daily_withdrawal_limit: Decimal
    account_type: int
    active_flag: bool
    created_at: datetime
    
    @property
    def is_blocked(self) -> bool:
        return not self.active_flag


@dataclass(frozen=True)
class Transaction:
    """
    Immutable ledger entry: positive value is a deposit, negative a withdrawal
    """
    transaction_id: int
    account_id: int
    value: Decimal
    transaction_date: datetime
    
    @property
    def is_debit(self) -> bool:
        return self.value < 0
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountId": self.account_id,
            "transactionDate": self.transaction_date.isoformat(),
            "value": str(self.value),
        }
