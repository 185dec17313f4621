"""
Withdrawal Limit Module

Evaluates a requested withdrawal against the account's daily withdrawal
limit. Only debits already recorded on the same calendar date count toward
the limit; same-day deposits do not add headroom.
"""

from decimal import Decimal
from datetime import date
from enum import Enum

from .models import to_amount
from .storage import LedgerStore
from .logging_config import get_logger


class LimitDecision(Enum):
    """Outcome of a daily limit evaluation"""
    PERMITTED = "permitted"
    DENIED = "denied"


class WithdrawalLimitEvaluator:
    """
    Compares abs(same-day debits) + requested value against the daily limit
    """
    
    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = get_logger("account_ledger.limits")
    
    def evaluate(self, account_id: int, requested_value: Decimal, as_of_date: date) -> LimitDecision:
        """
        Evaluate a withdrawal request
        
        Args:
            account_id: Account to withdraw from (must exist)
            requested_value: Positive amount requested now
            as_of_date: Calendar date whose debits count toward the limit
            
        Returns:
            LimitDecision.DENIED when the projected daily total exceeds the limit
            
        Raises:
            ValueError: If requested_value is negative or the account does not exist
        """
        requested_value = to_amount(requested_value)
        if requested_value < 0:
            raise ValueError("Requested withdrawal value must not be negative")
        if requested_value == 0:
            return LimitDecision.PERMITTED
        
        account = self.store.get_account(account_id)
        if account is None:
            raise ValueError(f"Account {account_id} not found")
        
        prior_debit_sum = self.store.sum_debits(account_id, as_of_date)
        projected = abs(prior_debit_sum) + requested_value
        
        if projected > account.daily_withdrawal_limit:
            self.logger.debug(
                "Withdrawal of %s denied for account %s: projected %s exceeds limit %s",
                requested_value, account_id, projected, account.daily_withdrawal_limit
            )
            return LimitDecision.DENIED
        return LimitDecision.PERMITTED
