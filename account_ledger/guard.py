"""
Account Guard

Decides whether an account may accept a mutating operation.
"""

from enum import Enum

from .storage import LedgerStore


class AccountStatus(Enum):
    """Outcome of the active-flag check"""
    ACTIVE = "active"
    BLOCKED = "blocked"
    NOT_FOUND = "not_found"


class AccountGuard:
    """Read-only active/blocked gate in front of deposits and withdrawals"""
    
    def __init__(self, store: LedgerStore):
        self.store = store
    
    def check_active(self, account_id: int) -> AccountStatus:
        account = self.store.get_account(account_id)
        if account is None:
            return AccountStatus.NOT_FOUND
        if account.is_blocked:
            return AccountStatus.BLOCKED
        return AccountStatus.ACTIVE
