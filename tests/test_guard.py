"""
Tests for the account guard
"""

from decimal import Decimal
from datetime import date

from account_ledger.storage import InMemoryLedgerStore
from account_ledger.guard import AccountGuard, AccountStatus


class TestAccountGuard:
    """Test the active/blocked gate"""
    
    def setup_method(self):
        self.store = InMemoryLedgerStore()
        person = self.store.insert_person("Grace Hopper", "DOC-7", date(1985, 5, 1))
        self.account = self.store.insert_account(person.person_id, Decimal('100'), 1)
        self.guard = AccountGuard(self.store)
    
    def test_active_account(self):
        assert self.guard.check_active(self.account.account_id) == AccountStatus.ACTIVE
    
    def test_blocked_account(self):
        self.store.set_active_flag(self.account.account_id, False)
        assert self.guard.check_active(self.account.account_id) == AccountStatus.BLOCKED
    
    def test_missing_account(self):
        """A missing account is reported, not raised"""
        assert self.guard.check_active(424242) == AccountStatus.NOT_FOUND
    
    def test_check_is_read_only(self):
        self.guard.check_active(self.account.account_id)
        assert self.store.get_account(self.account.account_id) == self.account
