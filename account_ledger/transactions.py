"""
Transaction Processing Module

Orchestrates account creation, deposits, withdrawals, blocking, balance
inquiries and the transaction log against the ledger store. Each mutating
operation runs inside a per-account store scope so the guard check, the
limit check, the transaction append and the balance update apply together
or not at all.

Business rejections (missing account, blocked account, exceeded limit) are
returned as OperationResult values, never raised.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, List, Optional
from enum import Enum

from .models import Transaction, MAX_AMOUNT, to_amount
from .storage import LedgerStore
from .guard import AccountGuard, AccountStatus
from .limits import WithdrawalLimitEvaluator, LimitDecision
from .logging_config import get_logger, log_action


class InvalidAmountError(ValueError):
    """Amount outside the range an operation accepts"""
    pass


class Rejection(Enum):
    """Business rejections with their stable reason and HTTP status"""
    PERSON_NOT_FOUND = ("The person id doesn't exists", 404)
    ACCOUNT_NOT_FOUND = ("The account doesn't exists", 404)
    ACCOUNT_BLOCKED = ("Cannot perform operations on this account", 400)
    LIMIT_EXCEEDED = ("Exceeds daily withdrawal!", 400)

    def __init__(self, reason: str, status_code: int):
        self.reason = reason
        self.status_code = status_code


@dataclass(frozen=True)
class OperationResult:
    """Either a value or a rejection"""
    value: Any = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def success(cls, value: Any) -> 'OperationResult':
        return cls(value=value)

    @classmethod
    def rejected(cls, rejection: Rejection) -> 'OperationResult':
        return cls(rejection=rejection)


_STATUS_REJECTIONS = {
    AccountStatus.NOT_FOUND: Rejection.ACCOUNT_NOT_FOUND,
    AccountStatus.BLOCKED: Rejection.ACCOUNT_BLOCKED,
}


class TransactionCore:
    """
    Runs ledger operations as single units of work against the store
    """

    def __init__(
        self,
        store: LedgerStore,
        guard: Optional[AccountGuard] = None,
        limit_evaluator: Optional[WithdrawalLimitEvaluator] = None
    ):
        self.store = store
        self.guard = guard or AccountGuard(store)
        self.limit_evaluator = limit_evaluator or WithdrawalLimitEvaluator(store)
        self.logger = get_logger("account_ledger.transactions")

    def create_account(self, person_id: int, daily_withdrawal_limit: Decimal,
                       account_type: int) -> OperationResult:
        """
        Open an active, zero-balance account for an existing person

        Returns:
            OperationResult with the new account id, or PERSON_NOT_FOUND
        """
        daily_withdrawal_limit = self._normalize(daily_withdrawal_limit)
        if daily_withdrawal_limit < 0:
            raise InvalidAmountError("Daily withdrawal limit must not be negative")

        if not self.store.person_exists(person_id):
            return self._reject(Rejection.PERSON_NOT_FOUND, "create_account", f"person:{person_id}")

        account = self.store.insert_account(person_id, daily_withdrawal_limit, account_type)

        log_action(
            self.logger, "info", "Account created",
            action="create_account", resource=f"account:{account.account_id}",
            extra={
                "person_id": person_id,
                "daily_withdrawal_limit": str(daily_withdrawal_limit),
                "account_type": account_type
            }
        )
        return OperationResult.success(account.account_id)

    def deposit(self, account_id: int, value: Decimal) -> OperationResult:
        """
        Credit an active account

        Returns:
            OperationResult with the new balance, or ACCOUNT_NOT_FOUND / ACCOUNT_BLOCKED
        """
        value = self._require_positive(value)

        with self.store.account_scope(account_id):
            status = self.guard.check_active(account_id)
            if status != AccountStatus.ACTIVE:
                return self._reject(_STATUS_REJECTIONS[status], "deposit", f"account:{account_id}")

            self.store.insert_transaction(account_id, value)
            new_balance = self.store.increment_balance(account_id, value)

        log_action(
            self.logger, "info", "Deposit posted",
            action="deposit", resource=f"account:{account_id}",
            extra={"value": str(value), "balance": str(new_balance)}
        )
        return OperationResult.success(new_balance)

    def withdraw(self, account_id: int, value: Decimal) -> OperationResult:
        """
        Debit an active account within its daily withdrawal limit.
        The balance may go negative; only the daily limit is enforced.

        Returns:
            OperationResult with the new balance, or ACCOUNT_NOT_FOUND /
            ACCOUNT_BLOCKED / LIMIT_EXCEEDED
        """
        value = self._require_positive(value)

        with self.store.account_scope(account_id):
            status = self.guard.check_active(account_id)
            if status != AccountStatus.ACTIVE:
                return self._reject(_STATUS_REJECTIONS[status], "withdraw", f"account:{account_id}")

            decision = self.limit_evaluator.evaluate(account_id, value, self.store.current_date())
            if decision == LimitDecision.DENIED:
                return self._reject(
                    Rejection.LIMIT_EXCEEDED, "withdraw", f"account:{account_id}",
                    extra={"value": str(value)}
                )

            self.store.insert_transaction(account_id, -value)
            new_balance = self.store.increment_balance(account_id, -value)

        log_action(
            self.logger, "info", "Withdrawal posted",
            action="withdraw", resource=f"account:{account_id}",
            extra={"value": str(value), "balance": str(new_balance)}
        )
        return OperationResult.success(new_balance)

    def block(self, account_id: int) -> OperationResult:
        """
        Block an account. Blocking an already blocked account succeeds.

        Returns:
            OperationResult with True, or ACCOUNT_NOT_FOUND
        """
        with self.store.account_scope(account_id):
            affected = self.store.set_active_flag(account_id, False)
            if affected == 0:
                return self._reject(Rejection.ACCOUNT_NOT_FOUND, "block", f"account:{account_id}")

        log_action(
            self.logger, "info", "Account blocked",
            action="block", resource=f"account:{account_id}"
        )
        return OperationResult.success(True)

    def balance_inquiry(self, account_id: int) -> OperationResult:
        """Current balance; readable on blocked accounts too"""
        account = self.store.get_account(account_id)
        if account is None:
            return self._reject(Rejection.ACCOUNT_NOT_FOUND, "balance_inquiry", f"account:{account_id}")
        return OperationResult.success(account.balance)

    def transaction_log(self, account_id: int) -> List[Transaction]:
        """Transactions for the account, most recent first"""
        return self.store.list_transactions(account_id)

    def _normalize(self, value: Decimal) -> Decimal:
        try:
            amount = to_amount(value)
        except ValueError as e:
            raise InvalidAmountError(str(e)) from e
        if abs(amount) > MAX_AMOUNT:
            raise InvalidAmountError(f"Amount must not exceed {MAX_AMOUNT}")
        return amount

    def _require_positive(self, value: Decimal) -> Decimal:
        value = self._normalize(value)
        if value <= 0:
            raise InvalidAmountError("Value must be greater than zero")
        return value

    def _reject(self, rejection: Rejection, action: str, resource: str,
                extra: Optional[dict] = None) -> OperationResult:
        log_action(
            self.logger, "warning", f"{action} rejected: {rejection.reason}",
            action=action, resource=resource, extra=extra
        )
        return OperationResult.rejected(rejection)
