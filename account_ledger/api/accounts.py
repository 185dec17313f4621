"""
Account endpoints

Balances are returned as JSON numbers, transaction values in the log as
decimal strings.
"""

from fastapi import APIRouter, HTTPException, Depends

from .dependencies import LedgerSystem, get_ledger_system
from .schemas import CreateAccountRequest, AccountValueRequest, BlockAccountRequest
from ..transactions import OperationResult


router = APIRouter()

BLOCKED_MESSAGE = "The account has been blocked!"


def _unwrap(result: OperationResult):
    if not result.ok:
        raise HTTPException(status_code=result.rejection.status_code, detail=result.rejection.reason)
    return result.value


@router.post("")
def create_account(
    request: CreateAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create an account and return its id"""
    return _unwrap(system.transaction_core.create_account(
        person_id=request.person_id,
        daily_withdrawal_limit=request.daily_withdrawal_limit,
        account_type=request.account_type
    ))


@router.put("/deposit")
def deposit(
    request: AccountValueRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Deposit into an account and return the new balance"""
    return _unwrap(system.transaction_core.deposit(request.account_id, request.value))


@router.put("/withdrawal")
def withdraw(
    request: AccountValueRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Withdraw within the daily limit and return the new balance"""
    return _unwrap(system.transaction_core.withdraw(request.account_id, request.value))


@router.get("/balance_inquiry/{account_id}")
def balance_inquiry(
    account_id: int,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get the current balance"""
    return _unwrap(system.transaction_core.balance_inquiry(account_id))


@router.put("/block")
def block_account(
    request: BlockAccountRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Block an account; deposits and withdrawals are refused afterwards"""
    _unwrap(system.transaction_core.block(request.account_id))
    return BLOCKED_MESSAGE


@router.get("/log/{account_id}")
def transaction_log(
    account_id: int,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get the account's transactions, most recent first"""
    return [txn.to_dict() for txn in system.transaction_core.transaction_log(account_id)]
