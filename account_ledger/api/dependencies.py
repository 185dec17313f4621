"""
Service container and FastAPI dependencies
"""

import threading
from typing import Optional

from ..config import LedgerConfig, get_config
from ..storage import LedgerStore, create_store
from ..transactions import TransactionCore
from ..persons import PersonRegistry


class LedgerSystem:
    """Ledger service with all components wired to one store"""
    
    def __init__(self, store: LedgerStore):
        self.store = store
        self.transaction_core = TransactionCore(store)
        self.person_registry = PersonRegistry(store)
    
    @classmethod
    def from_config(cls, config: Optional[LedgerConfig] = None) -> 'LedgerSystem':
        config = config or get_config()
        return cls(create_store(config.database_url))
    
    def close(self) -> None:
        self.store.close()


_system: Optional[LedgerSystem] = None
_system_lock = threading.Lock()


def get_ledger_system() -> LedgerSystem:
    """Dependency returning the process-wide ledger system, built on first use"""
    global _system
    with _system_lock:
        if _system is None:
            _system = LedgerSystem.from_config()
        return _system


def set_ledger_system(system: Optional[LedgerSystem]) -> None:
    """Replace the process-wide ledger system (None resets it)"""
    global _system
    with _system_lock:
        _system = system
