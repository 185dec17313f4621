"""
Ledger Store Module

Provides the abstract ledger store interface and implementations for
in-memory (testing), SQLite (persistence) and PostgreSQL (production).

The store owns two relational tables, accounts and append-only transactions,
plus the person table accounts reference. It offers atomic balance
increments, debit aggregation and a per-account scope that serializes and
atomically commits everything done to one account.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Iterator
from decimal import Decimal
from datetime import datetime, date
from contextlib import contextmanager
from dataclasses import replace
import sqlite3
import threading

from .clock import SystemClock
from .models import Person, Account, Transaction, to_amount


ZERO = Decimal('0.00')


class StorageError(Exception):
    """Underlying durable store failure (connectivity, constraint violation)"""
    pass


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _person_from_row(row) -> Person:
    return Person(
        person_id=int(row['person_id']),
        name=row['name'],
        document=row['document'],
        birth_date=_as_date(row['birth_date'])
    )


def _account_from_row(row) -> Account:
    return Account(
        account_id=int(row['account_id']),
        person_id=int(row['person_id']),
        balance=to_amount(row['balance']),
        daily_withdrawal_limit=to_amount(row['daily_withdrawal_limit']),
        account_type=int(row['account_type']),
        active_flag=bool(row['active_flag']),
        created_at=_as_datetime(row['created_at'])
    )


def _transaction_from_row(row) -> Transaction:
    return Transaction(
        transaction_id=int(row['transaction_id']),
        account_id=int(row['account_id']),
        value=to_amount(row['value']),
        transaction_date=_as_datetime(row['transaction_date'])
    )


def _timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="microseconds")


class LedgerStore(ABC):
    """Abstract interface for ledger store backends"""

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()

    def current_date(self) -> date:
        """Calendar date of the store's clock"""
        return self.clock.today()

    @abstractmethod
    def insert_person(self, name: str, document: str, birth_date: date) -> Person:
        """Insert a person and return it with its assigned id"""
        pass

    @abstractmethod
    def get_person(self, person_id: int) -> Optional[Person]:
        """Load a person by id"""
        pass

    @abstractmethod
    def find_person_by_document(self, document: str) -> Optional[Person]:
        """Load a person by identity document"""
        pass

    def person_exists(self, person_id: int) -> bool:
        """Check if a person exists"""
        return self.get_person(person_id) is not None

    @abstractmethod
    def insert_account(self, person_id: int, daily_withdrawal_limit: Decimal,
                       account_type: int) -> Account:
        """Insert an active, zero-balance account owned by person_id"""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Load an account by id"""
        pass

    @abstractmethod
    def set_active_flag(self, account_id: int, active: bool) -> int:
        """Update the active flag, returning the number of rows affected"""
        pass

    @abstractmethod
    def increment_balance(self, account_id: int, delta: Decimal) -> Decimal:
        """Atomically add delta (may be negative) to the balance and return the new balance"""
        pass

    @abstractmethod
    def insert_transaction(self, account_id: int, value: Decimal) -> Transaction:
        """Append a transaction stamped with the store's clock"""
        pass

    @abstractmethod
    def sum_debits(self, account_id: int, on_date: date) -> Decimal:
        """Sum of negative transaction values recorded for the account on a calendar date"""
        pass

    @abstractmethod
    def list_transactions(self, account_id: int) -> List[Transaction]:
        """Transactions for the account, most recent first"""
        pass

    @abstractmethod
    def account_scope(self, account_id: int):
        """
        Context manager serializing all work on one account.
        Writes inside the scope commit together on exit or are all discarded
        when the block raises.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close store connection"""
        pass


class InMemoryLedgerStore(LedgerStore):
    """In-memory ledger store for testing"""

    def __init__(self, clock=None):
        super().__init__(clock)
        self._persons: Dict[int, Person] = {}
        self._accounts: Dict[int, Account] = {}
        self._transactions: List[Transaction] = []
        self._next_ids = {"person": 1, "account": 1, "transaction": 1}
        self._lock = threading.RLock()
        self._account_locks: Dict[int, threading.RLock] = {}

    def _next_id(self, table: str) -> int:
        next_id = self._next_ids[table]
        self._next_ids[table] = next_id + 1
        return next_id

    def insert_person(self, name: str, document: str, birth_date: date) -> Person:
        with self._lock:
            if self._find_document(document):
                raise StorageError(f"Duplicate person document {document}")
            person = Person(
                person_id=self._next_id("person"),
                name=name,
                document=document,
                birth_date=birth_date
            )
            self._persons[person.person_id] = person
            return replace(person)

    def _find_document(self, document: str) -> Optional[Person]:
        for person in self._persons.values():
            if person.document == document:
                return person
        return None

    def get_person(self, person_id: int) -> Optional[Person]:
        with self._lock:
            person = self._persons.get(person_id)
            return replace(person) if person else None

    def find_person_by_document(self, document: str) -> Optional[Person]:
        with self._lock:
            person = self._find_document(document)
            return replace(person) if person else None

    def insert_account(self, person_id: int, daily_withdrawal_limit: Decimal,
                       account_type: int) -> Account:
        with self._lock:
            if person_id not in self._persons:
                raise StorageError(f"Foreign key violation: person {person_id} does not exist")
            account = Account(
                account_id=self._next_id("account"),
                person_id=person_id,
                balance=ZERO,
                daily_withdrawal_limit=to_amount(daily_withdrawal_limit),
                account_type=account_type,
                active_flag=True,
                created_at=self.clock.now()
            )
            self._accounts[account.account_id] = account
            return replace(account)

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def set_active_flag(self, account_id: int, active: bool) -> int:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return 0
            self._accounts[account_id] = replace(account, active_flag=active)
            return 1

    def increment_balance(self, account_id: int, delta: Decimal) -> Decimal:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise StorageError(f"Account {account_id} does not exist")
            new_balance = to_amount(account.balance + delta)
            self._accounts[account_id] = replace(account, balance=new_balance)
            return new_balance

    def insert_transaction(self, account_id: int, value: Decimal) -> Transaction:
        with self._lock:
            if account_id not in self._accounts:
                raise StorageError(f"Foreign key violation: account {account_id} does not exist")
            transaction = Transaction(
                transaction_id=self._next_id("transaction"),
                account_id=account_id,
                value=to_amount(value),
                transaction_date=self.clock.now()
            )
            self._transactions.append(transaction)
            return transaction

    def sum_debits(self, account_id: int, on_date: date) -> Decimal:
        with self._lock:
            total = ZERO
            for transaction in self._transactions:
                if (transaction.account_id == account_id and transaction.is_debit
                        and transaction.transaction_date.date() == on_date):
                    total += transaction.value
            return total

    def list_transactions(self, account_id: int) -> List[Transaction]:
        with self._lock:
            found = [t for t in self._transactions if t.account_id == account_id]
        return sorted(
            found,
            key=lambda t: (t.transaction_date, t.transaction_id),
            reverse=True
        )

    @contextmanager
    def account_scope(self, account_id: int) -> Iterator[None]:
        with self._lock:
            account_lock = self._account_locks.setdefault(account_id, threading.RLock())

        with account_lock:
            with self._lock:
                snapshot = self._accounts.get(account_id)
                high_water = self._next_ids["transaction"]
            try:
                yield
            except Exception:
                with self._lock:
                    if snapshot is not None:
                        self._accounts[account_id] = snapshot
                    self._transactions = [
                        t for t in self._transactions
                        if not (t.account_id == account_id and t.transaction_id >= high_water)
                    ]
                raise

    def close(self) -> None:
        """Close store (no-op for in-memory)"""
        pass


SQLITE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS person (
        person_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        document TEXT NOT NULL UNIQUE,
        birth_date TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account (
        account_id INTEGER PRIMARY KEY AUTOINCREMENT,
        person_id INTEGER NOT NULL REFERENCES person(person_id),
        balance TEXT NOT NULL DEFAULT '0.00',
        daily_withdrawal_limit TEXT NOT NULL,
        account_type INTEGER NOT NULL,
        active_flag INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        transaction_id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id INTEGER NOT NULL REFERENCES account(account_id),
        value TEXT NOT NULL,
        transaction_date TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_account_date
    ON transactions(account_id, transaction_date)
    """,
)


class SQLiteLedgerStore(LedgerStore):
    """SQLite ledger store. Amounts are stored as Decimal strings."""

    def __init__(self, db_path: str = ":memory:", clock=None):
        super().__init__(clock)
        self.db_path = str(db_path)
        # Autocommit mode; account scopes issue BEGIN IMMEDIATE themselves
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False

        with self._lock:
            self._execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                # Enable WAL mode for better concurrent access
                self._execute("PRAGMA journal_mode = WAL")
                self._execute("PRAGMA synchronous = NORMAL")
            for statement in SQLITE_SCHEMA:
                self._execute(statement)

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}") from e

    def begin_transaction(self) -> None:
        """Start a write transaction, taking the database reserved lock"""
        with self._lock:
            if not self._in_transaction:
                self._execute("BEGIN IMMEDIATE")
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                # Flag stays set if COMMIT fails so rollback() still runs
                self._execute("COMMIT")
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._in_transaction = False
                # SQLite may already have rolled back on its own
                if self._connection.in_transaction:
                    self._execute("ROLLBACK")

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """Join the open transaction or run the block in its own"""
        with self._lock:
            if self._in_transaction:
                yield
                return
            self.begin_transaction()
            try:
                yield
                self.commit()
            except Exception:
                self.rollback()
                raise

    def insert_person(self, name: str, document: str, birth_date: date) -> Person:
        with self._lock:
            cursor = self._execute(
                "INSERT INTO person (name, document, birth_date) VALUES (?, ?, ?)",
                (name, document, birth_date.isoformat())
            )
            return Person(
                person_id=cursor.lastrowid,
                name=name,
                document=document,
                birth_date=birth_date
            )

    def get_person(self, person_id: int) -> Optional[Person]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM person WHERE person_id = ?", (person_id,)
            ).fetchone()
            return _person_from_row(row) if row else None

    def find_person_by_document(self, document: str) -> Optional[Person]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM person WHERE document = ?", (document,)
            ).fetchone()
            return _person_from_row(row) if row else None

    def insert_account(self, person_id: int, daily_withdrawal_limit: Decimal,
                       account_type: int) -> Account:
        with self._lock:
            created_at = self.clock.now()
            cursor = self._execute(
                """
                INSERT INTO account (person_id, balance, daily_withdrawal_limit,
                                     account_type, active_flag, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                """,
                (person_id, str(ZERO), str(to_amount(daily_withdrawal_limit)),
                 account_type, _timestamp(created_at))
            )
            return self.get_account(cursor.lastrowid)

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._lock:
            row = self._execute(
                "SELECT * FROM account WHERE account_id = ?", (account_id,)
            ).fetchone()
            return _account_from_row(row) if row else None

    def set_active_flag(self, account_id: int, active: bool) -> int:
        with self._lock:
            cursor = self._execute(
                "UPDATE account SET active_flag = ? WHERE account_id = ?",
                (1 if active else 0, account_id)
            )
            return cursor.rowcount

    def increment_balance(self, account_id: int, delta: Decimal) -> Decimal:
        with self._atomic():
            row = self._execute(
                "SELECT balance FROM account WHERE account_id = ?", (account_id,)
            ).fetchone()
            if row is None:
                raise StorageError(f"Account {account_id} does not exist")
            new_balance = to_amount(Decimal(row['balance']) + delta)
            self._execute(
                "UPDATE account SET balance = ? WHERE account_id = ?",
                (str(new_balance), account_id)
            )
            return new_balance

    def insert_transaction(self, account_id: int, value: Decimal) -> Transaction:
        with self._lock:
            transaction_date = self.clock.now()
            value = to_amount(value)
            cursor = self._execute(
                "INSERT INTO transactions (account_id, value, transaction_date) VALUES (?, ?, ?)",
                (account_id, str(value), _timestamp(transaction_date))
            )
            return Transaction(
                transaction_id=cursor.lastrowid,
                account_id=account_id,
                value=value,
                transaction_date=transaction_date
            )

    def sum_debits(self, account_id: int, on_date: date) -> Decimal:
        with self._lock:
            rows = self._execute(
                """
                SELECT value FROM transactions
                WHERE account_id = ?
                  AND substr(transaction_date, 1, 10) = ?
                  AND value LIKE '-%'
                """,
                (account_id, on_date.isoformat())
            ).fetchall()
        # Summed as Decimal; SQLite SUM() over TEXT would go through float
        return sum((Decimal(row['value']) for row in rows), ZERO)

    def list_transactions(self, account_id: int) -> List[Transaction]:
        with self._lock:
            rows = self._execute(
                """
                SELECT * FROM transactions WHERE account_id = ?
                ORDER BY transaction_date DESC, transaction_id DESC
                """,
                (account_id,)
            ).fetchall()
            return [_transaction_from_row(row) for row in rows]

    @contextmanager
    def account_scope(self, account_id: int) -> Iterator[None]:
        # A single shared connection: holding the lock for the whole scope
        # serializes this process, BEGIN IMMEDIATE serializes other writers.
        with self._lock:
            with self._atomic():
                yield

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


POSTGRESQL_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS person (
        person_id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        document TEXT NOT NULL UNIQUE,
        birth_date DATE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account (
        account_id SERIAL PRIMARY KEY,
        person_id INTEGER NOT NULL REFERENCES person(person_id),
        balance NUMERIC(14, 2) NOT NULL DEFAULT 0,
        daily_withdrawal_limit NUMERIC(14, 2) NOT NULL,
        account_type INTEGER NOT NULL,
        active_flag BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        transaction_id SERIAL PRIMARY KEY,
        account_id INTEGER NOT NULL REFERENCES account(account_id),
        value NUMERIC(14, 2) NOT NULL,
        transaction_date TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_account_date
    ON transactions(account_id, transaction_date)
    """,
)


class PostgreSQLLedgerStore(LedgerStore):
    """PostgreSQL ledger store with row-level locking per account"""

    def __init__(self, connection_string: str, clock=None):
        super().__init__(clock)
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._connection = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self._connect()

        with self._lock:
            for statement in POSTGRESQL_SCHEMA:
                self._query(statement)

    def _connect(self) -> None:
        """Establish database connection"""
        with self._lock:
            try:
                self._connection = self.psycopg2.connect(
                    self.connection_string,
                    cursor_factory=self.extras.RealDictCursor
                )
            except self.psycopg2.Error as e:
                raise StorageError(f"PostgreSQL connection failed: {e}") from e
            self._connection.autocommit = False  # We handle transactions manually

    def _query(self, sql: str, params: tuple = (), fetch: Optional[str] = None):
        """
        Run one statement. fetch is None, "one" or "all".
        Outside an account scope every statement commits on its own.
        """
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params)
                if fetch == "one":
                    result = cursor.fetchone()
                elif fetch == "all":
                    result = cursor.fetchall()
                else:
                    result = cursor.rowcount
                if not self._in_transaction:
                    self._connection.commit()
                return result
            except self.psycopg2.Error as e:
                if not self._in_transaction:
                    self._connection.rollback()
                raise StorageError(f"PostgreSQL error: {e}") from e
            finally:
                cursor.close()

    def insert_person(self, name: str, document: str, birth_date: date) -> Person:
        row = self._query(
            """
            INSERT INTO person (name, document, birth_date) VALUES (%s, %s, %s)
            RETURNING *
            """,
            (name, document, birth_date),
            fetch="one"
        )
        return _person_from_row(row)

    def get_person(self, person_id: int) -> Optional[Person]:
        row = self._query("SELECT * FROM person WHERE person_id = %s", (person_id,), fetch="one")
        return _person_from_row(row) if row else None

    def find_person_by_document(self, document: str) -> Optional[Person]:
        row = self._query("SELECT * FROM person WHERE document = %s", (document,), fetch="one")
        return _person_from_row(row) if row else None

    def insert_account(self, person_id: int, daily_withdrawal_limit: Decimal,
                       account_type: int) -> Account:
        row = self._query(
            """
            INSERT INTO account (person_id, balance, daily_withdrawal_limit,
                                 account_type, active_flag, created_at)
            VALUES (%s, 0, %s, %s, TRUE, %s)
            RETURNING *
            """,
            (person_id, to_amount(daily_withdrawal_limit), account_type, self.clock.now()),
            fetch="one"
        )
        return _account_from_row(row)

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self._query("SELECT * FROM account WHERE account_id = %s", (account_id,), fetch="one")
        return _account_from_row(row) if row else None

    def set_active_flag(self, account_id: int, active: bool) -> int:
        return self._query(
            "UPDATE account SET active_flag = %s WHERE account_id = %s",
            (active, account_id)
        )

    def increment_balance(self, account_id: int, delta: Decimal) -> Decimal:
        row = self._query(
            """
            UPDATE account SET balance = balance + %s WHERE account_id = %s
            RETURNING balance
            """,
            (to_amount(delta), account_id),
            fetch="one"
        )
        if row is None:
            raise StorageError(f"Account {account_id} does not exist")
        return to_amount(row['balance'])

    def insert_transaction(self, account_id: int, value: Decimal) -> Transaction:
        row = self._query(
            """
            INSERT INTO transactions (account_id, value, transaction_date)
            VALUES (%s, %s, %s)
            RETURNING *
            """,
            (account_id, to_amount(value), self.clock.now()),
            fetch="one"
        )
        return _transaction_from_row(row)

    def sum_debits(self, account_id: int, on_date: date) -> Decimal:
        row = self._query(
            """
            SELECT COALESCE(SUM(value), 0) AS total FROM transactions
            WHERE account_id = %s AND value < 0 AND transaction_date::date = %s
            """,
            (account_id, on_date),
            fetch="one"
        )
        return to_amount(row['total'])

    def list_transactions(self, account_id: int) -> List[Transaction]:
        rows = self._query(
            """
            SELECT * FROM transactions WHERE account_id = %s
            ORDER BY transaction_date DESC, transaction_id DESC
            """,
            (account_id,),
            fetch="all"
        )
        return [_transaction_from_row(row) for row in rows]

    @contextmanager
    def account_scope(self, account_id: int) -> Iterator[None]:
        with self._lock:
            if self._in_transaction:
                yield
                return
            self._in_transaction = True
            try:
                # Row lock held until commit keeps other processes out too
                self._query(
                    "SELECT account_id FROM account WHERE account_id = %s FOR UPDATE",
                    (account_id,),
                    fetch="one"
                )
                yield
                try:
                    self._connection.commit()
                except self.psycopg2.Error as e:
                    raise StorageError(f"PostgreSQL commit failed: {e}") from e
            except Exception:
                self._connection.rollback()
                raise
            finally:
                self._in_transaction = False

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_store(database_url: str, clock=None) -> LedgerStore:
    """
    Build a ledger store from a database URL.

    Supported schemes:
        memory://                    in-memory store
        sqlite:// or sqlite:///path  SQLite (in-memory when no path is given)
        postgresql://...             PostgreSQL (requires psycopg2)
    """
    if database_url.startswith("memory://"):
        return InMemoryLedgerStore(clock=clock)

    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite:///"):] if database_url.startswith("sqlite:///") else ""
        return SQLiteLedgerStore(path or ":memory:", clock=clock)

    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLLedgerStore(database_url, clock=clock)

    raise ValueError(f"Unsupported database URL: {database_url}")
