import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import monotonic
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, TypeVar

import ydb

from .codec import TypedParam
from .connection import ConnectionProvider
from .errors import ExecutionError, OperationCancelledError, StoreError, TruncatedResultError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ydb errors that mean "ran out of time", not "the store failed"
_CANCELLED_ERRORS = (
    ydb.issues.DeadlineExceed,
    ydb.issues.Cancelled,
    ydb.issues.Timeout,
    ydb.issues.SessionPoolEmpty,
)

Row = Mapping[str, Any]


@dataclass(frozen=True)
class Statement:
    """YQL text with its bound parameters.

    ``name`` identifies the repository operation (e.g. ``users.upsert``) and
    ``keys`` holds the identifiers reported when the statement fails.
    """
    name: str
    text: str
    params: Dict[str, TypedParam] = field(default_factory=dict)
    keys: Dict[str, Any] = field(default_factory=dict)

    def ydb_parameters(self) -> Dict[str, ydb.TypedValue]:
        return {name: param.to_ydb() for name, param in self.params.items()}


@contextmanager
def translate_errors(operation: str, keys: Optional[Dict[str, Any]] = None) -> Generator[None, None, None]:
    """Wrap ydb errors into ExecutionError, keeping the original as cause"""
    try:
        yield
    except StoreError:
        raise
    except _CANCELLED_ERRORS as e:
        raise OperationCancelledError(operation, keys, e) from e
    except ydb.issues.Error as e:
        raise ExecutionError(operation, keys, e) from e


class Deadline:
    """One timeout budget shared by session checkout and the requests after it"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._expires_at = None if timeout is None else monotonic() + timeout

    def remaining(self, operation: str, keys: Optional[Dict[str, Any]] = None) -> Optional[float]:
        """Seconds left, raises OperationCancelledError once the budget is spent"""
        if self._expires_at is None:
            return None
        left = self._expires_at - monotonic()
        if left <= 0:
            raise OperationCancelledError(operation, keys)
        return left

    def settings(self, operation: str,
                 keys: Optional[Dict[str, Any]] = None) -> Optional[ydb.BaseRequestSettings]:
        left = self.remaining(operation, keys)
        if left is None:
            return None
        return ydb.BaseRequestSettings().with_timeout(left)


def _collect_rows(statement: Statement, result_sets) -> List[Row]:
    rows: List[Row] = []
    for result_set in result_sets:
        if getattr(result_set, "truncated", False):
            # A partial scan must never look like a complete one
            raise TruncatedResultError(statement.name, statement.keys)
        rows.extend(result_set.rows)
    return rows


def _with_prefix(prefix: str, text: str) -> str:
    if not prefix:
        return text
    return f'PRAGMA TablePathPrefix("{prefix}");\n{text}'


class Transaction:
    """Statement runner bound to one open serializable transaction"""

    def __init__(self, tx, table_path_prefix: str = "", deadline: Optional[Deadline] = None):
        self._tx = tx
        self._prefix = table_path_prefix
        self._deadline = deadline or Deadline()

    def query(self, statement: Statement, timeout: Optional[float] = None) -> List[Row]:
        logger.debug(f"[YDB] tx {statement.name} {statement.keys}")
        deadline = Deadline(timeout) if timeout is not None else self._deadline
        with translate_errors(statement.name, statement.keys):
            with self._tx.execute(
                _with_prefix(self._prefix, statement.text),
                parameters=statement.ydb_parameters(),
                settings=deadline.settings(statement.name, statement.keys),
            ) as result_sets:
                return _collect_rows(statement, result_sets)

    def execute(self, statement: Statement, timeout: Optional[float] = None) -> None:
        self.query(statement, timeout=timeout)


class Executor:
    """Runs statements through the shared connection.

    Each ``query``/``execute`` call runs in its own serializable read-write
    transaction committed together with the statement. Nothing is retried
    here; retry policy belongs to the caller.

    ``timeout`` is a budget for the whole call: time spent waiting for a
    pooled session is subtracted from what the request may use.
    """

    def __init__(self, provider: ConnectionProvider):
        self.provider = provider

    def query(self, statement: Statement, timeout: Optional[float] = None) -> List[Row]:
        """Execute a statement and return all rows in store order"""
        logger.debug(f"[YDB] {statement.name} {statement.keys}")
        deadline = Deadline(timeout)
        connection = self.provider.acquire()
        with translate_errors(statement.name, statement.keys):
            checkout_timeout = deadline.remaining(statement.name, statement.keys)
            with connection.pool.checkout(timeout=checkout_timeout) as session:
                tx = session.transaction(ydb.QuerySerializableReadWrite())
                with tx.execute(
                    _with_prefix(connection.table_path_prefix, statement.text),
                    parameters=statement.ydb_parameters(),
                    commit_tx=True,
                    settings=deadline.settings(statement.name, statement.keys),
                ) as result_sets:
                    return _collect_rows(statement, result_sets)

    def execute(self, statement: Statement, timeout: Optional[float] = None) -> None:
        """Execute a statement that returns no rows"""
        self.query(statement, timeout=timeout)

    def run_in_transaction(self, work: Callable[[Transaction], T],
                           timeout: Optional[float] = None,
                           name: str = "transaction") -> T:
        """Run ``work`` inside one serializable read-write transaction.

        Commits when ``work`` returns, rolls back on every other exit path
        (exceptions raised by ``work``, failed commit, KeyboardInterrupt).
        Checkout, begin, the statements of ``work`` and commit all share
        the one ``timeout`` budget.
        """
        deadline = Deadline(timeout)
        connection = self.provider.acquire()
        with translate_errors(name):
            with connection.pool.checkout(timeout=deadline.remaining(name)) as session:
                tx = session.transaction(ydb.QuerySerializableReadWrite())
                tx.begin(settings=deadline.settings(name))
                committed = False
                try:
                    result = work(Transaction(tx, connection.table_path_prefix, deadline))
                    tx.commit(settings=deadline.settings(name))
                    committed = True
                    return result
                finally:
                    if not committed:
                        self._rollback(tx, name)

    @staticmethod
    def _rollback(tx, name: str) -> None:
        try:
            tx.rollback()
        except Exception as e:
            # The original error is already propagating
            logger.warning(f"[YDB] {name}: rollback failed: {e}")

    def execute_scheme(self, text: str, timeout: Optional[float] = None,
                       name: str = "scheme") -> None:
        """Run DDL outside of any transaction"""
        deadline = Deadline(timeout)
        connection = self.provider.acquire()
        with translate_errors(name):
            with connection.pool.checkout(timeout=deadline.remaining(name)) as session:
                with session.execute(
                    _with_prefix(connection.table_path_prefix, text),
                    settings=deadline.settings(name),
                ) as result_sets:
                    for _ in result_sets:
                        pass
